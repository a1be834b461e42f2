from ctxbench.main import cli

cli()
