from .jobs.cleanup_loop import cli

cli()
