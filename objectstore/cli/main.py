"""Main CLI entry point for objectstore commands."""

import click

from objectstore.cli.commands import storage
from objectstore.infra.logging.config import setup_logging


@click.group()
@click.version_option(package_name="objectstore-facade", prog_name="objectstore")
@click.option("-v", "--verbose", is_flag=True, help="Log at DEBUG level.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Objectstore CLI - one interface over S3, GCS, Azure Blob and local storage.

    The backend is read from conf/storage.yaml (or STORAGE_BACKEND) and
    credential secrets from the directory named by STORAGE_SECRETS_DIR.

    \b
    Quick Start:
      objectstore storage info                 # Show the configured backend
      objectstore storage probe                # Upload and delete a probe object
      objectstore storage put data/a.txt ./a   # Upload a local file
      objectstore storage ls data              # Print every file below data/
    """
    ctx.ensure_object(dict)
    if verbose:
        setup_logging(log_level="DEBUG")
    else:
        setup_logging()


cli.add_command(storage.storage)


if __name__ == "__main__":
    cli()
