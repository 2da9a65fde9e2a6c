"""Storage commands for the configured object store backend.

This module provides CLI commands for:
- Showing the configured backend and settings
- Reading, writing and deleting single objects
- Listing file contents and directory trees
- Probing connectivity with a throwaway object
"""

import sys
from pathlib import Path
from typing import BinaryIO, NoReturn

import click

from objectstore.cli.utils import coro, error, format_bytes, header, info, success, warning
from objectstore.core.exceptions import ConfigurationError, ObjectStoreError
from objectstore.core.settings import get_storage_settings
from objectstore.infra.metrics import render_metrics
from objectstore.infra.storage import BlobStorage, blob_storage_from_settings

PROBE_PATH = "objectstore-probe/probe.txt"
PROBE_DATA = b"objectstore connectivity probe"


async def _open_storage() -> BlobStorage:
    """Build a facade from the current settings or exit with an error."""
    try:
        return await blob_storage_from_settings(get_storage_settings())
    except ObjectStoreError as e:
        error(f"Failed to open storage: {e}")
        sys.exit(1)


def _fail(action: str, e: ObjectStoreError) -> NoReturn:
    error(f"Failed to {action}: {e}")
    if e.extra:
        for key, value in e.extra.items():
            click.echo(f"  {key}: {value}", err=True)
    sys.exit(1)


@click.group(name="storage")
def storage() -> None:
    """Object storage commands.

    Every path is relative to the backend's configured prefix.
    """


@storage.command(name="info")
def info_cmd() -> None:
    """Show the configured backend and operation limits."""
    settings = get_storage_settings()

    header("Storage Configuration")
    click.echo(f"Configured: {settings.is_configured}")
    click.echo(f"Namespace: {settings.namespace}")

    backend = settings.backend
    if backend is None:
        warning("No backend configured")
        info("Set backend in conf/storage.yaml or STORAGE_BACKEND")
        sys.exit(1)

    try:
        provider = backend.provider()
    except ConfigurationError as e:
        _fail("read backend", e)

    click.echo(f"Provider: {provider}")
    click.echo(f"Container: {backend.container()}")
    click.echo(f"Prefix: {backend.prefix() or '(none)'}")
    try:
        click.echo(f"Location: {backend.location()}")
    except ConfigurationError:
        click.echo("Location: (not supported)")
    if backend.endpoint():
        click.echo(f"Endpoint: {backend.endpoint()}")
    if backend.region():
        click.echo(f"Region: {backend.region()}")
    if backend.max_connections():
        click.echo(f"Max Connections: {backend.max_connections()}")

    click.echo(f"\nSecret: {backend.storage_secret_name or '(none)'}")
    click.echo(f"Secrets Dir: {settings.secrets_dir or '(none)'}")
    click.echo(f"Credentials Via Environment: {settings.credentials_via_environment}")

    timeout = f"{settings.operation_timeout}s" if settings.operation_timeout else "disabled"
    click.echo(f"\nOperation Timeout: {timeout}")
    click.echo(f"Connect/Read Timeout: {settings.connect_timeout}s/{settings.read_timeout}s")
    click.echo(f"Max Retries: {settings.max_retries} ({settings.retry_mode})")


@storage.command()
@click.argument("path")
@coro
async def exists(path: str) -> None:
    """Check whether PATH exists. Exits 1 when it does not."""
    blob_storage = await _open_storage()
    try:
        found = await blob_storage.exists(path)
    except ObjectStoreError as e:
        _fail(f"check {path}", e)

    if found:
        success(f"{path} exists")
    else:
        warning(f"{path} does not exist")
        sys.exit(1)


@storage.command()
@click.argument("path")
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the object to a file instead of stdout",
)
@coro
async def get(path: str, output: Path | None) -> None:
    """Download the object at PATH."""
    blob_storage = await _open_storage()
    try:
        data = await blob_storage.get(path)
    except ObjectStoreError as e:
        _fail(f"get {path}", e)

    if output is None:
        click.get_binary_stream("stdout").write(data)
        return
    output.write_bytes(data)
    success(f"Wrote {format_bytes(len(data))} to {output}")


@storage.command()
@click.argument("path")
@click.argument("source", type=click.File("rb"))
@click.option("--content-type", default="", help="Content type to store with the object")
@coro
async def put(path: str, source: BinaryIO, content_type: str) -> None:
    """Upload SOURCE (a file, or - for stdin) to PATH."""
    data = source.read()
    blob_storage = await _open_storage()
    try:
        await blob_storage.upload(path, data, content_type)
    except ObjectStoreError as e:
        _fail(f"upload {path}", e)

    success(f"Uploaded {format_bytes(len(data))} to {path}")


@storage.command(name="ls")
@click.argument("directory", default="")
@click.option("--show-content", is_flag=True, help="Print each file's content")
@coro
async def ls(directory: str, show_content: bool) -> None:
    """Read every file below DIRECTORY."""
    blob_storage = await _open_storage()
    try:
        contents = await blob_storage.list(directory)
    except ObjectStoreError as e:
        _fail(f"list {directory or 'root'}", e)

    if not contents:
        warning(f"No files found below '{directory or 'root'}'")
        return

    total = sum(len(c) for c in contents)
    if show_content:
        for content in contents:
            click.echo(content.decode(errors="replace"))
    click.echo(f"Total: {len(contents)} files, {format_bytes(total)}")


@storage.command()
@click.argument("directory", default="")
@click.option(
    "--depth",
    type=int,
    default=0,
    show_default=True,
    help="Extra levels to descend; negative walks the whole tree",
)
@coro
async def dirs(directory: str, depth: int) -> None:
    """List directories below DIRECTORY."""
    blob_storage = await _open_storage()
    try:
        found = await blob_storage.list_dir_n(directory, depth)
    except ObjectStoreError as e:
        _fail(f"list directories below {directory or 'root'}", e)

    for key in found:
        click.echo(key)
    if not found:
        warning(f"No directories found below '{directory or 'root'}'")


@storage.command()
@click.argument("path")
@click.option("-r", "--recursive", is_flag=True, help="Delete every object below PATH")
@click.option("--yes", is_flag=True, help="Skip the confirmation for recursive deletes")
@coro
async def rm(path: str, recursive: bool, yes: bool) -> None:
    """Delete the object at PATH."""
    if recursive and not yes:
        click.confirm(f"Delete everything below {path}?", abort=True)

    blob_storage = await _open_storage()
    try:
        await blob_storage.delete(path, is_dir=recursive)
    except ObjectStoreError as e:
        _fail(f"delete {path}", e)

    success(f"Deleted {path}")


@storage.command()
@click.argument("path")
@coro
async def mkdir(path: str) -> None:
    """Create a directory marker for PATH."""
    blob_storage = await _open_storage()
    try:
        await blob_storage.mark_as_directory(path)
    except ObjectStoreError as e:
        _fail(f"create directory {path}", e)

    success(f"Created directory {path}/")


@storage.command()
@click.option("--path", "probe_path", default=PROBE_PATH, show_default=True)
@click.option("--show-metrics", is_flag=True, help="Print Prometheus metrics after the probe")
@coro
async def probe(probe_path: str, show_metrics: bool) -> None:
    """Upload and delete a small object to check connectivity.

    Transport SDK loggers run at DEBUG while the probe is in flight.
    """
    blob_storage = await _open_storage()
    info(f"Probing {blob_storage.provider} at {blob_storage.location or 'unknown location'}...")
    try:
        await blob_storage.debug(probe_path, PROBE_DATA, "text/plain")
    except ObjectStoreError as e:
        _fail("probe storage", e)

    success("Storage is reachable and writable")

    if show_metrics:
        header("Metrics")
        click.echo(render_metrics().decode())
