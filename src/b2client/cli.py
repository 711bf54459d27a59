"""Command-line interface for b2client."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from b2client import (
    AuthenticationError,
    B2Client,
    B2Error,
    DownloadOptions,
    ListOptions,
    Range,
)
from b2client.config import get_config, get_log_level


def get_client() -> B2Client:
    """Create a logged-in B2Client from the environment configuration."""
    config = get_config(load_env_file=False)
    return B2Client(
        config.account_id,
        config.application_key,
        api_url=config.api_url,
        timeout=config.timeout,
    )


def _parse_info(values: tuple[str, ...]) -> dict[str, str]:
    """Parse repeated ``key=value`` options into a metadata dict."""
    metadata: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got {item!r}", param_hint="--info")
        metadata[key] = value
    return metadata


def _parse_range(value: str | None) -> Range:
    """Parse an inclusive ``BEGIN-END`` byte range."""
    if not value:
        return Range()
    begin, sep, end = value.partition("-")
    try:
        if not sep:
            raise ValueError(value)
        return Range(begin=int(begin or 0), end=int(end))
    except ValueError:
        raise click.BadParameter(f"expected BEGIN-END, got {value!r}", param_hint="--range") from None


def _fail(message: str) -> None:
    click.echo(click.style(message, fg="red"), err=True)
    sys.exit(1)


@click.group()
@click.version_option(package_name="b2client")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool) -> None:
    """Backblaze B2 CLI - Upload, list and download files.

    Credentials are read from B2_ACCOUNT_ID and B2_APPLICATION_KEY, or from
    a .env file in the current directory.
    """
    load_dotenv()
    level = logging.DEBUG if verbose else get_log_level()
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@main.command()
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--bucket", "-b", required=True, help="Target bucket name")
@click.option("--prefix", default="", help="Prefix prepended to each file name")
@click.option("--content-type", "-t", default="", help="MIME type (default: detected by B2)")
@click.option("--info", "-i", multiple=True, help="Custom file info as key=value (repeatable)")
def upload(
    files: tuple[Path, ...],
    bucket: str,
    prefix: str,
    content_type: str,
    info: tuple[str, ...],
) -> None:
    """Upload files to a bucket.

    FILES: One or more files to upload.

    Examples:

        b2client upload report.pdf -b documents

        b2client upload *.jpg -b photos --prefix 2024/ -i camera=x100
    """
    metadata = _parse_info(info)
    try:
        with get_client() as client:
            target = client.bucket_by_name(bucket)
            failures = 0
            for path in files:
                name = f"{prefix}{path.name}"
                try:
                    with path.open("rb") as f:
                        result = target.upload(f, name, content_type, metadata)
                except B2Error as e:
                    failures += 1
                    click.echo(click.style("✗ ", fg="red") + f"{name}: {e}", err=True)
                    continue
                click.echo(
                    click.style("✓ ", fg="green") + f"{name} -> {bucket} ({result.id})"
                )

        total = len(files)
        if failures:
            click.echo(f"\n{total - failures}/{total} file(s) uploaded.", err=True)
            sys.exit(1)
        click.echo(click.style(f"\nAll {total} file(s) uploaded successfully!", fg="green"))

    except AuthenticationError as e:
        _fail(f"Authentication failed: {e}")
    except (B2Error, ValueError) as e:
        _fail(f"Error: {e}")


@main.command("ls")
@click.argument("bucket")
@click.option("--prefix", default="", help="Only list names starting with this prefix")
@click.option("--delimiter", default="", help="Group names into folders at this delimiter")
@click.option("--from-name", default="", help="Start listing at this file name")
@click.option("--versions", is_flag=True, help="List every version, not only the latest")
@click.option("--page-size", default=100, show_default=True, help="Results per API call (max 1000)")
def list_files(
    bucket: str,
    prefix: str,
    delimiter: str,
    from_name: str,
    versions: bool,
    page_size: int,
) -> None:
    """List files in a bucket.

    Examples:

        b2client ls photos

        b2client ls photos --prefix 2024/ --delimiter /
    """
    options = ListOptions(from_name=from_name, prefix=prefix, delimiter=delimiter)
    try:
        with get_client() as client:
            target = client.bucket_by_name(bucket)
            if versions:
                listing = target.list_file_versions(options, page_count=page_size)
            else:
                listing = target.list_files(options, page_count=page_size)

            count = 0
            for entry in listing:
                count += 1
                if entry.action == "folder":
                    click.echo(click.style(f"  {entry.name}", fg="blue"))
                elif entry.action == "hide":
                    click.echo(click.style(f"  {entry.name}  (hidden)", fg="yellow"))
                else:
                    size_str = _format_size(entry.content_length)
                    line = f"  {entry.name}  ({size_str})"
                    if versions:
                        line += f"  {entry.id}"
                    click.echo(line)

            if not count:
                click.echo(f"(no files in {bucket})")

    except AuthenticationError as e:
        _fail(f"Authentication failed: {e}")
    except (B2Error, ValueError) as e:
        _fail(f"Error: {e}")


@main.command()
@click.argument("file_id")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Output file (default: the file's name)")
@click.option("--range", "byte_range", help="Inclusive byte range, e.g. 0-1023")
def download(file_id: str, output: Path | None, byte_range: str | None) -> None:
    """Download a file version by ID.

    Examples:

        b2client download 4_z27c88f1d182b150646ff0b16_f1004ba650fe24e6b_d20150809_m012853_c100_v0009990_t0000

        b2client download <file-id> -o head.bin --range 0-1023
    """
    options = DownloadOptions(file_id=file_id, range=_parse_range(byte_range))
    try:
        with get_client() as client, client.download_file(options) as result:
            target = output or Path(Path(result.info.name).name or file_id)
            written = 0
            with target.open("wb") as f:
                for chunk in result.iter_bytes():
                    f.write(chunk)
                    written += len(chunk)
        click.echo(click.style(f"Downloaded {written} bytes to {target}", fg="green"))

    except AuthenticationError as e:
        _fail(f"Authentication failed: {e}")
    except (B2Error, ValueError, OSError) as e:
        _fail(f"Error: {e}")


@main.command("rm")
@click.argument("file_id")
@click.argument("name")
def delete_file(file_id: str, name: str) -> None:
    """Delete a file version."""
    try:
        with get_client() as client:
            client.delete_file(file_id, name)
        click.echo(click.style(f"Deleted {name}", fg="green"))

    except AuthenticationError as e:
        _fail(f"Authentication failed: {e}")
    except (B2Error, ValueError) as e:
        _fail(f"Error: {e}")


@main.command()
def buckets() -> None:
    """List the account's buckets."""
    try:
        with get_client() as client:
            for bucket in client.buckets():
                click.echo(f"  {bucket.name}  {bucket.type}  {bucket.id}")

    except AuthenticationError as e:
        _fail(f"Authentication failed: {e}")
    except (B2Error, ValueError) as e:
        _fail(f"Error: {e}")


def _format_size(size_bytes: int) -> str:
    """Format file size in human-readable form."""
    size = float(size_bytes)
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024:
            return f"{size:.1f} {unit}" if unit != "B" else f"{int(size)} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


if __name__ == "__main__":
    main()
