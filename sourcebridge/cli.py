"""SourceBridge CLI application with Typer."""

import json
import logging
from pathlib import Path
from typing import Annotated

import typer

from sourcebridge import __version__
from sourcebridge.app.ports import SOURCE_TYPES, SourceDescriptor
from sourcebridge.app.ports.connector import describe_options
from sourcebridge.bootstrap import ApplicationContainer, bootstrap_application
from sourcebridge.config import get_settings, set_settings
from sourcebridge.errors import SourceBridgeError
from sourcebridge.utils.cli_output import json_response
from sourcebridge.utils.jsonl import atomic_write_jsonl

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="sourcebridge",
    help="Ingest files from local, FTP, SFTP, Kafka and HTTP sources as canonical JSON",
    add_completion=False,
    no_args_is_help=True,
)

SourceType = Annotated[str, typer.Option("--type", "-t", help=f"Source type: {', '.join(SOURCE_TYPES)}")]
Address = Annotated[str, typer.Option("--address", "-a", help="Directory, host, topic or base URL")]
SourceOptions = Annotated[
    list[str] | None,
    typer.Option("--option", "-o", help="Connector option as KEY=VALUE (repeatable)"),
]


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"SourceBridge version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)"),
    ] = None,
) -> None:
    """SourceBridge - connectors and format converters for file ingestion."""
    settings = get_settings()
    if log_level:
        settings.log_level = log_level.upper()  # type: ignore[assignment]
    set_settings(settings)
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _parse_options(pairs: list[str] | None) -> dict[str, str]:
    options: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"Expected KEY=VALUE, got {pair!r}", param_hint="--option")
        options[key.strip()] = value
    return options


def _descriptor(source_type: str, address: str, options: list[str] | None) -> SourceDescriptor:
    descriptor = SourceDescriptor(type=source_type, address=address, options=_parse_options(options))
    logger.debug("Using %s source %s with options %s", descriptor.type, address, describe_options(descriptor))
    return descriptor


def _container() -> ApplicationContainer:
    return bootstrap_application(get_settings())


def _fail(exc: SourceBridgeError) -> typer.Exit:
    typer.secho(f"Error [{exc.kind}]: {exc}", fg=typer.colors.RED, err=True)
    return typer.Exit(code=1)


@app.command("test")
def test_source(
    source_type: SourceType,
    address: Address,
    option: SourceOptions = None,
) -> None:
    """Check that a source is reachable with the given credentials."""
    descriptor = _descriptor(source_type, address, option)
    try:
        connector = _container().connectors.resolve(descriptor.type)
    except SourceBridgeError as exc:
        raise _fail(exc) from exc

    if connector.test(descriptor):
        typer.secho(f"✓ {descriptor.type} source reachable: {address}", fg=typer.colors.GREEN)
        return
    typer.secho(f"✗ {descriptor.type} source unreachable: {address}", fg=typer.colors.RED)
    raise typer.Exit(code=1)


@app.command("list")
def list_files(
    source_type: SourceType,
    address: Address,
    option: SourceOptions = None,
    pattern: Annotated[str, typer.Option("--pattern", "-p", help="Glob pattern for file names")] = "*",
    json_output: Annotated[bool, typer.Option("--json", help="Output results as JSON")] = False,
) -> None:
    """List file references available at a source."""
    descriptor = _descriptor(source_type, address, option)
    try:
        references = _container().connectors.resolve(descriptor.type).list(descriptor, pattern)
    except SourceBridgeError as exc:
        raise _fail(exc) from exc

    if json_output:
        typer.echo(json_response("file_list", 1, source=address, pattern=pattern, files=references))
        return
    for reference in references:
        typer.echo(reference)


@app.command("describe")
def describe_file(
    reference: Annotated[str, typer.Argument(help="File reference to describe")],
    source_type: SourceType,
    address: Address,
    option: SourceOptions = None,
) -> None:
    """Print metadata for one file reference as JSON."""
    descriptor = _descriptor(source_type, address, option)
    try:
        metadata = _container().connectors.resolve(descriptor.type).describe(descriptor, reference)
    except SourceBridgeError as exc:
        raise _fail(exc) from exc

    typer.echo(json_response("file_metadata", 1, **metadata.model_dump(mode="json")))


@app.command("ingest")
def ingest(
    source_type: SourceType,
    address: Address,
    references: Annotated[
        list[str] | None,
        typer.Argument(help="File references to ingest (default: list the source)"),
    ] = None,
    option: SourceOptions = None,
    pattern: Annotated[str, typer.Option("--pattern", "-p", help="Glob pattern when listing")] = "*",
    source_format: Annotated[
        str | None,
        typer.Option("--format", "-f", help="Force a format instead of sniffing (json, xml, csv, excel)"),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", help="Write one JSONL outcome per file to this path"),
    ] = None,
) -> None:
    """Convert files from a source to canonical JSON.

    Example:
        sourcebridge ingest --type local --address ./data --pattern "*.csv" --output out.jsonl
    """
    descriptor = _descriptor(source_type, address, option)
    pipeline = _container().pipeline
    try:
        if references:
            outcomes = pipeline.ingest_many(descriptor, references, source_format=source_format)
        else:
            outcomes = pipeline.run(descriptor, pattern, source_format=source_format).outcomes
    except SourceBridgeError as exc:
        raise _fail(exc) from exc

    failed = [outcome for outcome in outcomes if not outcome.ok]
    if output is not None:
        count = atomic_write_jsonl(output, outcomes, schema_id="ingestion_outcome", schema_version=1)
        typer.secho(f"Wrote {count} outcomes to {output}", fg=typer.colors.GREEN)
    else:
        for outcome in outcomes:
            typer.echo(json.dumps(outcome.model_dump(mode="json"), ensure_ascii=False))

    for outcome in failed:
        typer.secho(
            f"✗ {outcome.reference}: [{outcome.error_kind}] {outcome.error}",
            fg=typer.colors.RED,
            err=True,
        )
    typer.echo(f"Ingested {len(outcomes) - len(failed)} of {len(outcomes)} files")
    if failed:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
