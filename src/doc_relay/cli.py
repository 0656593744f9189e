from __future__ import annotations

import time
from pathlib import Path

import typer
from rich.console import Console

from .config import ConverterSettings, configure_logging
from .conversion import ConversionError, ConversionService, DocumentServerEngine, SidecarStorage, default_output_format

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(help="Convert documents through a remote conversion engine")


def build_service(engine_url: str, secret: str, storage_url: str, timeout: float) -> ConversionService:
    storage = SidecarStorage(storage_url, timeout=timeout)
    engine = DocumentServerEngine(engine_url, timeout=timeout)
    return ConversionService(storage, engine, secret=secret)


@app.command()
def convert(
    input_file: Path = typer.Argument(..., help="Document to convert"),
    engine_url: str | None = typer.Argument(None, help="Base URL of the conversion engine"),
    secret: str | None = typer.Argument(None, help="Secret used to sign conversion requests"),
    storage_url: str | None = typer.Argument(None, help="Base URL of the storage sidecar"),
    to: str | None = typer.Option(None, "--to", help="Target format (default depends on the input type)"),
    timeout: float | None = typer.Option(None, "--timeout", min=1, help="Per-request timeout in seconds"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log each conversion step"),
) -> None:
    configure_logging("INFO" if verbose else "WARNING")
    settings = ConverterSettings.from_env()
    engine_url = engine_url or settings.engine_url
    secret = settings.jwt_secret if secret is None else secret
    storage_url = storage_url or settings.storage_url

    if not input_file.is_file():
        err_console.print(f"Error: Input file not found: {input_file}")
        raise typer.Exit(1)

    output_format = (to or default_output_format(input_file.suffix)).lower()
    console.print(f"Input file: {input_file}")
    console.print(f"Engine URL: {engine_url}")
    console.print(f"Output format: {output_format}")

    service = build_service(engine_url, secret, storage_url, timeout or settings.timeout_s)
    output_path = input_file.with_name(f"{input_file.stem}.{output_format}")
    started = time.monotonic()
    try:
        converted = service.convert_file(input_file, output_format)
        elapsed_ms = int((time.monotonic() - started) * 1000)
        output_path.write_bytes(converted)
    except (ConversionError, OSError) as exc:
        err_console.print(f"Error: {exc}")
        if exc.__cause__ is not None:
            err_console.print(f"  Inner error: {exc.__cause__}")
        raise typer.Exit(1) from exc
    finally:
        service.close()

    console.print("[green]Conversion completed successfully[/green]")
    console.print(f"  - Converted file size: {len(converted)} bytes")
    console.print(f"  - Time elapsed: {elapsed_ms}ms")
    console.print(f"  - Output file: {output_path}")


@app.command()
def serve() -> None:
    """Run the storage sidecar in the foreground (configured from the environment)."""
    from .server import run

    run()


if __name__ == "__main__":
    app()
