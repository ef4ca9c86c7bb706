from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..config import AppConfig, load_config
from ..dispatcher import Dispatcher
from ..errors import EncodeError, InvalidTarget, WatchError
from ..formats import ExportFormat
from ..models import BatchConversionResult
from ..settings import get_settings

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Watch PSD files (a single file or a directory tree) and export flattened renders next to them.",
    add_completion=False,
)


def _load_config(path: Path | None) -> AppConfig:
    return load_config(path or get_settings().config_path)


def configure_logging(level: str) -> None:
    root = logging.getLogger()
    if any(isinstance(handler, RichHandler) for handler in root.handlers):
        root.setLevel(level)
        return
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


def _apply_overrides(
    cfg: AppConfig,
    export_format: str | None,
    quality: int | None,
    quiet_window: int | None,
) -> None:
    if export_format is not None:
        try:
            cfg.runtime.output_format = ExportFormat.parse(export_format)
        except EncodeError as exc:
            raise typer.BadParameter(str(exc), param_hint="--format") from exc
    if quality is not None:
        cfg.runtime.jpeg_quality = quality
        if cfg.runtime.output_format.lossless:
            console.print(f"Note: --quality is ignored for lossless {cfg.runtime.output_format.value} output.")
    if quiet_window is not None:
        cfg.runtime.quiet_window_ms = quiet_window


def _print_batch(batch_result: BatchConversionResult) -> None:
    if not batch_result.results:
        console.print("No source documents found to export.")
        return
    table = Table(title="Export summary")
    table.add_column("Source")
    table.add_column("Output")
    table.add_column("Status")
    for result in batch_result.results:
        if result.succeeded:
            status = "[green]ok[/green]"
        else:
            status = f"[red]{result.error_code}[/red]: {result.error_message}"
        table.add_row(str(result.source_path), str(result.target_path or "-"), status)
    console.print(table)
    console.print(batch_result.summary.describe())


@app.command()
def export(
    path: Path = typer.Argument(..., help="Directory to watch recursively, or a single PSD file"),
    export_format: str | None = typer.Option(
        None, "--format", "-f", help="Output format: png, jpg, webp or tiff (default: png)"
    ),
    once: bool = typer.Option(False, "--once", help="Export existing documents once and exit instead of watching"),
    quality: int | None = typer.Option(None, "--quality", min=1, max=100, help="Quality for lossy formats (jpg, webp)"),
    quiet_window: int | None = typer.Option(
        None, "--quiet-window", min=0, help="Milliseconds a file must stay unchanged before exporting"
    ),
    config: Path | None = typer.Option(None, "--config", help="Path to psd-autoexport.toml"),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR"),
) -> None:
    cfg = _load_config(config)
    _apply_overrides(cfg, export_format, quality, quiet_window)
    configure_logging((log_level or get_settings().log_level or cfg.runtime.log_level).upper())

    dispatcher = Dispatcher(cfg)
    try:
        batch_result = dispatcher.run(path, cfg.runtime.output_format, once=once)
    except InvalidTarget as exc:
        err_console.print(f"[red]Invalid target[/red]: {exc}")
        raise typer.Exit(1) from exc
    except WatchError as exc:
        err_console.print(f"[red]Watch failed[/red]: {exc}")
        raise typer.Exit(1) from exc
    if batch_result is not None:
        _print_batch(batch_result)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
