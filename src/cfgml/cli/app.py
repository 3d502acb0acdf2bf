"""Root Typer application with subcommand registration."""

from __future__ import annotations

from typing import Optional

import typer

from cfgml import CfgMLContext, __version__

app = typer.Typer(
    name="cfgml",
    help="cfgml — attributed CFGs and feature vectors from disassembly, for binary similarity",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Shared state across commands
_ctx = CfgMLContext()


def get_context() -> CfgMLContext:
    return _ctx


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"cfgml {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Optional[str] = typer.Option(None, "--config", "-C", help="Path to cfgml.yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON lines"),
    workers: Optional[int] = typer.Option(
        None, "--workers", "-w", min=1, help="Worker processes (overrides runtime.workers)"
    ),
    version: Optional[bool] = typer.Option(
        None, "--version", "-V", callback=_version_callback, is_eager=True
    ),
) -> None:
    """cfgml — attributed CFGs and feature vectors from disassembly."""
    from cfgml.config.loader import load_config
    from cfgml.errors import CfgMLError
    from cfgml.utils.formatters import print_error
    from cfgml.utils.logging import setup_logging

    try:
        _ctx.config = load_config(config)
    except CfgMLError as exc:
        print_error(str(exc))
        raise typer.Exit(1)

    runtime = _ctx.config.runtime
    setup_logging(
        level="DEBUG" if verbose else runtime.log_level,
        json_output=json_logs or runtime.json_logs,
    )
    _ctx.workers_override = workers


# -- Subcommand registration --
from cfgml.cli.generate import generate_app  # noqa: E402
from cfgml.cli.dedup import dedup_app  # noqa: E402

app.add_typer(generate_app, name="generate", help="Generate graphs, NLP corpora and function features")
app.add_typer(dedup_app, name="dedup", help="Deduplicate record or graph corpora")
