"""cfgml dedup — exact deduplication of record and graph corpora."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

dedup_app = typer.Typer(no_args_is_help=True)


def _require_dir(path: Path) -> None:
    from cfgml.utils.formatters import print_error

    if not path.is_dir():
        print_error(f"Not a directory: {path}")
        raise typer.Exit(1)


def _stats_rows(results) -> list[dict]:
    return [{"Binary": r.binary_name, **r.stats.as_row()} for r in results]


@dedup_app.command()
def records(
    directory: Path = typer.Argument(..., help="Directory of {function: text} JSON files"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory"),
    print_stats: Optional[bool] = typer.Option(
        None, "--print-stats/--no-print-stats", help="Print per-binary statistics"
    ),
    just_stats: bool = typer.Option(False, "--just-stats", help="Compute statistics only, write nothing"),
    hash_just_value: Optional[bool] = typer.Option(
        None, "--hash-just-value/--hash-name-and-value", help="Ignore function names when hashing"
    ),
) -> None:
    """Deduplicate function strings per binary."""
    from cfgml.cli.app import get_context
    from cfgml.config.loader import apply_overrides
    from cfgml.dedup.records import RecordCorpus, dedup_corpus
    from cfgml.utils.formatters import print_error, print_success, print_summary, print_table

    _require_dir(directory)
    if output is None and not just_stats:
        print_error("--output is required unless --just-stats is given")
        raise typer.Exit(1)

    ctx = get_context()
    config = apply_overrides(
        ctx.ensure_config(), "dedup", print_stats=print_stats, hash_just_value=hash_just_value
    ).dedup

    corpus = RecordCorpus.from_directory(directory)
    if not corpus.files:
        print_error(f"No JSON files found under {directory}")
        raise typer.Exit(1)

    results = dedup_corpus(
        corpus,
        output_dir=None if just_stats else output,
        hash_just_value=config.hash_just_value,
        workers=ctx.workers(),
    )
    if config.print_stats or just_stats:
        print_table(_stats_rows(results), title="Record deduplication")

    failed = sum(len(r.failed_files) for r in results)
    processed = sum(1 for r in results if r.stats.original > 0)
    print_summary("Binaries", processed, len(results) - processed, failed)
    if processed == 0:
        raise typer.Exit(1)
    if not just_stats:
        print_success(f"Wrote {processed} deduplicated corpus file(s) to {output}")


@dedup_app.command("graphs")
def graphs_cmd(
    directory: Path = typer.Argument(..., help="Directory tree of exported graph JSON files"),
    output: Path = typer.Option(..., "--output", "-o", help="Output directory"),
    filepath_format: Optional[str] = typer.Option(
        None, "--filepath-format", help="cisco or binkit directory naming"
    ),
    print_stats: Optional[bool] = typer.Option(None, "--print-stats/--no-print-stats"),
) -> None:
    """Deduplicate exported graphs per binary."""
    from cfgml.cli.app import get_context
    from cfgml.config.loader import apply_overrides
    from cfgml.dedup.graphs import GraphCorpus, dedup_graph_corpus
    from cfgml.utils.formatters import print_error, print_summary, print_table, print_warning

    _require_dir(directory)
    ctx = get_context()
    config = apply_overrides(
        ctx.ensure_config(), "dedup", filepath_format=filepath_format, print_stats=print_stats
    ).dedup
    if config.filepath_format not in ("cisco", "binkit"):
        print_error(f"Unknown filepath format {config.filepath_format!r} (choose cisco or binkit)")
        raise typer.Exit(1)

    corpus = GraphCorpus.from_directory(directory, config.filepath_format)
    if corpus.unparsed:
        print_warning(f"{len(corpus.unparsed)} file(s) had no parsable binary name")
    if not corpus.groups:
        print_error(f"No graph files found under {directory}")
        raise typer.Exit(1)

    results = dedup_graph_corpus(corpus, output_dir=output, workers=ctx.workers())
    if config.print_stats:
        print_table(_stats_rows(results), title="Graph deduplication")

    written = sum(len(r.written) for r in results)
    removed = sum(r.stats.removed for r in results)
    failed = sum(len(r.failed_files) for r in results) + len(corpus.unparsed)
    print_summary("Graphs", written, removed, failed)
    if written == 0:
        raise typer.Exit(1)
