"""cfgml generate — attributed graphs, call graphs, NLP corpora and function features."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

generate_app = typer.Typer(no_args_is_help=True)


def _input_files(path: Path, recursive: bool) -> list[Path]:
    from cfgml.extraction.loader import find_input_files
    from cfgml.utils.formatters import print_error

    if not path.exists():
        print_error(f"Input path does not exist: {path}")
        raise typer.Exit(1)
    files = find_input_files(path, recursive=recursive)
    if not files:
        print_error(f"No .json/.jsonl files found under {path}")
        raise typer.Exit(1)
    return files


def _finish(title: str, report) -> None:
    from cfgml.utils.formatters import print_summary

    print_summary(title, report.processed, report.skipped, report.failed)
    if report.processed == 0 and report.failed > 0:
        raise typer.Exit(1)


@generate_app.command()
def graphs(
    path: Path = typer.Argument(..., help="Function JSON file or directory of them"),
    output: Path = typer.Option(..., "--output", "-o", help="Output directory"),
    feature_scheme: Optional[str] = typer.Option(
        None, "--feature-scheme", "-f", help="gemini, discovre, dgis, tiknib, disasm or esil"
    ),
    min_blocks: Optional[int] = typer.Option(None, "--min-blocks", "-m", min=0),
    reg_norm: Optional[bool] = typer.Option(
        None, "--reg-norm/--no-reg-norm", help="Mask registers in instruction text"
    ),
    node_labels: Optional[str] = typer.Option(None, "--node-labels", help="index or address"),
    arch: Optional[str] = typer.Option(
        None, "--arch", "-a", help="Override architecture detection (x86, arm, mips)"
    ),
    recursive: bool = typer.Option(False, "--recursive", "-r"),
) -> None:
    """Write one attributed CFG JSON file per function."""
    from cfgml.analysis.opcodes import Architecture
    from cfgml.cli.app import get_context
    from cfgml.config.loader import apply_overrides
    from cfgml.errors import CfgMLError
    from cfgml.features.schemes import FeatureScheme
    from cfgml.graph.exporter import NodeLabel
    from cfgml.pipeline import GraphOptions, process_files
    from cfgml.utils.formatters import print_error

    ctx = get_context()
    try:
        config = apply_overrides(
            ctx.ensure_config(),
            "generate",
            feature_scheme=feature_scheme,
            min_blocks=min_blocks,
            reg_norm=reg_norm,
            node_labels=node_labels,
        ).generate
        scheme = FeatureScheme.parse(config.feature_scheme)
        architecture = Architecture.parse(arch) if arch else None
        labels = NodeLabel(config.node_labels)
    except (CfgMLError, ValueError) as exc:
        print_error(str(exc))
        raise typer.Exit(1)

    if scheme in (FeatureScheme.EMBEDDED, FeatureScheme.ENCODED):
        print_error(f"The {scheme.value} scheme needs an embedding provider; use the Python API")
        raise typer.Exit(1)

    files = _input_files(path, recursive)
    options = GraphOptions(
        output_dir=output,
        scheme=scheme,
        min_blocks=config.min_blocks,
        reg_norm=config.reg_norm,
        node_labels=labels,
        architecture=architecture,
    )
    report = process_files(files, options, workers=ctx.workers())
    _finish(f"{scheme.value} graphs", report)


@generate_app.command()
def nlp(
    path: Path = typer.Argument(..., help="Function JSON file or directory of them"),
    output: Path = typer.Option(..., "--output", "-o", help="Output directory"),
    feature_scheme: str = typer.Option("esil", "--feature-scheme", "-f", help="esil or disasm"),
    output_format: str = typer.Option(
        "funcstring", "--format", help="funcstring (JSON per file) or single (one line each)"
    ),
    min_blocks: Optional[int] = typer.Option(None, "--min-blocks", "-m", min=0),
    reg_norm: Optional[bool] = typer.Option(None, "--reg-norm/--no-reg-norm"),
    random_walk: bool = typer.Option(
        False, "--random-walk", help="Depth-first block walks instead of linear order (single format)"
    ),
    pairs: bool = typer.Option(False, "--pairs", help="Emit random walks as consecutive instruction pairs"),
    recursive: bool = typer.Option(False, "--recursive", "-r"),
) -> None:
    """Write normalized instruction corpora for language-model training."""
    from cfgml.cli.app import get_context
    from cfgml.config.loader import apply_overrides
    from cfgml.errors import CfgMLError
    from cfgml.features.schemes import FeatureScheme
    from cfgml.pipeline import NlpOptions, generate_nlp_files
    from cfgml.utils.formatters import print_error

    if output_format not in ("funcstring", "single"):
        print_error(f"Unknown output format {output_format!r} (choose funcstring or single)")
        raise typer.Exit(1)

    ctx = get_context()
    try:
        scheme = FeatureScheme.parse(feature_scheme)
    except CfgMLError as exc:
        print_error(str(exc))
        raise typer.Exit(1)
    if not scheme.is_textual:
        print_error("NLP output supports the esil and disasm schemes only")
        raise typer.Exit(1)
    if (random_walk or pairs) and output_format != "single":
        print_error("--random-walk and --pairs need --format single")
        raise typer.Exit(1)

    config = apply_overrides(
        ctx.ensure_config(), "generate", min_blocks=min_blocks, reg_norm=reg_norm
    ).generate
    files = _input_files(path, recursive)
    options = NlpOptions(
        output_dir=output,
        scheme=scheme,
        min_blocks=config.min_blocks,
        reg_norm=config.reg_norm,
        output_format=output_format,
        random_walk=random_walk or pairs,
        pairs=pairs,
    )
    report = generate_nlp_files(files, options, workers=ctx.workers())
    _finish(f"{scheme.value} corpora", report)


@generate_app.command()
def tiknib(
    path: Path = typer.Argument(..., help="Function JSON file or directory of them"),
    output: Path = typer.Option(..., "--output", "-o", help="Output directory"),
    arch: Optional[str] = typer.Option(None, "--arch", "-a"),
    recursive: bool = typer.Option(False, "--recursive", "-r"),
) -> None:
    """Write averaged and summed TikNib features per function."""
    from cfgml.analysis.opcodes import Architecture
    from cfgml.errors import CfgMLError
    from cfgml.pipeline import BatchReport, generate_tiknib_file
    from cfgml.utils.formatters import print_error
    from cfgml.utils.progress import progress_context

    try:
        architecture = Architecture.parse(arch) if arch else None
    except CfgMLError as exc:
        print_error(str(exc))
        raise typer.Exit(1)

    files = _input_files(path, recursive)
    report = BatchReport()
    with progress_context("Extracting function features", total=len(files)) as (progress, task):
        for file in files:
            report.merge(generate_tiknib_file(file, output, architecture))
            progress.advance(task)
    _finish("tiknib function features", report)


@generate_app.command()
def callgraphs(
    path: Path = typer.Argument(..., help="Call-graph JSON file or directory of them"),
    output: Path = typer.Option(..., "--output", "-o", help="Output directory"),
    one_hop: bool = typer.Option(False, "--one-hop", help="Also include each callee's own callees"),
    recursive: bool = typer.Option(False, "--recursive", "-r"),
) -> None:
    """Write one call graph JSON file per function."""
    from cfgml.pipeline import BatchReport, generate_call_graph_file
    from cfgml.utils.progress import progress_context

    files = _input_files(path, recursive)
    report = BatchReport()
    with progress_context("Generating call graphs", total=len(files)) as (progress, task):
        for file in files:
            report.merge(generate_call_graph_file(file, output, one_hop))
            progress.advance(task)
    _finish("one-hop call graphs" if one_hop else "call graphs", report)


@generate_app.command()
def metadata(
    path: Path = typer.Argument(..., help="Function-info JSON file or directory of them"),
    output: Path = typer.Option(..., "--output", "-o", help="Output directory"),
    extended: bool = typer.Option(
        False, "--extended", help="Block count and instructions per block instead of the signature"
    ),
    recursive: bool = typer.Option(False, "--recursive", "-r"),
) -> None:
    """Write function metadata subsets, one JSON file per input."""
    from cfgml.pipeline import BatchReport, generate_metadata_file

    files = _input_files(path, recursive)
    report = BatchReport()
    for file in files:
        report.merge(generate_metadata_file(file, output, extended))
    _finish("function metadata", report)
