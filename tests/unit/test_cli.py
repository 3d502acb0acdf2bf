"""Tests for CLI commands and flags."""

import json

from typer.testing import CliRunner

from cfgml.cli.app import app

runner = CliRunner()


def test_version_flag():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "cfgml" in result.output


def test_help_shows_all_commands():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for cmd in ["generate", "dedup"]:
        assert cmd in result.output


def test_generate_help():
    result = runner.invoke(app, ["generate", "--help"])
    assert result.exit_code == 0
    for cmd in ["graphs", "nlp", "tiknib", "callgraphs", "metadata"]:
        assert cmd in result.output


def test_generate_graphs(function_file, tmp_path):
    out = tmp_path / "out"
    result = runner.invoke(
        app, ["-w", "1", "generate", "graphs", str(function_file), "-o", str(out), "-f", "dgis"]
    )
    assert result.exit_code == 0, result.output
    data = json.loads((out / "demo-dgis" / "demo-main.json").read_text())
    assert len(data["nodes"]) == 9
    assert "numStackOps" in data["nodes"][0]


def test_generate_graphs_config_defaults(function_file, tmp_path):
    config = tmp_path / "cfgml.yaml"
    config.write_text("generate:\n  feature_scheme: tiknib\n  min_blocks: 2\n")
    out = tmp_path / "out"
    result = runner.invoke(
        app, ["-C", str(config), "-w", "1", "generate", "graphs", str(function_file), "-o", str(out)]
    )
    assert result.exit_code == 0, result.output
    assert (out / "demo-tiknib" / "demo-main.json").is_file()
    assert (out / "demo-tiknib" / "demo-sym.tiny.json").is_file()


def test_generate_graphs_bad_scheme(function_file, tmp_path):
    result = runner.invoke(
        app, ["generate", "graphs", str(function_file), "-o", str(tmp_path), "-f", "bogus"]
    )
    assert result.exit_code == 1


def test_generate_graphs_missing_input(tmp_path):
    result = runner.invoke(app, ["generate", "graphs", str(tmp_path / "nope"), "-o", str(tmp_path)])
    assert result.exit_code == 1


def test_generate_nlp_singles(function_file, tmp_path):
    out = tmp_path / "nlp"
    result = runner.invoke(
        app,
        ["-w", "1", "generate", "nlp", str(function_file), "-o", str(out), "-f", "disasm", "--format", "single"],
    )
    assert result.exit_code == 0, result.output
    assert (out / "demo-dis-singles.txt").is_file()


def test_generate_nlp_rejects_counting_scheme(function_file, tmp_path):
    result = runner.invoke(app, ["generate", "nlp", str(function_file), "-o", str(tmp_path), "-f", "gemini"])
    assert result.exit_code == 1


def test_generate_tiknib(function_file, tmp_path):
    out = tmp_path / "tiknib"
    result = runner.invoke(app, ["generate", "tiknib", str(function_file), "-o", str(out)])
    assert result.exit_code == 0, result.output
    assert (out / "demo-tiknib.json").is_file()


def test_generate_nlp_random_walk(function_file, tmp_path):
    out = tmp_path / "nlp"
    result = runner.invoke(
        app,
        ["-w", "1", "generate", "nlp", str(function_file), "-o", str(out), "--format", "single", "--random-walk"],
    )
    assert result.exit_code == 0, result.output
    assert (out / "demo-esil-singles-rwdfs.txt").is_file()


def test_generate_nlp_random_walk_needs_single_format(function_file, tmp_path):
    result = runner.invoke(app, ["generate", "nlp", str(function_file), "-o", str(tmp_path), "--pairs"])
    assert result.exit_code == 1


def test_generate_callgraphs(tmp_path):
    source = tmp_path / "ls.json"
    source.write_text(json.dumps([{"name": "main", "imports": ["puts"]}, {"name": "puts"}]))
    out = tmp_path / "cg"
    result = runner.invoke(app, ["generate", "callgraphs", str(source), "-o", str(out), "--one-hop"])
    assert result.exit_code == 0, result.output
    assert (out / "ls-1hop" / "main-1hopcg.json").is_file()


def test_generate_metadata(tmp_path):
    source = tmp_path / "ls.json"
    source.write_text(json.dumps([{"name": "main", "ninstrs": 4, "nbbs": 2}]))
    out = tmp_path / "meta"
    result = runner.invoke(app, ["generate", "metadata", str(source), "-o", str(out), "--extended"])
    assert result.exit_code == 0, result.output
    subsets = json.loads((out / "ls-finfo-subset.json").read_text())
    assert subsets[0]["avg_ins_bb"] == 2.0


def test_generate_metadata_unusable_input(tmp_path):
    source = tmp_path / "ls.json"
    source.write_text(json.dumps([{"ninstrs": 4}]))
    result = runner.invoke(app, ["generate", "metadata", str(source), "-o", str(tmp_path / "meta")])
    assert result.exit_code == 1


def test_dedup_records_just_stats(tmp_path):
    corpus = tmp_path / "corpus"
    corpus.mkdir()
    (corpus / "x86-gcc-O0_ls.json").write_text(json.dumps({"main": "ret", "f": "nop"}))
    (corpus / "arm-gcc-O0_ls.json").write_text(json.dumps({"main": "ret"}))
    result = runner.invoke(app, ["-w", "1", "dedup", "records", str(corpus), "--just-stats"])
    assert result.exit_code == 0, result.output
    assert "ls" in result.output
    assert not list(tmp_path.glob("**/*-dedup.json"))


def test_dedup_records_writes_output(tmp_path):
    corpus = tmp_path / "corpus"
    corpus.mkdir()
    (corpus / "x86-gcc-O0_ls.json").write_text(json.dumps({"main": "ret"}))
    out = tmp_path / "out"
    result = runner.invoke(app, ["-w", "1", "dedup", "records", str(corpus), "-o", str(out)])
    assert result.exit_code == 0, result.output
    assert (out / "ls-dedup.json").is_file()


def test_dedup_records_requires_output(tmp_path):
    result = runner.invoke(app, ["dedup", "records", str(tmp_path)])
    assert result.exit_code == 1


def test_dedup_graphs(tmp_path):
    graph = {"adjacency": [[]], "directed": True, "multigraph": False, "nodes": [{"id": 0}], "graph": []}
    group = tmp_path / "graphs" / "x86_ls_gcc-gemini"
    group.mkdir(parents=True)
    (group / "ls-a.json").write_text(json.dumps(graph))
    (group / "ls-b.json").write_text(json.dumps(graph))
    out = tmp_path / "out"
    result = runner.invoke(
        app,
        ["-w", "1", "dedup", "graphs", str(tmp_path / "graphs"), "-o", str(out), "--filepath-format", "cisco"],
    )
    assert result.exit_code == 0, result.output
    assert [p.name for p in (out / "x86_ls_gcc-gemini").iterdir()] == ["ls-a.json"]
