"""Tests for function metadata subsets."""

import pytest

from cfgml.features.metadata import metadata_subset, parse_function_info


@pytest.fixture
def main_info():
    return parse_function_info(
        {
            "offset": 4198400,
            "name": "main",
            "ninstrs": 20,
            "edges": 11,
            "nbbs": 9,
            "indegree": 1,
            "outdegree": 2,
            "nlocals": None,
            "nargs": 2,
            "signature": "int main (int argc, char **argv);",
            "calltype": "amd64",
        }
    )


def test_metadata_subset(main_info):
    assert metadata_subset(main_info) == {
        "name": "main",
        "ninstrs": 20,
        "edges": 11,
        "indegree": 1,
        "outdegree": 2,
        "nlocals": 0,
        "nargs": 2,
        "signature": "int main (int argc, char **argv);",
    }


def test_extended_subset(main_info):
    subset = metadata_subset(main_info, extended=True)
    assert "signature" not in subset
    assert subset["nbbs"] == 9
    assert subset["avg_ins_bb"] == pytest.approx(20 / 9)


def test_extended_subset_without_blocks():
    info = parse_function_info({"name": "stub", "ninstrs": 3})
    assert metadata_subset(info, extended=True)["avg_ins_bb"] == 0.0


def test_malformed_info_rejected():
    with pytest.raises(ValueError):
        parse_function_info({"ninstrs": 3})
    with pytest.raises(ValueError):
        parse_function_info({"name": "main", "ninstrs": "many"})
