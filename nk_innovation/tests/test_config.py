"""Case-file loading, validation and configuration overrides."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from nk_innovation.config import (
    ConfigurationError,
    SimulationConfig,
    load_cases,
    load_config_overrides,
    load_dependency_matrix,
    parse_strategy,
)
from nk_innovation.landscape import StructureError
from nk_innovation.models import Strategy


def _xml_case(body: str) -> str:
    return f"<cases><case>{body}</case></cases>"


VALID_BODY = (
    "<runs>3</runs><inf>matrix.csv</inf>"
    "<strategy>closed</strategy><strategy>ALLIANCE_MAX</strategy><strategy>CLOSED</strategy>"
    "<innovator><num>2</num><power>2</power><M>2</M><P>2</P></innovator>"
    "<innovator><num>1</num><power>1</power><M>1</M><P>2</P></innovator>"
    "<provider><num>2</num><power>3</power><Q>4</Q></provider>"
)


def test_load_xml_case(tmp_path: Path, write_matrix) -> None:
    write_matrix(6, 2)
    case_file = tmp_path / "cases.xml"
    case_file.write_text(_xml_case(VALID_BODY), encoding="utf-8")
    (case,) = load_cases(case_file)
    assert case.runs == 3
    assert case.structure.n == 6 and case.structure.k == 2
    assert case.strategies == (Strategy.CLOSED, Strategy.ALLIANCE_MAX)
    assert case.n_innovators == 3 and case.n_providers == 2
    innovators = case.build_innovators()
    assert [agent.id for agent in innovators] == [0, 1, 2]
    assert [agent.processing_power for agent in innovators] == [2, 2, 1]
    assert [agent.q_size for agent in case.build_providers()] == [4, 4]
    assert case.name == "case 0"


def test_load_json_case(tmp_path: Path, write_matrix) -> None:
    matrix = write_matrix(5, 1, name="n5k1.csv")
    payload = {
        "cases": [
            {
                "runs": 2,
                "inf": str(matrix),
                "strategies": ["licensing", "outsourcing"],
                "innovators": [{"num": 2, "power": 1, "M": 2, "P": 2}],
                "providers": [{"num": 1, "power": 2, "Q": 3}],
            }
        ]
    }
    case_file = tmp_path / "cases.json"
    case_file.write_text(json.dumps(payload), encoding="utf-8")
    (case,) = load_cases(case_file)
    assert case.strategies == (Strategy.LICENSING, Strategy.OUTSOURCING)
    assert case.structure.n == 5


def test_unknown_xml_elements_warn(tmp_path: Path, write_matrix, capsys) -> None:
    write_matrix(6, 2)
    body = VALID_BODY + "<colour>blue</colour>"
    body = body.replace("<M>1</M>", "<M>1</M><size>9</size>")
    case_file = tmp_path / "cases.xml"
    case_file.write_text(_xml_case(body), encoding="utf-8")
    load_cases(case_file)
    out = capsys.readouterr().out
    assert "WARNING : unknown case element colour" in out
    assert "WARNING : unknown innovator attribute size" in out


@pytest.mark.parametrize(
    "replace, message",
    [
        (("<strategy>closed</strategy>", "<strategy>merger</strategy>"), "unknown strategy"),
        (("<M>2</M><P>2</P>", "<M>4</M><P>3</P>"), "larger than N"),
        (("<Q>4</Q>", "<Q>7</Q>"), "larger than N"),
        (("<runs>3</runs>", "<runs>-1</runs>"), "runs"),
        (("<power>3</power>", "<power>two</power>"), "must be an integer"),
        (("<inf>matrix.csv</inf>", "<inf>missing.csv</inf>"), "not found"),
        (("<P>2</P></innovator><innovator>", "</innovator><innovator>"), "'P'"),
    ],
)
def test_invalid_cases_raise(tmp_path: Path, write_matrix, replace, message) -> None:
    write_matrix(6, 2)
    old, new = replace
    assert old in VALID_BODY
    case_file = tmp_path / "cases.xml"
    case_file.write_text(_xml_case(VALID_BODY.replace(old, new, 1)), encoding="utf-8")
    with pytest.raises(ConfigurationError, match=message):
        load_cases(case_file)


def test_case_without_strategy_is_rejected(tmp_path: Path, write_matrix) -> None:
    write_matrix(4, 1)
    case_file = tmp_path / "cases.xml"
    case_file.write_text(_xml_case("<runs>1</runs><inf>matrix.csv</inf>"), encoding="utf-8")
    with pytest.raises(ConfigurationError, match="no strategy"):
        load_cases(case_file)


def test_too_many_loci_is_rejected(tmp_path: Path, write_matrix) -> None:
    write_matrix(6, 2)
    case_file = tmp_path / "cases.xml"
    case_file.write_text(_xml_case(VALID_BODY), encoding="utf-8")
    with pytest.raises(ConfigurationError, match="exceeds"):
        load_cases(case_file, SimulationConfig(MAX_LOCI=5))


def test_missing_case_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        load_cases(tmp_path / "nope.xml")


def test_dependency_matrix_tokens(tmp_path: Path) -> None:
    target = tmp_path / "m.csv"
    target.write_text("x, x,\n\n ,x ,x\nx,,x\n", encoding="utf-8")
    structure = load_dependency_matrix(target)
    assert structure.n == 3 and structure.k == 1
    assert structure.dependencies == ((1,), (2,), (0,))


def test_malformed_matrix_raises_structure_error(tmp_path: Path) -> None:
    target = tmp_path / "m.csv"
    target.write_text("x,x\n,\n", encoding="utf-8")
    with pytest.raises(StructureError):
        load_dependency_matrix(target)


def test_parse_strategy_is_case_insensitive() -> None:
    assert parse_strategy(" alliance_min ") is Strategy.ALLIANCE_MIN
    with pytest.raises(ConfigurationError):
        parse_strategy("ALLIANCE")


def test_config_overrides(tmp_path: Path) -> None:
    base = SimulationConfig()
    assert base.MASTER_SEED == 900111 and base.CACHE_CAPACITY == 1024
    derived = base.copy_with_overrides({"RUNS_OVERRIDE": 4, "STRATEGY_FILTER": ["closed"]})
    assert derived.RUNS_OVERRIDE == 4
    assert derived.STRATEGY_FILTER == ["CLOSED"]
    assert base.RUNS_OVERRIDE is None
    with pytest.raises(KeyError):
        base.copy_with_overrides({"NOT_A_FIELD": 1})
    with pytest.raises(ConfigurationError):
        base.copy_with_overrides({"CACHE_CAPACITY": 0})

    override_file = tmp_path / "overrides.json"
    override_file.write_text(json.dumps({"overrides": {"VERBOSE": False}}), encoding="utf-8")
    assert load_config_overrides(override_file) == {"VERBOSE": False}
    snapshot = derived.snapshot()
    assert snapshot["RUNS_OVERRIDE"] == 4
    json.dumps(snapshot)
