"""Command-line entry point exit codes and outputs."""

from __future__ import annotations

import json
from pathlib import Path

from nk_innovation.cli import run_cli


def _case_file(tmp_path: Path, strategy: str = "CLOSED") -> Path:
    matrix = tmp_path / "n5k1.csv"
    matrix.write_text("x,x,,,\n,x,x,,\n,,x,x,\n,,,x,x\nx,,,,x\n", encoding="utf-8")
    case_file = tmp_path / "cases.xml"
    case_file.write_text(
        "<cases><case><runs>2</runs><inf>n5k1.csv</inf>"
        f"<strategy>{strategy}</strategy>"
        "<innovator><num>2</num><power>1</power><M>2</M><P>2</P></innovator>"
        "</case></cases>",
        encoding="utf-8",
    )
    return case_file


def test_cli_runs_cases(tmp_path: Path, capsys) -> None:
    output_dir = tmp_path / "out"
    dump = tmp_path / "config.json"
    status = run_cli([str(_case_file(tmp_path)), "--output-dir", str(output_dir), "--runs", "1", "--dump-config", str(dump), "--quiet"])
    assert status == 0
    assert (output_dir / "o_n5k1_x2_closed.txt").exists()
    assert (output_dir / "summary.csv").exists()
    snapshot = json.loads(dump.read_text(encoding="utf-8"))
    assert snapshot["RUNS_OVERRIDE"] == 1
    assert snapshot["VERBOSE"] is False
    out = capsys.readouterr().out
    assert "[CLI] Done." in out
    assert "[case 0 | run 0" not in out


def test_cli_rejects_unknown_strategy(tmp_path: Path, capsys) -> None:
    output_dir = tmp_path / "out"
    status = run_cli([str(_case_file(tmp_path, strategy="MERGER")), "--output-dir", str(output_dir)])
    assert status == 1
    assert "[CLI] Invalid configuration" in capsys.readouterr().out
    assert not output_dir.exists()


def test_cli_rejects_bad_matrix(tmp_path: Path) -> None:
    case_file = _case_file(tmp_path)
    (tmp_path / "n5k1.csv").write_text("x,x,,,\n,x,,,\n", encoding="utf-8")
    assert run_cli([str(case_file), "--output-dir", str(tmp_path / "out")]) == 1


def test_cli_rejects_unknown_strategy_filter(tmp_path: Path) -> None:
    assert run_cli([str(_case_file(tmp_path)), "--strategy", "nothing"]) == 1
