"""Search-log parsing and strategy comparisons."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd

from nk_innovation.analysis import (
    compare_strategies,
    final_scores,
    load_search_log,
    strategy_table,
    summarize_directory,
    summarize_log,
)

LOG_TEXT = (
    "0\t0\tINNOVATOR\t0\t2\tnull\t0.5\t[]\n"
    "0\t0\tPROVIDER\t0\t1\tnull\t0.25\t[0, 2]\n"
    "0\t1\tINNOVATOR\t0\t2\tM\t0.625\t[1]\n"
    "0\t1\tINNOVATOR\t1\t2\tM\t0.375\t[]\n"
    "1\t0\tINNOVATOR\t0\t2\tMagain\t0.75\t[]\n"
)


def _write_log(tmp_path: Path, name: str = "o_n4k1_x2_closed.txt") -> Path:
    target = tmp_path / name
    target.write_text(LOG_TEXT, encoding="utf-8")
    return target


def test_load_search_log_parses_columns(tmp_path: Path) -> None:
    df = load_search_log(_write_log(tmp_path))
    assert list(df.columns) == ["run", "timestamp", "role", "agent_id", "power", "phase", "score", "partners"]
    assert len(df) == 5
    assert df.loc[0, "phase"] == "null"
    assert df.loc[1, "partners"] == [0, 2]
    assert df.loc[2, "partners"] == [1]
    assert df["score"].dtype == float


def test_empty_log_loads_as_empty_frame(tmp_path: Path) -> None:
    target = tmp_path / "empty.txt"
    target.write_text("", encoding="utf-8")
    df = load_search_log(target)
    assert df.empty
    assert summarize_log(target).empty


def test_final_scores_keeps_last_record(tmp_path: Path) -> None:
    finals = final_scores(load_search_log(_write_log(tmp_path)))
    assert len(finals) == 4
    innovator_zero_run_zero = finals[(finals["run"] == 0) & (finals["role"] == "INNOVATOR") & (finals["agent_id"] == 0)]
    assert innovator_zero_run_zero["score"].item() == 0.625


def test_summarize_log_groups_by_run_and_role(tmp_path: Path) -> None:
    summary = summarize_log(_write_log(tmp_path))
    row = summary[(summary["run"] == 0) & (summary["role"] == "INNOVATOR")].iloc[0]
    assert row["agents"] == 2
    assert row["mean_score"] == 0.5
    assert row["max_score"] == 0.625
    assert row["max_timestamp"] == 1
    assert len(summary) == 3


def test_summarize_directory_tags_files(tmp_path: Path) -> None:
    _write_log(tmp_path, "o_n4k1_x2_closed.txt")
    _write_log(tmp_path, "o_n4k1_x2_alliance_max.txt")
    combined = summarize_directory(tmp_path)
    assert set(combined["log_file"]) == {"o_n4k1_x2_closed.txt", "o_n4k1_x2_alliance_max.txt"}
    assert summarize_directory(tmp_path / "missing").empty


def _summary_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "case": [0] * 12,
            "run": list(range(6)) * 2,
            "strategy": ["CLOSED"] * 6 + ["LICENSING"] * 6,
            "mean_innovator_score": [0.50, 0.52, 0.51, 0.49, 0.53, 0.50, 0.70, 0.72, 0.69, 0.71, 0.73, 0.70],
        }
    )


def test_compare_strategies_detects_difference() -> None:
    result = compare_strategies(_summary_frame())
    assert result["strategies"] == ["CLOSED", "LICENSING"]
    assert result["kruskal_p_value"] < 0.05
    assert result["significant"]
    pairwise = result["pairwise"]
    assert len(pairwise) == 1
    assert pairwise.loc[0, "strategy_a"] == "CLOSED"
    assert bool(pairwise.loc[0, "significant"])


def test_compare_strategies_needs_two_groups() -> None:
    frame = _summary_frame()
    result = compare_strategies(frame[frame["strategy"] == "CLOSED"])
    assert np.isnan(result["kruskal_p_value"])
    assert not result["significant"]
    assert result["pairwise"].empty


def test_strategy_table() -> None:
    table = strategy_table(_summary_frame())
    assert list(table["strategy"]) == ["CLOSED", "LICENSING"]
    assert list(table["runs"]) == [6, 6]
    assert table.loc[1, "mean"] > table.loc[0, "mean"]
