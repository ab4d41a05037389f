"""Analysis utilities for NK innovation search logs and run summaries."""

from __future__ import annotations

import glob
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
import pandas as pd
from scipy.stats import kruskal, mannwhitneyu

LOG_COLUMNS = ["run", "timestamp", "role", "agent_id", "power", "phase", "score", "partners"]


def _parse_partner_list(text: str) -> List[int]:
    inner = text.strip()[1:-1].strip()
    if not inner:
        return []
    return [int(token) for token in inner.split(",")]


def load_search_log(path: Union[str, os.PathLike]) -> pd.DataFrame:
    """Read a tab-separated search log into a DataFrame.

    The ``phase`` column keeps the literal ``null`` for agents that have not
    started searching; ``partners`` is parsed into lists of ids.
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Search log not found: {file_path}")
    if file_path.stat().st_size == 0:
        return pd.DataFrame(columns=LOG_COLUMNS)
    df = pd.read_csv(
        file_path,
        sep="\t",
        header=None,
        names=LOG_COLUMNS,
        keep_default_na=False,
        dtype={"role": str, "phase": str, "partners": str},
    )
    if df.empty:
        return df
    for column in ("run", "timestamp", "agent_id", "power"):
        df[column] = df[column].astype(int)
    df["score"] = df["score"].astype(float)
    df["partners"] = df["partners"].map(_parse_partner_list)
    return df


def final_scores(df: pd.DataFrame) -> pd.DataFrame:
    """Last record of every (run, role, agent) in file order."""
    if df.empty:
        return df.copy()
    last = df.groupby(["run", "role", "agent_id"], sort=True).tail(1)
    return last.sort_values(["run", "role", "agent_id"]).reset_index(drop=True)


def summarize_log(path: Union[str, os.PathLike]) -> pd.DataFrame:
    """Mean and max final score plus the longest clock per (run, role)."""
    df = load_search_log(path)
    if df.empty:
        return pd.DataFrame(columns=["run", "role", "agents", "mean_score", "max_score", "max_timestamp"])
    finals = final_scores(df)
    summary = finals.groupby(["run", "role"]).agg(
        agents=("agent_id", "nunique"),
        mean_score=("score", "mean"),
        max_score=("score", "max"),
    )
    summary["max_timestamp"] = df.groupby(["run", "role"])["timestamp"].max()
    return summary.reset_index()


def summarize_directory(directory: Union[str, os.PathLike], pattern: str = "o_*.txt") -> pd.DataFrame:
    """Summaries for every search log in ``directory``, tagged with the file name."""
    frames = []
    for log_path in sorted(glob.glob(os.path.join(str(directory), pattern))):
        summary = summarize_log(log_path)
        summary.insert(0, "log_file", os.path.basename(log_path))
        frames.append(summary)
    if not frames:
        return pd.DataFrame()
    return pd.concat(frames, ignore_index=True)


def compare_strategies(
    summary: pd.DataFrame,
    metric: str = "mean_innovator_score",
    alpha: float = 0.05,
) -> Dict[str, Any]:
    """Test whether strategies differ on ``metric`` across runs.

    Uses a Kruskal-Wallis test over all strategies and pairwise Mann-Whitney U
    tests, since per-run fitness averages are bounded and rarely normal. Groups
    with fewer than two finite observations are left out.
    """
    groups: Dict[str, np.ndarray] = {}
    for strategy, frame in summary.groupby("strategy", sort=False):
        values = frame[metric].to_numpy(dtype=float)
        values = values[np.isfinite(values)]
        if values.size >= 2:
            groups[str(strategy)] = values

    result: Dict[str, Any] = {
        "metric": metric,
        "strategies": list(groups),
        "kruskal_statistic": np.nan,
        "kruskal_p_value": np.nan,
        "significant": False,
        "pairwise": pd.DataFrame(columns=["strategy_a", "strategy_b", "u_statistic", "p_value", "significant"]),
    }
    if len(groups) < 2:
        return result

    samples = list(groups.values())
    pooled = np.concatenate(samples)
    if np.all(pooled == pooled[0]):
        # kruskal is undefined when every observation is tied
        return result

    statistic, p_value = kruskal(*samples)
    result["kruskal_statistic"] = float(statistic)
    result["kruskal_p_value"] = float(p_value)
    result["significant"] = bool(p_value < alpha)

    rows = []
    names = list(groups)
    for i, first in enumerate(names):
        for second in names[i + 1 :]:
            u_stat, u_p = mannwhitneyu(groups[first], groups[second], alternative="two-sided")
            rows.append(
                {
                    "strategy_a": first,
                    "strategy_b": second,
                    "u_statistic": float(u_stat),
                    "p_value": float(u_p),
                    "significant": bool(u_p < alpha),
                }
            )
    result["pairwise"] = pd.DataFrame(rows)
    return result


def strategy_table(summary: pd.DataFrame, metric: str = "mean_innovator_score") -> pd.DataFrame:
    """Mean, std and run count of ``metric`` per (case, strategy)."""
    if summary.empty:
        return pd.DataFrame(columns=["case", "strategy", "mean", "std", "runs"])
    table = summary.groupby(["case", "strategy"], sort=False)[metric].agg(["mean", "std", "count"])
    return table.rename(columns={"count": "runs"}).reset_index()


def write_summary(summary: pd.DataFrame, output_dir: Union[str, os.PathLike], name: str = "summary.csv") -> Optional[Path]:
    if summary.empty:
        return None
    target = Path(output_dir) / name
    target.parent.mkdir(parents=True, exist_ok=True)
    summary.to_csv(target, index=False)
    return target
