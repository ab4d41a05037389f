"""Command-line entry point for the NK innovation-strategy simulator."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from .analysis import strategy_table, write_summary
from .config import (
    ConfigurationError,
    SimulationConfig,
    load_cases,
    load_config_overrides,
)
from .landscape import StructureError
from .simulation import run_cases


def _write_config_dump(config: SimulationConfig, destination: str) -> Path:
    """Persist the resolved configuration to ``destination``."""
    target = Path(destination).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as handle:
        json.dump(config.snapshot(), handle, indent=2, sort_keys=True)
    print(f"[CLI] Wrote configuration snapshot to {target}")
    return target


def _parse_cli_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="nk-innovation",
        description="Simulate innovation strategies on NK fitness landscapes",
    )
    parser.add_argument(
        "config",
        help="Case file (XML, or JSON when the name ends in .json).",
    )
    parser.add_argument(
        "--output-dir",
        help="Directory receiving the search logs and summary table.",
    )
    parser.add_argument(
        "--runs",
        type=int,
        help="Override the number of runs of every case.",
    )
    parser.add_argument(
        "--master-seed",
        type=int,
        help="Seed of the master stream that derives per-run seeds.",
    )
    parser.add_argument(
        "--cache-capacity",
        type=int,
        help="Number of fitness values each landscape keeps in its LRU cache.",
    )
    parser.add_argument(
        "--strategy",
        nargs="+",
        help="Only run these strategies (case-insensitive).",
    )
    parser.add_argument(
        "--config-overrides",
        help="JSON file with SimulationConfig attribute overrides.",
    )
    parser.add_argument(
        "--dump-config",
        help="Write the resolved configuration as JSON to this path.",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress per-run status lines.",
    )
    return parser.parse_args(args=list(argv) if argv is not None else None)


def _resolve_config(args: argparse.Namespace, base_config: Optional[SimulationConfig]) -> SimulationConfig:
    overrides: Dict[str, Any] = {}
    if args.config_overrides:
        overrides.update(load_config_overrides(args.config_overrides))
    if args.output_dir is not None:
        overrides["OUTPUT_DIR"] = args.output_dir
    if args.runs is not None:
        overrides["RUNS_OVERRIDE"] = args.runs
    if args.master_seed is not None:
        overrides["MASTER_SEED"] = args.master_seed
    if args.cache_capacity is not None:
        overrides["CACHE_CAPACITY"] = args.cache_capacity
    if args.strategy:
        overrides["STRATEGY_FILTER"] = list(args.strategy)
    if args.quiet:
        overrides["VERBOSE"] = False
    return (base_config or SimulationConfig()).copy_with_overrides(overrides)


def run_cli(
    argv: Optional[Iterable[str]] = None,
    base_config: Optional[SimulationConfig] = None,
) -> int:
    """Parse arguments, run every case and print the summary table.

    Returns the process exit status: 0 on success, 1 when the configuration or
    a dependency matrix is invalid. Nothing is simulated in the error case.
    """
    args = _parse_cli_args(argv)
    try:
        config = _resolve_config(args, base_config)
        cases = load_cases(args.config, config)
    except (ConfigurationError, StructureError, FileNotFoundError, KeyError) as exc:
        print(f"[CLI] Invalid configuration: {exc}")
        return 1

    print("[CLI] NK innovation simulator starting")
    print(f"[CLI] Case file: {args.config} ({len(cases)} case(s))")
    print(f"[CLI] Output directory: {config.OUTPUT_DIR}")
    if config.RUNS_OVERRIDE is not None:
        print(f"[CLI] Runs override: {config.RUNS_OVERRIDE}")
    if config.STRATEGY_FILTER is not None:
        print(f"[CLI] Strategies: {', '.join(config.STRATEGY_FILTER)}")
    if args.dump_config:
        _write_config_dump(config, args.dump_config)

    summary = run_cases(cases, config)
    summary_path = write_summary(summary, config.OUTPUT_DIR)
    if summary.empty:
        print("[CLI] No runs executed.")
    else:
        with pd.option_context("display.width", 120, "display.max_columns", 10):
            print(strategy_table(summary).to_string(index=False))
    if summary_path is not None:
        print(f"[CLI] Wrote run summary to {summary_path}")
    print("[CLI] Done.")
    return 0


def main(argv: Optional[List[str]] = None) -> None:  # pragma: no cover - thin wrapper
    raise SystemExit(run_cli(argv))


if __name__ == "__main__":  # pragma: no cover
    main()


__all__ = ["run_cli", "main"]
