"""Simulation engine for the NK innovation-strategy model."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO, Union

import numpy as np
import pandas as pd

from .agents import Agent, Innovator, Provider
from .config import SimulationCase, SimulationConfig
from .landscape import Landscape
from .models import Strategy
from .protocols import build_coordinator
from .utils import make_run_rng, safe_mean


class SearchLog:
    """Tab-separated search records, appended to one file per strategy run."""

    def __init__(self) -> None:
        self.path: Optional[Path] = None
        self._handle: Optional[TextIO] = None
        self.records_written = 0

    def open(self, path: Union[str, os.PathLike]) -> "SearchLog":
        self.close()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._handle = self.path.open("a", encoding="utf-8")
        return self

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    def write(self, run_index: int, agent: Agent) -> None:
        if self._handle is None:
            raise ValueError("search log is not open")
        self._handle.write(f"{run_index}\t" + "\t".join(agent.to_log_fields()) + "\n")
        self.records_written += 1

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "SearchLog":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


@dataclass
class SimulationContext:
    """Everything one run needs: its landscape, populations and random stream."""

    run_index: int
    landscape: Landscape
    innovators: List[Innovator]
    providers: List[Provider]
    rng: np.random.Generator
    config: SimulationConfig = field(default_factory=SimulationConfig)

    @property
    def output_dir(self) -> str:
        return self.config.OUTPUT_DIR

    def innovator(self, agent_id: int) -> Innovator:
        return self.innovators[agent_id]

    def provider(self, agent_id: int) -> Provider:
        return self.providers[agent_id]

    def reset_agents(self) -> None:
        """Fresh random state for every agent; innovators draw before providers."""
        for innovator in self.innovators:
            innovator.reset(self)
        for provider in self.providers:
            provider.reset(self)


def _selected_strategies(case: SimulationCase, config: SimulationConfig) -> List[Strategy]:
    if config.STRATEGY_FILTER is None:
        return list(case.strategies)
    allowed = set(config.STRATEGY_FILTER)
    return [strategy for strategy in case.strategies if strategy.value in allowed]


def _summary_row(
    case_index: int,
    run_index: int,
    strategy: Strategy,
    rounds: int,
    ctx: SimulationContext,
    log: SearchLog,
) -> Dict[str, Any]:
    innovator_scores = [agent.score for agent in ctx.innovators]
    provider_scores = [agent.score for agent in ctx.providers] if strategy.uses_providers else []
    return {
        "case": case_index,
        "run": run_index,
        "strategy": strategy.value,
        "rounds": rounds,
        "mean_innovator_score": safe_mean(innovator_scores),
        "max_innovator_score": max(innovator_scores) if innovator_scores else np.nan,
        "mean_provider_score": safe_mean(provider_scores),
        "max_provider_score": max(provider_scores) if provider_scores else np.nan,
        "log_file": str(log.path) if log.path is not None else "",
    }


def run_case(
    case: SimulationCase,
    config: Optional[SimulationConfig] = None,
    case_index: int = 0,
) -> List[Dict[str, Any]]:
    """Run every (run, strategy) pair of ``case`` and return one summary row per pair.

    Each run rebuilds the random stream from its seed and draws a new landscape
    from a snapshot of the case's dependency structure. All strategies of a
    run share that landscape; agents are re-randomized before each strategy.
    """
    config = config or SimulationConfig()
    runs = case.runs if config.RUNS_OVERRIDE is None else config.RUNS_OVERRIDE
    strategies = _selected_strategies(case, config)
    innovators = case.build_innovators()
    providers = case.build_providers()
    rows: List[Dict[str, Any]] = []

    for run_index in range(runs):
        rng = make_run_rng(run_index, config.MASTER_SEED)
        landscape = Landscape(case.structure_snapshot(), rng, cache_capacity=config.CACHE_CAPACITY)
        ctx = SimulationContext(run_index, landscape, innovators, providers, rng, config)
        for strategy in strategies:
            ctx.reset_agents()
            log = SearchLog()
            coordinator = build_coordinator(strategy, ctx, log)
            rounds = coordinator.run()
            row = _summary_row(case_index, run_index, strategy, rounds, ctx, log)
            rows.append(row)
            if config.VERBOSE:
                print(
                    f"[case {case_index} | run {run_index} | {strategy.value}] "
                    f"{rounds} rounds, mean innovator score {row['mean_innovator_score']:.4f}, "
                    f"{log.records_written} records"
                )
        if config.VERBOSE:
            print(
                f"[case {case_index} | run {run_index}] landscape cache: "
                f"{landscape.cache_hits} hits, {landscape.cache_misses} misses"
            )
    return rows


def run_cases(cases: List[SimulationCase], config: Optional[SimulationConfig] = None) -> pd.DataFrame:
    """Run all cases in order and collect the per-run summaries into one frame."""
    config = config or SimulationConfig()
    rows: List[Dict[str, Any]] = []
    for case_index, case in enumerate(cases):
        if config.VERBOSE:
            print(
                f"[case {case_index}] N={case.structure.n} K={case.structure.k} "
                f"innovators={case.n_innovators} providers={case.n_providers}"
            )
        rows.extend(run_case(case, config, case_index))
    columns = [
        "case",
        "run",
        "strategy",
        "rounds",
        "mean_innovator_score",
        "max_innovator_score",
        "mean_provider_score",
        "max_provider_score",
        "log_file",
    ]
    return pd.DataFrame(rows, columns=columns)
