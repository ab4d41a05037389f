"""Shared fixtures for the NK innovation test-suite."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, List

ROOT = Path(__file__).resolve().parents[1]
PARENT = ROOT.parent
for candidate in (PARENT, ROOT):
    path_str = str(candidate)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

import numpy as np
import pytest

from nk_innovation.config import SimulationConfig
from nk_innovation.landscape import DependencyStructure, Landscape
from nk_innovation.simulation import SimulationContext


def ring_rows(n: int, k: int) -> List[List[int]]:
    """Each locus depends on the next ``k`` loci, wrapping around."""
    rows = []
    for i in range(n):
        row = [0] * n
        row[i] = 1
        for offset in range(1, k + 1):
            row[(i + offset) % n] = 1
        rows.append(row)
    return rows


@pytest.fixture
def ring_structure() -> Callable[[int, int], DependencyStructure]:
    def _build(n: int, k: int) -> DependencyStructure:
        return DependencyStructure(ring_rows(n, k))

    return _build


@pytest.fixture
def make_context(tmp_path: Path) -> Callable[..., SimulationContext]:
    """Build a run context over a ring landscape with the given agents."""

    def _build(n, k, innovators=(), providers=(), seed=7, run_index=0):
        rng = np.random.Generator(np.random.MT19937(seed))
        landscape = Landscape(DependencyStructure(ring_rows(n, k)), rng)
        config = SimulationConfig(OUTPUT_DIR=str(tmp_path), VERBOSE=False)
        return SimulationContext(run_index, landscape, list(innovators), list(providers), rng, config)

    return _build


@pytest.fixture
def write_matrix(tmp_path: Path) -> Callable[[int, int, str], Path]:
    def _write(n: int, k: int, name: str = "matrix.csv") -> Path:
        target = tmp_path / name
        lines = [",".join("x" if entry else "" for entry in row) for row in ring_rows(n, k)]
        target.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return target

    return _write
