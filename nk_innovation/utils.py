"""Random-stream helpers and small numeric utilities for the NK innovation model."""

from __future__ import annotations

from typing import Any, List, Sequence, TypeVar

import numpy as np

T = TypeVar("T")

DEFAULT_MASTER_SEED = 900111


def derive_run_seed(run_index: int, master_seed: int = DEFAULT_MASTER_SEED) -> int:
    """Return the seed for ``run_index``.

    Consecutive run indices would give correlated streams, so the seed is the
    ``run_index``-th draw of a fixed master stream instead. Run 0 maps to 0.
    """
    if run_index < 0:
        raise ValueError(f"run_index must be non-negative, got {run_index}")
    master = np.random.Generator(np.random.MT19937(master_seed))
    seed = 0
    for _ in range(run_index):
        seed = int(master.integers(0, 2**31 - 1))
    return seed


def make_run_rng(run_index: int, master_seed: int = DEFAULT_MASTER_SEED) -> np.random.Generator:
    """Build a fresh generator for one run; never reused across runs."""
    return np.random.Generator(np.random.MT19937(derive_run_seed(run_index, master_seed)))


def pop_random(items: List[T], rng: np.random.Generator) -> T:
    """Remove and return a uniformly chosen element of ``items``."""
    if not items:
        raise IndexError("cannot draw from an empty sequence")
    return items.pop(int(rng.integers(len(items))))


def sample_without_replacement(pool: List[T], count: int, rng: np.random.Generator) -> List[T]:
    """Draw ``count`` elements from ``pool`` one at a time, mutating ``pool``."""
    return [pop_random(pool, rng) for _ in range(count)]


def safe_mean(data: Any) -> float:
    """Compute the mean, returning NaN for empty collections."""
    arr = np.asarray(data, dtype=float)
    if arr.size == 0:
        return np.nan
    with np.errstate(invalid="ignore"):
        return float(arr.mean())


def format_id_list(ids: Sequence[int]) -> str:
    """Render ids the way the search log expects: ``[]``, ``[3]``, ``[0, 2]``."""
    return "[" + ", ".join(str(i) for i in ids) + "]"
