"""
NK fitness landscape used by the innovation-strategy simulation.

A landscape is defined over N binary loci. Each locus contributes to overall
fitness according to its own value and the values of K other loci it depends
on (epistasis). The contribution of every (locus, value, dependency pattern)
triple is drawn once per landscape from the run's random stream, and the
fitness of a configuration is the mean of its N contributions.

Theoretical Foundation
----------------------
    Kauffman, S. A. (1993). The origins of order: Self-organization and
    selection in evolution. Oxford University Press.

    Levinthal, D. A. (1997). Adaptation on rugged landscapes.
    Management Science, 43(7), 934-950.

Encoding
--------
A configuration ("location") is an integer id in ``[0, 2**N)``. Locus ``j``
is the bit at position ``N - 1 - j``, i.e. locus 0 is the most significant
bit. Dependency patterns are packed the same way: the first dependency of a
locus is the most significant bit of its pattern index.
"""

from __future__ import annotations

import collections
import itertools
from typing import Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np

DEFAULT_CACHE_CAPACITY = 1 << 10


class StructureError(ValueError):
    """Raised when a dependency matrix is malformed."""


class DependencyStructure:
    """Validated influence matrix with uniform in-degree K.

    A valid matrix is square, holds only 0/1 entries, has a unit diagonal and
    the same number of ones in every row. For example ``[[1, 1, 0], [1, 1, 0],
    [0, 1, 1]]`` gives N = 3, K = 1 with dependencies ``(1,), (0,), (1,)``.
    """

    def __init__(self, matrix: Sequence[Sequence[int]]) -> None:
        rows = [list(row) for row in matrix]
        n = len(rows)
        if n == 0:
            raise StructureError("dependency matrix is empty")
        k: Optional[int] = None
        for i, row in enumerate(rows):
            if len(row) != n:
                raise StructureError(
                    f"invalid length of dependency matrix in row {i}: expected {n}, got {len(row)}"
                )
            for j, entry in enumerate(row):
                if (
                    isinstance(entry, (bool, np.bool_))
                    or not isinstance(entry, (int, np.integer))
                    or entry not in (0, 1)
                ):
                    raise StructureError(f"invalid entry {entry!r} in dependency matrix at ({i}, {j})")
            if row[i] == 0:
                raise StructureError(f"missing self-dependence in row {i}")
            row_k = int(sum(row)) - 1
            if k is None:
                k = row_k
            elif row_k != k:
                raise StructureError(f"inconsistent K between K(row 0) = {k} and K(row {i}) = {row_k}")

        self._matrix = np.array(rows, dtype=np.int8)
        self._n = n
        self._k = int(k or 0)
        self._dependencies: Tuple[Tuple[int, ...], ...] = tuple(
            tuple(j for j in range(n) if j != i and rows[i][j] == 1) for i in range(n)
        )

    @property
    def n(self) -> int:
        return self._n

    @property
    def k(self) -> int:
        return self._k

    @property
    def dependencies(self) -> Tuple[Tuple[int, ...], ...]:
        return self._dependencies

    def dependencies_of(self, locus: int) -> Tuple[int, ...]:
        return self._dependencies[locus]

    @property
    def raw_matrix(self) -> np.ndarray:
        """Return a copy of the 0/1 matrix."""
        return self._matrix.copy()

    def copy(self) -> "DependencyStructure":
        """Independent snapshot, safe to hand to another run."""
        return DependencyStructure(self._matrix.tolist())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DependencyStructure):
            return NotImplemented
        return np.array_equal(self._matrix, other._matrix)

    def __hash__(self) -> int:
        return hash((self._n, self._matrix.tobytes()))

    def __repr__(self) -> str:
        return f"DependencyStructure(n={self._n}, k={self._k})"

    def __str__(self) -> str:
        lines = [f"N: {self._n}", f"K: {self._k}"]
        lines.extend(str(row) for row in self._matrix.tolist())
        return "\n".join(lines)


class ContributionTable:
    """Random fitness contributions, shape ``(N, 2, 2**K)``.

    Values are drawn with a single ``rng.random`` call, which fills the array
    in C order: locus, then value 0/1, then dependency pattern ascending.
    That order fixes how many draws precede every later random choice.
    """

    def __init__(self, structure: DependencyStructure, rng: np.random.Generator) -> None:
        self.structure = structure
        self._values = rng.random((structure.n, 2, 1 << structure.k))
        self._values.setflags(write=False)

    @property
    def shape(self) -> Tuple[int, int, int]:
        return tuple(self._values.shape)  # type: ignore[return-value]

    @property
    def values(self) -> np.ndarray:
        return self._values

    def value_of(self, locus: int, value: int, state: int) -> float:
        return float(self._values[locus, value, state])

    def __str__(self) -> str:
        k = self.structure.k
        lines = []
        for locus in range(self.structure.n):
            deps = list(self.structure.dependencies_of(locus))
            for value in (0, 1):
                for state in range(1 << k):
                    bits = [(state >> (k - 1 - b)) & 1 for b in range(k)]
                    lines.append(
                        f"d({locus}) = {value} | d{deps} = {bits} ->\t{self.value_of(locus, value, state)}"
                    )
        return "\n".join(lines)


class Landscape:
    """Fitness evaluation and neighborhood enumeration over one NK instance."""

    def __init__(
        self,
        structure: DependencyStructure,
        rng: np.random.Generator,
        cache_capacity: int = DEFAULT_CACHE_CAPACITY,
    ) -> None:
        if cache_capacity < 1:
            raise ValueError(f"cache_capacity must be positive, got {cache_capacity}")
        self.structure = structure
        self.table = ContributionTable(structure, rng)
        self.cache_capacity = int(cache_capacity)
        self._cache: "collections.OrderedDict[int, float]" = collections.OrderedDict()
        self.cache_hits = 0
        self.cache_misses = 0

        n, k = structure.n, structure.k
        self._loci = np.arange(n)
        self._shifts = np.arange(n - 1, -1, -1, dtype=np.int64)
        self._dep_index = np.array(structure.dependencies, dtype=np.int64).reshape(n, k)
        self._dep_weights = (1 << np.arange(k - 1, -1, -1, dtype=np.int64)) if k else np.zeros(0, dtype=np.int64)

    @property
    def n(self) -> int:
        return self.structure.n

    @property
    def k(self) -> int:
        return self.structure.k

    @property
    def size(self) -> int:
        """Number of distinct locations."""
        return 1 << self.structure.n

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def decode(self, location: int) -> np.ndarray:
        """Bit array of ``location``; element ``j`` is the value of locus ``j``."""
        return (np.int64(location) >> self._shifts) & 1

    def toggle(self, location: int, locus: int) -> int:
        return location ^ (1 << (self.structure.n - 1 - locus))

    def fitness_of(self, location: int) -> float:
        cached = self._cache.get(location)
        if cached is not None:
            self._cache.move_to_end(location)
            self.cache_hits += 1
            return cached
        self.cache_misses += 1
        value = self._compute_fitness(location)
        self._cache[location] = value
        if len(self._cache) > self.cache_capacity:
            self._cache.popitem(last=False)
        return value

    def _compute_fitness(self, location: int) -> float:
        bits = self.decode(location)
        states = bits[self._dep_index] @ self._dep_weights if self.structure.k else np.zeros(self.n, dtype=np.int64)
        contributions = self.table.values[self._loci, bits, states]
        return float(contributions.sum() / self.structure.n)

    def neighborhood_inclusive(self, location: int, loci: Iterable[int], budget: int) -> Set[int]:
        """All locations within ``budget`` flips of ``location`` over ``loci``.

        ``location`` itself is included. With L distinct loci the result has
        ``sum(C(L, k) for k in range(min(budget, L) + 1))`` members.
        """
        masks = [1 << (self.structure.n - 1 - locus) for locus in sorted(set(loci))]
        result = {location}
        for flips in range(1, min(budget, len(masks)) + 1):
            for combo in itertools.combinations(masks, flips):
                flipped = location
                for mask in combo:
                    flipped ^= mask
                result.add(flipped)
        return result

    def clear_cache(self) -> None:
        self._cache.clear()

    def cached_locations(self) -> List[int]:
        """Cached ids from least to most recently used."""
        return list(self._cache.keys())
