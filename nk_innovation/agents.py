"""
Agents and hill-climbing search for the NK innovation-strategy model.

Agents are boundedly rational: in each search phase they may only change the
loci in one trait set, and in one step they may change at most
``processing_power`` of them. Within a phase an agent samples unvisited
candidates from its frontier uniformly at random and moves whenever the
candidate is at least as fit as its current location (plateau-tolerant hill
climbing). Locations visited during a phase are never offered again in that
phase, so every phase ends once its frontier is empty.

Two roles exist:

1. **Innovators** own two trait sets, ``M`` (private module) and ``P`` (the
   module that can be shared). Depending on the strategy they search ``M``,
   then ``P`` alone, with an ally, or through a provider, and finally ``M``
   again.

2. **Providers** own one trait set ``Q`` and specialise in it. Innovators
   whose ``P`` is contained in a provider's ``Q`` may license or outsource
   that provider's solution.

The step logic is shared between roles as free functions that take the trait
set explicitly (``begin_phase`` and ``hill_climb_step``); the role classes
only decide which trait set a phase uses.

References
----------
Levinthal, D. A. (1997). Adaptation on rugged landscapes.
    Management Science, 43(7), 934-950.

Rivkin, J. W., & Siggelkow, N. (2003). Balancing search and stability:
    Interdependencies among elements of organizational design.
    Management Science, 49(3), 290-311.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, FrozenSet, List, Optional, Set, Tuple

from .models import Role, SearchPhase, phase_label
from .utils import format_id_list, pop_random, sample_without_replacement

if TYPE_CHECKING:  # pragma: no cover - only for typing
    import numpy as np

    from .landscape import Landscape
    from .simulation import SimulationContext


def compute_frontier(
    landscape: "Landscape",
    location: int,
    loci: FrozenSet[int],
    power: int,
    visited: Set[int],
) -> List[int]:
    """Unvisited neighbors of ``location`` in ascending id order."""
    return sorted(landscape.neighborhood_inclusive(location, loci, power) - visited)


def begin_phase(
    agent: "Agent",
    phase: SearchPhase,
    loci: FrozenSet[int],
    power: int,
    landscape: "Landscape",
) -> None:
    agent.phase = phase
    agent.visited = {agent.location}
    agent.frontier = compute_frontier(landscape, agent.location, loci, power, agent.visited)


def hill_climb_step(
    agent: "Agent",
    loci: FrozenSet[int],
    power: int,
    landscape: "Landscape",
    rng: "np.random.Generator",
) -> bool:
    """Try one random frontier candidate; return True if the agent moved."""
    candidate = pop_random(agent.frontier, rng)
    agent.visited.add(candidate)
    score = landscape.fitness_of(candidate)
    accepted = score >= agent.score
    if accepted:
        agent.location = candidate
        agent.score = score
        agent.frontier = compute_frontier(landscape, candidate, loci, power, agent.visited)
    agent.timestamp += 1
    return accepted


class Agent(ABC):
    """State shared by innovators and providers."""

    role: Role

    def __init__(self, agent_id: int, processing_power: int) -> None:
        self.id = agent_id
        self.processing_power = processing_power
        self.location = -1
        self.score = -1.0
        self.timestamp = 0
        self.phase: Optional[SearchPhase] = None
        self.visited: Set[int] = set()
        self.frontier: List[int] = []

    @property
    def has_unvisited_neighbour(self) -> bool:
        return bool(self.frontier)

    @property
    def is_exhausted(self) -> bool:
        return not self.frontier

    def in_exhausted_phase(self, phase: SearchPhase) -> bool:
        return self.phase == phase and not self.frontier

    def reset(self, ctx: "SimulationContext") -> None:
        """Random location, cleared clock and search state.

        The location draw comes before any trait sampling done by subclasses.
        """
        self.location = int(ctx.rng.integers(0, ctx.landscape.size))
        self.score = ctx.landscape.fitness_of(self.location)
        self.timestamp = 0
        self.phase = None
        self.visited = set()
        self.frontier = []

    def move_to(self, location: int, ctx: "SimulationContext") -> None:
        self.location = location
        self.score = ctx.landscape.fitness_of(location)

    def wait_and_do_nothing(self) -> None:
        self.timestamp += 1

    @abstractmethod
    def loci_for(self, phase: SearchPhase) -> FrozenSet[int]:
        """Trait set searched in ``phase``; raises ``ValueError`` for a phase the role lacks."""

    def start_new_search(self, phase: SearchPhase, ctx: "SimulationContext", first_step: bool = True) -> None:
        loci = self.loci_for(phase)
        begin_phase(self, phase, loci, self.processing_power, ctx.landscape)
        if first_step and self.frontier:
            self.continue_search(ctx)

    def continue_search(self, ctx: "SimulationContext") -> bool:
        if self.phase is None:
            raise ValueError(f"{self.role} {self.id} has no active search phase")
        return hill_climb_step(self, self.loci_for(self.phase), self.processing_power, ctx.landscape, ctx.rng)

    @abstractmethod
    def partner_ids(self) -> List[int]:
        ...

    def to_log_fields(self) -> Tuple[str, ...]:
        return (
            str(self.timestamp),
            self.role.value,
            str(self.id),
            str(self.processing_power),
            phase_label(self.phase),
            repr(float(self.score)),
            format_id_list(self.partner_ids()),
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(id={self.id}, power={self.processing_power}, "
            f"phase={phase_label(self.phase)}, score={self.score:.4f}, t={self.timestamp})"
        )


class Innovator(Agent):
    role = Role.INNOVATOR

    def __init__(self, agent_id: int, processing_power: int, m_size: int, p_size: int) -> None:
        super().__init__(agent_id, processing_power)
        self.m_size = m_size
        self.p_size = p_size
        self.m: FrozenSet[int] = frozenset()
        self.p: FrozenSet[int] = frozenset()
        self.alliance_power: Optional[int] = None
        self.partner_id: Optional[int] = None
        self.has_set_partner = False

    def reset(self, ctx: "SimulationContext") -> None:
        super().reset(ctx)
        pool = list(range(ctx.landscape.n))
        self.m = frozenset(sample_without_replacement(pool, self.m_size, ctx.rng))
        self.p = frozenset(sample_without_replacement(pool, self.p_size, ctx.rng))
        self.alliance_power = None
        self.partner_id = None
        self.has_set_partner = False

    def loci_for(self, phase: SearchPhase) -> FrozenSet[int]:
        if phase in (SearchPhase.M, SearchPhase.M_AGAIN):
            return self.m
        if phase == SearchPhase.P:
            return self.p
        if phase == SearchPhase.M_AND_P:
            return self.m | self.p
        raise ValueError(f"invalid innovator search phase: {phase}")

    def set_partner(self, partner_id: Optional[int]) -> None:
        """Record the partner decision; ``None`` means "decided: no partner"."""
        self.partner_id = partner_id
        self.has_set_partner = True

    @property
    def has_partner(self) -> bool:
        return self.partner_id is not None

    def partner_ids(self) -> List[int]:
        return [] if self.partner_id is None else [self.partner_id]

    def can_ally_with(self, other: "Innovator") -> bool:
        return self.p == other.p

    def can_partner_with(self, provider: "Provider") -> bool:
        return self.p <= provider.q

    def mixed_location(self, other_location: int, is_copy: bool, ctx: "SimulationContext") -> int:
        """Current location with this innovator's ``P`` bits taken from ``other_location``.

        With ``is_copy`` every ``P`` bit is copied; otherwise each one is copied
        with probability 1/2 (one draw per locus, ascending locus order).
        """
        n = ctx.landscape.n
        result = self.location
        for locus in sorted(self.p):
            take = is_copy or bool(ctx.rng.integers(0, 2))
            if take:
                mask = 1 << (n - 1 - locus)
                result = (result & ~mask) | (other_location & mask)
        return result

    def is_key_of(self, partner: "Innovator") -> bool:
        return self.id < partner.id

    def start_alliance_search(self, partner: "Innovator", alliance_power: int, ctx: "SimulationContext") -> None:
        """Enter the joint ``P`` phase as the key partner of ``partner``."""
        if not self.is_key_of(partner):
            raise ValueError(f"innovator {self.id} is not the key partner of {partner.id}")
        for member in (partner, self):
            member.phase = SearchPhase.P
            member.alliance_power = alliance_power
            member.visited = {member.location}
            member.frontier = []
        self.frontier = compute_frontier(ctx.landscape, self.location, self.p, alliance_power, self.visited)
        if self.frontier:
            self.continue_alliance_search(partner, ctx)

    def continue_alliance_search(self, partner: "Innovator", ctx: "SimulationContext") -> bool:
        """One joint step driven by the key partner; both clocks advance."""
        landscape = ctx.landscape
        power = self.alliance_power if self.alliance_power is not None else self.processing_power
        candidate = pop_random(self.frontier, ctx.rng)
        self.visited.add(candidate)
        score = landscape.fitness_of(candidate)
        accepted = False
        if score >= self.score:
            partner_candidate = partner.mixed_location(candidate, True, ctx)
            partner_score = landscape.fitness_of(partner_candidate)
            if partner_score >= partner.score:
                accepted = True
                self.location, self.score = candidate, score
                partner.location, partner.score = partner_candidate, partner_score
                partner.visited.add(partner_candidate)
                self.frontier = compute_frontier(landscape, self.location, self.p, power, self.visited)
                partner.frontier = compute_frontier(landscape, partner.location, partner.p, power, partner.visited)
        self.timestamp += 1
        partner.timestamp += 1
        return accepted


class Provider(Agent):
    role = Role.PROVIDER

    def __init__(self, agent_id: int, processing_power: int, q_size: int) -> None:
        super().__init__(agent_id, processing_power)
        self.q_size = q_size
        self.q: FrozenSet[int] = frozenset()
        self.partner_id_list: List[int] = []

    def reset(self, ctx: "SimulationContext") -> None:
        super().reset(ctx)
        pool = list(range(ctx.landscape.n))
        self.q = frozenset(sample_without_replacement(pool, self.q_size, ctx.rng))
        self.partner_id_list = []

    def loci_for(self, phase: SearchPhase) -> FrozenSet[int]:
        if phase == SearchPhase.Q:
            return self.q
        raise ValueError(f"invalid provider search phase: {phase}")

    def can_partner_with(self, innovator: Innovator) -> bool:
        return innovator.p <= self.q

    def add_partner(self, innovator_id: int) -> None:
        self.partner_id_list.append(innovator_id)

    def partner_ids(self) -> List[int]:
        return list(self.partner_id_list)
