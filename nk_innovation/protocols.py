"""
Strategy coordinators: synchronous round-based state machines.

Every coordinator advances its population one round at a time. Within a
round each agent, in id order, does exactly one thing: continue its current
search phase, move to the next phase, or wait a tick. One log record is
written per agent touched. ``run`` repeats rounds until ``is_done`` and
returns the number of rounds executed.

The four strategies are:

- ``ClosedInnovation``: innovators search M, then P, then M and P together.
- ``Licensing``: providers search Q from the start; an innovator that has
  exhausted M picks the best eligible provider, waits for it to finish, copies
  its P solution and searches M again.
- ``Outsourcing``: innovators pick providers up front; chosen providers only
  start once every innovator has exhausted M.
- ``Alliance``: innovators with identical P are paired at random; the key
  (lower id) partner drives a joint search over P with the alliance's
  processing power (max or min of the two), then both search M again.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Set, Type

from .agents import Agent, Innovator, Provider
from .models import SearchPhase, Strategy
from .utils import pop_random

if TYPE_CHECKING:  # pragma: no cover - only for typing
    from .simulation import SearchLog, SimulationContext


def find_best_provider(innovator: Innovator, providers: List[Provider]) -> Optional[int]:
    """Id of the highest-scoring eligible provider, or ``None`` if none qualifies.

    Providers are scanned in id order and only a strictly greater score
    replaces the incumbent, so the first eligible provider wins ties.
    """
    best_id: Optional[int] = None
    best_score = float("-inf")
    for provider in providers:
        if innovator.can_partner_with(provider) and provider.score > best_score:
            best_id = provider.id
            best_score = provider.score
    return best_id


class Coordinator(ABC):
    strategy: Strategy

    def __init__(self, ctx: "SimulationContext", log: "SearchLog") -> None:
        self.ctx = ctx
        self.log = log
        self.rounds = 0

    @property
    def innovators(self) -> List[Innovator]:
        return self.ctx.innovators

    @property
    def providers(self) -> List[Provider]:
        return self.ctx.providers

    def setup(self) -> None:
        """Per-run preparation before the first round."""

    @abstractmethod
    def step_round(self) -> None:
        ...

    @abstractmethod
    def is_done(self) -> bool:
        ...

    @abstractmethod
    def output_file_name(self) -> str:
        ...

    def _name_prefix(self) -> str:
        landscape = self.ctx.landscape
        return f"o_n{landscape.n}k{landscape.k}_x{len(self.innovators)}"

    def write_log(self, agent: Agent) -> None:
        self.log.write(self.ctx.run_index, agent)

    def run(self) -> int:
        self.log.open(Path(self.ctx.output_dir) / self.output_file_name())
        try:
            self.setup()
            while not self.is_done():
                self.step_round()
                self.rounds += 1
        finally:
            self.log.close()
        return self.rounds

    def _step_provider_solo(self, provider: Provider) -> None:
        """Provider cycle shared by licensing and outsourcing: None -> Q -> wait."""
        if provider.has_unvisited_neighbour:
            provider.continue_search(self.ctx)
        elif provider.phase is None:
            provider.start_new_search(SearchPhase.Q, self.ctx)
        else:
            provider.wait_and_do_nothing()
        self.write_log(provider)

    def _absorb_provider_or_wait(self, innovator: Innovator) -> None:
        """An innovator with an exhausted M either merges its provider's solution or waits."""
        if innovator.partner_id is not None:
            partner = self.providers[innovator.partner_id]
            if partner.in_exhausted_phase(SearchPhase.Q):
                innovator.move_to(innovator.mixed_location(partner.location, True, self.ctx), self.ctx)
                innovator.start_new_search(SearchPhase.M_AGAIN, self.ctx)
                self.write_log(innovator)
                return
        innovator.wait_and_do_nothing()
        self.write_log(innovator)

    def _innovators_settled(self) -> bool:
        for innovator in self.innovators:
            if innovator.in_exhausted_phase(SearchPhase.M_AGAIN):
                continue
            if (
                innovator.phase == SearchPhase.M
                and innovator.has_set_partner
                and innovator.partner_id is None
            ):
                continue
            return False
        return True


class ClosedInnovation(Coordinator):
    strategy = Strategy.CLOSED

    _NEXT_PHASE = {
        None: SearchPhase.M,
        SearchPhase.M: SearchPhase.P,
        SearchPhase.P: SearchPhase.M_AND_P,
    }

    def step_round(self) -> None:
        for innovator in self.innovators:
            if innovator.has_unvisited_neighbour:
                innovator.continue_search(self.ctx)
            elif innovator.phase in self._NEXT_PHASE:
                innovator.start_new_search(self._NEXT_PHASE[innovator.phase], self.ctx)
            else:
                innovator.wait_and_do_nothing()
            self.write_log(innovator)

    def is_done(self) -> bool:
        return all(innovator.in_exhausted_phase(SearchPhase.M_AND_P) for innovator in self.innovators)

    def output_file_name(self) -> str:
        return f"{self._name_prefix()}_closed.txt"


class Licensing(Coordinator):
    strategy = Strategy.LICENSING

    def step_round(self) -> None:
        for provider in self.providers:
            self._step_provider_solo(provider)
        for innovator in self.innovators:
            if innovator.has_unvisited_neighbour:
                innovator.continue_search(self.ctx)
                self.write_log(innovator)
            elif innovator.phase is None:
                innovator.start_new_search(SearchPhase.M, self.ctx)
                self.write_log(innovator)
            elif innovator.phase == SearchPhase.M:
                if not innovator.has_set_partner:
                    self._choose_partner(innovator)
                self._absorb_provider_or_wait(innovator)
            else:
                innovator.wait_and_do_nothing()
                self.write_log(innovator)

    def _choose_partner(self, innovator: Innovator) -> None:
        best_id = find_best_provider(innovator, self.providers)
        innovator.set_partner(best_id)
        if best_id is not None:
            self.providers[best_id].add_partner(innovator.id)

    def is_done(self) -> bool:
        if not all(provider.in_exhausted_phase(SearchPhase.Q) for provider in self.providers):
            return False
        return self._innovators_settled()

    def output_file_name(self) -> str:
        return f"{self._name_prefix()}y{len(self.providers)}_licensing.txt"


class Outsourcing(Coordinator):
    strategy = Strategy.OUTSOURCING

    def __init__(self, ctx: "SimulationContext", log: "SearchLog") -> None:
        super().__init__(ctx, log)
        self.providers_started = False
        self.chosen_provider_ids: List[int] = []

    def setup(self) -> None:
        self.providers_started = False
        chosen: Set[int] = set()
        for innovator in self.innovators:
            best_id = find_best_provider(innovator, self.providers)
            innovator.set_partner(best_id)
            if best_id is not None:
                self.providers[best_id].add_partner(innovator.id)
                chosen.add(best_id)
        self.chosen_provider_ids = sorted(chosen)

    def _chosen_providers(self) -> List[Provider]:
        return [self.providers[pid] for pid in self.chosen_provider_ids]

    def should_providers_start(self) -> bool:
        """True once every innovator has exhausted M (or already moved on to Magain)."""
        if self.providers_started:
            return True
        for innovator in self.innovators:
            if innovator.in_exhausted_phase(SearchPhase.M) or innovator.phase == SearchPhase.M_AGAIN:
                continue
            return False
        self.providers_started = True
        return True

    def step_round(self) -> None:
        if self.should_providers_start():
            for provider in self._chosen_providers():
                self._step_provider_solo(provider)
            for innovator in self.innovators:
                if innovator.has_unvisited_neighbour:
                    innovator.continue_search(self.ctx)
                    self.write_log(innovator)
                elif innovator.phase == SearchPhase.M:
                    self._absorb_provider_or_wait(innovator)
                else:
                    innovator.wait_and_do_nothing()
                    self.write_log(innovator)
        else:
            for provider in self._chosen_providers():
                provider.wait_and_do_nothing()
                self.write_log(provider)
            for innovator in self.innovators:
                if innovator.has_unvisited_neighbour:
                    innovator.continue_search(self.ctx)
                elif innovator.phase is None:
                    innovator.start_new_search(SearchPhase.M, self.ctx)
                else:
                    innovator.wait_and_do_nothing()
                self.write_log(innovator)

    def is_done(self) -> bool:
        if not all(provider.in_exhausted_phase(SearchPhase.Q) for provider in self._chosen_providers()):
            return False
        return self._innovators_settled()

    def output_file_name(self) -> str:
        return f"{self._name_prefix()}y{len(self.providers)}_outsourcing.txt"


class Alliance(Coordinator):
    """Pairs of innovators with identical P search P jointly.

    The key partner (lower id) drives the joint search and is never logged
    directly; the value partner's turn writes the key's record followed by its
    own. Innovators left without a compatible partner search M only.
    """

    def __init__(self, ctx: "SimulationContext", log: "SearchLog", use_max_power: bool = True) -> None:
        super().__init__(ctx, log)
        self.use_max_power = use_max_power
        self.key_to_value: Dict[int, int] = {}
        self.value_to_key: Dict[int, int] = {}
        self.singles: Set[int] = set()

    @property
    def strategy(self) -> Strategy:  # type: ignore[override]
        return Strategy.ALLIANCE_MAX if self.use_max_power else Strategy.ALLIANCE_MIN

    def setup(self) -> None:
        self.random_pair_up()

    def random_pair_up(self) -> None:
        """Pair innovators with equal P at random; an odd one out stays single."""
        self.key_to_value = {}
        self.value_to_key = {}
        self.singles = set()
        innovators = self.innovators
        for i, innovator in enumerate(innovators):
            if i in self.key_to_value or i in self.value_to_key or i in self.singles:
                continue
            candidates = [i] + [
                j for j in range(i + 1, len(innovators)) if innovator.can_ally_with(innovators[j])
            ]
            if len(candidates) % 2 == 1:
                loner = pop_random(candidates, self.ctx.rng)
                self.singles.add(loner)
                innovators[loner].set_partner(None)
            while candidates:
                first = pop_random(candidates, self.ctx.rng)
                second = pop_random(candidates, self.ctx.rng)
                key, value = min(first, second), max(first, second)
                self.key_to_value[key] = value
                self.value_to_key[value] = key
                innovators[first].set_partner(second)
                innovators[second].set_partner(first)

    def alliance_power(self, key: Innovator, value: Innovator) -> int:
        pick = max if self.use_max_power else min
        return pick(key.processing_power, value.processing_power)

    def write_log(self, agent: Agent) -> None:
        if agent.id in self.value_to_key:
            super().write_log(self.innovators[self.value_to_key[agent.id]])
            super().write_log(agent)
        elif agent.id in self.singles:
            super().write_log(agent)

    def step_round(self) -> None:
        for innovator in self.innovators:
            if innovator.phase == SearchPhase.P:
                if innovator.id in self.key_to_value:
                    partner = self.innovators[self.key_to_value[innovator.id]]
                    if innovator.has_unvisited_neighbour:
                        innovator.continue_alliance_search(partner, self.ctx)
                    else:
                        innovator.start_new_search(SearchPhase.M_AGAIN, self.ctx)
                        partner.start_new_search(SearchPhase.M_AGAIN, self.ctx, first_step=False)
                else:
                    self.write_log(innovator)
            elif innovator.has_unvisited_neighbour:
                innovator.continue_search(self.ctx)
                self.write_log(innovator)
            elif innovator.phase is None:
                innovator.start_new_search(SearchPhase.M, self.ctx)
                self.write_log(innovator)
            elif innovator.phase == SearchPhase.M and innovator.id in self.key_to_value:
                partner = self.innovators[self.key_to_value[innovator.id]]
                if partner.in_exhausted_phase(SearchPhase.M):
                    self._merge_and_ally(innovator, partner)
                else:
                    innovator.wait_and_do_nothing()
            else:
                # value waiting for its key, a single after M, or anyone after Magain
                innovator.wait_and_do_nothing()
                self.write_log(innovator)

    def _merge_and_ally(self, key: Innovator, value: Innovator) -> None:
        key.move_to(key.mixed_location(value.location, False, self.ctx), self.ctx)
        value.move_to(value.mixed_location(key.location, True, self.ctx), self.ctx)
        key.start_alliance_search(value, self.alliance_power(key, value), self.ctx)

    def is_done(self) -> bool:
        for innovator in self.innovators:
            paired = innovator.id in self.key_to_value or innovator.id in self.value_to_key
            if paired and innovator.in_exhausted_phase(SearchPhase.M_AGAIN):
                continue
            if innovator.id in self.singles and innovator.in_exhausted_phase(SearchPhase.M):
                continue
            return False
        return True

    def output_file_name(self) -> str:
        suffix = "max" if self.use_max_power else "min"
        return f"{self._name_prefix()}_alliance_{suffix}.txt"


COORDINATORS: Dict[Strategy, Type[Coordinator]] = {
    Strategy.CLOSED: ClosedInnovation,
    Strategy.LICENSING: Licensing,
    Strategy.OUTSOURCING: Outsourcing,
    Strategy.ALLIANCE_MAX: Alliance,
    Strategy.ALLIANCE_MIN: Alliance,
}


def build_coordinator(strategy: Strategy, ctx: "SimulationContext", log: "SearchLog") -> Coordinator:
    if strategy == Strategy.ALLIANCE_MAX:
        return Alliance(ctx, log, use_max_power=True)
    if strategy == Strategy.ALLIANCE_MIN:
        return Alliance(ctx, log, use_max_power=False)
    return COORDINATORS[strategy](ctx, log)
