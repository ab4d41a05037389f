"""
Shared enumerations for the NK innovation-strategy model.

Search phases
-------------
An agent's search phase names the trait set it is currently allowed to
change:

- ``M``: an innovator's own module.
- ``P``: the innovator's module that overlaps with partners (alone in closed
  innovation, jointly with an ally in an alliance).
- ``MandP``: both modules together (closed innovation only).
- ``Magain``: ``M`` searched again after absorbing a partner's solution.
- ``Q``: a provider's module.

Agents start without a phase (logged as ``null``).
"""

from __future__ import annotations

from enum import Enum


class SearchPhase(str, Enum):
    M = "M"
    P = "P"
    Q = "Q"
    M_AND_P = "MandP"
    M_AGAIN = "Magain"

    def __str__(self) -> str:
        return self.value


class Role(str, Enum):
    INNOVATOR = "INNOVATOR"
    PROVIDER = "PROVIDER"

    def __str__(self) -> str:
        return self.value


class Strategy(str, Enum):
    """Innovation-organization strategies a case can request."""

    CLOSED = "CLOSED"
    LICENSING = "LICENSING"
    OUTSOURCING = "OUTSOURCING"
    ALLIANCE_MAX = "ALLIANCE_MAX"
    ALLIANCE_MIN = "ALLIANCE_MIN"

    def __str__(self) -> str:
        return self.value

    @property
    def uses_providers(self) -> bool:
        return self in (Strategy.LICENSING, Strategy.OUTSOURCING)


NULL_PHASE_LABEL = "null"


def phase_label(phase: "SearchPhase | None") -> str:
    return NULL_PHASE_LABEL if phase is None else phase.value
