"""Public API for the NK innovation-strategy package.

Agent-based simulation of closed innovation, licensing, outsourcing and
alliances among boundedly rational firms searching an NK fitness landscape.
Based on Kauffman (1993) and Levinthal (1997).
"""

__version__ = "1.0.0"

from .agents import Agent, Innovator, Provider, begin_phase, compute_frontier, hill_climb_step
from .analysis import (
    compare_strategies,
    final_scores,
    load_search_log,
    strategy_table,
    summarize_directory,
    summarize_log,
)
from .cli import run_cli
from .config import (
    ConfigurationError,
    InnovatorGroup,
    ProviderGroup,
    SimulationCase,
    SimulationConfig,
    load_cases,
    load_config_overrides,
    load_dependency_matrix,
    parse_strategy,
)
from .landscape import ContributionTable, DependencyStructure, Landscape, StructureError
from .models import Role, SearchPhase, Strategy
from .protocols import (
    Alliance,
    ClosedInnovation,
    Coordinator,
    Licensing,
    Outsourcing,
    build_coordinator,
    find_best_provider,
)
from .simulation import SearchLog, SimulationContext, run_case, run_cases
from .utils import derive_run_seed, make_run_rng, safe_mean

__all__ = [
    "__version__",
    "Agent",
    "Innovator",
    "Provider",
    "begin_phase",
    "compute_frontier",
    "hill_climb_step",
    "compare_strategies",
    "final_scores",
    "load_search_log",
    "strategy_table",
    "summarize_directory",
    "summarize_log",
    "run_cli",
    "ConfigurationError",
    "InnovatorGroup",
    "ProviderGroup",
    "SimulationCase",
    "SimulationConfig",
    "load_cases",
    "load_config_overrides",
    "load_dependency_matrix",
    "parse_strategy",
    "ContributionTable",
    "DependencyStructure",
    "Landscape",
    "StructureError",
    "Role",
    "SearchPhase",
    "Strategy",
    "Alliance",
    "ClosedInnovation",
    "Coordinator",
    "Licensing",
    "Outsourcing",
    "build_coordinator",
    "find_best_provider",
    "SearchLog",
    "SimulationContext",
    "run_case",
    "run_cases",
    "derive_run_seed",
    "make_run_rng",
    "safe_mean",
]
