"""
Simulation configuration and case definitions for the NK innovation model.

Two layers of configuration exist:

1. ``SimulationConfig`` holds process-wide knobs (master seed, fitness cache
   capacity, output directory, verbosity). It follows the usual dataclass
   pattern: ``snapshot()`` for a JSON-safe dump and ``copy_with_overrides()``
   for derived configurations.

2. ``SimulationCase`` describes one experiment: how many runs, which
   dependency structure, which strategies, and which agent groups. Cases are
   read from XML or JSON case files by ``load_cases``.

Case file formats
-----------------
XML::

    <cases>
      <case>
        <runs>10</runs>
        <inf>matrices/n10k2.csv</inf>
        <strategy>CLOSED</strategy>
        <innovator><num>10</num><power>2</power><M>3</M><P>3</P></innovator>
        <provider><num>5</num><power>3</power><Q>5</Q></provider>
      </case>
    </cases>

JSON::

    {"cases": [{"runs": 10, "inf": "matrices/n10k2.csv",
                "strategies": ["CLOSED"],
                "innovators": [{"num": 10, "power": 2, "M": 3, "P": 3}],
                "providers": [{"num": 5, "power": 3, "Q": 5}]}]}

Relative matrix paths are resolved against the case file's directory. A
matrix file holds comma-separated rows where the token ``x`` marks a
dependency; the diagonal must be marked.

Every problem found while loading raises ``ConfigurationError`` (or
``StructureError`` for the matrix itself) before any landscape or agent
exists.
"""

from __future__ import annotations

import copy
import json
import os
import xml.etree.ElementTree as ET
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .agents import Innovator, Provider
from .landscape import DEFAULT_CACHE_CAPACITY, DependencyStructure
from .models import Strategy
from .utils import DEFAULT_MASTER_SEED


class ConfigurationError(ValueError):
    """Raised when a case definition or configuration value is invalid."""


@dataclass
class SimulationConfig:
    """Process-wide settings shared by every case."""

    MASTER_SEED: int = DEFAULT_MASTER_SEED
    CACHE_CAPACITY: int = DEFAULT_CACHE_CAPACITY
    OUTPUT_DIR: str = "."
    # Largest N whose location ids fit comfortably in a signed 64-bit integer
    MAX_LOCI: int = 62
    VERBOSE: bool = True
    RUNS_OVERRIDE: Optional[int] = None
    STRATEGY_FILTER: Optional[List[str]] = None

    def __post_init__(self) -> None:
        if self.CACHE_CAPACITY < 1:
            raise ConfigurationError(f"CACHE_CAPACITY must be positive, got {self.CACHE_CAPACITY}")
        if self.RUNS_OVERRIDE is not None and self.RUNS_OVERRIDE < 0:
            raise ConfigurationError(f"RUNS_OVERRIDE must be non-negative, got {self.RUNS_OVERRIDE}")
        if self.STRATEGY_FILTER is not None:
            self.STRATEGY_FILTER = [parse_strategy(name).value for name in self.STRATEGY_FILTER]

    def snapshot(self) -> Dict[str, Any]:
        """Return a deep-copied, JSON-safe representation of the configuration."""
        return asdict(self)

    def copy_with_overrides(self, overrides: Optional[Dict[str, Any]] = None) -> "SimulationConfig":
        """Return a new config with the provided overrides merged in."""
        new_cfg = copy.deepcopy(self)
        if overrides:
            _apply_overrides(new_cfg, overrides)
        new_cfg.__post_init__()
        return new_cfg


def _apply_overrides(config: SimulationConfig, overrides: Dict[str, Any]) -> None:
    for key, value in overrides.items():
        if not hasattr(config, key):
            raise KeyError(f"Unknown configuration attribute '{key}' in override.")
        setattr(config, key, copy.deepcopy(value))


def load_config_overrides(path: str | os.PathLike[str]) -> Dict[str, Any]:
    """Load a JSON object of ``SimulationConfig`` overrides from disk."""
    file_path = Path(path).expanduser().resolve()
    if not file_path.exists():
        raise FileNotFoundError(f"Config override file not found: {file_path}")
    with file_path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    overrides = payload.get("overrides", payload) if isinstance(payload, dict) else None
    if not isinstance(overrides, dict):
        raise ConfigurationError(f"Config override file {file_path} must define a JSON object.")
    return overrides


def parse_strategy(name: str) -> Strategy:
    """Case-insensitive strategy lookup."""
    normalized = str(name).strip().upper()
    try:
        return Strategy(normalized)
    except ValueError:
        available = ", ".join(s.value for s in Strategy)
        raise ConfigurationError(f"unknown strategy type '{name}'. Available: {available}") from None


def _as_int(value: Any, field_name: str, context: str, minimum: int = 0) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{context}: '{field_name}' must be an integer, got {value!r}")
    try:
        if isinstance(value, str):
            number = int(value.strip())
        elif isinstance(value, float) and not value.is_integer():
            raise ValueError
        else:
            number = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{context}: '{field_name}' must be an integer, got {value!r}") from None
    if number < minimum:
        raise ConfigurationError(f"{context}: '{field_name}' must be >= {minimum}, got {number}")
    return number


@dataclass(frozen=True)
class InnovatorGroup:
    count: int
    processing_power: int
    m_size: int
    p_size: int


@dataclass(frozen=True)
class ProviderGroup:
    count: int
    processing_power: int
    q_size: int


@dataclass
class SimulationCase:
    """One experiment: runs × strategies over a fixed dependency structure."""

    runs: int
    structure: DependencyStructure
    strategies: Tuple[Strategy, ...]
    innovator_groups: List[InnovatorGroup] = field(default_factory=list)
    provider_groups: List[ProviderGroup] = field(default_factory=list)
    name: str = "case"

    @property
    def n_innovators(self) -> int:
        return sum(group.count for group in self.innovator_groups)

    @property
    def n_providers(self) -> int:
        return sum(group.count for group in self.provider_groups)

    def validate(self, max_loci: int = 62) -> "SimulationCase":
        n = self.structure.n
        if n > max_loci:
            raise ConfigurationError(f"{self.name}: N = {n} exceeds the supported maximum of {max_loci} loci")
        if self.runs < 0:
            raise ConfigurationError(f"{self.name}: runs must be non-negative, got {self.runs}")
        if not self.strategies:
            raise ConfigurationError(f"{self.name}: no strategy declared")
        for group in self.innovator_groups:
            if group.m_size + group.p_size > n:
                raise ConfigurationError(
                    f"{self.name}: innovator M ({group.m_size}) and P ({group.p_size}) are larger than N ({n})"
                )
        for group in self.provider_groups:
            if group.q_size > n:
                raise ConfigurationError(f"{self.name}: provider Q ({group.q_size}) is larger than N ({n})")
        return self

    def build_innovators(self) -> List[Innovator]:
        """Innovators numbered 0.. in group declaration order."""
        agents: List[Innovator] = []
        for group in self.innovator_groups:
            for _ in range(group.count):
                agents.append(Innovator(len(agents), group.processing_power, group.m_size, group.p_size))
        return agents

    def build_providers(self) -> List[Provider]:
        agents: List[Provider] = []
        for group in self.provider_groups:
            for _ in range(group.count):
                agents.append(Provider(len(agents), group.processing_power, group.q_size))
        return agents

    def structure_snapshot(self) -> DependencyStructure:
        return self.structure.copy()


def load_dependency_matrix(path: str | os.PathLike[str]) -> DependencyStructure:
    """Read an ``x``-marked CSV matrix into a validated ``DependencyStructure``."""
    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationError(f"dependency matrix file not found: {file_path}")
    rows: List[List[int]] = []
    with file_path.open("r", encoding="utf-8") as handle:
        for line in handle:
            line = line.rstrip("\r\n")
            if not line.strip():
                continue
            rows.append([1 if token.strip() == "x" else 0 for token in line.split(",")])
    return DependencyStructure(rows)


def _dedupe_strategies(names: Iterable[str]) -> Tuple[Strategy, ...]:
    ordered: List[Strategy] = []
    for name in names:
        strategy = parse_strategy(name)
        if strategy not in ordered:
            ordered.append(strategy)
    return tuple(ordered)


def _build_case(
    raw: Dict[str, Any],
    base_dir: Path,
    name: str,
    max_loci: int,
) -> SimulationCase:
    if raw.get("runs") is None:
        raise ConfigurationError(f"{name}: 'runs' is required")
    runs = _as_int(raw["runs"], "runs", name)
    inf = raw.get("inf")
    if not inf:
        raise ConfigurationError(f"{name}: 'inf' (dependency matrix file) is required")
    matrix_path = Path(str(inf).strip())
    if not matrix_path.is_absolute():
        matrix_path = base_dir / matrix_path
    structure = load_dependency_matrix(matrix_path)
    strategies = _dedupe_strategies(raw.get("strategies") or [])

    innovator_groups = []
    for spec in raw.get("innovators") or []:
        context = f"{name} innovator"
        innovator_groups.append(
            InnovatorGroup(
                count=_as_int(spec.get("num"), "num", context),
                processing_power=_as_int(spec.get("power"), "power", context),
                m_size=_as_int(spec.get("M"), "M", context),
                p_size=_as_int(spec.get("P"), "P", context),
            )
        )
    provider_groups = []
    for spec in raw.get("providers") or []:
        context = f"{name} provider"
        provider_groups.append(
            ProviderGroup(
                count=_as_int(spec.get("num"), "num", context),
                processing_power=_as_int(spec.get("power"), "power", context),
                q_size=_as_int(spec.get("Q"), "Q", context),
            )
        )
    case = SimulationCase(
        runs=runs,
        structure=structure,
        strategies=strategies,
        innovator_groups=innovator_groups,
        provider_groups=provider_groups,
        name=name,
    )
    return case.validate(max_loci)


_INNOVATOR_TAGS = ("num", "power", "M", "P")
_PROVIDER_TAGS = ("num", "power", "Q")


def _agent_spec_from_xml(element: ET.Element, allowed: Sequence[str], context: str) -> Dict[str, str]:
    spec: Dict[str, str] = {}
    for child in element:
        if child.tag in allowed:
            spec[child.tag] = (child.text or "").strip()
        else:
            print(f"WARNING : unknown {context} attribute {child.tag}")
    return spec


def _raw_cases_from_xml(file_path: Path) -> List[Dict[str, Any]]:
    try:
        root = ET.parse(file_path).getroot()
    except ET.ParseError as exc:
        raise ConfigurationError(f"cannot parse case file {file_path}: {exc}") from exc
    case_elements = [root] if root.tag == "case" else list(root.iter("case"))
    raw_cases = []
    for element in case_elements:
        raw: Dict[str, Any] = {"strategies": [], "innovators": [], "providers": []}
        for setting in element:
            text = (setting.text or "").strip()
            if setting.tag == "runs":
                raw["runs"] = text
            elif setting.tag == "inf":
                raw["inf"] = text
            elif setting.tag == "strategy":
                raw["strategies"].append(text)
            elif setting.tag == "innovator":
                raw["innovators"].append(_agent_spec_from_xml(setting, _INNOVATOR_TAGS, "innovator"))
            elif setting.tag == "provider":
                raw["providers"].append(_agent_spec_from_xml(setting, _PROVIDER_TAGS, "provider"))
            else:
                print(f"WARNING : unknown case element {setting.tag}")
        raw_cases.append(raw)
    return raw_cases


def _raw_cases_from_json(file_path: Path) -> List[Dict[str, Any]]:
    try:
        with file_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"cannot parse case file {file_path}: {exc}") from exc
    if isinstance(payload, dict):
        raw_cases = payload.get("cases", [payload])
    else:
        raw_cases = payload
    if not isinstance(raw_cases, list) or not all(isinstance(item, dict) for item in raw_cases):
        raise ConfigurationError(f"case file {file_path} must hold a list of case objects")
    return raw_cases


def load_cases(path: str | os.PathLike[str], config: Optional[SimulationConfig] = None) -> List[SimulationCase]:
    """Parse and validate every case in an XML or JSON case file."""
    config = config or SimulationConfig()
    file_path = Path(path).expanduser().resolve()
    if not file_path.exists():
        raise ConfigurationError(f"case file not found: {file_path}")
    if file_path.suffix.lower() == ".json":
        raw_cases = _raw_cases_from_json(file_path)
    else:
        raw_cases = _raw_cases_from_xml(file_path)
    return [
        _build_case(raw, file_path.parent, f"case {index}", config.MAX_LOCI)
        for index, raw in enumerate(raw_cases)
    ]
