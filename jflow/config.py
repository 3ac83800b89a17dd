"""
jflow.config
============

Which analyses to run, in which order, with which options.

An :class:`AnalysisPlan` is an ordered list of :class:`AnalysisConfig`
entries.  Plans are built from analysis ids on the command line
(:meth:`AnalysisPlan.from_ids`) or read from a JSON file
(:func:`load_plan`)::

    {
      "analyses": [
        {"id": "constprop", "options": {"solver": "iterative"}},
        {"id": "deadcode"}
      ]
    }

Either way the plan is completed with every analysis a requested one
depends on, placed before it.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import (
    Any,
    Dict,
    FrozenSet,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from jflow.errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisSpec:
    """Static description of a known analysis id."""

    id: str
    requires: Tuple[str, ...] = ()
    options: FrozenSet[str] = frozenset()
    per_method: bool = True


KNOWN_ANALYSES: Dict[str, AnalysisSpec] = {
    spec.id: spec
    for spec in (
        AnalysisSpec("cfg"),
        AnalysisSpec("constprop", ("cfg",), frozenset({"solver"})),
        AnalysisSpec("livevar", ("cfg",)),
        AnalysisSpec("deadcode", ("cfg", "constprop", "livevar")),
        AnalysisSpec("cha", (), frozenset({"entry"}), per_method=False),
        AnalysisSpec("icfg", ("cha",), per_method=False),
        AnalysisSpec("inter-constprop", ("icfg",), per_method=False),
    )
}

SOLVERS = ("worklist", "iterative")


@dataclass(frozen=True)
class AnalysisConfig:
    """One analysis of a plan: its id and its options."""

    id: str
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        spec = KNOWN_ANALYSES.get(self.id)
        if spec is None:
            raise ConfigError(
                f"unknown analysis {self.id!r} "
                f"(known: {', '.join(KNOWN_ANALYSES)})"
            )
        unknown = set(self.options) - spec.options
        if unknown:
            raise ConfigError(
                f"unknown option(s) {', '.join(sorted(unknown))} "
                f"for analysis {self.id!r}"
            )
        solver = self.options.get("solver")
        if solver is not None and solver not in SOLVERS:
            raise ConfigError(
                f"unknown solver {solver!r} for analysis {self.id!r}"
            )

    @property
    def spec(self) -> AnalysisSpec:
        return KNOWN_ANALYSES[self.id]

    def get(self, option: str, default: Any = None) -> Any:
        return self.options.get(option, default)


class AnalysisPlan:
    """Ordered analyses, each placed after the analyses it requires."""

    def __init__(self, configs: Iterable[AnalysisConfig] = ()):
        self._configs: Dict[str, AnalysisConfig] = {}
        for config in configs:
            self.add(config)

    def add(self, config: AnalysisConfig) -> None:
        """Append *config*, first adding whatever it requires.

        An analysis already in the plan keeps its position; options given
        later for the same id replace the earlier ones.
        """
        self._add(config, ())

    def _add(self, config: AnalysisConfig, chain: Tuple[str, ...]) -> None:
        if config.id in chain:
            raise ConfigError(
                f"cyclic requirement: {' -> '.join(chain + (config.id,))}"
            )
        for required in config.spec.requires:
            if required not in self._configs:
                self._add(AnalysisConfig(required), chain + (config.id,))
        self._configs[config.id] = config

    @classmethod
    def from_ids(
        cls,
        ids: Iterable[str],
        options: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> AnalysisPlan:
        options = options or {}
        return cls(AnalysisConfig(i, dict(options.get(i, {}))) for i in ids)

    def get(self, analysis_id: str) -> Optional[AnalysisConfig]:
        return self._configs.get(analysis_id)

    @property
    def ids(self) -> List[str]:
        return list(self._configs)

    def __contains__(self, analysis_id: object) -> bool:
        return analysis_id in self._configs

    def __iter__(self) -> Iterator[AnalysisConfig]:
        return iter(list(self._configs.values()))

    def __len__(self) -> int:
        return len(self._configs)

    def __repr__(self) -> str:
        return f"AnalysisPlan({self.ids})"


def plan_from_dict(data: Any) -> AnalysisPlan:
    """Build a plan from the decoded JSON form described above."""
    if not isinstance(data, dict) or not isinstance(data.get("analyses"), list):
        raise ConfigError('plan must be an object with an "analyses" list')
    configs = []
    for entry in data["analyses"]:
        if isinstance(entry, str):
            entry = {"id": entry}
        if not isinstance(entry, dict) or "id" not in entry:
            raise ConfigError(f"malformed plan entry: {entry!r}")
        options = entry.get("options", {})
        if not isinstance(options, dict):
            raise ConfigError(f"options of {entry['id']!r} must be an object")
        configs.append(AnalysisConfig(entry["id"], options))
    return AnalysisPlan(configs)


def load_plan(path: Union[str, Path]) -> AnalysisPlan:
    """Read an analysis plan from the JSON file at *path*."""
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{path}: invalid JSON: {exc}") from exc
    plan = plan_from_dict(data)
    logger.debug("Loaded plan %r from %s", plan, path)
    return plan
