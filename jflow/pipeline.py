"""
jflow.pipeline
==============

Runs an :class:`~jflow.config.AnalysisPlan` over a
:class:`~jflow.classes.Program`.

Method analyses (``cfg``, ``constprop``, ``livevar``, ``deadcode``) run
on every method with a body, or only on the reachable ones once ``cha``
has run.  Their results are stored on each method's IR under the
analysis id.  Program analyses (``cha``, ``icfg``, ``inter-constprop``)
run once and are kept on the manager.

Typical usage::

    program = load_program("Example.jir")
    manager = AnalysisManager(program)
    manager.run(AnalysisPlan.from_ids(["deadcode"]))
    for method in manager.analysed_methods:
        print(method, method.ir.get_result("deadcode"))
"""

from __future__ import annotations

import logging
import time
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Optional,
)

from jflow.callgraph import CALLGRAPH_ID, CallGraph, build_callgraph
from jflow.classes import JMethod, Program
from jflow.config import AnalysisConfig, AnalysisPlan
from jflow.ctrlflow_graph import CFG_ID, build_cfg
from jflow.dataflow_analyses import (
    ConstantPropagation,
    DeadCodeDetection,
    LiveVariableAnalysis,
)
from jflow.dataflow_engine import solve
from jflow.errors import ConfigError
from jflow.interproc_analysis import (
    ICFG_ID,
    InterConstantPropagation,
    InterproceduralCFG,
)
from jflow.ir import IR

logger = logging.getLogger(__name__)


class AnalysisManager:
    """Runs analyses by id and keeps their results."""

    def __init__(self, program: Program) -> None:
        self.program = program
        self._results: Dict[str, Any] = {}
        self._method_runners: Dict[str, Callable[[IR, AnalysisConfig], Any]] = {
            CFG_ID: self._run_cfg,
            ConstantPropagation.ID: self._run_constprop,
            LiveVariableAnalysis.ID: self._run_livevar,
            DeadCodeDetection.ID: self._run_deadcode,
        }
        self._program_runners: Dict[str, Callable[[AnalysisConfig], Any]] = {
            CALLGRAPH_ID: self._run_cha,
            ICFG_ID: self._run_icfg,
            InterConstantPropagation.ID: self._run_inter_constprop,
        }

    # ----- driving ----------------------------------------------------------

    def run(self, plan: AnalysisPlan) -> None:
        for config in plan:
            t0 = time.monotonic()
            if config.id in self._method_runners:
                runner = self._method_runners[config.id]
                methods = self.analysed_methods
                logger.debug("Running %s on %d methods", config.id, len(methods))
                for method in methods:
                    method.ir.store_result(config.id, runner(method.ir, config))
            else:
                self._results[config.id] = self._program_runners[config.id](config)
            logger.info(
                "Finished %s in %.3fs", config.id, time.monotonic() - t0,
            )

    @property
    def analysed_methods(self) -> List[JMethod]:
        """Methods that method analyses run on."""
        call_graph: Optional[CallGraph] = self._results.get(CALLGRAPH_ID)
        if call_graph is not None:
            return [m for m in call_graph.reachable_methods if m.has_body()]
        return self.program.methods_with_body()

    def get_result(self, analysis_id: str) -> Any:
        """Result of a program analysis that has run."""
        try:
            return self._results[analysis_id]
        except KeyError:
            raise ConfigError(f"analysis {analysis_id!r} has not run") from None

    def has_result(self, analysis_id: str) -> bool:
        return analysis_id in self._results

    # ----- method analyses --------------------------------------------------

    def _run_cfg(self, ir: IR, config: AnalysisConfig):
        return build_cfg(ir)

    def _run_constprop(self, ir: IR, config: AnalysisConfig):
        return solve(ConstantPropagation(), build_cfg(ir), config.get("solver"))

    def _run_livevar(self, ir: IR, config: AnalysisConfig):
        return solve(LiveVariableAnalysis(), build_cfg(ir))

    def _run_deadcode(self, ir: IR, config: AnalysisConfig):
        return DeadCodeDetection(config.get("solver")).analyze(ir)

    # ----- program analyses -------------------------------------------------

    def _run_cha(self, config: AnalysisConfig) -> CallGraph:
        entry = config.get("entry")
        method = self.program.get_method(entry) if entry else None
        return build_callgraph(self.program, method)

    def _run_icfg(self, config: AnalysisConfig) -> InterproceduralCFG:
        return InterproceduralCFG(self.get_result(CALLGRAPH_ID))

    def _run_inter_constprop(self, config: AnalysisConfig):
        return InterConstantPropagation().analyze(self.get_result(ICFG_ID))

    def __repr__(self) -> str:
        return f"AnalysisManager({self.program!r}, ran={list(self._results)})"
