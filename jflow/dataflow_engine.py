"""
jflow.dataflow_engine
=====================

Fixed-point dataflow solvers over statement-level CFGs.

Theory
------
A dataflow analysis is defined by:

1.  A **direction**: *forward* (facts flow along CFG edges) or
    *backward* (facts flow against them).
2.  A **boundary fact** for the entry (forward) or exit (backward) node.
3.  An **initial fact** for every other program point.
4.  A **meet** operator merging the facts flowing into a node.
5.  A **transfer function** ``transfer_node(node, in, out) → changed``
    that updates the fact on the far side of a node in place and reports
    whether it changed.

Facts are mutable objects (:class:`~jflow.abstract_domains.CPFact`,
:class:`~jflow.abstract_domains.SetFact`) owned by exactly one program
point.  Solvers iterate until no transfer reports a change.

Solvers
-------
``WorkListSolver``
    Forward only.  Re-processes a node only when one of its predecessors
    changed.  Handing it a backward analysis raises
    :class:`~jflow.errors.UnsupportedDirectionError`.
``IterativeSolver``
    Round-robin over all nodes until a full pass changes nothing.
    Supports both directions and is what backward analyses (liveness)
    run on.

Public API
----------
    Direction           - forward / backward enum
    DataflowAnalysis    - abstract base for analyses
    DataflowResult      - per-node IN/OUT facts
    Solver              - abstract base for solvers
    WorkListSolver      - forward worklist solver
    IterativeSolver     - round-robin solver (both directions)
    solve               - pick a solver for an analysis and run it
    check_fixed_point   - re-run every transfer and report stability
"""

from __future__ import annotations

import abc
import enum
import logging
import time
from collections import deque
from typing import (
    Any,
    Deque,
    Dict,
    Generic,
    Iterable,
    Iterator,
    Optional,
    Tuple,
    TypeVar,
)

from jflow.ctrlflow_graph import CFG
from jflow.errors import UnsupportedDirectionError
from jflow.ir import Stmt

logger = logging.getLogger(__name__)

Fact = TypeVar("Fact")


# ===========================================================================
# DIRECTION
# ===========================================================================

class Direction(enum.Enum):
    FORWARD = "forward"
    BACKWARD = "backward"


# ===========================================================================
# ANALYSIS BASE
# ===========================================================================

class DataflowAnalysis(abc.ABC, Generic[Fact]):
    """An intraprocedural dataflow analysis over one CFG.

    Subclasses set :attr:`ID` and :attr:`direction` and implement the four
    abstract methods.  ``transfer_node`` receives the IN and OUT facts of a
    node; a forward analysis updates *out* from *in*, a backward analysis
    updates *in* from *out*.
    """

    ID: str = ""
    direction: Direction = Direction.FORWARD

    def is_forward(self) -> bool:
        return self.direction is Direction.FORWARD

    @abc.abstractmethod
    def new_boundary_fact(self, cfg: CFG) -> Fact:
        """Fact at the entry (forward) or exit (backward) of *cfg*."""

    @abc.abstractmethod
    def new_initial_fact(self) -> Fact:
        """Fact every other program point starts from."""

    @abc.abstractmethod
    def meet_into(self, fact: Fact, target: Fact) -> None:
        """Meet *fact* into *target* in place."""

    @abc.abstractmethod
    def transfer_node(self, node: Stmt, in_fact: Fact, out_fact: Fact) -> bool:
        """Apply the transfer function of *node*; return whether it changed."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.direction.value})"


# ===========================================================================
# RESULT CONTAINER
# ===========================================================================

class DataflowResult(Generic[Fact]):
    """Per-node IN and OUT facts computed by a solver.

    Attributes
    ----------
    iterations : int
        Number of node visits performed.
    elapsed_seconds : float
        Wall-clock time.
    """

    def __init__(self) -> None:
        self._in_facts: Dict[Stmt, Fact] = {}
        self._out_facts: Dict[Stmt, Fact] = {}
        self.iterations = 0
        self.elapsed_seconds = 0.0

    def get_in_fact(self, node: Stmt) -> Fact:
        return self._in_facts[node]

    def get_out_fact(self, node: Stmt) -> Fact:
        return self._out_facts[node]

    def set_in_fact(self, node: Stmt, fact: Fact) -> None:
        self._in_facts[node] = fact

    def set_out_fact(self, node: Stmt, fact: Fact) -> None:
        self._out_facts[node] = fact

    def get_result(self, node: Stmt) -> Fact:
        """The fact holding right after *node* (its OUT fact)."""
        return self._out_facts[node]

    def nodes(self) -> Iterator[Stmt]:
        return iter(self._in_facts)

    def items_in(self) -> Iterable[Tuple[Stmt, Fact]]:
        return self._in_facts.items()

    def items_out(self) -> Iterable[Tuple[Stmt, Fact]]:
        return self._out_facts.items()

    def __repr__(self) -> str:
        return (
            f"DataflowResult(nodes={len(self._in_facts)}, "
            f"iterations={self.iterations})"
        )


# ===========================================================================
# SOLVERS
# ===========================================================================

class Solver(abc.ABC, Generic[Fact]):
    """Base class of the intraprocedural solvers."""

    def __init__(self, analysis: DataflowAnalysis[Fact]) -> None:
        self.analysis = analysis

    def solve(self, cfg: CFG) -> DataflowResult[Fact]:
        """Run the analysis on *cfg* to a fixed point."""
        t0 = time.monotonic()
        result: DataflowResult[Fact] = DataflowResult()
        if self.analysis.is_forward():
            self.initialize_forward(cfg, result)
            self.do_solve_forward(cfg, result)
        else:
            self.initialize_backward(cfg, result)
            self.do_solve_backward(cfg, result)
        result.elapsed_seconds = time.monotonic() - t0
        logger.debug(
            "%s solved %r for %s in %d iterations",
            type(self).__name__, self.analysis, cfg.method, result.iterations,
        )
        return result

    def initialize_forward(self, cfg: CFG, result: DataflowResult[Fact]) -> None:
        for node in cfg:
            result.set_in_fact(node, self.analysis.new_initial_fact())
            result.set_out_fact(node, self.analysis.new_initial_fact())
        result.set_out_fact(cfg.entry, self.analysis.new_boundary_fact(cfg))

    def initialize_backward(self, cfg: CFG, result: DataflowResult[Fact]) -> None:
        for node in cfg:
            result.set_in_fact(node, self.analysis.new_initial_fact())
            result.set_out_fact(node, self.analysis.new_initial_fact())
        result.set_in_fact(cfg.exit, self.analysis.new_boundary_fact(cfg))

    @abc.abstractmethod
    def do_solve_forward(self, cfg: CFG, result: DataflowResult[Fact]) -> None:
        ...

    @abc.abstractmethod
    def do_solve_backward(self, cfg: CFG, result: DataflowResult[Fact]) -> None:
        ...


class WorkListSolver(Solver[Fact]):
    """Forward worklist solver.

    Every node starts on the worklist.  A popped node recomputes its IN
    fact as the meet of its predecessors' OUT facts, runs the transfer
    function, and on change pushes its successors (duplicates allowed).
    """

    def solve(self, cfg: CFG) -> DataflowResult[Fact]:
        if not self.analysis.is_forward():
            raise UnsupportedDirectionError(
                type(self).__name__, type(self.analysis).__name__, False,
            )
        return super().solve(cfg)

    def do_solve_forward(self, cfg: CFG, result: DataflowResult[Fact]) -> None:
        analysis = self.analysis
        worklist: Deque[Stmt] = deque(n for n in cfg if not cfg.is_entry(n))
        while worklist:
            node = worklist.popleft()
            result.iterations += 1
            in_fact = analysis.new_initial_fact()
            for pred in cfg.preds_of(node):
                analysis.meet_into(result.get_out_fact(pred), in_fact)
            result.set_in_fact(node, in_fact)
            if analysis.transfer_node(node, in_fact, result.get_out_fact(node)):
                worklist.extend(cfg.succs_of(node))

    def do_solve_backward(self, cfg: CFG, result: DataflowResult[Fact]) -> None:
        raise UnsupportedDirectionError(
            type(self).__name__, type(self.analysis).__name__, False,
        )


class IterativeSolver(Solver[Fact]):
    """Round-robin solver: sweep all nodes until nothing changes."""

    def do_solve_forward(self, cfg: CFG, result: DataflowResult[Fact]) -> None:
        analysis = self.analysis
        changed = True
        while changed:
            changed = False
            for node in cfg:
                if cfg.is_entry(node):
                    continue
                result.iterations += 1
                in_fact = analysis.new_initial_fact()
                for pred in cfg.preds_of(node):
                    analysis.meet_into(result.get_out_fact(pred), in_fact)
                result.set_in_fact(node, in_fact)
                changed |= analysis.transfer_node(
                    node, in_fact, result.get_out_fact(node)
                )

    def do_solve_backward(self, cfg: CFG, result: DataflowResult[Fact]) -> None:
        analysis = self.analysis
        nodes = [n for n in cfg if not cfg.is_exit(n)]
        nodes.reverse()
        changed = True
        while changed:
            changed = False
            for node in nodes:
                result.iterations += 1
                out_fact = analysis.new_initial_fact()
                for succ in cfg.succs_of(node):
                    analysis.meet_into(result.get_in_fact(succ), out_fact)
                result.set_out_fact(node, out_fact)
                changed |= analysis.transfer_node(
                    node, result.get_in_fact(node), out_fact
                )


# ===========================================================================
# CONVENIENCE FUNCTIONS
# ===========================================================================

def solve(
    analysis: DataflowAnalysis[Fact],
    cfg: CFG,
    solver: Optional[str] = None,
) -> DataflowResult[Fact]:
    """Solve *analysis* on *cfg*.

    Parameters
    ----------
    solver : {"worklist", "iterative"}, optional
        Defaults to the worklist solver for forward analyses and the
        iterative solver for backward ones.
    """
    if solver is None:
        solver = "worklist" if analysis.is_forward() else "iterative"
    if solver == "worklist":
        return WorkListSolver(analysis).solve(cfg)
    if solver == "iterative":
        return IterativeSolver(analysis).solve(cfg)
    raise ValueError(f"unknown solver {solver!r}")


def check_fixed_point(
    analysis: DataflowAnalysis[Any],
    cfg: CFG,
    result: DataflowResult[Any],
) -> bool:
    """Return ``True`` if re-applying every transfer function changes nothing.

    Works on copies; *result* is left untouched.  This is a
    development/debugging utility.
    """
    for node in cfg:
        in_fact = result.get_in_fact(node).copy()
        out_fact = result.get_out_fact(node).copy()
        if analysis.is_forward():
            if cfg.is_entry(node):
                continue
            merged = analysis.new_initial_fact()
            for pred in cfg.preds_of(node):
                analysis.meet_into(result.get_out_fact(pred), merged)
            if merged != in_fact:
                return False
        elif cfg.is_exit(node):
            continue
        if analysis.transfer_node(node, in_fact, out_fact):
            return False
    return True
