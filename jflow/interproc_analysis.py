"""
jflow/interproc_analysis.py
===========================

Context-insensitive interprocedural dataflow analysis over an ICFG.

Interprocedural CFG
-------------------
The ICFG embeds the CFG of every reachable method that has a body and
links them along the call graph:

*  an edge of a method's CFG that leaves a call site becomes a
   **call-to-return** edge (caller-local state flowing around the call);
   every other CFG edge becomes a **normal** edge;
*  a call site gains a **call** edge to the entry of each callee;
*  the exit of each callee gains a **return** edge to every return site
   (CFG successor) of the call site.

Analysis
--------
Node transfer is split into call nodes (``transfer_call_node``) and all
other nodes (``transfer_non_call_node``); each edge kind has its own edge
transfer.  The IN fact of a node is the meet, over all incoming edges, of
the edge transfer applied to the source's OUT fact.  Facts from different
call sites of the same method are merged: there is no context
separation, so a method called with ``(1, 2)`` at one site and ``(5, 6)``
at another sees ``NAC`` parameters.

Public API (quick reference)
----------------------------
    ICFGEdge, NormalEdge, CallToReturnEdge, CallEdge, ReturnEdge
    InterproceduralCFG          - ICFG over a call graph
    build_icfg()                - ICFG of a program from its main method
    InterDataflowAnalysis       - base class with the node/edge transfers
    InterSolver                 - worklist solver over the ICFG
    InterConstantPropagation    - interprocedural constant propagation
    analyze()                   - convenience entry point

Typical usage
-------------
    >>> from jflow.ir_parser import load_program
    >>> from jflow.interproc_analysis import analyze
    >>> program = load_program("Example.jir")
    >>> result = analyze(program)
    >>> for stmt in program.main_method.get_ir():
    ...     print(stmt.index, stmt, result.get_out_fact(stmt))
"""

from __future__ import annotations

import abc
import logging
import time
from collections import deque
from typing import (
    Deque,
    Dict,
    Generic,
    Iterator,
    List,
    Optional,
    Sequence,
    TypeVar,
)

from jflow.abstract_domains import CPFact, Value, meet_value
from jflow.callgraph import CallGraph, build_callgraph
from jflow.classes import JMethod, Program
from jflow.ctrlflow_graph import CFG, build_cfg
from jflow.dataflow_analyses import ConstantPropagation, evaluate
from jflow.dataflow_engine import DataflowResult
from jflow.ir import Invoke, Stmt, Var

__all__ = [
    "ICFGEdge",
    "NormalEdge",
    "CallToReturnEdge",
    "CallEdge",
    "ReturnEdge",
    "InterproceduralCFG",
    "build_icfg",
    "InterDataflowAnalysis",
    "InterSolver",
    "InterConstantPropagation",
    "analyze",
]

logger = logging.getLogger(__name__)

Fact = TypeVar("Fact")

ICFG_ID = "icfg"


# ═══════════════════════════════════════════════════════════════════════════
# §1  ICFG EDGES
# ═══════════════════════════════════════════════════════════════════════════

class ICFGEdge:
    """An edge of the ICFG."""

    __slots__ = ("source", "target")

    kind = "edge"

    def __init__(self, source: Stmt, target: Stmt) -> None:
        self.source = source
        self.target = target

    def __repr__(self) -> str:
        return (
            f"({self.source.container}[{self.source.index}])"
            f"--[{self.kind}]-->"
            f"({self.target.container}[{self.target.index}])"
        )


class NormalEdge(ICFGEdge):
    __slots__ = ()
    kind = "normal"


class CallToReturnEdge(ICFGEdge):
    """From a call site to one of its local successors."""

    __slots__ = ()
    kind = "call-to-return"

    @property
    def call_site(self) -> Invoke:
        return self.source  # type: ignore[return-value]


class CallEdge(ICFGEdge):
    """From a call site to the entry of a callee."""

    __slots__ = ("callee",)
    kind = "call"

    def __init__(self, source: Invoke, target: Stmt, callee: JMethod) -> None:
        super().__init__(source, target)
        self.callee = callee

    @property
    def call_site(self) -> Invoke:
        return self.source  # type: ignore[return-value]


class ReturnEdge(ICFGEdge):
    """From the exit of a callee to a return site of the call site."""

    __slots__ = ("call_site", "callee", "return_vars")
    kind = "return"

    def __init__(
        self,
        source: Stmt,
        target: Stmt,
        call_site: Invoke,
        callee: JMethod,
        return_vars: Sequence[Var],
    ) -> None:
        super().__init__(source, target)
        self.call_site = call_site
        self.callee = callee
        self.return_vars = list(return_vars)


# ═══════════════════════════════════════════════════════════════════════════
# §2  INTERPROCEDURAL CFG
# ═══════════════════════════════════════════════════════════════════════════

class InterproceduralCFG:
    """Interprocedural control-flow graph over a call graph.

    Parameters
    ----------
    call_graph : CallGraph
        Reachable methods and resolved call edges.  Methods without a
        body are left out; calls to them get no call or return edge.
    """

    def __init__(self, call_graph: CallGraph) -> None:
        self.call_graph = call_graph
        self._cfgs: Dict[JMethod, CFG] = {}
        self._nodes: List[Stmt] = []
        self._in_edges: Dict[Stmt, List[ICFGEdge]] = {}
        self._out_edges: Dict[Stmt, List[ICFGEdge]] = {}
        self._build()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def _build(self) -> None:
        for method in self.call_graph.reachable_methods:
            if method.ir is None:
                continue
            cfg = build_cfg(method.ir)
            self._cfgs[method] = cfg
            for node in cfg:
                self._nodes.append(node)
                self._in_edges[node] = []
                self._out_edges[node] = []

        n_edges = 0
        for method, cfg in self._cfgs.items():
            for node in cfg:
                for cfg_edge in cfg.out_edges_of(node):
                    if isinstance(node, Invoke):
                        self._add_edge(CallToReturnEdge(node, cfg_edge.target))
                    else:
                        self._add_edge(NormalEdge(node, cfg_edge.target))
                    n_edges += 1
                if not isinstance(node, Invoke):
                    continue
                for callee in self.call_graph.callees_of(node):
                    callee_cfg = self._cfgs.get(callee)
                    if callee_cfg is None:
                        logger.debug("Call to %s has no body to enter", callee)
                        continue
                    self._add_edge(CallEdge(node, callee_cfg.entry, callee))
                    n_edges += 1
                    for return_site in cfg.succs_of(node):
                        self._add_edge(ReturnEdge(
                            callee_cfg.exit, return_site, node, callee,
                            callee_cfg.ir.return_vars,
                        ))
                        n_edges += 1
        logger.debug(
            "ICFG: %d methods, %d nodes, %d edges",
            len(self._cfgs), len(self._nodes), n_edges,
        )

    def _add_edge(self, edge: ICFGEdge) -> None:
        self._out_edges[edge.source].append(edge)
        self._in_edges[edge.target].append(edge)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def entry_methods(self) -> List[JMethod]:
        return [m for m in self.call_graph.entry_methods if m in self._cfgs]

    @property
    def nodes(self) -> List[Stmt]:
        return list(self._nodes)

    @property
    def methods(self) -> List[JMethod]:
        return list(self._cfgs)

    def get_cfg(self, method: JMethod) -> CFG:
        return self._cfgs[method]

    def in_edges_of(self, node: Stmt) -> List[ICFGEdge]:
        return list(self._in_edges.get(node, ()))

    def out_edges_of(self, node: Stmt) -> List[ICFGEdge]:
        return list(self._out_edges.get(node, ()))

    def preds_of(self, node: Stmt) -> List[Stmt]:
        return [e.source for e in self._in_edges.get(node, ())]

    def succs_of(self, node: Stmt) -> List[Stmt]:
        return [e.target for e in self._out_edges.get(node, ())]

    def is_call_site(self, node: Stmt) -> bool:
        return isinstance(node, Invoke)

    def callees_of(self, call_site: Invoke) -> List[JMethod]:
        return [m for m in self.call_graph.callees_of(call_site) if m in self._cfgs]

    def callers_of(self, method: JMethod) -> List[Invoke]:
        return self.call_graph.callers_of(method)

    def entry_of(self, method: JMethod) -> Stmt:
        return self._cfgs[method].entry

    def exit_of(self, method: JMethod) -> Stmt:
        return self._cfgs[method].exit

    def return_sites_of(self, call_site: Invoke) -> List[Stmt]:
        return self._cfgs[call_site.container].succs_of(call_site)

    def containing_method_of(self, node: Stmt) -> JMethod:
        return node.container

    def __iter__(self) -> Iterator[Stmt]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return f"InterproceduralCFG(methods={len(self._cfgs)}, nodes={len(self._nodes)})"


def build_icfg(program: Program, entry: Optional[JMethod] = None) -> InterproceduralCFG:
    """Build the CHA call graph of *program* and the ICFG over it."""
    return InterproceduralCFG(build_callgraph(program, entry))


# ═══════════════════════════════════════════════════════════════════════════
# §3  INTERPROCEDURAL ANALYSIS BASE
# ═══════════════════════════════════════════════════════════════════════════

class InterDataflowAnalysis(abc.ABC, Generic[Fact]):
    """A forward dataflow analysis over an ICFG.

    ``transfer_node`` and ``transfer_edge`` dispatch on node and edge kind
    to the abstract per-kind transfers.
    """

    ID: str = ""

    def __init__(self) -> None:
        self.icfg: Optional[InterproceduralCFG] = None

    def is_forward(self) -> bool:
        return True

    @abc.abstractmethod
    def new_boundary_fact(self, boundary: Stmt) -> Fact:
        ...

    @abc.abstractmethod
    def new_initial_fact(self) -> Fact:
        ...

    @abc.abstractmethod
    def meet_into(self, fact: Fact, target: Fact) -> None:
        ...

    def transfer_node(self, stmt: Stmt, in_fact: Fact, out_fact: Fact) -> bool:
        if isinstance(stmt, Invoke):
            return self.transfer_call_node(stmt, in_fact, out_fact)
        return self.transfer_non_call_node(stmt, in_fact, out_fact)

    def transfer_edge(self, edge: ICFGEdge, out: Fact) -> Fact:
        if isinstance(edge, NormalEdge):
            return self.transfer_normal_edge(edge, out)
        if isinstance(edge, CallToReturnEdge):
            return self.transfer_call_to_return_edge(edge, out)
        if isinstance(edge, CallEdge):
            return self.transfer_call_edge(edge, out)
        if isinstance(edge, ReturnEdge):
            return self.transfer_return_edge(edge, out)
        raise TypeError(f"unknown ICFG edge {edge!r}")

    @abc.abstractmethod
    def transfer_call_node(self, stmt: Invoke, in_fact: Fact, out_fact: Fact) -> bool:
        ...

    @abc.abstractmethod
    def transfer_non_call_node(self, stmt: Stmt, in_fact: Fact, out_fact: Fact) -> bool:
        ...

    @abc.abstractmethod
    def transfer_normal_edge(self, edge: NormalEdge, out: Fact) -> Fact:
        ...

    @abc.abstractmethod
    def transfer_call_to_return_edge(self, edge: CallToReturnEdge, out: Fact) -> Fact:
        ...

    @abc.abstractmethod
    def transfer_call_edge(self, edge: CallEdge, call_site_out: Fact) -> Fact:
        ...

    @abc.abstractmethod
    def transfer_return_edge(self, edge: ReturnEdge, return_out: Fact) -> Fact:
        ...

    def analyze(self, icfg: InterproceduralCFG) -> DataflowResult[Fact]:
        self.icfg = icfg
        return InterSolver(self, icfg).solve()


# ═══════════════════════════════════════════════════════════════════════════
# §4  INTERPROCEDURAL SOLVER
# ═══════════════════════════════════════════════════════════════════════════

class InterSolver(Generic[Fact]):
    """Worklist solver over an ICFG.

    The OUT fact of the entry node of every entry method is seeded with
    the analysis' boundary fact, and that boundary also flows into the
    node's IN so that a recursive call back into an entry method cannot
    displace it.
    """

    def __init__(
        self,
        analysis: InterDataflowAnalysis[Fact],
        icfg: InterproceduralCFG,
    ) -> None:
        self.analysis = analysis
        self.icfg = icfg
        analysis.icfg = icfg

    def solve(self) -> DataflowResult[Fact]:
        t0 = time.monotonic()
        result: DataflowResult[Fact] = DataflowResult()
        boundaries = self._initialize(result)
        self._do_solve(result, boundaries)
        result.elapsed_seconds = time.monotonic() - t0
        logger.debug(
            "InterSolver solved %s over %r in %d iterations",
            type(self.analysis).__name__, self.icfg, result.iterations,
        )
        return result

    def _initialize(self, result: DataflowResult[Fact]) -> Dict[Stmt, Fact]:
        analysis = self.analysis
        for node in self.icfg:
            result.set_in_fact(node, analysis.new_initial_fact())
            result.set_out_fact(node, analysis.new_initial_fact())
        boundaries: Dict[Stmt, Fact] = {}
        for method in self.icfg.entry_methods:
            entry = self.icfg.entry_of(method)
            boundaries[entry] = analysis.new_boundary_fact(entry)
            result.set_out_fact(entry, analysis.new_boundary_fact(entry))
        return boundaries

    def _do_solve(
        self,
        result: DataflowResult[Fact],
        boundaries: Dict[Stmt, Fact],
    ) -> None:
        analysis = self.analysis
        icfg = self.icfg
        worklist: Deque[Stmt] = deque(
            n for n in icfg if n not in boundaries or icfg.in_edges_of(n)
        )
        while worklist:
            node = worklist.popleft()
            result.iterations += 1
            in_fact = analysis.new_initial_fact()
            if node in boundaries:
                analysis.meet_into(boundaries[node], in_fact)
            for edge in icfg.in_edges_of(node):
                analysis.meet_into(
                    analysis.transfer_edge(edge, result.get_out_fact(edge.source)),
                    in_fact,
                )
            result.set_in_fact(node, in_fact)
            if analysis.transfer_node(node, in_fact, result.get_out_fact(node)):
                worklist.extend(icfg.succs_of(node))


# ═══════════════════════════════════════════════════════════════════════════
# §5  INTERPROCEDURAL CONSTANT PROPAGATION
# ═══════════════════════════════════════════════════════════════════════════

class InterConstantPropagation(InterDataflowAnalysis[CPFact]):
    """Constant propagation across method boundaries.

    Node transfer reuses :class:`~jflow.dataflow_analyses.ConstantPropagation`
    for non-call nodes; a call node only copies its IN fact through.  The
    value of a call's result variable reaches the return site through the
    return edge, not through the call node.
    """

    ID = "inter-constprop"

    def __init__(self) -> None:
        super().__init__()
        self.cp = ConstantPropagation()

    def new_boundary_fact(self, boundary: Stmt) -> CPFact:
        ir = boundary.container.get_ir()
        return self.cp.new_boundary_fact(build_cfg(ir))

    def new_initial_fact(self) -> CPFact:
        return self.cp.new_initial_fact()

    def meet_into(self, fact: CPFact, target: CPFact) -> None:
        self.cp.meet_into(fact, target)

    def transfer_call_node(self, stmt: Invoke, in_fact: CPFact, out_fact: CPFact) -> bool:
        return out_fact.copy_from(in_fact)

    def transfer_non_call_node(self, stmt: Stmt, in_fact: CPFact, out_fact: CPFact) -> bool:
        return self.cp.transfer_node(stmt, in_fact, out_fact)

    def transfer_normal_edge(self, edge: NormalEdge, out: CPFact) -> CPFact:
        return out

    def transfer_call_to_return_edge(self, edge: CallToReturnEdge, out: CPFact) -> CPFact:
        result = edge.call_site.result
        if result is None:
            return out
        fact = out.copy()
        fact.remove(result)
        return fact

    def transfer_call_edge(self, edge: CallEdge, call_site_out: CPFact) -> CPFact:
        params = edge.callee.get_ir().params
        args = edge.call_site.invoke_exp.args
        fact = CPFact()
        for param, arg in zip(params, args):
            fact.update(param, evaluate(arg, call_site_out))
        return fact

    def transfer_return_edge(self, edge: ReturnEdge, return_out: CPFact) -> CPFact:
        fact = CPFact()
        result = edge.call_site.result
        if result is not None:
            value = Value.get_undef()
            for ret in edge.return_vars:
                value = meet_value(value, return_out.get(ret))
            fact.update(result, value)
        return fact


def analyze(
    program: Program,
    entry: Optional[JMethod] = None,
) -> DataflowResult[CPFact]:
    """Run interprocedural constant propagation on *program*.

    Builds the CHA call graph from *entry* (default: the main method), the
    ICFG over it, and solves :class:`InterConstantPropagation`.
    """
    icfg = build_icfg(program, entry)
    return InterConstantPropagation().analyze(icfg)
