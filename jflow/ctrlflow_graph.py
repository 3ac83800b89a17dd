"""
jflow.ctrlflow_graph
====================

Statement-level intraprocedural control flow graphs.

Every statement of a method body is one CFG node.  Two synthetic
:class:`~jflow.ir.Nop` statements act as the unique entry (index ``-1``)
and exit (index ``len(ir)``) nodes; every ``return`` flows to the exit.
Statements that no path reaches stay in the graph without predecessors,
which is what dead-code detection relies on.

Public API
----------
    EdgeKind    - classification of a CFG edge
    CFGEdge     - a directed edge between two statements
    CFG         - the control flow graph of one method body
    build_cfg   - build (and cache on the IR) the CFG of a method body

Typical usage::

    from jflow.ctrlflow_graph import build_cfg

    cfg = build_cfg(method.get_ir())
    for stmt in cfg:
        print(stmt.index, stmt, [s.index for s in cfg.succs_of(stmt)])
    print(cfg.to_dot())
"""

from __future__ import annotations

import enum
import logging
from collections import defaultdict
from typing import (
    Dict,
    Iterator,
    List,
    Optional,
    Set,
)

from jflow.classes import JMethod
from jflow.ir import (
    IR,
    Goto,
    If,
    Nop,
    Return,
    Stmt,
    SwitchStmt,
)

logger = logging.getLogger(__name__)

CFG_ID = "cfg"


# ---------------------------------------------------------------------------
# Edge kinds
# ---------------------------------------------------------------------------

class EdgeKind(enum.Enum):
    """Classification of a CFG edge."""

    ENTRY = "entry"
    FALL_THROUGH = "fall-through"
    GOTO = "goto"
    IF_TRUE = "if-true"
    IF_FALSE = "if-false"
    SWITCH_CASE = "switch-case"
    SWITCH_DEFAULT = "switch-default"
    RETURN = "return"


# ---------------------------------------------------------------------------
# CFGEdge
# ---------------------------------------------------------------------------

class CFGEdge:
    """A directed edge in the CFG.

    Attributes
    ----------
    source : Stmt
    target : Stmt
    kind : EdgeKind
    case_value : int or None
        The case constant of a ``SWITCH_CASE`` edge.
    """

    __slots__ = ("source", "target", "kind", "case_value")

    def __init__(
        self,
        source: Stmt,
        target: Stmt,
        kind: EdgeKind = EdgeKind.FALL_THROUGH,
        case_value: Optional[int] = None,
    ) -> None:
        self.source = source
        self.target = target
        self.kind = kind
        self.case_value = case_value

    def is_switch_case(self) -> bool:
        return self.kind is EdgeKind.SWITCH_CASE

    def __repr__(self) -> str:
        label = self.kind.value
        if self.case_value is not None:
            label += f" {self.case_value}"
        return f"CFGEdge({self.source.index} -> {self.target.index}, {label})"

    def __hash__(self) -> int:
        return hash((id(self.source), id(self.target), self.kind, self.case_value))

    def __eq__(self, other) -> bool:
        if isinstance(other, CFGEdge):
            return (
                self.source is other.source
                and self.target is other.target
                and self.kind == other.kind
                and self.case_value == other.case_value
            )
        return NotImplemented


# ---------------------------------------------------------------------------
# CFG
# ---------------------------------------------------------------------------

class CFG:
    """Control flow graph of a single method body.

    Attributes
    ----------
    ir : IR
        The method body this CFG represents.
    entry : Nop
        Synthetic entry node.
    exit : Nop
        Synthetic exit node.
    """

    def __init__(self, ir: IR) -> None:
        self.ir = ir
        self.entry = Nop()
        self.entry.index = -1
        self.entry.container = ir.method
        self.exit = Nop()
        self.exit.index = len(ir.stmts)
        self.exit.container = ir.method
        self._nodes: List[Stmt] = [self.entry, *ir.stmts, self.exit]
        self._in_edges: Dict[Stmt, List[CFGEdge]] = defaultdict(list)
        self._out_edges: Dict[Stmt, List[CFGEdge]] = defaultdict(list)
        self._edge_count = 0

    @property
    def method(self) -> JMethod:
        return self.ir.method

    # ----- graph mutation ---------------------------------------------------

    def add_edge(
        self,
        source: Stmt,
        target: Stmt,
        kind: EdgeKind = EdgeKind.FALL_THROUGH,
        case_value: Optional[int] = None,
    ) -> CFGEdge:
        """Create an edge and wire up the predecessor/successor lists."""
        e = CFGEdge(source, target, kind, case_value)
        self._out_edges[source].append(e)
        self._in_edges[target].append(e)
        self._edge_count += 1
        return e

    # ----- queries ----------------------------------------------------------

    @property
    def nodes(self) -> List[Stmt]:
        return list(self._nodes)

    def is_entry(self, node: Stmt) -> bool:
        return node is self.entry

    def is_exit(self, node: Stmt) -> bool:
        return node is self.exit

    def in_edges_of(self, node: Stmt) -> List[CFGEdge]:
        return list(self._in_edges.get(node, ()))

    def out_edges_of(self, node: Stmt) -> List[CFGEdge]:
        return list(self._out_edges.get(node, ()))

    def preds_of(self, node: Stmt) -> List[Stmt]:
        return [e.source for e in self._in_edges.get(node, ())]

    def succs_of(self, node: Stmt) -> List[Stmt]:
        return [e.target for e in self._out_edges.get(node, ())]

    def reachable_from(self, start: Stmt) -> Set[Stmt]:
        """Return the set of nodes reachable from *start*."""
        visited: Set[Stmt] = set()
        worklist = [start]
        while worklist:
            n = worklist.pop()
            if n in visited:
                continue
            visited.add(n)
            for e in self._out_edges.get(n, ()):
                worklist.append(e.target)
        return visited

    def get_number_of_nodes(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Stmt]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def to_dot(self, title: Optional[str] = None) -> str:
        """Return a Graphviz DOT representation of this CFG."""
        lines = ["digraph CFG {"]
        if title:
            lines.append(f'  label="{title}";')
        lines.append("  node [shape=box, fontname=monospace, fontsize=10];")
        for n in self._nodes:
            if n is self.entry:
                lbl, color = "ENTRY", ', style=filled, fillcolor="#ccffcc"'
            elif n is self.exit:
                lbl, color = "EXIT", ', style=filled, fillcolor="#ffcccc"'
            else:
                lbl, color = f"{n.index}: {n}", ""
            lbl = lbl.replace('"', '\\"')
            lines.append(f'  S{n.index + 1} [label="{lbl}"{color}];')
        for n in self._nodes:
            for e in self._out_edges.get(n, ()):
                style = ""
                elabel = e.kind.value
                if e.case_value is not None:
                    elabel += f": {e.case_value}"
                if e.kind is EdgeKind.IF_TRUE:
                    style = ", color=green, fontcolor=green"
                elif e.kind is EdgeKind.IF_FALSE:
                    style = ", color=red, fontcolor=red"
                lines.append(
                    f"  S{e.source.index + 1} -> S{e.target.index + 1} "
                    f'[label="{elabel}"{style}];'
                )
        lines.append("}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"CFG(method={self.ir.method.signature!r}, "
            f"nodes={len(self._nodes)}, edges={self._edge_count})"
        )


# ===========================================================================
# CFG BUILDER
# ===========================================================================

def build_cfg(ir: IR) -> CFG:
    """Build the CFG of *ir*, storing it on the IR under ``"cfg"``.

    A CFG that was already built for *ir* is returned as is.
    """
    if ir.has_result(CFG_ID):
        return ir.get_result(CFG_ID)

    cfg = CFG(ir)
    stmts = ir.stmts
    if stmts:
        cfg.add_edge(cfg.entry, stmts[0], EdgeKind.ENTRY)
    else:
        cfg.add_edge(cfg.entry, cfg.exit, EdgeKind.ENTRY)

    for i, stmt in enumerate(stmts):
        following = stmts[i + 1] if i + 1 < len(stmts) else cfg.exit
        if isinstance(stmt, Return):
            cfg.add_edge(stmt, cfg.exit, EdgeKind.RETURN)
        elif isinstance(stmt, Goto):
            cfg.add_edge(stmt, stmt.target, EdgeKind.GOTO)
        elif isinstance(stmt, If):
            cfg.add_edge(stmt, stmt.target, EdgeKind.IF_TRUE)
            cfg.add_edge(stmt, following, EdgeKind.IF_FALSE)
        elif isinstance(stmt, SwitchStmt):
            for value, target in stmt.get_case_target_pairs():
                cfg.add_edge(stmt, target, EdgeKind.SWITCH_CASE, value)
            cfg.add_edge(stmt, stmt.default_target, EdgeKind.SWITCH_DEFAULT)
        else:
            cfg.add_edge(stmt, following, EdgeKind.FALL_THROUGH)

    logger.debug("Built %r", cfg)
    ir.store_result(CFG_ID, cfg)
    return cfg
