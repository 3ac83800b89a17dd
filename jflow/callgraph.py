"""
jflow.callgraph
===============

Whole-program call graph built by class hierarchy analysis (CHA).

The call graph is a directed graph where:
- **Nodes** are reachable :class:`~jflow.classes.JMethod` objects.
- **Edges** connect a call site (an :class:`~jflow.ir.Invoke` statement)
  to one of its possible callees, annotated with the call kind.

Resolution
----------
``STATIC``
    The method declared under the referenced subsignature in the
    referenced class.  No dispatch.
``SPECIAL``
    Constructors, private and ``super`` calls: a single dispatch on the
    referenced class.
``VIRTUAL`` / ``INTERFACE``
    Dispatch on the referenced class and on every one of its subtypes
    (subclasses for a class; subinterfaces and implementors for an
    interface), collecting every distinct target.

Dispatch looks a subsignature up on a class and walks the superclass
chain until it finds a concrete (non-abstract) declaration.  A call site
with no concrete target contributes no edge; the graph stays valid but
under-approximates.

Public API
----------
    CallKind        - invocation kinds (re-exported from :mod:`jflow.ir`)
    CallGraphEdge   - (call site, callee, kind)
    CallGraph       - entry methods, reachable methods and edges
    CHABuilder      - worklist-based CHA construction
    dispatch        - most-derived concrete implementation lookup
    build_callgraph - build from a :class:`~jflow.classes.Program`

Typical usage::

    from jflow.ir_parser import load_program
    from jflow.callgraph import build_callgraph

    program = load_program("Example.jir")
    cg = build_callgraph(program)
    for edge in cg.edges:
        print(f"{edge.call_site} -> {edge.callee}  [{edge.kind}]")
    print(cg.to_dot())
"""

from __future__ import annotations

import logging
from collections import deque
from typing import (
    Deque,
    Dict,
    Iterator,
    List,
    Optional,
    Set,
)

from jflow.classes import ClassHierarchy, JClass, JMethod, Program, Subsignature
from jflow.errors import ConfigError
from jflow.ir import CallKind, Invoke

logger = logging.getLogger(__name__)

CALLGRAPH_ID = "cha"

__all__ = [
    "CALLGRAPH_ID",
    "CallKind",
    "CallGraphEdge",
    "CallGraph",
    "CHABuilder",
    "dispatch",
    "build_callgraph",
]


# ---------------------------------------------------------------------------
# CallGraphEdge
# ---------------------------------------------------------------------------

class CallGraphEdge:
    """A directed edge from a call site to one of its callees.

    Attributes
    ----------
    kind : CallKind
        How the call site selects its target.
    call_site : Invoke
        The invocation statement.
    callee : JMethod
        The resolved target.
    """

    __slots__ = ("kind", "call_site", "callee")

    def __init__(self, kind: CallKind, call_site: Invoke, callee: JMethod) -> None:
        self.kind = kind
        self.call_site = call_site
        self.callee = callee

    @property
    def caller(self) -> JMethod:
        return self.call_site.container

    def __repr__(self) -> str:
        return (
            f"CallGraphEdge({self.caller}[{self.call_site.index}] -> "
            f"{self.callee}, {self.kind})"
        )

    def __hash__(self) -> int:
        return hash((self.kind, id(self.call_site), id(self.callee)))

    def __eq__(self, other) -> bool:
        if isinstance(other, CallGraphEdge):
            return (
                self.kind is other.kind
                and self.call_site is other.call_site
                and self.callee is other.callee
            )
        return NotImplemented


# ---------------------------------------------------------------------------
# CallGraph
# ---------------------------------------------------------------------------

class CallGraph:
    """Whole-program call graph.

    The set of reachable methods only ever grows, in discovery order.
    Every edge's callee is reachable, and every reachable method that is
    not an entry method is the callee of at least one edge.
    """

    def __init__(self) -> None:
        self._entry_methods: List[JMethod] = []
        self._reachable: Dict[JMethod, None] = {}
        self._edges: Dict[CallGraphEdge, None] = {}
        self._callees: Dict[Invoke, Dict[JMethod, None]] = {}
        self._callers: Dict[JMethod, Dict[Invoke, None]] = {}

    # ----- mutation ---------------------------------------------------------

    def add_entry_method(self, method: JMethod) -> None:
        if method not in self._entry_methods:
            self._entry_methods.append(method)

    def add_reachable_method(self, method: JMethod) -> bool:
        """Mark *method* reachable; return ``False`` if it already was."""
        if method in self._reachable:
            return False
        self._reachable[method] = None
        return True

    def add_edge(self, edge: CallGraphEdge) -> bool:
        if edge in self._edges:
            return False
        self._edges[edge] = None
        self._callees.setdefault(edge.call_site, {})[edge.callee] = None
        self._callers.setdefault(edge.callee, {})[edge.call_site] = None
        return True

    # ----- queries ----------------------------------------------------------

    @property
    def entry_methods(self) -> List[JMethod]:
        return list(self._entry_methods)

    @property
    def reachable_methods(self) -> List[JMethod]:
        return list(self._reachable)

    @property
    def edges(self) -> List[CallGraphEdge]:
        return list(self._edges)

    def contains(self, method: JMethod) -> bool:
        return method in self._reachable

    def callees_of(self, call_site: Invoke) -> List[JMethod]:
        return list(self._callees.get(call_site, ()))

    def callers_of(self, method: JMethod) -> List[Invoke]:
        return list(self._callers.get(method, ()))

    def call_sites_in(self, method: JMethod) -> List[Invoke]:
        if method.ir is None:
            return []
        return list(method.ir.invokes())

    def edges_out_of(self, call_site: Invoke) -> List[CallGraphEdge]:
        return [e for e in self._edges if e.call_site is call_site]

    def edges_in_to(self, method: JMethod) -> List[CallGraphEdge]:
        return [e for e in self._edges if e.callee is method]

    def __contains__(self, method: object) -> bool:
        return method in self._reachable

    def __iter__(self) -> Iterator[JMethod]:
        return iter(list(self._reachable))

    def to_dot(self, title: Optional[str] = None) -> str:
        """Return a Graphviz DOT representation."""
        lines = ["digraph CallGraph {"]
        lines.append("  rankdir=TB;")
        if title:
            lines.append(f'  label="{title}";')
        lines.append('  node [shape=box, fontname="Helvetica", fontsize=10];')

        ids: Dict[JMethod, str] = {}
        for i, m in enumerate(self._reachable):
            ids[m] = f"M{i}"
            escaped = m.signature.replace('"', '\\"')
            attrs = ""
            if m in self._entry_methods:
                attrs = ', style=filled, fillcolor="#ccffcc"'
            lines.append(f'  {ids[m]} [label="{escaped}"{attrs}];')

        kind_attrs = {
            CallKind.STATIC: "",
            CallKind.SPECIAL: ", style=dashed",
            CallKind.VIRTUAL: ", color=blue",
            CallKind.INTERFACE: ", color=purple",
        }
        for e in self._edges:
            lines.append(
                f"  {ids[e.caller]} -> {ids[e.callee]} "
                f'[label="{e.call_site.index}: {e.kind}"{kind_attrs[e.kind]}];'
            )
        lines.append("}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"CallGraph(reachable={len(self._reachable)}, "
            f"edges={len(self._edges)})"
        )


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def dispatch(jclass: Optional[JClass], subsignature: Subsignature) -> Optional[JMethod]:
    """Most-derived concrete method for *subsignature* seen from *jclass*.

    Returns ``None`` when neither *jclass* nor any of its superclasses
    declares a concrete method with that subsignature.
    """
    while jclass is not None:
        method = jclass.get_declared_method(subsignature)
        if method is not None and not method.is_abstract:
            return method
        jclass = jclass.super_class
    return None


# ---------------------------------------------------------------------------
# CHA builder
# ---------------------------------------------------------------------------

class CHABuilder:
    """Build a call graph by class hierarchy analysis.

    Methods are marked reachable before their call sites are enumerated
    and are never processed twice, so recursive call chains terminate.
    """

    def __init__(self, hierarchy: ClassHierarchy) -> None:
        self.hierarchy = hierarchy

    def build(self, entry: JMethod) -> CallGraph:
        call_graph = CallGraph()
        call_graph.add_entry_method(entry)
        worklist: Deque[JMethod] = deque([entry])
        while worklist:
            method = worklist.popleft()
            if not call_graph.add_reachable_method(method):
                continue
            if method.ir is None:
                logger.warning("Reachable method %s has no body", method)
                continue
            for call_site in method.ir.invokes():
                targets = self.resolve(call_site)
                if not targets:
                    logger.debug(
                        "No CHA target for %s in %s", call_site, method,
                    )
                for target in targets:
                    call_graph.add_edge(
                        CallGraphEdge(call_site.kind, call_site, target)
                    )
                    worklist.append(target)
        logger.debug("CHA built %r from %s", call_graph, entry)
        return call_graph

    def resolve(self, call_site: Invoke) -> List[JMethod]:
        """Possible targets of *call_site*, in discovery order."""
        method_ref = call_site.method_ref
        subsig = method_ref.subsignature
        declaring = method_ref.declaring_class
        targets: Dict[JMethod, None] = {}

        kind = call_site.kind
        if kind is CallKind.STATIC:
            method = declaring.get_declared_method(subsig)
            if method is not None:
                targets[method] = None
        elif kind is CallKind.SPECIAL:
            method = dispatch(declaring, subsig)
            if method is not None:
                targets[method] = None
        else:
            visited: Set[JClass] = set()
            queue: Deque[JClass] = deque([declaring])
            while queue:
                jclass = queue.popleft()
                if jclass in visited:
                    continue
                visited.add(jclass)
                method = dispatch(jclass, subsig)
                if method is not None:
                    targets[method] = None
                if jclass.is_interface:
                    queue.extend(self.hierarchy.direct_subinterfaces_of(jclass))
                    queue.extend(self.hierarchy.direct_implementors_of(jclass))
                else:
                    queue.extend(self.hierarchy.direct_subclasses_of(jclass))
        return list(targets)


def build_callgraph(program: Program, entry: Optional[JMethod] = None) -> CallGraph:
    """Build the CHA call graph of *program* from *entry* (default: main)."""
    entry = entry or program.main_method
    if entry is None:
        raise ConfigError("no entry method: program has no main method")
    return CHABuilder(program.hierarchy).build(entry)
