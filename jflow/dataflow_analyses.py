"""
jflow/dataflow_analyses.py
══════════════════════════

Ready-made intraprocedural analyses built on ``dataflow_engine.py``.

Provided analyses
─────────────────
  1. ConstantPropagation     - forward, must (constant lattice)
  2. LiveVariableAnalysis    - backward, may (gen/kill over variables)
  3. DeadCodeDetection       - client of 1 and 2 plus CFG reachability

Integer semantics
─────────────────
Constants are Java ``int`` values: arithmetic wraps around on 32 bits,
``/`` truncates toward zero, ``%`` takes the sign of the dividend, shift
distances are masked to their low five bits and ``>>>`` is a logical
shift of the 32-bit pattern.  Conditions evaluate to ``1`` or ``0``.

A division or remainder by a divisor known to be zero evaluates to
UNDEF: the analysis never concludes anything about a computation that
throws at run time.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import (
    Callable,
    Deque,
    Dict,
    List,
    Optional,
    Set,
)

from jflow.abstract_domains import CPFact, SetFact, Value, meet_value
from jflow.ctrlflow_graph import CFG, EdgeKind, build_cfg
from jflow.dataflow_engine import (
    DataflowAnalysis,
    DataflowResult,
    Direction,
    solve,
)
from jflow.ir import (
    IR,
    ArithmeticOp,
    ArrayAccess,
    AssignStmt,
    BinaryExp,
    BitwiseOp,
    CastExp,
    ConditionOp,
    DefinitionStmt,
    Exp,
    FieldAccess,
    If,
    IntLiteral,
    NewExp,
    PrimitiveType,
    ShiftOp,
    Stmt,
    SwitchStmt,
    Var,
)

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 - JAVA INT ARITHMETIC
# ═════════════════════════════════════════════════════════════════════════

_INT_MASK = 0xFFFFFFFF
_SIGN_BIT = 0x80000000


def to_int32(n: int) -> int:
    """Wrap an arbitrary Python int to a signed 32-bit value."""
    n &= _INT_MASK
    return n - (1 << 32) if n & _SIGN_BIT else n


def _div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def _rem(a: int, b: int) -> int:
    r = abs(a) % abs(b)
    return r if a >= 0 else -r


_INT_OPS: Dict[object, Callable[[int, int], int]] = {
    ArithmeticOp.ADD: lambda a, b: a + b,
    ArithmeticOp.SUB: lambda a, b: a - b,
    ArithmeticOp.MUL: lambda a, b: a * b,
    ArithmeticOp.DIV: _div,
    ArithmeticOp.REM: _rem,
    ConditionOp.EQ: lambda a, b: int(a == b),
    ConditionOp.NE: lambda a, b: int(a != b),
    ConditionOp.LT: lambda a, b: int(a < b),
    ConditionOp.GT: lambda a, b: int(a > b),
    ConditionOp.LE: lambda a, b: int(a <= b),
    ConditionOp.GE: lambda a, b: int(a >= b),
    ShiftOp.SHL: lambda a, b: a << (b & 0x1F),
    ShiftOp.SHR: lambda a, b: a >> (b & 0x1F),
    ShiftOp.USHR: lambda a, b: (a & _INT_MASK) >> (b & 0x1F),
    BitwiseOp.OR: lambda a, b: a | b,
    BitwiseOp.AND: lambda a, b: a & b,
    BitwiseOp.XOR: lambda a, b: a ^ b,
}


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 - CONSTANT PROPAGATION
# ═════════════════════════════════════════════════════════════════════════
#
#  Direction:   FORWARD
#  Confluence:  MEET (constant lattice, pointwise)
#  Boundary:    int-like parameters ↦ NAC
#  Transfer:    out := out ⊕ in;  out[x] := eval(rhs, in) for x = rhs
# ═════════════════════════════════════════════════════════════════════════

_INT_LIKE = frozenset({
    PrimitiveType.BYTE,
    PrimitiveType.SHORT,
    PrimitiveType.INT,
    PrimitiveType.CHAR,
    PrimitiveType.BOOLEAN,
})


def can_hold_int(var: Var) -> bool:
    """Whether *var* has a type whose values are tracked as ``int``."""
    return var.type in _INT_LIKE


def evaluate(exp: Exp, in_fact: CPFact) -> Value:
    """Abstractly evaluate *exp* against *in_fact*.

    Examples
    --------
    ``1 + 2`` → ``Value(3)``; ``x / 0`` → ``Value(UNDEF)``;
    ``p + 1`` with ``p ↦ NAC`` → ``Value(NAC)``; ``new A`` → ``Value(NAC)``.
    """
    if isinstance(exp, IntLiteral):
        return Value.make_constant(to_int32(exp.value))
    if isinstance(exp, Var):
        value = in_fact.get(exp)
        if value.is_constant():
            return Value.make_constant(value.constant)
        return value
    if isinstance(exp, BinaryExp):
        v1 = evaluate(exp.operand1, in_fact)
        v2 = evaluate(exp.operand2, in_fact)
        op = exp.op
        if (op in (ArithmeticOp.DIV, ArithmeticOp.REM)
                and v2.is_constant() and v2.constant == 0):
            return Value.get_undef()
        if v1.is_nac() or v2.is_nac():
            return Value.get_nac()
        if v1.is_constant() and v2.is_constant():
            return Value.make_constant(
                to_int32(_INT_OPS[op](v1.constant, v2.constant))
            )
        return Value.get_undef()
    return Value.get_nac()


class ConstantPropagation(DataflowAnalysis[CPFact]):
    """
    Intraprocedural constant propagation.

    After solving, ``result.get_out_fact(stmt).get(x)`` is the value of
    ``x`` right after ``stmt``.
    """

    ID = "constprop"
    direction = Direction.FORWARD

    def new_boundary_fact(self, cfg: CFG) -> CPFact:
        fact = CPFact()
        for param in cfg.ir.params:
            if can_hold_int(param):
                fact.update(param, Value.get_nac())
        return fact

    def new_initial_fact(self) -> CPFact:
        return CPFact()

    def meet_into(self, fact: CPFact, target: CPFact) -> None:
        fact.meet_into(target)

    @staticmethod
    def meet_value(v1: Value, v2: Value) -> Value:
        return meet_value(v1, v2)

    def transfer_node(self, stmt: Stmt, in_fact: CPFact, out_fact: CPFact) -> bool:
        old_out = out_fact.copy()
        out_fact.copy_from(in_fact)
        if isinstance(stmt, DefinitionStmt):
            lvalue = stmt.lvalue
            if isinstance(lvalue, Var) and can_hold_int(lvalue):
                out_fact.update(lvalue, evaluate(stmt.rvalue, in_fact))
        return out_fact != old_out

    evaluate = staticmethod(evaluate)
    can_hold_int = staticmethod(can_hold_int)


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 - LIVE VARIABLE ANALYSIS
# ═════════════════════════════════════════════════════════════════════════
#
#  Direction:   BACKWARD
#  Confluence:  JOIN (may / union)
#  Lattice:     ℘(Var)
#  Transfer:    in(S) = use(S) ∪ (out(S) − def(S))
# ═════════════════════════════════════════════════════════════════════════

class LiveVariableAnalysis(DataflowAnalysis[SetFact[Var]]):
    """
    Live variable analysis.

    ``result.get_out_fact(stmt)`` is the set of variables live right
    after ``stmt``.
    """

    ID = "livevar"
    direction = Direction.BACKWARD

    def new_boundary_fact(self, cfg: CFG) -> SetFact[Var]:
        return SetFact()

    def new_initial_fact(self) -> SetFact[Var]:
        return SetFact()

    def meet_into(self, fact: SetFact[Var], target: SetFact[Var]) -> None:
        target.union(fact)

    def transfer_node(
        self, stmt: Stmt, in_fact: SetFact[Var], out_fact: SetFact[Var]
    ) -> bool:
        live = out_fact.copy()
        defined = stmt.get_def()
        if defined is not None:
            live.remove(defined)
        for use in stmt.get_uses():
            live.add(use)
        return in_fact.set_to(live)


# ═════════════════════════════════════════════════════════════════════════
#  PART 4 - DEAD CODE DETECTION
# ═════════════════════════════════════════════════════════════════════════
#
#  Walk the CFG breadth-first from the entry, following only the branches
#  that constant propagation cannot rule out.  A statement is dead when
#  the walk never reaches it, or when it is an assignment to a variable
#  that is not live afterwards and whose right-hand side cannot have a
#  side effect.  The exit node is never dead.
# ═════════════════════════════════════════════════════════════════════════

def has_no_side_effect(rvalue: Exp) -> bool:
    """Whether evaluating *rvalue* can neither write the heap nor throw."""
    if isinstance(rvalue, (NewExp, CastExp, FieldAccess, ArrayAccess)):
        return False
    if isinstance(rvalue, BinaryExp) and rvalue.op in (
        ArithmeticOp.DIV, ArithmeticOp.REM,
    ):
        return False
    return True


def detect_dead_code(
    cfg: CFG,
    constants: DataflowResult[CPFact],
    live_vars: DataflowResult[SetFact[Var]],
) -> List[Stmt]:
    """Return the dead statements of *cfg*, sorted by index."""
    visited: Set[Stmt] = set()
    dead_assignments: Set[Stmt] = set()
    queue: Deque[Stmt] = deque([cfg.entry])
    while queue:
        stmt = queue.popleft()
        if stmt in visited:
            continue
        visited.add(stmt)

        if isinstance(stmt, AssignStmt) and isinstance(stmt.lvalue, Var):
            if (stmt.lvalue not in live_vars.get_out_fact(stmt)
                    and has_no_side_effect(stmt.rvalue)):
                dead_assignments.add(stmt)
            queue.extend(cfg.succs_of(stmt))
        elif isinstance(stmt, If):
            cond = evaluate(stmt.condition, constants.get_in_fact(stmt))
            if cond.is_constant():
                taken = EdgeKind.IF_TRUE if cond.constant == 1 else EdgeKind.IF_FALSE
                for edge in cfg.out_edges_of(stmt):
                    if edge.kind is taken:
                        queue.append(edge.target)
            else:
                queue.extend(cfg.succs_of(stmt))
        elif isinstance(stmt, SwitchStmt):
            value = evaluate(stmt.var, constants.get_in_fact(stmt))
            if value.is_constant():
                hit = False
                for case_value, target in stmt.get_case_target_pairs():
                    if case_value == value.constant:
                        hit = True
                        queue.append(target)
                if not hit and stmt.default_target is not None:
                    queue.append(stmt.default_target)
            else:
                queue.extend(cfg.succs_of(stmt))
        else:
            queue.extend(cfg.succs_of(stmt))

    dead = [
        s for s in cfg
        if (s not in visited or s in dead_assignments) and not cfg.is_exit(s)
    ]
    dead.sort(key=lambda s: s.index)
    return dead


class DeadCodeDetection:
    """
    Dead-code detector for one method body.

    Consumes the ``cfg``, ``constprop`` and ``livevar`` results stored on
    the IR, computing and storing any that are missing.
    """

    ID = "deadcode"

    def __init__(self, solver: Optional[str] = None) -> None:
        self.solver = solver

    def analyze(self, ir: IR) -> List[Stmt]:
        cfg = build_cfg(ir)
        if not ir.has_result(ConstantPropagation.ID):
            ir.store_result(
                ConstantPropagation.ID,
                solve(ConstantPropagation(), cfg, self.solver),
            )
        if not ir.has_result(LiveVariableAnalysis.ID):
            ir.store_result(
                LiveVariableAnalysis.ID, solve(LiveVariableAnalysis(), cfg)
            )
        dead = detect_dead_code(
            cfg,
            ir.get_result(ConstantPropagation.ID),
            ir.get_result(LiveVariableAnalysis.ID),
        )
        logger.debug("%d dead statements in %s", len(dead), ir.method)
        return dead
