# tests/test_deadcode.py
"""Tests for dead code detection."""

import pytest

from jflow.ctrlflow_graph import build_cfg
from jflow.dataflow_analyses import (
    ConstantPropagation,
    DeadCodeDetection,
    LiveVariableAnalysis,
    detect_dead_code,
    has_no_side_effect,
)
from jflow.dataflow_engine import check_fixed_point, solve
from jflow.ir import (
    ArithmeticOp,
    ArrayAccess,
    BinaryExp,
    CastExp,
    ClassType,
    IntLiteral,
    NewExp,
    PrimitiveType,
    Var,
)
from tests.conftest import (
    DEADCODE_SRC,
    constprop,
    indices,
    method,
    parse,
    values,
)


def _dead(program, signature):
    return indices(DeadCodeDetection().analyze(method(program, signature).ir))


class TestSideEffects:

    def test_pure_expressions(self):
        x = Var("x", PrimitiveType.INT)
        assert has_no_side_effect(x)
        assert has_no_side_effect(IntLiteral(1))
        assert has_no_side_effect(BinaryExp(ArithmeticOp.ADD, x, IntLiteral(1)))

    def test_impure_expressions(self):
        x = Var("x", PrimitiveType.INT)
        arr = Var("arr", PrimitiveType.INT)
        assert not has_no_side_effect(NewExp(ClassType("A")))
        assert not has_no_side_effect(CastExp(PrimitiveType.INT, x))
        assert not has_no_side_effect(ArrayAccess(arr, IntLiteral(0)))
        assert not has_no_side_effect(BinaryExp(ArithmeticOp.DIV, x, IntLiteral(2)))
        assert not has_no_side_effect(BinaryExp(ArithmeticOp.REM, x, IntLiteral(2)))


class TestDeadCodeDetection:

    @pytest.mark.parametrize("signature, expected", [
        ("<DeadCode: int controlFlow()>", [2, 3]),
        ("<DeadCode: int deadStore(int)>", [3]),
        ("<DeadCode: int switchConst()>", [2, 3, 6]),
        ("<DeadCode: int switchDefault()>", [2, 3]),
        ("<DeadCode: int unknownBranch(int)>", []),
        ("<DeadCode: void unreachableLoop()>", [0, 2, 3]),
        ("<DeadCode: void spin()>", []),
        ("<DeadCode: void effects(Box)>", []),
    ])
    def test_dead_statements(self, deadcode_program, signature, expected):
        assert _dead(deadcode_program, signature) == expected

    def test_exit_is_never_dead(self, deadcode_program):
        ir = method(deadcode_program, "<DeadCode: void spin()>").ir
        cfg = build_cfg(ir)
        constants = solve(ConstantPropagation(), cfg)
        live = solve(LiveVariableAnalysis(), cfg)
        dead = detect_dead_code(cfg, constants, live)
        assert cfg.exit not in dead
        assert cfg.entry not in dead

    def test_stores_prerequisites_on_ir(self, deadcode_program):
        ir = method(deadcode_program, "<DeadCode: int controlFlow()>").ir
        DeadCodeDetection().analyze(ir)
        assert ir.has_result("cfg")
        assert ir.has_result(ConstantPropagation.ID)
        assert ir.has_result(LiveVariableAnalysis.ID)

    def test_reuses_stored_results(self, deadcode_program):
        ir = method(deadcode_program, "<DeadCode: int controlFlow()>").ir
        stored = solve(ConstantPropagation(), build_cfg(ir), "iterative")
        ir.store_result(ConstantPropagation.ID, stored)
        DeadCodeDetection().analyze(ir)
        assert ir.get_result(ConstantPropagation.ID) is stored

    def test_either_solver(self):
        for solver in ("worklist", "iterative"):
            program = parse(DEADCODE_SRC)
            ir = method(program, "<DeadCode: int switchConst()>").ir
            assert indices(DeadCodeDetection(solver).analyze(ir)) == [2, 3, 6]

    def test_result_is_sorted(self):
        program = parse("""
            class S {
                static void f() {
                    int a, b;
                    goto L2;
                L1:
                    a = 1;
                    return;
                L2:
                    b = 2;
                    return;
                }
            }
        """)
        ir = method(program, "<S: void f()>").ir
        assert indices(DeadCodeDetection().analyze(ir)) == [1, 2, 3]



IF_ELSE_SRC = """
class Branch {
    static int ifElse() {
        int x, y, z;
        x = 1;
        if (x == 1) goto T;
        y = 2;
        goto J;
    T:
        y = 1;
    J:
        z = y;
        return z;
    }
}
"""


class TestBranchInsensitiveConstants:

    def test_else_branch_is_dead(self):
        ir = method(parse(IF_ELSE_SRC), "<Branch: int ifElse()>").ir
        assert indices(DeadCodeDetection().analyze(ir)) == [2, 3]

    def test_join_does_not_prune_dead_branch(self):
        ir = method(parse(IF_ELSE_SRC), "<Branch: int ifElse()>").ir
        result = constprop(ir)
        join = ir.get_stmt(5)
        assert values(result.get_in_fact(join), ir)["y"] == "NAC"
        assert values(result.get_out_fact(join), ir)["z"] == "NAC"
        assert values(result.get_out_fact(ir.get_stmt(4)), ir)["y"] == "1"
        assert check_fixed_point(ConstantPropagation(), build_cfg(ir), result)
