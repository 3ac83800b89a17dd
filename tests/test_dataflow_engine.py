# tests/test_dataflow_engine.py
"""Tests for the worklist and round-robin solvers."""

import pytest

from jflow.ctrlflow_graph import EdgeKind, build_cfg
from jflow.dataflow_analyses import ConstantPropagation, LiveVariableAnalysis
from jflow.dataflow_engine import (
    Direction,
    IterativeSolver,
    WorkListSolver,
    check_fixed_point,
    solve,
)
from jflow.errors import UnsupportedDirectionError
from jflow.abstract_domains import Value
from tests.conftest import method, var


def _names(live):
    return sorted(v.name for v in live)


class TestDirection:

    def test_analysis_directions(self):
        assert ConstantPropagation().is_forward()
        assert LiveVariableAnalysis().direction is Direction.BACKWARD
        assert not LiveVariableAnalysis().is_forward()


class TestWorkListSolver:

    def test_rejects_backward_analysis(self, deadcode_program):
        ir = method(deadcode_program, "<DeadCode: void spin()>").ir
        with pytest.raises(UnsupportedDirectionError) as info:
            WorkListSolver(LiveVariableAnalysis()).solve(build_cfg(ir))
        assert info.value.forward is False
        assert "backward" in str(info.value)

    def test_counts_iterations(self, constprop_program):
        ir = method(constprop_program, "<ConstProp: int loop()>").ir
        result = WorkListSolver(ConstantPropagation()).solve(build_cfg(ir))
        assert result.iterations >= len(ir)
        assert result.elapsed_seconds >= 0.0

    def test_every_node_has_facts(self, constprop_program):
        ir = method(constprop_program, "<ConstProp: int merge(int)>").ir
        cfg = build_cfg(ir)
        result = WorkListSolver(ConstantPropagation()).solve(cfg)
        assert set(result.nodes()) == set(cfg)
        for node in cfg:
            result.get_in_fact(node)
            result.get_out_fact(node)


class TestIterativeSolver:

    def test_liveness_straight_line(self, deadcode_program):
        ir = method(deadcode_program, "<DeadCode: int deadStore(int)>").ir
        result = IterativeSolver(LiveVariableAnalysis()).solve(build_cfg(ir))
        assert _names(result.get_out_fact(ir.get_stmt(0))) == ["a", "p"]
        assert _names(result.get_out_fact(ir.get_stmt(2))) == ["b"]
        assert _names(result.get_out_fact(ir.get_stmt(3))) == ["b"]
        assert _names(result.get_out_fact(ir.get_stmt(4))) == []

    def test_liveness_around_loop(self, deadcode_program):
        ir = method(deadcode_program, "<DeadCode: void spin()>").ir
        result = IterativeSolver(LiveVariableAnalysis()).solve(build_cfg(ir))
        i = var(ir, "i")
        for index in (0, 1, 2):
            assert i in result.get_out_fact(ir.get_stmt(index))

    def test_forward_matches_worklist(self, constprop_program):
        ir = method(constprop_program, "<ConstProp: int merge(int)>").ir
        cfg = build_cfg(ir)
        a = WorkListSolver(ConstantPropagation()).solve(cfg)
        b = IterativeSolver(ConstantPropagation()).solve(cfg)
        for node in cfg:
            assert a.get_in_fact(node) == b.get_in_fact(node)
            assert a.get_out_fact(node) == b.get_out_fact(node)


class TestSolve:

    def test_default_solver_follows_direction(self, deadcode_program):
        ir = method(deadcode_program, "<DeadCode: void spin()>").ir
        result = solve(LiveVariableAnalysis(), build_cfg(ir))
        assert var(ir, "i") in result.get_out_fact(ir.get_stmt(0))

    def test_unknown_solver(self, deadcode_program):
        ir = method(deadcode_program, "<DeadCode: void spin()>").ir
        with pytest.raises(ValueError):
            solve(ConstantPropagation(), build_cfg(ir), "chaotic")


class TestCheckFixedPoint:

    def test_solved_results_are_stable(self, constprop_program, deadcode_program):
        ir = method(constprop_program, "<ConstProp: int loop()>").ir
        cfg = build_cfg(ir)
        assert check_fixed_point(ConstantPropagation(), cfg,
                                 solve(ConstantPropagation(), cfg))

        ir = method(deadcode_program, "<DeadCode: int deadStore(int)>").ir
        cfg = build_cfg(ir)
        assert check_fixed_point(LiveVariableAnalysis(), cfg,
                                 solve(LiveVariableAnalysis(), cfg))

    def test_tampered_result_is_not_stable(self, constprop_program):
        ir = method(constprop_program, "<ConstProp: int basic(int)>").ir
        cfg = build_cfg(ir)
        result = solve(ConstantPropagation(), cfg)
        result.get_out_fact(ir.get_stmt(0)).update(var(ir, "x"), Value.get_nac())
        assert not check_fixed_point(ConstantPropagation(), cfg, result)


class TestCFG:

    def test_entry_and_exit(self, constprop_program):
        ir = method(constprop_program, "<ConstProp: int basic(int)>").ir
        cfg = build_cfg(ir)
        assert cfg.entry.index == -1
        assert cfg.exit.index == len(ir)
        assert cfg.succs_of(cfg.entry) == [ir.get_stmt(0)]
        assert cfg.preds_of(cfg.exit) == [ir.get_stmt(4)]
        assert build_cfg(ir) is cfg

    def test_branch_edges(self, constprop_program):
        ir = method(constprop_program, "<ConstProp: int merge(int)>").ir
        cfg = build_cfg(ir)
        kinds = {e.kind: e.target.index for e in cfg.out_edges_of(ir.get_stmt(0))}
        assert kinds == {EdgeKind.IF_TRUE: 4, EdgeKind.IF_FALSE: 1}
        (goto,) = cfg.out_edges_of(ir.get_stmt(3))
        assert goto.kind is EdgeKind.GOTO and goto.target.index == 6

    def test_switch_edges(self, deadcode_program):
        ir = method(deadcode_program, "<DeadCode: int switchConst()>").ir
        cfg = build_cfg(ir)
        edges = cfg.out_edges_of(ir.get_stmt(1))
        cases = [(e.case_value, e.target.index) for e in edges
                 if e.kind is EdgeKind.SWITCH_CASE]
        assert cases == [(1, 2), (2, 4)]
        default = [e.target.index for e in edges if e.kind is EdgeKind.SWITCH_DEFAULT]
        assert default == [6]

    def test_to_dot(self, constprop_program):
        ir = method(constprop_program, "<ConstProp: int merge(int)>").ir
        dot = build_cfg(ir).to_dot("merge")
        assert dot.startswith("digraph CFG {")
        assert 'label="merge";' in dot
        assert "if-true" in dot and "ENTRY" in dot and "EXIT" in dot
