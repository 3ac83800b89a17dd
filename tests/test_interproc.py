# tests/test_interproc.py
"""Tests for the ICFG and interprocedural constant propagation."""

from jflow.callgraph import build_callgraph
from jflow.interproc_analysis import (
    CallEdge,
    CallToReturnEdge,
    InterConstantPropagation,
    InterproceduralCFG,
    NormalEdge,
    ReturnEdge,
    analyze,
    build_icfg,
)
from tests.conftest import RECURSIVE_SRC, constprop, method, parse, values

TWO_CALLERS_SRC = """
class Main {
    static int inc(int a) {
        int b;
        b = a + 1;
        return b;
    }
    static int twice(int a) {
        int b;
        b = a * 2;
        return b;
    }
    static void main() {
        int x, y, z, w;
        x = invokestatic <Main: int inc(int)>(1);
        y = invokestatic <Main: int twice(int)>(3);
        z = invokestatic <Main: int twice(int)>(3);
        w = invokestatic <Main: int inc(int)>(x);
        return;
    }
}
"""

ENTRY_PARAMS_SRC = """
class Main {
    static int use(int p) {
        int q;
        q = p + 1;
        return q;
    }
    static void main(int argc) {
        int x, k;
        k = 7;
        x = invokestatic <Main: int use(int)>(argc);
        return;
    }
}
"""


def _main_out(program, result, index):
    ir = program.main_method.get_ir()
    return values(result.get_out_fact(ir.get_stmt(index)), ir)


class TestICFG:

    def test_methods_and_nodes(self, interproc_program):
        icfg = build_icfg(interproc_program)
        assert [m.signature for m in icfg.methods] == [
            "<Main: void main()>",
            "<Main: int add(int,int)>",
            "<Main: int id(int)>",
            "<Main: void noop()>",
        ]
        main = interproc_program.main_method
        assert icfg.entry_methods == [main]
        cfg_sizes = sum(len(icfg.get_cfg(m)) for m in icfg.methods)
        assert len(icfg) == cfg_sizes

    def test_edge_kinds_at_call_site(self, interproc_program):
        icfg = build_icfg(interproc_program)
        main_ir = interproc_program.main_method.get_ir()
        add = method(interproc_program, "<Main: int add(int,int)>")
        call = main_ir.get_stmt(2)

        out = icfg.out_edges_of(call)
        assert [type(e) for e in out] == [CallToReturnEdge, CallEdge]
        assert out[0].target is main_ir.get_stmt(3)
        assert out[1].target is icfg.entry_of(add)
        assert out[1].callee is add

        returns = [e for e in icfg.in_edges_of(main_ir.get_stmt(3))
                   if isinstance(e, ReturnEdge)]
        assert len(returns) == 1
        assert returns[0].source is icfg.exit_of(add)
        assert returns[0].call_site is call
        assert [v.name for v in returns[0].return_vars] == ["c"]

    def test_normal_edges(self, interproc_program):
        icfg = build_icfg(interproc_program)
        main_ir = interproc_program.main_method.get_ir()
        (edge,) = icfg.out_edges_of(main_ir.get_stmt(0))
        assert isinstance(edge, NormalEdge)
        assert edge.target is main_ir.get_stmt(1)

    def test_call_to_bodiless_method(self, interproc_program):
        icfg = build_icfg(interproc_program)
        main_ir = interproc_program.main_method.get_ir()
        call = main_ir.get_stmt(8)
        out = icfg.out_edges_of(call)
        assert [type(e) for e in out] == [CallToReturnEdge]
        assert icfg.callees_of(call) == []

    def test_return_sites(self, interproc_program):
        icfg = build_icfg(interproc_program)
        main_ir = interproc_program.main_method.get_ir()
        call = main_ir.get_stmt(6)
        assert icfg.return_sites_of(call) == [main_ir.get_stmt(7)]
        assert icfg.containing_method_of(call) is interproc_program.main_method


class TestInterConstantPropagation:

    def test_main_return(self, interproc_program):
        result = analyze(interproc_program)
        assert _main_out(interproc_program, result, 9) == {
            "k": "9", "r": "3", "s": "NAC", "t": "NAC", "x": "1", "y": "2",
        }

    def test_callee_sees_arguments(self, interproc_program):
        result = analyze(interproc_program)
        add_ir = method(interproc_program, "<Main: int add(int,int)>").get_ir()
        assert values(result.get_out_fact(add_ir.get_stmt(0)), add_ir) == {
            "a": "1", "b": "2", "c": "3",
        }

    def test_call_to_return_kills_result(self, interproc_program):
        result = analyze(interproc_program)
        main_ir = interproc_program.main_method.get_ir()
        assert _main_out(interproc_program, result, 7)["u"] == "3"
        assert "u" not in values(result.get_in_fact(main_ir.get_stmt(9)), main_ir)

    def test_void_call_preserves_locals(self, interproc_program):
        result = analyze(interproc_program)
        before = _main_out(interproc_program, result, 5)
        main_ir = interproc_program.main_method.get_ir()
        after = values(result.get_in_fact(main_ir.get_stmt(7)), main_ir)
        assert after == before

    def test_more_precise_than_intraprocedural(self, interproc_program):
        main_ir = interproc_program.main_method.get_ir()
        intra = constprop(main_ir)
        assert values(intra.get_out_fact(main_ir.get_stmt(2)), main_ir)["r"] == "NAC"
        inter = analyze(interproc_program)
        assert values(inter.get_in_fact(main_ir.get_stmt(3)), main_ir)["r"] == "3"

    def test_call_sites_merge(self):
        program = parse(TWO_CALLERS_SRC)
        result = analyze(program)
        assert _main_out(program, result, 4) == {
            "x": "NAC", "y": "6", "z": "6", "w": "NAC",
        }

    def test_entry_params_are_nac(self):
        program = parse(ENTRY_PARAMS_SRC)
        result = analyze(program)
        assert _main_out(program, result, 2) == {
            "argc": "NAC", "k": "7", "x": "NAC",
        }

    def test_recursion(self):
        program = parse(RECURSIVE_SRC)
        result = analyze(program)
        assert _main_out(program, result, 1) == {"x": "NAC"}

    def test_through_explicit_icfg(self, interproc_program):
        icfg = InterproceduralCFG(build_callgraph(interproc_program))
        analysis = InterConstantPropagation()
        result = analysis.analyze(icfg)
        assert analysis.icfg is icfg
        main_ir = interproc_program.main_method.get_ir()
        assert values(result.get_out_fact(main_ir.get_stmt(1)), main_ir) == {
            "x": "1", "y": "2",
        }
