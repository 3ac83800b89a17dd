# tests/test_ir_parser.py
"""Tests for the textual IR front end."""

import pytest

from jflow.errors import IRError, IRParseError
from jflow.ir import (
    ArrayAccess,
    ArrayType,
    AssignStmt,
    BinaryExp,
    CallKind,
    CastExp,
    ClassType,
    ConditionOp,
    DefinitionStmt,
    Goto,
    If,
    InstanceFieldAccess,
    IntLiteral,
    Invoke,
    JumpStmt,
    NewExp,
    Nop,
    PrimitiveType,
    Return,
    StaticFieldAccess,
    SwitchStmt,
)
from jflow.ir_parser import load_program, parse_program
from tests.conftest import CONSTPROP_SRC, DEADCODE_SRC, method, parse

SHAPES_SRC = """
interface Shape { int area(); }

abstract class Base implements Shape { }

class Square extends Base {
    int area() {
        int a;
        a = 4;
        return a;
    }
}

class Main {
    static void main() {
        Shape s;
        int r;
        s = new Square;
        invokespecial s.<Square: void <init>()>();
        r = invokeinterface s.<Shape: int area()>();
        if (r > 3) goto big;
        r = 0;
    big:
        return;
    }
}
"""


def _syntax_error(text):
    with pytest.raises(IRParseError) as info:
        parse_program(text)
    return info.value


def _semantic_error(text):
    with pytest.raises(IRError) as info:
        parse_program(text)
    assert not isinstance(info.value, IRParseError)
    return str(info.value)


class TestClasses:

    def test_hierarchy(self):
        program = parse("""
            interface Shape { int area(); }
            interface Solid extends Shape { }
            abstract class Base implements Solid { }
            class Cube extends Base {
                int area() { int a; a = 6; return a; }
            }
        """)
        h = program.hierarchy
        shape, solid = h.get_class("Shape"), h.get_class("Solid")
        base, cube = h.get_class("Base"), h.get_class("Cube")
        assert shape.is_interface and solid.is_interface
        assert base.is_abstract and not cube.is_abstract
        assert solid.interfaces == [shape]
        assert base.interfaces == [solid]
        assert cube.super_class is base
        assert h.direct_subinterfaces_of(shape) == [solid]
        assert h.direct_implementors_of(solid) == [base]
        assert h.direct_subclasses_of(base) == [cube]
        assert len(h) == 4 and "Cube" in h

    def test_methods(self):
        program = parse(CONSTPROP_SRC)
        basic = method(program, "<ConstProp: int basic(int)>")
        assert basic.is_static
        assert basic.has_body()
        assert basic.return_type is PrimitiveType.INT
        assert [p.name for p in basic.ir.params] == ["p"]
        assert [v.name for v in basic.ir.vars] == ["p", "x", "y", "z", "w"]

    def test_interface_methods_are_abstract(self):
        program = parse(SHAPES_SRC)
        area = method(program, "<Shape: int area()>")
        assert area.is_abstract and not area.has_body()

    def test_bodiless_method_without_abstract(self):
        program = parse("class N { static int nat(); }")
        nat = method(program, "<N: int nat()>")
        assert not nat.is_abstract and not nat.has_body()

    def test_main_method(self):
        program = parse(SHAPES_SRC)
        assert program.main_method.signature == "<Main: void main()>"
        other = parse(SHAPES_SRC, main="<Square: int area()>")
        assert other.main_method.signature == "<Square: int area()>"


class TestStatements:

    def test_statement_kinds(self):
        program = parse(SHAPES_SRC)
        ir = program.main_method.get_ir()
        kinds = [type(s) for s in ir]
        assert kinds == [AssignStmt, Invoke, Invoke, If, AssignStmt, Return]
        assert isinstance(ir.get_stmt(0).rvalue, NewExp)
        assert ir.get_stmt(0).rvalue.type == ClassType("Square")

    def test_invocations(self):
        program = parse(SHAPES_SRC)
        ir = program.main_method.get_ir()
        ctor, call = ir.get_stmt(1), ir.get_stmt(2)
        assert ctor.kind is CallKind.SPECIAL
        assert ctor.result is None
        assert ctor.method_ref.subsignature.name == "<init>"
        assert call.kind is CallKind.INTERFACE
        assert call.result.name == "r"
        assert call.invoke_exp.base.name == "s"
        assert str(call) == "r = invokeinterface s.<Shape: int area()>()"

    def test_if_and_labels(self):
        program = parse(SHAPES_SRC)
        ir = program.main_method.get_ir()
        branch = ir.get_stmt(3)
        assert branch.condition.op is ConditionOp.GT
        assert branch.target is ir.get_stmt(5)
        assert str(branch) == "if (r > 3) goto 5"

    def test_goto_and_switch(self):
        program = parse(CONSTPROP_SRC)
        merge = method(program, "<ConstProp: int merge(int)>").ir
        goto = merge.get_stmt(3)
        assert isinstance(goto, Goto) and goto.target is merge.get_stmt(6)

        sw = method(parse(DEADCODE_SRC), "<DeadCode: int switchConst()>").ir
        switch = sw.get_stmt(1)
        assert isinstance(switch, SwitchStmt)
        assert switch.case_values == [1, 2]
        assert [t.index for t in switch.case_targets] == [2, 4]
        assert switch.default_target.index == 6

    def test_expressions(self):
        program = parse("""
            class Box {
                static void run(Box b) {
                    int x, y;
                    int[] arr;
                    long l;
                    x = b.f;
                    y = Box.total;
                    arr = new int[];
                    y = arr[x];
                    l = (long) x;
                    y = x >>> 2;
                    b.f = y;
                    nop;
                    return;
                }
            }
        """)
        ir = method(program, "<Box: void run(Box)>").ir
        assert isinstance(ir.get_stmt(0).rvalue, InstanceFieldAccess)
        assert isinstance(ir.get_stmt(1).rvalue, StaticFieldAccess)
        assert ir.get_stmt(2).rvalue.type == ArrayType(PrimitiveType.INT)
        assert isinstance(ir.get_stmt(3).rvalue, ArrayAccess)
        assert isinstance(ir.get_stmt(4).rvalue, CastExp)
        shift = ir.get_stmt(5).rvalue
        assert isinstance(shift, BinaryExp) and shift.op.value == ">>>"
        assert isinstance(ir.get_stmt(6).lvalue, InstanceFieldAccess)
        assert isinstance(ir.get_stmt(7), Nop)

    def test_negative_literals_and_lines(self):
        program = parse("class K {\n  static void f() {\n    int x;\n    x = -5;\n    return;\n  }\n}\n")
        ir = method(program, "<K: void f()>").ir
        assign = ir.get_stmt(0)
        assert isinstance(assign.rvalue, IntLiteral)
        assert assign.rvalue.value == -5
        assert assign.line == 4

    def test_comments_are_ignored(self):
        program = parse("""
            // a class
            class C {
                /* a method
                   spanning lines */
                static int f() {
                    int x;  // local
                    x = 1;
                    return x;
                }
            }
        """)
        assert len(method(program, "<C: int f()>").ir) == 2

    def test_statement_bases_are_abstract(self):
        with pytest.raises(TypeError):
            DefinitionStmt()
        with pytest.raises(TypeError):
            JumpStmt()
        assert isinstance(parse(SHAPES_SRC).main_method.get_ir().get_stmt(3), JumpStmt)

    def test_return_vars(self):
        program = parse(CONSTPROP_SRC)
        basic = method(program, "<ConstProp: int basic(int)>").ir
        assert [v.name for v in basic.return_vars] == ["y"]
        objects = method(program, "<ConstProp: void objects(A)>").ir
        assert objects.return_vars == []


class TestErrors:

    def test_syntax_error_position(self):
        err = _syntax_error(
            "class T {\n"
            "    static void f() {\n"
            "        int x;\n"
            "        x = @;\n"
            "        return;\n"
            "    }\n"
            "}\n"
        )
        assert err.line == 4
        assert err.column == 13
        assert "x = @;" in str(err)
        assert "^" in str(err)

    def test_unterminated_class(self):
        err = _syntax_error("class T {")
        assert err.line == 1

    def test_undeclared_variable(self):
        msg = _semantic_error(
            "class T { static void f() { x = 1; return; } }"
        )
        assert "undeclared variable x" in msg

    def test_unknown_label(self):
        msg = _semantic_error(
            "class T { static void f() { goto nowhere; } }"
        )
        assert "unknown label nowhere" in msg

    def test_duplicate_label(self):
        msg = _semantic_error(
            "class T { static void f() { L: nop; L: return; } }"
        )
        assert "duplicate label L" in msg

    def test_unknown_class(self):
        msg = _semantic_error("class T extends Missing { }")
        assert "unknown class Missing" in msg

    def test_cyclic_inheritance(self):
        msg = _semantic_error("class A extends B { }\nclass B extends A { }")
        assert "cyclic inheritance" in msg

    def test_duplicate_class(self):
        msg = _semantic_error("class A { }\nclass A { }")
        assert "duplicate class A" in msg
        assert ":2:" in msg

    def test_duplicate_variable(self):
        msg = _semantic_error(
            "class T { static void f(int x) { int x; return; } }"
        )
        assert "declared twice" in msg

    def test_duplicate_method(self):
        msg = _semantic_error(
            "class T { static void f() { return; } static void f() { return; } }"
        )
        assert "f()" in msg

    def test_class_extends_interface(self):
        msg = _semantic_error("interface I { }\nclass C extends I { }")
        assert "extends interface I" in msg

    def test_implements_a_class(self):
        msg = _semantic_error("class A { }\nclass C implements A { }")
        assert "A is not an interface" in msg

    def test_abstract_method_with_body(self):
        msg = _semantic_error(
            "abstract class A { abstract void f() { return; } }"
        )
        assert "has a body" in msg

    def test_wrong_argument_count(self):
        msg = _semantic_error("""
            class T {
                static void g(int a) { return; }
                static void f() { invokestatic <T: void g(int)>(); return; }
            }
        """)
        assert "passes 0 arguments" in msg

    def test_unknown_main(self):
        with pytest.raises(IRError):
            parse_program("class A { }", main="<A: void main()>")


class TestLoadProgram:

    def test_load(self, tmp_path):
        path = tmp_path / "prog.jir"
        path.write_text(CONSTPROP_SRC, encoding="utf-8")
        program = load_program(path)
        assert program.hierarchy.get_class("ConstProp") is not None

    def test_errors_name_the_file(self, tmp_path):
        path = tmp_path / "bad.jir"
        path.write_text("class {", encoding="utf-8")
        with pytest.raises(IRParseError) as info:
            load_program(path)
        assert str(path) in str(info.value)
