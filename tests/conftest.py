# tests/conftest.py
"""
Shared programs and helpers for the jflow test-suite.

Programs are written in the textual IR read by ``jflow.ir_parser``.
"""

from typing import Dict, List

import pytest

from jflow.classes import JMethod, Program
from jflow.ctrlflow_graph import build_cfg
from jflow.dataflow_analyses import ConstantPropagation
from jflow.dataflow_engine import DataflowResult, solve
from jflow.ir import IR, Stmt, Var
from jflow.ir_parser import parse_program


# ── Programs ─────────────────────────────────────────────────────

CONSTPROP_SRC = """
class ConstProp {
    static int basic(int p) {
        int x, y, z, w;
        x = 1;
        y = x + 2;
        z = y * p;
        w = y / 0;
        return y;
    }

    static int merge(int p) {
        int x, y, a;
        if (p > 0) goto Then;
        x = 1;
        y = 5;
        goto Join;
    Then:
        x = 1;
        y = 6;
    Join:
        a = x + y;
        return a;
    }

    static int loop() {
        int i, c;
        i = 0;
        c = 10;
    Head:
        if (i >= c) goto Done;
        i = i + 1;
        goto Head;
    Done:
        return c;
    }

    static void objects(A o) {
        A n;
        int k, f;
        n = new A;
        k = (int) f;
        f = o.size;
        return;
    }
}

class A { }
"""

DEADCODE_SRC = """
class DeadCode {
    static int controlFlow() {
        int x, y;
        x = 1;
        if (x == 1) goto T;
        y = 2;
        goto J;
    T:
        y = 3;
    J:
        return y;
    }

    static int deadStore(int p) {
        int a, b, c;
        a = p + 1;
        b = a * 2;
        c = p / 2;
        a = 5;
        return b;
    }

    static int switchConst() {
        int x, y;
        x = 2;
        switch (x) { case 1: goto A; case 2: goto B; default: goto D; }
    A:
        y = 10;
        goto E;
    B:
        y = 20;
        goto E;
    D:
        y = 30;
    E:
        return y;
    }

    static int switchDefault() {
        int x, y;
        x = 7;
        switch (x) { case 1: goto A; default: goto D; }
    A:
        y = 10;
        return y;
    D:
        y = 30;
        return y;
    }

    static int unknownBranch(int p) {
        int y;
        if (p != 0) goto T;
        y = 1;
        return y;
    T:
        y = 2;
        return y;
    }

    static void unreachableLoop() {
        int i;
        i = 0;
        return;
    L:
        i = i + 1;
        goto L;
    }

    static void spin() {
        int i;
        i = 0;
    L:
        i = i + 1;
        goto L;
    }

    static void effects(Box b) {
        Box o;
        int x, y;
        int[] arr;
        o = new Box;
        x = b.f;
        arr = new int[];
        y = arr[0];
        return;
    }
}

class Box { }
"""

INTERPROC_SRC = """
class Main {
    static int add(int a, int b) {
        int c;
        c = a + b;
        return c;
    }

    static int id(int v) {
        return v;
    }

    static void noop() {
        return;
    }

    static int nat();

    static void main() {
        int x, y, r, s, t, u, k;
        x = 1;
        y = 2;
        r = invokestatic <Main: int add(int,int)>(x, y);
        s = invokestatic <Main: int id(int)>(4);
        t = invokestatic <Main: int id(int)>(5);
        k = 9;
        invokestatic <Main: void noop()>();
        u = 3;
        u = invokestatic <Main: int nat()>();
        return;
    }
}
"""

RECURSIVE_SRC = """
class Rec {
    static int fact(int n) {
        int r, m;
        if (n <= 1) goto base;
        m = n - 1;
        r = invokestatic <Rec: int fact(int)>(m);
        r = n * r;
        return r;
    base:
        r = 1;
        return r;
    }

    static void main() {
        int x;
        x = invokestatic <Rec: int fact(int)>(5);
        return;
    }
}
"""


# ── Helpers ──────────────────────────────────────────────────────

def parse(text: str, main: str = None) -> Program:
    return parse_program(text, main=main)


def method(program: Program, signature: str) -> JMethod:
    return program.get_method(signature)


def var(ir: IR, name: str) -> Var:
    for v in ir.vars:
        if v.name == name:
            return v
    raise KeyError(name)


def constprop(ir: IR, solver: str = None) -> DataflowResult:
    return solve(ConstantPropagation(), build_cfg(ir), solver)


def values(fact, ir: IR) -> Dict[str, str]:
    """Render the non-UNDEF bindings of *fact* as ``{name: str(value)}``."""
    return {v.name: str(val) for v, val in fact.items() if v.method is ir.method}


def indices(stmts: List[Stmt]) -> List[int]:
    return [s.index for s in stmts]


@pytest.fixture
def constprop_program() -> Program:
    return parse(CONSTPROP_SRC)


@pytest.fixture
def deadcode_program() -> Program:
    return parse(DEADCODE_SRC)


@pytest.fixture
def interproc_program() -> Program:
    return parse(INTERPROC_SRC)
