"""
jflow.ir_parser
===============

Reads programs written in a small Jimple-like three-address language and
builds a :class:`~jflow.classes.Program`.

Example
-------
::

    interface Shape { int area(); }

    class Square implements Shape {
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

Locals are declared with ``type name, name;`` anywhere in a body and are
method-wide.  Labels (``name:``) mark the statement that follows them.
``//`` and ``/* */`` comments are ignored.

Public API
----------
    IR_GRAMMAR      - the parsimonious grammar
    parse_program   - source text → Program
    load_program    - file path → Program

Dependencies
------------
    - parsimonious (PEG parser)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import (
    Any,
    Dict,
    List,
    Optional,
    Tuple,
    Union,
)

from parsimonious.exceptions import ParseError
from parsimonious.grammar import Grammar
from parsimonious.nodes import NodeVisitor

from jflow.classes import (
    ClassHierarchy,
    JClass,
    JMethod,
    MethodRef,
    Program,
    Subsignature,
)
from jflow.errors import IRError, IRParseError
from jflow.ir import (
    IR,
    ArrayAccess,
    ArrayType,
    AssignStmt,
    Atom,
    BinaryExp,
    CallKind,
    CastExp,
    Exp,
    Goto,
    If,
    InstanceFieldAccess,
    IntLiteral,
    Invoke,
    InvokeExp,
    NewExp,
    Nop,
    Return,
    StaticFieldAccess,
    Stmt,
    SwitchStmt,
    Type,
    Var,
    parse_operator,
    parse_type,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  PART 1 - GRAMMAR (Parsimonious PEG)
# ═══════════════════════════════════════════════════════════════════

IR_GRAMMAR = Grammar(r'''
    # ─────────────────────────────────────────────────────────────
    # Classes and methods
    # ─────────────────────────────────────────────────────────────
    program            = _ class_decl* eof
    class_decl         = abstract_kw? class_kind class_name _ extends_clause?
                         implements_clause? lbrace method_decl* rbrace
    class_kind         = class_kw / interface_kw
    extends_clause     = extends_kw class_name _ (comma class_name _)*
    implements_clause  = implements_kw class_name _ (comma class_name _)*

    method_decl        = modifier* type method_name lparen param_list? rparen
                         method_body
    modifier           = static_kw / abstract_kw / private_kw / public_kw
    method_name        = init_name / ident
    init_name          = ~r"<(cl)?init>" _
    param_list         = param (comma param)*
    param              = type ident?
    method_body        = semi / block

    # ─────────────────────────────────────────────────────────────
    # Bodies
    # ─────────────────────────────────────────────────────────────
    block              = lbrace body_item* rbrace
    body_item          = local_decl / labeled_stmt
    local_decl         = type ident (comma ident)* semi
    labeled_stmt       = label* stmt
    label              = ident colon

    stmt               = if_stmt / goto_stmt / switch_stmt / return_stmt
                       / nop_stmt / invoke_stmt / assign_stmt
    if_stmt            = if_kw lparen atom cond_op atom rparen goto_kw ident semi
    goto_stmt          = goto_kw ident semi
    switch_stmt        = switch_kw lparen ident rparen lbrace case_clause*
                         default_clause rbrace
    case_clause        = case_kw int_lit colon goto_kw ident semi
    default_clause     = default_kw colon goto_kw ident semi
    return_stmt        = return_kw ident? semi
    nop_stmt           = nop_kw semi
    invoke_stmt        = result_assign? invoke_exp semi
    result_assign      = ident assign
    assign_stmt        = lvalue assign rvalue semi

    lvalue             = array_ref / field_ref / ident
    rvalue             = new_exp / cast_exp / binary_exp / array_ref
                       / field_ref / atom
    new_exp            = new_kw type
    cast_exp           = lparen type rparen atom
    binary_exp         = atom bin_op atom
    array_ref          = ident lbracket atom rbracket
    field_ref          = ident dot ident
    atom               = int_lit / ident

    invoke_exp         = static_invoke / instance_invoke
    static_invoke      = invokestatic_kw method_sig arg_list
    instance_invoke    = instance_kind ident dot method_sig arg_list
    instance_kind      = invokespecial_kw / invokevirtual_kw / invokeinterface_kw
    method_sig         = "<" _ class_name _ colon type method_name lparen
                         type_list? rparen ">" _
    type_list          = type (comma type)*
    arg_list           = lparen (atom (comma atom)*)? rparen

    # ─────────────────────────────────────────────────────────────
    # Lexical
    # ─────────────────────────────────────────────────────────────
    type               = class_name array_dims _
    array_dims         = "[]"*
    class_name         = !keyword ~r"[A-Za-z_$][\w$]*(\.[A-Za-z_$][\w$]*)*"
    ident              = !keyword ~r"[A-Za-z_$][\w$]*" _
    int_lit            = ~r"-?[0-9]+" _
    bin_op             = ~r">>>|<<|>>|<=|>=|==|!=|<|>|\+|-|\*|/|%|\||&|\^" _
    cond_op            = ~r"==|!=|<=|>=|<|>" _

    keyword            = ~r"(class|interface|abstract|extends|implements|static|private|public|if|goto|switch|case|default|return|nop|new|invokestatic|invokespecial|invokevirtual|invokeinterface)\b"
    class_kw           = ~r"class\b" _
    interface_kw       = ~r"interface\b" _
    abstract_kw        = ~r"abstract\b" _
    extends_kw         = ~r"extends\b" _
    implements_kw      = ~r"implements\b" _
    static_kw          = ~r"static\b" _
    private_kw         = ~r"private\b" _
    public_kw          = ~r"public\b" _
    if_kw              = ~r"if\b" _
    goto_kw            = ~r"goto\b" _
    switch_kw          = ~r"switch\b" _
    case_kw            = ~r"case\b" _
    default_kw         = ~r"default\b" _
    return_kw          = ~r"return\b" _
    nop_kw             = ~r"nop\b" _
    new_kw             = ~r"new\b" _
    invokestatic_kw    = ~r"invokestatic\b" _
    invokespecial_kw   = ~r"invokespecial\b" _
    invokevirtual_kw   = ~r"invokevirtual\b" _
    invokeinterface_kw = ~r"invokeinterface\b" _

    lbrace             = "{" _
    rbrace             = "}" _
    lparen             = "(" _
    rparen             = ")" _
    lbracket           = "[" _
    rbracket           = "]" _
    semi               = ";" _
    comma              = "," _
    colon              = ":" _
    dot                = "." _
    assign             = "=" _

    eof                = !~r"."s
    _                  = ~r"(\s+|//[^\n]*|/\*.*?\*/)*"s
''')


# ═══════════════════════════════════════════════════════════════════
#  PART 2 - RAW SYNTAX TREE
# ═══════════════════════════════════════════════════════════════════
#
#  The visitor produces these plain records with names still unresolved;
#  PART 4 turns them into classes, methods, variables and statements.

RawAtom = Union[int, str]


@dataclass
class RawSignature:
    class_name: str
    return_type: Type
    name: str
    param_types: List[Type]


@dataclass
class RawStmt:
    kind: str
    args: Tuple[Any, ...]
    labels: List[str] = field(default_factory=list)
    pos: int = 0


@dataclass
class RawLocals:
    type: Type
    names: List[str]
    pos: int = 0


@dataclass
class RawBlock:
    items: List[Union[RawLocals, RawStmt]]


@dataclass
class RawMethod:
    modifiers: List[str]
    return_type: Type
    name: str
    params: List[Tuple[Type, Optional[str]]]
    body: Optional[RawBlock]
    pos: int = 0


@dataclass
class RawClass:
    name: str
    is_interface: bool
    is_abstract: bool
    extends: List[str]
    implements: List[str]
    methods: List[RawMethod]
    pos: int = 0


def _opt(visited: Any) -> Any:
    """Unwrap an optional (``x?``) child: its value, or ``None``."""
    if isinstance(visited, list) and visited:
        return visited[0]
    return None


def _many(visited: Any) -> List[Any]:
    """Unwrap a repetition (``x*``) child into a list."""
    return visited if isinstance(visited, list) else []


# ═══════════════════════════════════════════════════════════════════
#  PART 3 - PARSE TREE VISITOR (Parse Tree → raw records)
# ═══════════════════════════════════════════════════════════════════

class IRTreeBuilder(NodeVisitor):
    """Transforms a Parsimonious parse tree into raw records."""

    def generic_visit(self, node, visited_children):
        return visited_children or node

    # ─────────────────────────────────────────────────────────────
    # Classes and methods
    # ─────────────────────────────────────────────────────────────

    def visit_program(self, node, visited_children):
        _, classes, _ = visited_children
        return _many(classes)

    def visit_class_decl(self, node, visited_children):
        (abstract, kind, name, _, extends, implements,
         _, methods, _) = visited_children
        return RawClass(
            name=name,
            is_interface=kind == "interface",
            is_abstract=_opt(abstract) is not None,
            extends=_opt(extends) or [],
            implements=_opt(implements) or [],
            methods=_many(methods),
            pos=node.start,
        )

    def visit_class_kind(self, node, visited_children):
        return "interface" if node.text.startswith("interface") else "class"

    def visit_extends_clause(self, node, visited_children):
        _, first, _, rest = visited_children
        return [first] + [item[1] for item in _many(rest)]

    visit_implements_clause = visit_extends_clause

    def visit_method_decl(self, node, visited_children):
        modifiers, ret, name, _, params, _, body = visited_children
        return RawMethod(
            modifiers=_many(modifiers),
            return_type=ret,
            name=name,
            params=_opt(params) or [],
            body=body if isinstance(body, RawBlock) else None,
            pos=node.start,
        )

    def visit_modifier(self, node, visited_children):
        return re.match(r"\w+", node.text).group()

    def visit_method_name(self, node, visited_children):
        return visited_children[0]

    def visit_init_name(self, node, visited_children):
        return node.children[0].text

    def visit_param_list(self, node, visited_children):
        first, rest = visited_children
        return [first] + [item[1] for item in _many(rest)]

    def visit_param(self, node, visited_children):
        type_, name = visited_children
        return (type_, _opt(name))

    def visit_method_body(self, node, visited_children):
        return visited_children[0]

    # ─────────────────────────────────────────────────────────────
    # Bodies
    # ─────────────────────────────────────────────────────────────

    def visit_block(self, node, visited_children):
        _, items, _ = visited_children
        return RawBlock(items=_many(items))

    def visit_body_item(self, node, visited_children):
        return visited_children[0]

    def visit_local_decl(self, node, visited_children):
        type_, first, rest, _ = visited_children
        names = [first] + [item[1] for item in _many(rest)]
        return RawLocals(type=type_, names=names, pos=node.start)

    def visit_labeled_stmt(self, node, visited_children):
        labels, stmt = visited_children
        stmt.labels = _many(labels)
        return stmt

    def visit_label(self, node, visited_children):
        return visited_children[0]

    def visit_stmt(self, node, visited_children):
        stmt = visited_children[0]
        stmt.pos = node.start
        return stmt

    def visit_if_stmt(self, node, visited_children):
        _, _, lhs, op, rhs, _, _, target, _ = visited_children
        return RawStmt("if", (lhs, op, rhs, target))

    def visit_goto_stmt(self, node, visited_children):
        _, target, _ = visited_children
        return RawStmt("goto", (target,))

    def visit_switch_stmt(self, node, visited_children):
        _, _, var, _, _, cases, default, _ = visited_children
        return RawStmt("switch", (var, _many(cases), default))

    def visit_case_clause(self, node, visited_children):
        _, value, _, _, target, _ = visited_children
        return (value, target)

    def visit_default_clause(self, node, visited_children):
        _, _, _, target, _ = visited_children
        return target

    def visit_return_stmt(self, node, visited_children):
        _, value, _ = visited_children
        return RawStmt("return", (_opt(value),))

    def visit_nop_stmt(self, node, visited_children):
        return RawStmt("nop", ())

    def visit_invoke_stmt(self, node, visited_children):
        result, invoke, _ = visited_children
        return RawStmt("invoke", (_opt(result), invoke))

    def visit_result_assign(self, node, visited_children):
        return visited_children[0]

    def visit_assign_stmt(self, node, visited_children):
        lvalue, _, rvalue, _ = visited_children
        return RawStmt("assign", (lvalue, rvalue))

    # ─────────────────────────────────────────────────────────────
    # Expressions
    # ─────────────────────────────────────────────────────────────

    def visit_lvalue(self, node, visited_children):
        value = visited_children[0]
        if isinstance(value, str):
            return ("var", value)
        return value

    def visit_rvalue(self, node, visited_children):
        value = visited_children[0]
        if isinstance(value, (int, str)):
            return ("atom", value)
        return value

    def visit_new_exp(self, node, visited_children):
        return ("new", visited_children[1])

    def visit_cast_exp(self, node, visited_children):
        _, type_, _, value = visited_children
        return ("cast", type_, value)

    def visit_binary_exp(self, node, visited_children):
        lhs, op, rhs = visited_children
        return ("binary", lhs, op, rhs)

    def visit_array_ref(self, node, visited_children):
        base, _, index, _ = visited_children
        return ("array", base, index)

    def visit_field_ref(self, node, visited_children):
        base, _, name = visited_children
        return ("field", base, name)

    def visit_atom(self, node, visited_children):
        return visited_children[0]

    def visit_invoke_exp(self, node, visited_children):
        return visited_children[0]

    def visit_static_invoke(self, node, visited_children):
        _, sig, args = visited_children
        return ("static", None, sig, args)

    def visit_instance_invoke(self, node, visited_children):
        kind, base, _, sig, args = visited_children
        return (kind, base, sig, args)

    def visit_instance_kind(self, node, visited_children):
        return re.match(r"invoke(\w+)", node.text).group(1)

    def visit_method_sig(self, node, visited_children):
        _, _, cls, _, _, ret, name, _, types, _, _, _ = visited_children
        return RawSignature(cls, ret, name, _opt(types) or [])

    def visit_type_list(self, node, visited_children):
        first, rest = visited_children
        return [first] + [item[1] for item in _many(rest)]

    def visit_arg_list(self, node, visited_children):
        _, args, _ = visited_children
        args = _opt(args)
        if args is None:
            return []
        first, rest = args
        return [first] + [item[1] for item in _many(rest)]

    # ─────────────────────────────────────────────────────────────
    # Lexical
    # ─────────────────────────────────────────────────────────────

    def visit_type(self, node, visited_children):
        name, dims, _ = visited_children
        type_ = parse_type(name)
        for _ in range(len(node.children[1].children)):
            type_ = ArrayType(type_)
        return type_

    def visit_class_name(self, node, visited_children):
        return node.children[1].text

    def visit_ident(self, node, visited_children):
        return node.children[1].text

    def visit_int_lit(self, node, visited_children):
        return int(node.children[0].text)

    def visit_bin_op(self, node, visited_children):
        return node.children[0].text

    visit_cond_op = visit_bin_op


# ═══════════════════════════════════════════════════════════════════
#  PART 4 - PROGRAM BUILDER (raw records → Program)
# ═══════════════════════════════════════════════════════════════════

class _ProgramBuilder:
    """Resolves names in raw records and builds the class hierarchy."""

    def __init__(self, text: str, source: Optional[str]):
        self.text = text
        self.source = source or "<string>"
        self.hierarchy = ClassHierarchy()
        self.classes: Dict[str, JClass] = {}

    def error(self, message: str, pos: int) -> IRError:
        line = self.text.count("\n", 0, pos) + 1
        return IRError(f"{self.source}:{line}: {message}")

    def build(self, raw_classes: List[RawClass]) -> ClassHierarchy:
        for raw in raw_classes:
            if raw.name in self.classes:
                raise self.error(f"duplicate class {raw.name}", raw.pos)
            self.classes[raw.name] = JClass(
                raw.name,
                is_interface=raw.is_interface,
                is_abstract=raw.is_abstract,
            )
        for raw in raw_classes:
            self._link_supertypes(raw)
        for raw in raw_classes:
            self._check_acyclic(raw)
            self.hierarchy.add_class(self.classes[raw.name])

        bodies: List[Tuple[JMethod, RawMethod]] = []
        for raw in raw_classes:
            jclass = self.classes[raw.name]
            for raw_method in raw.methods:
                method = self._declare_method(jclass, raw_method)
                if raw_method.body is not None:
                    bodies.append((method, raw_method))
        for method, raw_method in bodies:
            method.ir = _BodyBuilder(self, method, raw_method).build()
        logger.debug(
            "Built hierarchy of %d classes, %d method bodies",
            len(self.hierarchy), len(bodies),
        )
        return self.hierarchy

    def lookup_class(self, name: str, pos: int) -> JClass:
        jclass = self.classes.get(name)
        if jclass is None:
            raise self.error(f"unknown class {name}", pos)
        return jclass

    def _link_supertypes(self, raw: RawClass) -> None:
        jclass = self.classes[raw.name]
        supers = [self.lookup_class(n, raw.pos) for n in raw.extends]
        ifaces = [self.lookup_class(n, raw.pos) for n in raw.implements]
        if raw.is_interface:
            if ifaces:
                raise self.error(f"interface {raw.name} cannot implement", raw.pos)
            ifaces = supers
            supers = []
        if len(supers) > 1:
            raise self.error(f"class {raw.name} extends more than one class", raw.pos)
        for sup in supers:
            if sup.is_interface:
                raise self.error(f"class {raw.name} extends interface {sup.name}", raw.pos)
        for iface in ifaces:
            if not iface.is_interface:
                raise self.error(f"{iface.name} is not an interface", raw.pos)
        jclass.super_class = supers[0] if supers else None
        jclass.interfaces = ifaces

    def _check_acyclic(self, raw: RawClass) -> None:
        seen = set()
        stack = [self.classes[raw.name]]
        while stack:
            jclass = stack.pop()
            parents = list(jclass.interfaces)
            if jclass.super_class is not None:
                parents.append(jclass.super_class)
            for parent in parents:
                if parent.name == raw.name:
                    raise self.error(f"cyclic inheritance involving {raw.name}", raw.pos)
                if parent not in seen:
                    seen.add(parent)
                    stack.append(parent)

    def _declare_method(self, jclass: JClass, raw: RawMethod) -> JMethod:
        subsig = Subsignature(
            raw.return_type, raw.name, tuple(t for t, _ in raw.params),
        )
        is_abstract = "abstract" in raw.modifiers or (
            jclass.is_interface and raw.body is None
        )
        if is_abstract and raw.body is not None:
            raise self.error(f"abstract method {subsig} has a body", raw.pos)
        method = JMethod(
            jclass,
            subsig,
            is_static="static" in raw.modifiers,
            is_abstract=is_abstract,
            is_private="private" in raw.modifiers,
            param_names=[n or f"p{i}" for i, (_, n) in enumerate(raw.params)],
        )
        try:
            return jclass.declare_method(method)
        except IRError as exc:
            raise self.error(str(exc), raw.pos) from exc


class _BodyBuilder:
    """Builds the IR of one method body."""

    def __init__(self, program: _ProgramBuilder, method: JMethod, raw: RawMethod):
        self.program = program
        self.method = method
        self.raw = raw
        self.vars: Dict[str, Var] = {}
        self.params: List[Var] = []

    def build(self) -> IR:
        for type_, name in self.raw.params:
            if name is None:
                raise self.program.error(
                    f"parameter of {self.method} needs a name", self.raw.pos
                )
            self.params.append(self._declare(name, type_, self.raw.pos))

        raw_stmts: List[RawStmt] = []
        for item in self.raw.body.items:
            if isinstance(item, RawLocals):
                for name in item.names:
                    self._declare(name, item.type, item.pos)
            else:
                raw_stmts.append(item)

        labels: Dict[str, int] = {}
        for i, raw in enumerate(raw_stmts):
            for label in raw.labels:
                if label in labels:
                    raise self.program.error(f"duplicate label {label}", raw.pos)
                labels[label] = i

        stmts = [self._stmt(raw) for raw in raw_stmts]
        for stmt, raw in zip(stmts, raw_stmts):
            self._resolve_targets(stmt, raw, stmts, labels)
            stmt.line = self.program.text.count("\n", 0, raw.pos) + 1
        return IR(self.method, self.params, list(self.vars.values()), stmts)

    def _declare(self, name: str, type_: Type, pos: int) -> Var:
        if name in self.vars:
            raise self.program.error(
                f"variable {name} declared twice in {self.method}", pos
            )
        var = Var(name, type_, self.method)
        self.vars[name] = var
        return var

    def _var(self, name: str, pos: int) -> Var:
        var = self.vars.get(name)
        if var is None:
            raise self.program.error(
                f"undeclared variable {name} in {self.method}", pos
            )
        return var

    def _atom(self, raw: RawAtom, pos: int) -> Atom:
        if isinstance(raw, int):
            return IntLiteral(raw)
        return self._var(raw, pos)

    def _stmt(self, raw: RawStmt) -> Stmt:
        pos = raw.pos
        if raw.kind == "if":
            lhs, op, rhs, _ = raw.args
            cond = BinaryExp(parse_operator(op), self._atom(lhs, pos), self._atom(rhs, pos))
            return If(cond)
        if raw.kind == "goto":
            return Goto()
        if raw.kind == "switch":
            var, cases, _ = raw.args
            return SwitchStmt(self._var(var, pos), [value for value, _ in cases])
        if raw.kind == "return":
            (value,) = raw.args
            return Return(self._var(value, pos) if value is not None else None)
        if raw.kind == "nop":
            return Nop()
        if raw.kind == "invoke":
            result, invoke = raw.args
            result_var = self._var(result, pos) if result is not None else None
            return Invoke(result_var, self._invoke_exp(invoke, pos))
        lvalue, rvalue = raw.args
        return AssignStmt(self._lvalue(lvalue, pos), self._rvalue(rvalue, pos))

    def _resolve_targets(
        self,
        stmt: Stmt,
        raw: RawStmt,
        stmts: List[Stmt],
        labels: Dict[str, int],
    ) -> None:
        def target(label: str) -> Stmt:
            if label not in labels:
                raise self.program.error(f"unknown label {label}", raw.pos)
            return stmts[labels[label]]

        if isinstance(stmt, If):
            stmt.target = target(raw.args[3])
        elif isinstance(stmt, Goto):
            stmt.target = target(raw.args[0])
        elif isinstance(stmt, SwitchStmt):
            _, cases, default = raw.args
            stmt.case_targets = [target(label) for _, label in cases]
            stmt.default_target = target(default)

    def _lvalue(self, raw: Tuple[Any, ...], pos: int) -> Exp:
        if raw[0] == "var":
            return self._var(raw[1], pos)
        return self._access(raw, pos)

    def _access(self, raw: Tuple[Any, ...], pos: int) -> Exp:
        if raw[0] == "array":
            return ArrayAccess(self._var(raw[1], pos), self._atom(raw[2], pos))
        _, base, field_name = raw
        if base in self.vars:
            return InstanceFieldAccess(self.vars[base], field_name)
        if base in self.program.classes:
            return StaticFieldAccess(base, field_name)
        raise self.program.error(f"unknown variable or class {base}", pos)

    def _rvalue(self, raw: Tuple[Any, ...], pos: int) -> Exp:
        kind = raw[0]
        if kind == "atom":
            return self._atom(raw[1], pos)
        if kind == "new":
            return NewExp(raw[1])
        if kind == "cast":
            return CastExp(raw[1], self._atom(raw[2], pos))
        if kind == "binary":
            _, lhs, op, rhs = raw
            return BinaryExp(parse_operator(op), self._atom(lhs, pos), self._atom(rhs, pos))
        return self._access(raw, pos)

    def _invoke_exp(self, raw: Tuple[Any, ...], pos: int) -> InvokeExp:
        kind, base, sig, args = raw
        jclass = self.program.lookup_class(sig.class_name, pos)
        subsig = Subsignature(sig.return_type, sig.name, tuple(sig.param_types))
        if len(args) != len(subsig.param_types):
            raise self.program.error(
                f"call to {subsig} passes {len(args)} arguments", pos
            )
        return InvokeExp(
            CallKind(kind),
            MethodRef(jclass, subsig),
            tuple(self._atom(a, pos) for a in args),
            self._var(base, pos) if base is not None else None,
        )


# ═══════════════════════════════════════════════════════════════════
#  PART 5 - PUBLIC API
# ═══════════════════════════════════════════════════════════════════

def parse_program(
    text: str,
    main: Optional[str] = None,
    source: Optional[str] = None,
) -> Program:
    """Parse *text* into a :class:`Program`.

    Parameters
    ----------
    main : str, optional
        Signature of the entry method, e.g. ``"<Main: void main()>"``.
        Defaults to the first static ``main`` method with a body.
    source : str, optional
        File name used in error messages.

    Raises
    ------
    IRParseError
        The text does not match the grammar.
    IRError
        The text is well-formed but refers to unknown classes, variables
        or labels, or redeclares them.
    """
    try:
        tree = IR_GRAMMAR.parse(text)
    except ParseError as exc:
        snippet = text[exc.pos:exc.pos + 20].split("\n")[0]
        raise IRParseError(
            f"syntax error at {snippet!r}", text, exc.pos, source
        ) from exc

    raw_classes = IRTreeBuilder().visit(tree)
    hierarchy = _ProgramBuilder(text, source).build(raw_classes)
    program = Program(hierarchy)
    if main is not None:
        program.set_main_method(hierarchy.resolve_method(main))
    return program


def load_program(path: Union[str, Path], main: Optional[str] = None) -> Program:
    """Read and parse the program stored at *path*."""
    path = Path(path)
    logger.info("Loading program from %s", path)
    return parse_program(path.read_text(encoding="utf-8"), main, str(path))
