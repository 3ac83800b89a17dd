"""
jflow.ir
========

Three-address intermediate representation of method bodies.

A method body (:class:`IR`) is a flat, indexed list of statements over
typed local variables.  Expressions are shallow: operands of binary
expressions, casts, array indices and call arguments are variables or
integer literals, never nested expressions.

Public API
----------
    PrimitiveType   - Java primitive types (``int``, ``boolean``, ...)
    ClassType       - reference type naming a class or interface
    ArrayType       - reference type of an array
    parse_type      - ``"int[]"`` → ``ArrayType(PrimitiveType.INT)``
    Var             - a typed local variable (identity compared)
    IntLiteral      - integer constant operand
    BinaryExp       - ``a op b`` with one of the operator enums below
    ArithmeticOp, ConditionOp, ShiftOp, BitwiseOp
    NewExp, CastExp, InstanceFieldAccess, StaticFieldAccess, ArrayAccess
    CallKind        - invocation kinds (static/special/virtual/interface)
    InvokeExp       - method invocation expression
    Stmt, DefinitionStmt, AssignStmt, Invoke, If, Goto, SwitchStmt,
    Return, Nop     - statements
    IR              - a method body with per-analysis result storage
"""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

if TYPE_CHECKING:
    from jflow.classes import JMethod, MethodRef


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1 - TYPES
# ═══════════════════════════════════════════════════════════════════════════

class PrimitiveType(enum.Enum):
    BYTE = "byte"
    SHORT = "short"
    INT = "int"
    LONG = "long"
    FLOAT = "float"
    DOUBLE = "double"
    CHAR = "char"
    BOOLEAN = "boolean"
    VOID = "void"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class ClassType:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True, slots=True)
class ArrayType:
    element: "Type"

    def __str__(self) -> str:
        return f"{self.element}[]"


Type = Union[PrimitiveType, ClassType, ArrayType]

_PRIMITIVES: Dict[str, PrimitiveType] = {p.value: p for p in PrimitiveType}


def parse_type(text: str) -> Type:
    """Parse a type name such as ``int``, ``A`` or ``int[][]``."""
    text = text.strip()
    if text.endswith("[]"):
        return ArrayType(parse_type(text[:-2]))
    return _PRIMITIVES.get(text) or ClassType(text)


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2 - EXPRESSIONS
# ═══════════════════════════════════════════════════════════════════════════

class Exp:
    """Base class of every expression."""

    __slots__ = ()

    def get_uses(self) -> Tuple["Var", ...]:
        """Variables read when evaluating this expression."""
        return ()


class Var(Exp):
    """
    A local variable of a method body.

    Variables are compared by identity: two ``Var`` objects with the same
    name in different methods are different variables.
    """

    __slots__ = ("name", "type", "method")

    def __init__(self, name: str, type: Type, method: Optional["JMethod"] = None):
        self.name = name
        self.type = type
        self.method = method

    def get_uses(self) -> Tuple["Var", ...]:
        return (self,)

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"Var({self.name}: {self.type})"


@dataclass(frozen=True, slots=True)
class IntLiteral(Exp):
    value: int

    def __str__(self) -> str:
        return str(self.value)


Atom = Union[Var, IntLiteral]


class ArithmeticOp(enum.Enum):
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    REM = "%"


class ConditionOp(enum.Enum):
    EQ = "=="
    NE = "!="
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="


class ShiftOp(enum.Enum):
    SHL = "<<"
    SHR = ">>"
    USHR = ">>>"


class BitwiseOp(enum.Enum):
    OR = "|"
    AND = "&"
    XOR = "^"


BinaryOp = Union[ArithmeticOp, ConditionOp, ShiftOp, BitwiseOp]

_OPERATORS: Dict[str, BinaryOp] = {
    op.value: op
    for enum_cls in (ArithmeticOp, ConditionOp, ShiftOp, BitwiseOp)
    for op in enum_cls
}


def parse_operator(symbol: str) -> BinaryOp:
    return _OPERATORS[symbol]


@dataclass(frozen=True, slots=True, eq=False)
class BinaryExp(Exp):
    op: BinaryOp
    operand1: Atom
    operand2: Atom

    def get_uses(self) -> Tuple[Var, ...]:
        return self.operand1.get_uses() + self.operand2.get_uses()

    def __str__(self) -> str:
        return f"{self.operand1} {self.op.value} {self.operand2}"


@dataclass(frozen=True, slots=True, eq=False)
class NewExp(Exp):
    type: Type

    def __str__(self) -> str:
        return f"new {self.type}"


@dataclass(frozen=True, slots=True, eq=False)
class CastExp(Exp):
    cast_type: Type
    value: Atom

    def get_uses(self) -> Tuple[Var, ...]:
        return self.value.get_uses()

    def __str__(self) -> str:
        return f"({self.cast_type}) {self.value}"


class FieldAccess(Exp):
    """Base of instance and static field accesses."""

    __slots__ = ()


@dataclass(frozen=True, slots=True, eq=False)
class InstanceFieldAccess(FieldAccess):
    base: Var
    field_name: str

    def get_uses(self) -> Tuple[Var, ...]:
        return (self.base,)

    def __str__(self) -> str:
        return f"{self.base}.{self.field_name}"


@dataclass(frozen=True, slots=True, eq=False)
class StaticFieldAccess(FieldAccess):
    class_name: str
    field_name: str

    def __str__(self) -> str:
        return f"{self.class_name}.{self.field_name}"


@dataclass(frozen=True, slots=True, eq=False)
class ArrayAccess(Exp):
    base: Var
    index: Atom

    def get_uses(self) -> Tuple[Var, ...]:
        return (self.base,) + self.index.get_uses()

    def __str__(self) -> str:
        return f"{self.base}[{self.index}]"


class CallKind(enum.Enum):
    """How the target of an invocation is selected."""
    STATIC = "static"
    SPECIAL = "special"
    VIRTUAL = "virtual"
    INTERFACE = "interface"

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True, slots=True, eq=False)
class InvokeExp(Exp):
    kind: CallKind
    method_ref: "MethodRef"
    args: Tuple[Atom, ...]
    base: Optional[Var] = None

    def get_uses(self) -> Tuple[Var, ...]:
        uses: Tuple[Var, ...] = (self.base,) if self.base is not None else ()
        for arg in self.args:
            uses += arg.get_uses()
        return uses

    def __str__(self) -> str:
        args = ", ".join(str(a) for a in self.args)
        receiver = f"{self.base}." if self.base is not None else ""
        return f"invoke{self.kind.value} {receiver}{self.method_ref}({args})"


LValue = Union[Var, FieldAccess, ArrayAccess]


# ═══════════════════════════════════════════════════════════════════════════
#  PART 3 - STATEMENTS
# ═══════════════════════════════════════════════════════════════════════════

class Stmt:
    """
    Base class of all statements.

    ``index`` is the position of the statement in its method body and
    ``container`` the method owning it; both are filled in by :class:`IR`.
    """

    __slots__ = ("index", "container", "line")

    def __init__(self) -> None:
        self.index = -1
        self.container: Optional["JMethod"] = None
        self.line = -1

    def get_def(self) -> Optional[Var]:
        """The variable written by this statement, if any."""
        return None

    def get_uses(self) -> Tuple[Var, ...]:
        """The variables read by this statement."""
        return ()

    def can_fall_through(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"{type(self).__name__}[{self.index}: {self}]"


class DefinitionStmt(Stmt, abc.ABC):
    """A statement with a left-hand side and a right-hand side."""

    __slots__ = ()

    @property
    @abc.abstractmethod
    def lvalue(self) -> Optional[LValue]:
        ...

    @property
    @abc.abstractmethod
    def rvalue(self) -> Exp:
        ...


class AssignStmt(DefinitionStmt):
    __slots__ = ("_lvalue", "_rvalue")

    def __init__(self, lvalue: LValue, rvalue: Exp):
        super().__init__()
        self._lvalue = lvalue
        self._rvalue = rvalue

    @property
    def lvalue(self) -> LValue:
        return self._lvalue

    @property
    def rvalue(self) -> Exp:
        return self._rvalue

    def get_def(self) -> Optional[Var]:
        return self._lvalue if isinstance(self._lvalue, Var) else None

    def get_uses(self) -> Tuple[Var, ...]:
        uses = self._rvalue.get_uses()
        if not isinstance(self._lvalue, Var):
            uses = self._lvalue.get_uses() + uses
        return uses

    def __str__(self) -> str:
        return f"{self._lvalue} = {self._rvalue}"


class Invoke(DefinitionStmt):
    """A call site: ``[result =] invoke...``."""

    __slots__ = ("result", "invoke_exp")

    def __init__(self, result: Optional[Var], invoke_exp: InvokeExp):
        super().__init__()
        self.result = result
        self.invoke_exp = invoke_exp

    @property
    def lvalue(self) -> Optional[Var]:
        return self.result

    @property
    def rvalue(self) -> InvokeExp:
        return self.invoke_exp

    @property
    def method_ref(self) -> "MethodRef":
        return self.invoke_exp.method_ref

    @property
    def kind(self) -> CallKind:
        return self.invoke_exp.kind

    def is_static(self) -> bool:
        return self.invoke_exp.kind is CallKind.STATIC

    def get_def(self) -> Optional[Var]:
        return self.result

    def get_uses(self) -> Tuple[Var, ...]:
        return self.invoke_exp.get_uses()

    def __str__(self) -> str:
        if self.result is None:
            return str(self.invoke_exp)
        return f"{self.result} = {self.invoke_exp}"


class JumpStmt(Stmt, abc.ABC):
    """Base of statements that transfer control to explicit targets."""

    __slots__ = ()

    @abc.abstractmethod
    def targets(self) -> List[Stmt]:
        ...


class If(JumpStmt):
    __slots__ = ("condition", "target")

    def __init__(self, condition: BinaryExp, target: Optional[Stmt] = None):
        super().__init__()
        self.condition = condition
        self.target = target

    def targets(self) -> List[Stmt]:
        return [self.target] if self.target is not None else []

    def get_uses(self) -> Tuple[Var, ...]:
        return self.condition.get_uses()

    def __str__(self) -> str:
        where = self.target.index if self.target is not None else "?"
        return f"if ({self.condition}) goto {where}"


class Goto(JumpStmt):
    __slots__ = ("target",)

    def __init__(self, target: Optional[Stmt] = None):
        super().__init__()
        self.target = target

    def targets(self) -> List[Stmt]:
        return [self.target] if self.target is not None else []

    def can_fall_through(self) -> bool:
        return False

    def __str__(self) -> str:
        where = self.target.index if self.target is not None else "?"
        return f"goto {where}"


class SwitchStmt(JumpStmt):
    """``switch (var) { case v: goto L; ... default: goto D; }``"""

    __slots__ = ("var", "case_values", "case_targets", "default_target")

    def __init__(
        self,
        var: Var,
        case_values: Sequence[int],
        case_targets: Optional[List[Stmt]] = None,
        default_target: Optional[Stmt] = None,
    ):
        super().__init__()
        self.var = var
        self.case_values = list(case_values)
        self.case_targets: List[Stmt] = list(case_targets or [])
        self.default_target = default_target

    def get_case_target_pairs(self) -> List[Tuple[int, Stmt]]:
        return list(zip(self.case_values, self.case_targets))

    def targets(self) -> List[Stmt]:
        out = list(self.case_targets)
        if self.default_target is not None:
            out.append(self.default_target)
        return out

    def get_uses(self) -> Tuple[Var, ...]:
        return (self.var,)

    def can_fall_through(self) -> bool:
        return False

    def __str__(self) -> str:
        cases = ", ".join(
            f"{v}->{t.index}" for v, t in self.get_case_target_pairs()
        )
        default = self.default_target.index if self.default_target else "?"
        return f"switch ({self.var}) {{{cases}, default->{default}}}"


class Return(Stmt):
    __slots__ = ("value",)

    def __init__(self, value: Optional[Atom] = None):
        super().__init__()
        self.value = value

    def get_uses(self) -> Tuple[Var, ...]:
        return self.value.get_uses() if self.value is not None else ()

    def can_fall_through(self) -> bool:
        return False

    def __str__(self) -> str:
        return "return" if self.value is None else f"return {self.value}"


class Nop(Stmt):
    __slots__ = ()

    def __str__(self) -> str:
        return "nop"


# ═══════════════════════════════════════════════════════════════════════════
#  PART 4 - METHOD BODIES
# ═══════════════════════════════════════════════════════════════════════════

class IR:
    """
    The body of one method.

    Besides the statements, an ``IR`` carries a small result store so that
    analyses can publish results under their id and later analyses can
    consume them (``cfg``, ``constprop``, ``livevar``, ...).
    """

    def __init__(
        self,
        method: "JMethod",
        params: Sequence[Var],
        variables: Sequence[Var],
        stmts: Sequence[Stmt],
    ):
        self.method = method
        self.params: List[Var] = list(params)
        self.vars: List[Var] = list(variables)
        self.stmts: List[Stmt] = list(stmts)
        for i, stmt in enumerate(self.stmts):
            stmt.index = i
            stmt.container = method
        for var in self.vars:
            var.method = method
        self.return_vars: List[Var] = []
        for stmt in self.stmts:
            if (isinstance(stmt, Return) and isinstance(stmt.value, Var)
                    and stmt.value not in self.return_vars):
                self.return_vars.append(stmt.value)
        self._results: Dict[str, Any] = {}

    def get_param(self, i: int) -> Var:
        return self.params[i]

    def get_stmt(self, i: int) -> Stmt:
        return self.stmts[i]

    def invokes(self) -> Iterator[Invoke]:
        for stmt in self.stmts:
            if isinstance(stmt, Invoke):
                yield stmt

    def store_result(self, key: str, result: Any) -> None:
        self._results[key] = result

    def get_result(self, key: str) -> Any:
        return self._results[key]

    def has_result(self, key: str) -> bool:
        return key in self._results

    def clear_results(self) -> None:
        self._results.clear()

    def __iter__(self) -> Iterator[Stmt]:
        return iter(self.stmts)

    def __len__(self) -> int:
        return len(self.stmts)

    def __repr__(self) -> str:
        return f"IR({self.method}, {len(self.stmts)} stmts)"
