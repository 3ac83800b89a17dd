"""
jflow.abstract_domains
======================

Abstract values and flow facts used by the dataflow analyses.

Constant lattice
----------------
::

              NAC
      / | ... | ... | \\
    …  -1     0     1  …
      \\ | ... | ... | /
             UNDEF

``UNDEF ⊑ Constant(c) ⊑ NAC`` for every ``c``; two distinct constants are
incomparable and meet to ``NAC``.  The lattice has height 3, so every
ascending chain of facts built from it stabilises.

Lattice laws (exercised by the test-suite):

    1. meet(a, b) = meet(b, a)                     (commutativity)
    2. meet(a, meet(b, c)) = meet(meet(a, b), c)   (associativity)
    3. meet(a, a) = a                              (idempotence)
    4. meet(a, UNDEF) = a                          (UNDEF is identity)
    5. meet(a, NAC) = NAC                          (NAC absorbs)

Public API
----------
    ValueKind   - UNDEF / CONSTANT / NAC tag
    Value       - immutable lattice element
    meet_value  - the lattice meet
    CPFact      - mutable map Var → Value (absent ⇒ UNDEF)
    SetFact     - mutable set fact (used by liveness)
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import (
    ClassVar,
    Dict,
    Generic,
    Iterable,
    Iterator,
    Optional,
    Set,
    Tuple,
    TypeVar,
)

from jflow.errors import LatticeError
from jflow.ir import Var

T = TypeVar("T")


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1 - CONSTANT LATTICE VALUES
# ═══════════════════════════════════════════════════════════════════════════

class ValueKind(enum.Enum):
    UNDEF = "undef"
    CONSTANT = "constant"
    NAC = "nac"


@dataclass(frozen=True, slots=True)
class Value:
    """
    Element of the constant-propagation lattice.

    Examples
    --------
    >>> Value.make_constant(7)
    Value(7)
    >>> meet_value(Value.make_constant(7), Value.make_constant(3))
    Value(NAC)
    >>> meet_value(Value.get_undef(), Value.make_constant(3))
    Value(3)
    """

    kind: ValueKind
    _constant: int = 0

    _NAC: ClassVar[Optional[Value]] = None
    _UNDEF: ClassVar[Optional[Value]] = None

    @classmethod
    def get_nac(cls) -> Value:
        if cls._NAC is None:
            cls._NAC = cls(ValueKind.NAC)
        return cls._NAC

    @classmethod
    def get_undef(cls) -> Value:
        if cls._UNDEF is None:
            cls._UNDEF = cls(ValueKind.UNDEF)
        return cls._UNDEF

    @classmethod
    def make_constant(cls, c: int) -> Value:
        return cls(ValueKind.CONSTANT, c)

    def is_nac(self) -> bool:
        return self.kind is ValueKind.NAC

    def is_undef(self) -> bool:
        return self.kind is ValueKind.UNDEF

    def is_constant(self) -> bool:
        return self.kind is ValueKind.CONSTANT

    @property
    def constant(self) -> int:
        if self.kind is not ValueKind.CONSTANT:
            raise LatticeError(f"{self} is not a constant")
        return self._constant

    def leq(self, other: Value) -> bool:
        """Partial order: UNDEF ⊑ Constant(c) ⊑ NAC."""
        if self.is_undef() or other.is_nac():
            return True
        return self == other

    def __str__(self) -> str:
        if self.kind is ValueKind.NAC:
            return "NAC"
        if self.kind is ValueKind.UNDEF:
            return "UNDEF"
        return str(self._constant)

    def __repr__(self) -> str:
        return f"Value({self})"


def meet_value(v1: Value, v2: Value) -> Value:
    """Meet of two lattice values."""
    if v1.is_nac() or v2.is_nac():
        return Value.get_nac()
    if v1.is_undef():
        return v2
    if v2.is_undef():
        return v1
    if v1.constant == v2.constant:
        return v1
    return Value.get_nac()


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2 - CONSTANT-PROPAGATION FACT  (Var → Value, pointwise)
# ═══════════════════════════════════════════════════════════════════════════
#
#  Absent keys are UNDEF and UNDEF is never stored: ``update(v, UNDEF)``
#  removes ``v``.  Two facts are therefore equal iff their maps are equal.
# ═══════════════════════════════════════════════════════════════════════════

class CPFact:
    """
    Abstract environment of constant propagation: ``Var → Value``.

    Facts are mutable and owned by exactly one program point (the IN or
    OUT of one node); use :meth:`copy` to hand a fact to someone else.
    """

    __slots__ = ("_map",)

    def __init__(self, mapping: Optional[Dict[Var, Value]] = None):
        self._map: Dict[Var, Value] = {}
        if mapping:
            for var, value in mapping.items():
                self.update(var, value)

    def get(self, var: Var) -> Value:
        return self._map.get(var, Value.get_undef())

    def update(self, var: Var, value: Value) -> bool:
        """Bind *var* to *value*; return whether the fact changed."""
        if value.is_undef():
            return self._map.pop(var, None) is not None
        old = self._map.get(var)
        self._map[var] = value
        return old != value

    def remove(self, var: Var) -> Value:
        return self._map.pop(var, Value.get_undef())

    def copy_from(self, other: CPFact) -> bool:
        """Point-wise overwrite with *other*; keys only in self are kept."""
        changed = False
        for var, value in other._map.items():
            changed |= self.update(var, value)
        return changed

    def meet_into(self, target: CPFact) -> None:
        """``target := target ⊓ self``, point-wise."""
        for var, value in self._map.items():
            target.update(var, meet_value(value, target.get(var)))

    def copy(self) -> CPFact:
        fact = CPFact()
        fact._map = dict(self._map)
        return fact

    def clear(self) -> None:
        self._map.clear()

    def keys(self) -> Iterator[Var]:
        return iter(list(self._map))

    def items(self) -> Iterator[Tuple[Var, Value]]:
        return iter(list(self._map.items()))

    def __contains__(self, var: object) -> bool:
        return var in self._map

    def __len__(self) -> int:
        return len(self._map)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CPFact):
            return self._map == other._map
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        entries = sorted(self._map.items(), key=lambda kv: kv[0].name)
        return "{" + ", ".join(f"{v.name}={val}" for v, val in entries) + "}"

    def __repr__(self) -> str:
        return f"CPFact({self})"


# ═══════════════════════════════════════════════════════════════════════════
#  PART 3 - SET FACT
# ═══════════════════════════════════════════════════════════════════════════

class SetFact(Generic[T]):
    """Mutable set-valued flow fact (union/intersection lattice)."""

    __slots__ = ("_set",)

    def __init__(self, elements: Iterable[T] = ()):
        self._set: Set[T] = set(elements)

    def contains(self, e: T) -> bool:
        return e in self._set

    def add(self, e: T) -> bool:
        if e in self._set:
            return False
        self._set.add(e)
        return True

    def remove(self, e: T) -> bool:
        if e not in self._set:
            return False
        self._set.discard(e)
        return True

    def union(self, other: SetFact[T]) -> bool:
        """In-place union; return whether the fact grew."""
        before = len(self._set)
        self._set |= other._set
        return len(self._set) != before

    def intersect(self, other: SetFact[T]) -> bool:
        before = len(self._set)
        self._set &= other._set
        return len(self._set) != before

    def set_to(self, other: SetFact[T]) -> bool:
        """Overwrite with *other*; return whether the contents changed."""
        if self._set == other._set:
            return False
        self._set = set(other._set)
        return True

    def copy(self) -> SetFact[T]:
        return SetFact(self._set)

    def is_empty(self) -> bool:
        return not self._set

    def __iter__(self) -> Iterator[T]:
        return iter(self._set)

    def __contains__(self, e: object) -> bool:
        return e in self._set

    def __len__(self) -> int:
        return len(self._set)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SetFact):
            return self._set == other._set
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        return "{" + ", ".join(sorted(str(e) for e in self._set)) + "}"

    def __repr__(self) -> str:
        return f"SetFact({self})"
