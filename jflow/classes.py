"""
jflow.classes
=============

Classes, methods and the class hierarchy of an analysed program.

The hierarchy answers the queries class-hierarchy analysis needs:
declared methods by subsignature, superclass lookup, and the direct
subclasses, subinterfaces and implementors of a type.  A
:class:`Program` bundles the hierarchy with the program entry point and
is handed explicitly to every component that needs program-wide
information.

Public API
----------
    Subsignature    - method name + parameter and return types
    JMethod         - a declared method (possibly with an IR body)
    JClass          - a declared class or interface
    MethodRef       - a (declaring class, subsignature) reference at a call site
    ClassHierarchy  - name → class table with subtype indexes
    Program         - hierarchy + main method
    parse_signature - ``"<A: int f(int)>"`` → (class name, Subsignature)
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from typing import (
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
)

from jflow.errors import IRError
from jflow.ir import IR, PrimitiveType, Type, parse_type

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Signatures
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Subsignature:
    """``int foo(int,int)``: what identifies a method within its class."""

    return_type: Type
    name: str
    param_types: Tuple[Type, ...] = ()

    def __str__(self) -> str:
        params = ",".join(str(t) for t in self.param_types)
        return f"{self.return_type} {self.name}({params})"

    @classmethod
    def parse(cls, text: str) -> Subsignature:
        m = _SUBSIG_RE.fullmatch(text.strip())
        if m is None:
            raise IRError(f"malformed method subsignature: {text!r}")
        ret, name, params = m.groups()
        param_types = tuple(
            parse_type(p) for p in params.split(",") if p.strip()
        )
        return cls(parse_type(ret), name, param_types)


_SUBSIG_RE = re.compile(r"([\w.$\[\]]+)\s+([\w$<>]+)\s*\(([^)]*)\)")
_SIG_RE = re.compile(r"<\s*([\w.$]+)\s*:\s*(.+?)\s*>")


def parse_signature(text: str) -> Tuple[str, Subsignature]:
    """Split ``"<A: int foo(int)>"`` into ``("A", Subsignature(...))``."""
    m = _SIG_RE.fullmatch(text.strip())
    if m is None:
        raise IRError(f"malformed method signature: {text!r}")
    return m.group(1), Subsignature.parse(m.group(2))


# ---------------------------------------------------------------------------
# Methods and classes
# ---------------------------------------------------------------------------

class JMethod:
    """A method declared in a class or interface."""

    __slots__ = (
        "declaring_class", "subsignature", "is_static", "is_abstract",
        "is_private", "param_names", "ir",
    )

    def __init__(
        self,
        declaring_class: "JClass",
        subsignature: Subsignature,
        *,
        is_static: bool = False,
        is_abstract: bool = False,
        is_private: bool = False,
        param_names: Sequence[str] = (),
    ):
        self.declaring_class = declaring_class
        self.subsignature = subsignature
        self.is_static = is_static
        self.is_abstract = is_abstract
        self.is_private = is_private
        self.param_names = list(param_names)
        self.ir: Optional[IR] = None

    @property
    def name(self) -> str:
        return self.subsignature.name

    @property
    def signature(self) -> str:
        return f"<{self.declaring_class.name}: {self.subsignature}>"

    @property
    def return_type(self) -> Type:
        return self.subsignature.return_type

    def is_constructor(self) -> bool:
        return self.subsignature.name == "<init>"

    def has_body(self) -> bool:
        return self.ir is not None

    def get_ir(self) -> IR:
        if self.ir is None:
            raise IRError(f"method {self.signature} has no body")
        return self.ir

    def returns_value(self) -> bool:
        return self.subsignature.return_type is not PrimitiveType.VOID

    def __str__(self) -> str:
        return self.signature

    def __repr__(self) -> str:
        return f"JMethod({self.signature})"


class JClass:
    """A declared class or interface."""

    __slots__ = (
        "name", "is_interface", "is_abstract", "super_class", "interfaces",
        "_methods",
    )

    def __init__(
        self,
        name: str,
        *,
        is_interface: bool = False,
        is_abstract: bool = False,
        super_class: Optional[JClass] = None,
        interfaces: Sequence[JClass] = (),
    ):
        self.name = name
        self.is_interface = is_interface
        self.is_abstract = is_abstract or is_interface
        self.super_class = super_class
        self.interfaces: List[JClass] = list(interfaces)
        self._methods: Dict[Subsignature, JMethod] = {}

    def declare_method(self, method: JMethod) -> JMethod:
        if method.subsignature in self._methods:
            raise IRError(
                f"duplicate method {method.subsignature} in class {self.name}"
            )
        self._methods[method.subsignature] = method
        return method

    def get_declared_method(self, subsignature: Subsignature) -> Optional[JMethod]:
        return self._methods.get(subsignature)

    @property
    def declared_methods(self) -> List[JMethod]:
        return list(self._methods.values())

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        kind = "interface" if self.is_interface else "class"
        return f"JClass({kind} {self.name})"


@dataclass(frozen=True, slots=True)
class MethodRef:
    """A method as named at a call site: declaring class + subsignature."""

    declaring_class: JClass
    subsignature: Subsignature

    def resolve(self) -> Optional[JMethod]:
        """The method declared directly on the referenced class, if any."""
        return self.declaring_class.get_declared_method(self.subsignature)

    def __str__(self) -> str:
        return f"<{self.declaring_class.name}: {self.subsignature}>"


# ---------------------------------------------------------------------------
# Class hierarchy
# ---------------------------------------------------------------------------

class ClassHierarchy:
    """
    All classes of a program, indexed by name and by direct subtypes.

    Classes must be added after their superclass and superinterfaces are
    linked (the objects, not necessarily added yet); the subtype indexes
    are maintained incrementally.
    """

    def __init__(self, classes: Iterable[JClass] = ()):
        self._classes: Dict[str, JClass] = {}
        self._direct_subclasses: Dict[JClass, List[JClass]] = defaultdict(list)
        self._direct_subinterfaces: Dict[JClass, List[JClass]] = defaultdict(list)
        self._direct_implementors: Dict[JClass, List[JClass]] = defaultdict(list)
        for jclass in classes:
            self.add_class(jclass)

    def add_class(self, jclass: JClass) -> None:
        if jclass.name in self._classes:
            raise IRError(f"duplicate class {jclass.name}")
        self._classes[jclass.name] = jclass
        if jclass.super_class is not None:
            self._direct_subclasses[jclass.super_class].append(jclass)
        for iface in jclass.interfaces:
            if jclass.is_interface:
                self._direct_subinterfaces[iface].append(jclass)
            else:
                self._direct_implementors[iface].append(jclass)

    def get_class(self, name: str) -> Optional[JClass]:
        return self._classes.get(name)

    def all_classes(self) -> Iterator[JClass]:
        return iter(self._classes.values())

    def all_methods(self) -> Iterator[JMethod]:
        for jclass in self._classes.values():
            yield from jclass.declared_methods

    def direct_subclasses_of(self, jclass: JClass) -> List[JClass]:
        return list(self._direct_subclasses.get(jclass, ()))

    def direct_subinterfaces_of(self, jclass: JClass) -> List[JClass]:
        return list(self._direct_subinterfaces.get(jclass, ()))

    def direct_implementors_of(self, jclass: JClass) -> List[JClass]:
        return list(self._direct_implementors.get(jclass, ()))

    def resolve_method(self, signature: str) -> JMethod:
        """Look up a method by its full signature ``<A: int f(int)>``."""
        class_name, subsig = parse_signature(signature)
        jclass = self.get_class(class_name)
        if jclass is None:
            raise IRError(f"unknown class {class_name} in {signature}")
        method = jclass.get_declared_method(subsig)
        if method is None:
            raise IRError(f"unknown method {signature}")
        return method

    def __len__(self) -> int:
        return len(self._classes)

    def __contains__(self, name: object) -> bool:
        return name in self._classes


# ---------------------------------------------------------------------------
# Program context
# ---------------------------------------------------------------------------

class Program:
    """
    The analysed program: its class hierarchy and its entry point.

    If no main method is given, the first static method named ``main``
    is used.
    """

    def __init__(
        self,
        hierarchy: ClassHierarchy,
        main_method: Optional[JMethod] = None,
    ):
        self.hierarchy = hierarchy
        self._main_method = main_method

    @property
    def main_method(self) -> Optional[JMethod]:
        if self._main_method is None:
            for method in self.hierarchy.all_methods():
                if method.is_static and method.name == "main" and method.has_body():
                    self._main_method = method
                    logger.debug("Using %s as main method", method.signature)
                    break
        return self._main_method

    def set_main_method(self, method: JMethod) -> None:
        self._main_method = method

    def get_method(self, signature: str) -> JMethod:
        return self.hierarchy.resolve_method(signature)

    def methods_with_body(self) -> List[JMethod]:
        return [m for m in self.hierarchy.all_methods() if m.has_body()]

    def __repr__(self) -> str:
        return (
            f"Program({len(self.hierarchy)} classes, "
            f"main={self._main_method and self._main_method.signature})"
        )
