"""
Schema type model and its alias type sets.

Types appearing in an operator schema are modelled as small frozen
dataclasses so that two independently parsed schemas compare equal
structurally. Each type knows its directly contained types; the alias
type set helpers below decide which types can ever share storage:

    Tensor, T[], Dict(K, V)   ->  {type}
    Any                       ->  {Any}
    T?                        ->  alias set of T
    Union(A, B)               ->  alias set of A  ∪  alias set of B
    (A, B)                    ->  {(aliasable members of A, B)}
    int, float, t, ...        ->  None   (never aliasable)

An alias type set is a frozenset of types; ``None`` stands for "this type
can never alias anything".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple


AliasTypeSet = FrozenSet["SchemaType"]


# Primitive type names accepted by the schema parser.
PRIMITIVE_TYPE_NAMES = frozenset({
    "int",
    "float",
    "bool",
    "str",
    "complex",
    "Scalar",
    "ScalarType",
    "Layout",
    "Device",
    "DeviceIndex",
    "MemoryFormat",
    "Generator",
    "Storage",
    "Stream",
    "Dimname",
    "QScheme",
    "SymInt",
    "SymFloat",
    "SymBool",
    "NoneType",
})


class SchemaType:
    """Base class for all schema types."""

    def contained_types(self) -> Tuple[SchemaType, ...]:
        return ()

    def annotation_str(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.annotation_str()


@dataclass(frozen=True)
class TensorType(SchemaType):
    def annotation_str(self) -> str:
        return "Tensor"


@dataclass(frozen=True)
class AnyType(SchemaType):
    def annotation_str(self) -> str:
        return "Any"


@dataclass(frozen=True)
class PrimitiveType(SchemaType):
    """A scalar-like type (int, float, Scalar, Device, ...)."""
    name: str

    def annotation_str(self) -> str:
        return self.name


@dataclass(frozen=True)
class TypeVariable(SchemaType):
    """A lower-case type variable such as ``t`` in ``t[] self``."""
    name: str

    def annotation_str(self) -> str:
        return self.name


@dataclass(frozen=True)
class ListType(SchemaType):
    element: SchemaType

    def contained_types(self) -> Tuple[SchemaType, ...]:
        return (self.element,)

    def annotation_str(self) -> str:
        return f"{self.element.annotation_str()}[]"


@dataclass(frozen=True)
class OptionalType(SchemaType):
    element: SchemaType

    def contained_types(self) -> Tuple[SchemaType, ...]:
        return (self.element,)

    def annotation_str(self) -> str:
        return f"{self.element.annotation_str()}?"


@dataclass(frozen=True)
class DictType(SchemaType):
    key: SchemaType
    value: SchemaType

    def contained_types(self) -> Tuple[SchemaType, ...]:
        return (self.key, self.value)

    def annotation_str(self) -> str:
        return f"Dict({self.key.annotation_str()}, {self.value.annotation_str()})"


@dataclass(frozen=True)
class TupleType(SchemaType):
    elements: Tuple[SchemaType, ...]

    def contained_types(self) -> Tuple[SchemaType, ...]:
        return self.elements

    def annotation_str(self) -> str:
        return "(" + ", ".join(e.annotation_str() for e in self.elements) + ")"


@dataclass(frozen=True)
class UnionType(SchemaType):
    members: Tuple[SchemaType, ...]

    def contained_types(self) -> Tuple[SchemaType, ...]:
        return self.members

    def annotation_str(self) -> str:
        return "Union(" + ", ".join(m.annotation_str() for m in self.members) + ")"


@dataclass(frozen=True)
class FutureType(SchemaType):
    """``Future(T)``, ``RRef(T)`` and ``Await(T)`` wrappers."""
    kind: str
    element: SchemaType

    def contained_types(self) -> Tuple[SchemaType, ...]:
        return (self.element,)

    def annotation_str(self) -> str:
        return f"{self.kind}({self.element.annotation_str()})"


def map_type_to_alias_type_set(schema_type: SchemaType) -> Optional[AliasTypeSet]:
    """
    Map a schema type to the set of types it may alias through.

    Returns None when values of this type can never alias.
    """
    if isinstance(schema_type, (TensorType, ListType, DictType, AnyType)):
        return frozenset({schema_type})

    if isinstance(schema_type, OptionalType):
        return map_type_to_alias_type_set(schema_type.element)

    if isinstance(schema_type, UnionType):
        mutable_types = set()
        for member in schema_type.members:
            inner = map_type_to_alias_type_set(member)
            if inner is not None:
                mutable_types.update(inner)
        if not mutable_types:
            return None
        return frozenset(mutable_types)

    if isinstance(schema_type, TupleType):
        mutable_types = []
        for element in schema_type.elements:
            inner = map_type_to_alias_type_set(element)
            if inner is not None:
                for t in sorted(inner, key=str):
                    if t not in mutable_types:
                        mutable_types.append(t)
        if not mutable_types:
            return None
        return frozenset({TupleType(tuple(mutable_types))})

    return None


def can_alias_type_sets_alias(
    lhs: Optional[AliasTypeSet],
    rhs: Optional[AliasTypeSet],
) -> bool:
    """True if both sets exist and share at least one type."""
    if lhs is None or rhs is None:
        return False
    return not lhs.isdisjoint(rhs)


def get_alias_type_set_contained_types(
    alias_type_set: Optional[AliasTypeSet],
) -> Optional[AliasTypeSet]:
    """
    Transitive closure of the types contained in an alias type set.

    For ``{Tensor[][]}`` this is ``{Tensor[], Tensor}``. The types of the
    set itself are not included unless they are reachable from a member.
    """
    if alias_type_set is None:
        return None

    contained = set()
    stack = []
    for schema_type in alias_type_set:
        stack.extend(schema_type.contained_types())

    while stack:
        current = stack.pop()
        if current not in contained:
            stack.extend(current.contained_types())
        contained.add(current)

    return frozenset(contained)
