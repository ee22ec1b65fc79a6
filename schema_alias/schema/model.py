"""
Declarative operator schema model.

A ``FunctionSchema`` is the parsed form of a signature such as

    aten::add_.Tensor(Tensor(a!) self, Tensor other, *, Scalar alpha=1) -> Tensor(a!)

Arguments and returns carry an optional ``AliasInfo`` holding the alias
sets the value belongs to before and after the call, and whether the call
writes to it. The predicates on ``FunctionSchema`` only look at these
declarations; value-dependent reasoning lives in ``schema_alias.analysis``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, FrozenSet, Optional, Tuple, Union

from .types import (
    ListType,
    OptionalType,
    PrimitiveType,
    SchemaType,
    can_alias_type_sets_alias,
    get_alias_type_set_contained_types,
    map_type_to_alias_type_set,
)


ALIAS_NAMESPACE = "alias::"
WILDCARD_SET = "alias::*"


def alias_set(name: str) -> str:
    """Qualify a bare alias set name (``a`` -> ``alias::a``)."""
    if name == "*":
        return WILDCARD_SET
    return f"{ALIAS_NAMESPACE}{name}"


# =============================================================================
# ARGUMENT REFERENCES
# =============================================================================

class SchemaArgType(Enum):
    """Which list of the schema an argument reference points into."""
    INPUT = "input"
    OUTPUT = "output"


@dataclass(frozen=True)
class SchemaArgument:
    """Reference to one argument (INPUT) or return (OUTPUT) slot."""
    role: SchemaArgType
    index: int

    @classmethod
    def input(cls, index: int) -> SchemaArgument:
        return cls(SchemaArgType.INPUT, index)

    @classmethod
    def output(cls, index: int) -> SchemaArgument:
        return cls(SchemaArgType.OUTPUT, index)

    def __str__(self) -> str:
        return f"{self.role.value}[{self.index}]"


# =============================================================================
# ALIAS ANNOTATIONS
# =============================================================================

@dataclass(frozen=True)
class AliasInfo:
    """
    Alias annotation of one argument or return.

    ``Tensor(a! -> a|b)`` has before set {a}, after sets {a, b} and is a
    write. For ``Tensor(a)[]`` the list itself carries an empty annotation
    and the element annotation lives in ``contained_types``.
    """
    before_sets: FrozenSet[str] = frozenset()
    after_sets: FrozenSet[str] = frozenset()
    is_write: bool = False
    contained_types: Tuple[AliasInfo, ...] = ()

    @property
    def is_wildcard_before(self) -> bool:
        return WILDCARD_SET in self.before_sets

    @property
    def is_wildcard_after(self) -> bool:
        return WILDCARD_SET in self.after_sets

    def __str__(self) -> str:
        def fmt(sets):
            return "|".join(sorted(s[len(ALIAS_NAMESPACE):] for s in sets))

        # bare `!`: a write to an unnamed set
        if self.is_write and self.before_sets and not self.after_sets and all(
            s.startswith(f"{ALIAS_NAMESPACE}$") for s in self.before_sets
        ):
            return "!"

        text = fmt(self.before_sets)
        if self.is_write:
            text += "!"
        if self.after_sets != self.before_sets:
            text += " -> " + fmt(self.after_sets)
        return f"({text})"


@dataclass(frozen=True)
class Argument:
    """One entry of a schema's argument or return list."""
    name: str
    type: SchemaType
    n: Optional[int] = None
    has_default: bool = False
    default_value: Any = None
    kwarg_only: bool = False
    alias_info: Optional[AliasInfo] = None

    @property
    def is_write(self) -> bool:
        return self.alias_info is not None and self.alias_info.is_write

    def __str__(self) -> str:
        info = self.alias_info
        if (
            info is not None
            and not info.before_sets
            and info.contained_types
            and isinstance(self.type, ListType)
        ):
            # Tensor(a)[]: the annotation belongs to the element
            size = "" if self.n is None else self.n
            text = f"{self.type.element.annotation_str()}{info.contained_types[0]}[{size}]"
        else:
            text = _sized_annotation_str(self.type, self.n)
            if info is not None:
                text += str(info)
        if self.name:
            text += f" {self.name}"
        if self.has_default:
            text += "=" + _format_default(self.default_value, _is_string_type(self.type))
        return text


def _sized_annotation_str(schema_type: SchemaType, n: Optional[int]) -> str:
    """``int[2]`` rather than ``int[]`` for fixed-size lists."""
    if n is not None:
        if isinstance(schema_type, ListType):
            return f"{schema_type.element.annotation_str()}[{n}]"
        if isinstance(schema_type, OptionalType) and isinstance(schema_type.element, ListType):
            return f"{schema_type.element.element.annotation_str()}[{n}]?"
    return schema_type.annotation_str()


def _is_string_type(schema_type: SchemaType) -> bool:
    while isinstance(schema_type, (OptionalType, ListType)):
        schema_type = schema_type.element
    return schema_type == PrimitiveType("str")


def _format_default(value: Any, quote_strings: bool) -> str:
    """Render a default value in schema syntax."""
    if value is None or isinstance(value, bool):
        return str(value)
    if isinstance(value, str):
        # identifiers such as contiguous_format stay bare
        if not quote_strings:
            return value
        quote = "'" if '"' in value else '"'
        return f"{quote}{value}{quote}"
    if isinstance(value, (tuple, list)):
        return "[" + ", ".join(_format_default(v, quote_strings) for v in value) + "]"
    return repr(value)


# =============================================================================
# FUNCTION SCHEMA
# =============================================================================

@dataclass(frozen=True)
class FunctionSchema:
    """
    Immutable description of one operator overload.

    Equality is structural: two schemas parsed from the same signature
    compare equal, which is what the fixed exception tables rely on.
    """
    name: str
    overload_name: str = ""
    arguments: Tuple[Argument, ...] = ()
    returns: Tuple[Argument, ...] = ()

    @property
    def operator_name(self) -> str:
        if self.overload_name:
            return f"{self.name}.{self.overload_name}"
        return self.name

    def get_correct_list(self, role: SchemaArgType) -> Tuple[Argument, ...]:
        return self.arguments if role is SchemaArgType.INPUT else self.returns

    def get_argument(self, argument: SchemaArgument) -> Argument:
        """Resolve a reference, failing loudly on an out-of-range index."""
        correct_list = self.get_correct_list(argument.role)
        if not 0 <= argument.index < len(correct_list):
            raise IndexError(
                f"Invalid index {argument} for schema {self.operator_name} "
                f"with {len(correct_list)} {argument.role.value}s"
            )
        return correct_list[argument.index]

    def argument_index_with_name(self, name: str) -> Optional[int]:
        for i, argument in enumerate(self.arguments):
            if argument.name == name:
                return i
        return None

    def is_mutable(self, argument: Union[SchemaArgument, str, None] = None) -> bool:
        """
        Declared mutability.

        With no argument, true if any input is annotated as written. A name
        refers to an input argument.
        """
        if argument is None:
            return any(a.is_write for a in self.arguments)
        if isinstance(argument, str):
            index = self.argument_index_with_name(argument)
            if index is None:
                raise ValueError(f"Schema has no argument named {argument}")
            argument = SchemaArgument.input(index)
        return self.get_argument(argument).is_write

    def may_alias(self, lhs: SchemaArgument, rhs: SchemaArgument) -> bool:
        """True if the annotations put lhs and rhs in a common alias set."""
        lhs_arg = self.get_argument(lhs)
        rhs_arg = self.get_argument(rhs)
        lhs_types = map_type_to_alias_type_set(lhs_arg.type)
        rhs_types = map_type_to_alias_type_set(rhs_arg.type)

        if not can_alias_type_sets_alias(lhs_types, rhs_types):
            return False
        if lhs_arg.alias_info is None or rhs_arg.alias_info is None:
            return False
        return not lhs_arg.alias_info.after_sets.isdisjoint(
            rhs_arg.alias_info.after_sets
        )

    def may_contain_alias(
        self,
        lhs: SchemaArgument,
        rhs: SchemaArgument,
        bidirectional: bool = True,
    ) -> bool:
        """
        True if lhs may contain a value aliasing rhs (or the reverse when
        bidirectional), judging only from declared annotations.
        """
        if self.may_alias(lhs, rhs):
            return True

        lhs_arg = self.get_argument(lhs)
        rhs_arg = self.get_argument(rhs)
        lhs_types = map_type_to_alias_type_set(lhs_arg.type)
        rhs_types = map_type_to_alias_type_set(rhs_arg.type)
        lhs_contained = get_alias_type_set_contained_types(lhs_types)
        rhs_contained = get_alias_type_set_contained_types(rhs_types)

        # A wildcard on one side can end up inside a container of its type
        lhs_wildcard = (
            lhs_arg.alias_info is not None
            and lhs_arg.alias_info.is_wildcard_after
            and can_alias_type_sets_alias(lhs_types, rhs_contained)
        )
        rhs_wildcard = (
            rhs_arg.alias_info is not None
            and rhs_arg.alias_info.is_wildcard_after
            and can_alias_type_sets_alias(rhs_types, lhs_contained)
        )

        if bidirectional:
            return (
                lhs_wildcard
                or rhs_wildcard
                or can_alias_type_sets_alias(lhs_contained, rhs_contained)
            )
        return rhs_wildcard or can_alias_type_sets_alias(lhs_contained, rhs_contained)

    def __str__(self) -> str:
        parts = []
        kwarg_marker_done = False
        for argument in self.arguments:
            if argument.kwarg_only and not kwarg_marker_done:
                parts.append("*")
                kwarg_marker_done = True
            parts.append(str(argument))
        returns = ", ".join(str(r) for r in self.returns)
        if len(self.returns) == 1 and not self.returns[0].name:
            returns_text = returns
        else:
            returns_text = f"({returns})"
        return f"{self.operator_name}({', '.join(parts)}) -> {returns_text}"
