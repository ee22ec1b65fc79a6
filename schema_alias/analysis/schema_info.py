"""
Alias and mutability analysis for one operator call-site.

``SchemaInfo`` combines the declared alias annotations of a schema with
whatever is known about the values passed to it:

    info = SchemaInfo("aten::sub_.Tensor(Tensor(a!) self, Tensor other, "
                      "*, Scalar alpha=1) -> Tensor(a!)")
    info.is_mutable("other")                # False
    t = Tensor()
    info.add_argument_values({"self": t, "other": t.view()})
    info.is_mutable("other")                # True, it shares storage with self

Answers are conservative: an unbound argument is assumed to be anything
its schema allows. Alias maps are regenerated lazily the first time a
query runs after the bindings changed.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Sequence, Union

from ..registry import OperatorRegistry, Tag, get_global_registry
from ..schema.model import FunctionSchema, SchemaArgType, SchemaArgument
from ..schema.parser import parse_schema
from ..schema.types import (
    can_alias_type_sets_alias,
    get_alias_type_set_contained_types,
    map_type_to_alias_type_set,
)
from ..values import to_bool
from .alias_maps import AliasMaps, generate_alias_maps
from .classification import classify_schema
from .special_cases import (
    RUNNING_STAT_NAMES,
    TRAINING_FLAG_NAMES,
    get_dropout_schema,
    get_training_ops,
)


logger = logging.getLogger(__name__)


class SchemaInfo:
    """
    Answers mutation, aliasing and determinism questions about one call.

    Args:
        schema: a parsed ``FunctionSchema`` or a schema string
        registry: operator tag registry, the global one by default
        training_ops: schemas whose ``running_mean``/``running_var`` are
            only written when a training flag is set; the built-in
            normalization operators by default
    """

    def __init__(
        self,
        schema: Union[FunctionSchema, str],
        registry: Optional[OperatorRegistry] = None,
        training_ops: Optional[Iterable[FunctionSchema]] = None,
    ):
        if isinstance(schema, str):
            schema = parse_schema(schema)
        self.schema = schema
        self.registry = registry if registry is not None else get_global_registry()
        if training_ops is None:
            training_ops = get_training_ops()
        self._is_training_op = any(schema == op for op in training_ops)

        self._classification = classify_schema(schema)
        self._container_set = self._classification.container_set

        self._value_map: Dict[str, Any] = {}
        self._alias_maps: Optional[AliasMaps] = None
        self._alias_maps_current = False

        if self._is_training_op:
            logger.debug(f"{schema.operator_name} writes running stats only when training")

    # =========================================================================
    # Value bindings
    # =========================================================================

    def add_argument_value(self, name: str, value: Any) -> None:
        """Bind a value to the input argument ``name``."""
        if self.schema.argument_index_with_name(name) is None:
            raise ValueError(f"Schema {self.schema.operator_name} has no argument named {name}")
        self._value_map[name] = value
        self._alias_maps_current = False

    def add_argument_values(self, values: Union[Mapping[str, Any], Sequence[Any]]) -> None:
        """
        Bind several values at once.

        A mapping binds by argument name. A sequence binds the first
        ``len(values)`` positional arguments; ``None`` entries are skipped
        and leave their argument unbound.
        """
        if isinstance(values, Mapping):
            for name, value in values.items():
                self.add_argument_value(name, value)
            return

        arguments = self.schema.arguments
        if len(values) > len(arguments):
            raise ValueError(
                f"Schema {self.schema.operator_name} does not have enough arguments "
                f"for {len(values)} values (has {len(arguments)})"
            )
        for argument, value in zip(arguments, values):
            if value is not None:
                self._value_map[argument.name] = value
                self._alias_maps_current = False

    def clear_argument_values(self) -> None:
        """Forget all bindings, e.g. to reuse the instance for another call."""
        self._value_map.clear()
        self._alias_maps_current = False

    @property
    def value_map(self) -> Mapping[str, Any]:
        return MappingProxyType(self._value_map)

    def has_input_argument_named(self, name: str) -> bool:
        return any(argument.name == name for argument in self.schema.arguments)

    # =========================================================================
    # Derived state
    # =========================================================================

    @property
    def container_set(self) -> FrozenSet[SchemaArgument]:
        return self._container_set

    @property
    def wildcard_set(self) -> FrozenSet[SchemaArgument]:
        """Static and value-derived wildcards for the current bindings."""
        return frozenset(self._get_alias_maps().wildcard_set)

    @property
    def alias_maps(self) -> AliasMaps:
        return self._get_alias_maps()

    def _get_alias_maps(self) -> AliasMaps:
        if not self._alias_maps_current or self._alias_maps is None:
            self._alias_maps = generate_alias_maps(
                self.schema, self._classification, self._value_map
            )
            self._alias_maps_current = True
        return self._alias_maps

    def _check_index(self, argument: SchemaArgument) -> None:
        self.schema.get_argument(argument)

    # =========================================================================
    # Queries
    # =========================================================================

    def is_mutable(self, argument: Union[SchemaArgument, str, None] = None) -> bool:
        """
        Could the call write to ``argument``?

        ``argument`` is a ``SchemaArgument``, the name of an input, or None
        to ask whether the call may write to any input at all.
        """
        if argument is None:
            return any(
                self.is_mutable(SchemaArgument.input(i))
                for i in range(len(self.schema.arguments))
            )

        if isinstance(argument, str):
            index = self.schema.argument_index_with_name(argument)
            if index is None:
                raise ValueError(
                    f"Schema {self.schema.operator_name} has no argument named {argument}"
                )
            argument = SchemaArgument.input(index)

        self._check_index(argument)
        alias_maps = self._get_alias_maps()

        # running_mean/running_var may themselves alias another input, so the
        # check is made per aliasing index rather than on the argument itself
        return any(
            self._is_input_mutable(aliasing_index)
            for aliasing_index in alias_maps.alias_set_of(argument)
        )

    def _is_input_mutable(self, index: int) -> bool:
        name = self.schema.arguments[index].name
        if self._is_training_op and name in RUNNING_STAT_NAMES:
            return any(self._flag_may_be_set(flag) for flag in TRAINING_FLAG_NAMES)
        return self.schema.is_mutable(SchemaArgument.input(index))

    def _flag_may_be_set(self, name: str) -> bool:
        if name in self._value_map:
            return to_bool(self._value_map[name])
        return self.has_input_argument_named(name)

    def may_alias(self, lhs: SchemaArgument, rhs: SchemaArgument) -> bool:
        """Could lhs and rhs share storage after the call?"""
        self._check_index(lhs)
        self._check_index(rhs)
        if lhs == rhs:
            return True
        if self.schema.may_alias(lhs, rhs):
            return True

        lhs_types = map_type_to_alias_type_set(self.schema.get_argument(lhs).type)
        rhs_types = map_type_to_alias_type_set(self.schema.get_argument(rhs).type)
        if not can_alias_type_sets_alias(lhs_types, rhs_types):
            return False

        alias_maps = self._get_alias_maps()
        if lhs in alias_maps.wildcard_set and rhs in alias_maps.wildcard_set:
            return True

        lhs_is_input = lhs.role is SchemaArgType.INPUT
        rhs_is_input = rhs.role is SchemaArgType.INPUT
        if lhs_is_input and rhs_is_input:
            return rhs.index in alias_maps.input_alias_map[lhs.index]
        if not lhs_is_input and not rhs_is_input:
            return not alias_maps.output_alias_map[lhs.index].isdisjoint(
                alias_maps.output_alias_map[rhs.index]
            )
        if not lhs_is_input:
            return rhs.index in alias_maps.output_alias_map[lhs.index]
        return lhs.index in alias_maps.output_alias_map[rhs.index]

    def may_contain_alias(
        self,
        lhs: SchemaArgument,
        rhs: SchemaArgument,
        bidirectional: bool = True,
    ) -> bool:
        """
        Could lhs hold (somewhere inside it) a value aliasing rhs?

        With ``bidirectional`` the reverse direction counts as well.
        """
        if self.schema.may_contain_alias(lhs, rhs) or self.may_alias(lhs, rhs):
            return True

        alias_maps = self._get_alias_maps()
        if bidirectional:
            return (
                self._may_contain_alias_impl(lhs, rhs, alias_maps)
                or self._may_contain_alias_impl(rhs, lhs, alias_maps)
            )
        return self._may_contain_alias_impl(lhs, rhs, alias_maps)

    def _may_contain_alias_impl(
        self,
        lhs: SchemaArgument,
        rhs: SchemaArgument,
        alias_maps: AliasMaps,
    ) -> bool:
        lhs_contained_types = get_alias_type_set_contained_types(
            map_type_to_alias_type_set(self.schema.get_argument(lhs).type)
        )
        rhs_types = map_type_to_alias_type_set(self.schema.get_argument(rhs).type)
        return (
            can_alias_type_sets_alias(lhs_contained_types, rhs_types)
            and lhs in self._container_set
            and rhs in alias_maps.wildcard_set
        )

    def is_nondeterministic(self) -> bool:
        """Could two calls with identical inputs produce different results?"""
        if (
            self.schema == get_dropout_schema()
            and "train" in self._value_map
            and not to_bool(self._value_map["train"])
        ):
            return False

        entry = self.registry.find_op(self.schema.name, self.schema.overload_name)
        return entry is not None and entry.has_tag(Tag.NONDETERMINISTIC_SEEDED)

    def __repr__(self) -> str:
        return f"SchemaInfo({self.schema}, bound={sorted(self._value_map)})"
