"""
Static classification of a schema's arguments and returns.

Computed once per schema, independent of any bound value:

- **wildcard set**: entries whose annotation says they may alias anything
  after the call (``Tensor(*)``, ``Tensor(a -> *)``), plus every entry
  whose after-set uses an alias set name that appears on more than one
  entry of the same list. With two ``Tensor(a)`` arguments the analysis
  cannot tell which one a given ``Tensor(a)`` return aliases, so all of
  them degrade to wildcards.
- **container set**: entries whose type can hold other aliasable values
  (``Tensor[]``, ``Tensor?[]``, ``Dict(str, Tensor)``, ...).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import FrozenSet, Sequence, Set

from ..schema.model import Argument, FunctionSchema, SchemaArgType, SchemaArgument
from ..schema.types import (
    get_alias_type_set_contained_types,
    map_type_to_alias_type_set,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchemaClassification:
    wildcard_set: FrozenSet[SchemaArgument]
    container_set: FrozenSet[SchemaArgument]
    duplicate_alias_sets: FrozenSet[str]


def is_container_type(argument: Argument) -> bool:
    contained = get_alias_type_set_contained_types(
        map_type_to_alias_type_set(argument.type)
    )
    return bool(contained)


def classify_schema(schema: FunctionSchema) -> SchemaClassification:
    wildcards: Set[SchemaArgument] = set()
    containers: Set[SchemaArgument] = set()
    duplicates: Set[str] = set()

    def scan(arguments: Sequence[Argument], role: SchemaArgType) -> None:
        seen: Set[str] = set()
        for i, argument in enumerate(arguments):
            ref = SchemaArgument(role, i)
            info = argument.alias_info
            if info is not None:
                if info.is_wildcard_after:
                    wildcards.add(ref)
                else:
                    for name in sorted(info.after_sets):
                        if name not in seen:
                            seen.add(name)
                        elif name not in duplicates:
                            logger.warning(
                                f"{name} appears twice in same argument list which will "
                                f"make aliasing checks more conservative."
                            )
                            duplicates.add(name)
            if is_container_type(argument):
                containers.add(ref)

    scan(schema.arguments, SchemaArgType.INPUT)
    scan(schema.returns, SchemaArgType.OUTPUT)

    # Only after-sets are consulted here, before-sets never force a wildcard
    for role in (SchemaArgType.INPUT, SchemaArgType.OUTPUT):
        for i, argument in enumerate(schema.get_correct_list(role)):
            info = argument.alias_info
            if info is not None and not info.after_sets.isdisjoint(duplicates):
                wildcards.add(SchemaArgument(role, i))

    return SchemaClassification(
        wildcard_set=frozenset(wildcards),
        container_set=frozenset(containers),
        duplicate_alias_sets=frozenset(duplicates),
    )
