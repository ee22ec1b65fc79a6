"""
Value-dependent alias maps.

Given a schema, its static classification and the currently bound values,
compute from scratch:

    input_alias_map[i]   inputs that input i may alias (always contains i)
    output_alias_map[j]  inputs that return j may alias
    wildcard_set         static wildcards + wildcards discovered from values

Passes, in order:

1. every input aliases itself
2. bound inputs sharing storage alias each other; aliasing a wildcard
   makes an input a wildcard
3. a bound input reachable inside another bound input becomes a wildcard,
   e.g. for ``test(Tensor a, Tensor(*) b, Tensor[] c)`` with ``a`` stored
   in ``c``, ``a`` may now alias ``b``
4. a return declared to alias input i inherits i's alias set, and its
   wildcard status

Cost is quadratic in the number of arguments.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Set

from ..schema.model import FunctionSchema, SchemaArgType, SchemaArgument
from ..values import contains_alias, is_alias_of
from .classification import SchemaClassification


logger = logging.getLogger(__name__)


@dataclass
class AliasMaps:
    input_alias_map: List[Set[int]]
    output_alias_map: List[Set[int]]
    wildcard_set: Set[SchemaArgument]

    def alias_set_of(self, argument: SchemaArgument) -> Set[int]:
        """Input indices the referenced argument or return may alias."""
        if argument.role is SchemaArgType.INPUT:
            return self.input_alias_map[argument.index]
        return self.output_alias_map[argument.index]


def generate_alias_maps(
    schema: FunctionSchema,
    classification: SchemaClassification,
    bindings: Mapping[str, Any],
) -> AliasMaps:
    arguments = schema.arguments
    num_inputs = len(arguments)
    num_outputs = len(schema.returns)

    input_alias_map: List[Set[int]] = [{i} for i in range(num_inputs)]
    output_alias_map: List[Set[int]] = [set() for _ in range(num_outputs)]
    wildcard_set: Set[SchemaArgument] = set(classification.wildcard_set)

    bound = [i for i in range(num_inputs) if arguments[i].name in bindings]

    def value(i: int) -> Any:
        return bindings[arguments[i].name]

    # Inputs sharing storage
    for a, i in enumerate(bound):
        for j in bound[a + 1:]:
            if is_alias_of(value(i), value(j)):
                input_alias_map[i].add(j)
                input_alias_map[j].add(i)

    # Wildcard status spreads along the aliasing found above
    frontier = [
        ref.index for ref in wildcard_set if ref.role is SchemaArgType.INPUT
    ]
    while frontier:
        i = frontier.pop()
        for j in input_alias_map[i]:
            ref = SchemaArgument.input(j)
            if ref not in wildcard_set:
                wildcard_set.add(ref)
                frontier.append(j)

    # Inputs nested inside other inputs
    for i in bound:
        for j in bound:
            if i == j or j in input_alias_map[i]:
                continue
            if contains_alias(value(i), value(j)):
                wildcard_set.add(SchemaArgument.input(j))

    # Returns inherit the alias sets of the inputs they are declared to alias
    for i in range(num_inputs):
        input_ref = SchemaArgument.input(i)
        for j in range(num_outputs):
            output_ref = SchemaArgument.output(j)
            if schema.may_alias(input_ref, output_ref):
                if input_ref in wildcard_set:
                    wildcard_set.add(output_ref)
                output_alias_map[j].update(input_alias_map[i])

    logger.debug(
        f"Regenerated alias maps for {schema.operator_name}: "
        f"{len(bound)} bound inputs, {len(wildcard_set)} wildcards"
    )
    return AliasMaps(
        input_alias_map=input_alias_map,
        output_alias_map=output_alias_map,
        wildcard_set=wildcard_set,
    )
