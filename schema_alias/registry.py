"""
Operator tag registry.

Maps an operator (name + overload name) to the set of tags it carries.
The analysis only asks one question of it: is this operator tagged as
non-deterministic? Everything else is bookkeeping.

A process-wide default registry is populated with the ATen operators that
draw from a random number generator. ``SchemaInfo`` takes a registry
argument so tests and tools can substitute their own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional, Tuple


logger = logging.getLogger(__name__)


class Tag(Enum):
    """Operator tags (subset of ATen's ``tags.yaml``)."""
    NONDETERMINISTIC_SEEDED = "nondeterministic_seeded"
    NONDETERMINISTIC_BITWISE = "nondeterministic_bitwise"
    INPLACE_VIEW = "inplace_view"
    VIEW_COPY = "view_copy"
    CORE = "core"
    POINTWISE = "pointwise"


def split_operator_name(qualified_name: str) -> Tuple[str, str]:
    """
    Split ``aten::bernoulli.p`` into ``("aten::bernoulli", "p")``.

    A name without an overload gets the empty overload name.
    """
    namespace, sep, rest = qualified_name.rpartition("::")
    base, dot, overload = rest.partition(".")
    name = f"{namespace}{sep}{base}"
    return name, overload


@dataclass(frozen=True)
class OperatorEntry:
    """One registered operator overload."""
    name: str
    overload_name: str = ""
    tags: FrozenSet[Tag] = field(default_factory=frozenset)

    @property
    def full_name(self) -> str:
        if self.overload_name:
            return f"{self.name}.{self.overload_name}"
        return self.name

    def has_tag(self, tag: Tag) -> bool:
        return tag in self.tags


class OperatorRegistry:
    """Registry of operator overloads and their tags."""

    def __init__(self):
        self._operators: Dict[Tuple[str, str], OperatorEntry] = {}

    def register(
        self,
        name: str,
        overload_name: str = "",
        tags: Iterable[Tag] = (),
    ) -> OperatorEntry:
        """Register an operator overload, merging tags with any existing entry."""
        key = (name, overload_name)
        merged = frozenset(tags)
        existing = self._operators.get(key)
        if existing is not None:
            merged = merged | existing.tags
        entry = OperatorEntry(name=name, overload_name=overload_name, tags=merged)
        self._operators[key] = entry
        logger.debug(f"Registered operator {entry.full_name} with tags {sorted(t.value for t in merged)}")
        return entry

    def register_qualified(self, qualified_name: str, tags: Iterable[Tag] = ()) -> OperatorEntry:
        """Register using the ``ns::name[.overload]`` spelling."""
        name, overload_name = split_operator_name(qualified_name)
        return self.register(name, overload_name, tags)

    def find_op(self, name: str, overload_name: str = "") -> Optional[OperatorEntry]:
        """Look up an operator overload; None if it was never registered."""
        return self._operators.get((name, overload_name))

    def has_tag(self, name: str, overload_name: str, tag: Tag) -> bool:
        entry = self.find_op(name, overload_name)
        return entry is not None and entry.has_tag(tag)

    def __len__(self) -> int:
        return len(self._operators)

    def __contains__(self, qualified_name: str) -> bool:
        return split_operator_name(qualified_name) in self._operators


# =============================================================================
# BUILT-IN NON-DETERMINISTIC OPERATORS
# =============================================================================

# name -> overloads tagged nondeterministic_seeded
NONDETERMINISTIC_SEEDED_OPS: Dict[str, Tuple[str, ...]] = {
    "aten::dropout": ("", "out"),
    "aten::dropout_": ("",),
    "aten::feature_dropout": ("",),
    "aten::feature_dropout_": ("",),
    "aten::alpha_dropout": ("",),
    "aten::alpha_dropout_": ("",),
    "aten::feature_alpha_dropout": ("",),
    "aten::feature_alpha_dropout_": ("",),
    "aten::native_dropout": ("", "out"),
    "aten::_fused_dropout": ("", "out"),
    "aten::bernoulli": ("", "out", "p", "Tensor", "Tensor_out", "float_out"),
    "aten::bernoulli_": ("Tensor", "float"),
    "aten::multinomial": ("", "out"),
    "aten::normal": (
        "", "out", "Tensor_float", "Tensor_float_out", "float_Tensor",
        "float_Tensor_out", "Tensor_Tensor", "Tensor_Tensor_out",
        "float_float", "float_float_out",
    ),
    "aten::normal_": ("",),
    "aten::poisson": ("", "out"),
    "aten::binomial": ("", "out"),
    "aten::rand": ("", "generator", "names", "generator_with_names", "out", "generator_out"),
    "aten::rand_like": ("", "out"),
    "aten::randn": ("", "generator", "names", "generator_with_names", "out", "generator_out"),
    "aten::randn_like": ("", "out"),
    "aten::randint": ("", "generator", "low", "low_generator", "out", "generator_out", "low_out", "low_generator_out"),
    "aten::randint_like": ("", "low_dtype", "out", "low_dtype_out"),
    "aten::randperm": ("", "generator", "out", "generator_out"),
    "aten::rrelu": ("",),
    "aten::rrelu_": ("",),
    "aten::rrelu_with_noise": ("", "out"),
    "aten::uniform_": ("",),
    "aten::exponential_": ("",),
    "aten::geometric_": ("",),
    "aten::log_normal_": ("",),
    "aten::cauchy_": ("",),
    "aten::random_": ("", "from", "to"),
    "aten::_standard_gamma": ("", "out"),
    "aten::_sample_dirichlet": ("", "out"),
}


def register_builtin_operators(registry: OperatorRegistry) -> None:
    for name, overloads in NONDETERMINISTIC_SEEDED_OPS.items():
        for overload_name in overloads:
            registry.register(name, overload_name, (Tag.NONDETERMINISTIC_SEEDED,))


_global_registry = OperatorRegistry()
register_builtin_operators(_global_registry)


def get_global_registry() -> OperatorRegistry:
    """Get the process-wide operator registry."""
    return _global_registry


def register_operator(qualified_name: str, tags: Iterable[Tag] = ()) -> OperatorEntry:
    """Register an operator in the global registry."""
    return _global_registry.register_qualified(qualified_name, tags)


def find_op(name: str, overload_name: str = "") -> Optional[OperatorEntry]:
    """Look up an operator in the global registry."""
    return _global_registry.find_op(name, overload_name)
