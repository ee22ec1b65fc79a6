"""
Tests for the operator tag registry.
"""

from schema_alias.registry import (
    OperatorRegistry,
    Tag,
    find_op,
    get_global_registry,
    register_builtin_operators,
    split_operator_name,
)


def test_split_operator_name():
    assert split_operator_name("aten::bernoulli.p") == ("aten::bernoulli", "p")
    assert split_operator_name("aten::dropout") == ("aten::dropout", "")
    assert split_operator_name("myop") == ("myop", "")


def test_builtin_random_ops_are_tagged():
    """The global registry knows the RNG-consuming ATen overloads."""
    entry = find_op("aten::bernoulli", "p")
    assert entry is not None
    assert entry.has_tag(Tag.NONDETERMINISTIC_SEEDED)
    assert get_global_registry().has_tag("aten::dropout", "", Tag.NONDETERMINISTIC_SEEDED)
    assert "aten::randn" in get_global_registry()


def test_unknown_op_is_not_found():
    assert find_op("aten::add", "Tensor") is None
    assert not get_global_registry().has_tag("aten::add", "Tensor", Tag.NONDETERMINISTIC_SEEDED)


def test_overload_names_are_distinct():
    registry = OperatorRegistry()
    registry.register("my::op", "a", (Tag.CORE,))
    assert registry.find_op("my::op", "a") is not None
    assert registry.find_op("my::op") is None
    assert registry.find_op("my::op", "b") is None


def test_register_merges_tags():
    registry = OperatorRegistry()
    registry.register("my::op", "", (Tag.CORE,))
    entry = registry.register("my::op", "", (Tag.NONDETERMINISTIC_SEEDED,))
    assert entry.tags == frozenset({Tag.CORE, Tag.NONDETERMINISTIC_SEEDED})
    assert len(registry) == 1


def test_register_qualified():
    registry = OperatorRegistry()
    entry = registry.register_qualified("my::sample.out", (Tag.NONDETERMINISTIC_SEEDED,))
    assert entry.name == "my::sample"
    assert entry.overload_name == "out"
    assert entry.full_name == "my::sample.out"
    assert "my::sample.out" in registry
    assert "my::sample" not in registry


def test_fresh_registry_is_independent_of_global():
    registry = OperatorRegistry()
    assert len(registry) == 0
    register_builtin_operators(registry)
    assert registry.find_op("aten::bernoulli", "p") is not None
    registry.register("only::here")
    assert find_op("only::here") is None
