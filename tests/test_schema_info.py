"""
Tests for SchemaInfo: mutability, aliasing and determinism queries for a
schema with (optionally) bound argument values.
"""

import itertools
import logging

import pytest

from schema_alias import SchemaArgument, SchemaInfo, Tensor
from schema_alias.analysis.special_cases import DROPOUT_SIGNATURE, TRAINING_OP_SIGNATURES
from schema_alias.registry import OperatorRegistry, Tag
from schema_alias.schema.parser import parse_schema


SUB_ = "aten::sub_.Tensor(Tensor(a!) self, Tensor other, *, Scalar alpha=1) -> Tensor(a!)"
AMINMAX_OUT = (
    "aten::aminmax.out(Tensor self, *, int? dim=None, bool keepdim=False, "
    "Tensor(a!) min, Tensor(b!) max) -> (Tensor(a!) min, Tensor(b!) max)"
)
BATCH_NORM = TRAINING_OP_SIGNATURES[0]
INSTANCE_NORM = TRAINING_OP_SIGNATURES[1]
CONTAINER_OP = "test(Tensor a, Tensor(*) b, Tensor[] c) -> ()"

inp = SchemaArgument.input
out = SchemaArgument.output


def all_refs(info):
    return (
        [inp(i) for i in range(len(info.schema.arguments))]
        + [out(j) for j in range(len(info.schema.returns))]
    )


# =============================================================================
# Mutability
# =============================================================================

def test_is_mutable_in_place_op():
    info = SchemaInfo(SUB_)
    assert info.is_mutable()
    assert info.is_mutable("self")
    assert not info.is_mutable("other")
    assert not info.is_mutable("alpha")
    assert info.is_mutable(inp(0))
    assert info.is_mutable(out(0))


def test_is_mutable_follows_bound_aliases():
    """`other` becomes mutable once it shares storage with `self`."""
    info = SchemaInfo(SUB_)
    t = Tensor()
    info.add_argument_values({"self": t, "other": t.view()})
    assert info.is_mutable("other")


def test_is_mutable_out_variant():
    info = SchemaInfo(AMINMAX_OUT)
    assert info.is_mutable("min")
    assert info.is_mutable("max")
    assert not info.is_mutable("self")

    t = Tensor()
    info.add_argument_value("self", t)
    info.add_argument_value("min", t.view())
    assert info.is_mutable("self")


def test_is_mutable_of_pure_op():
    info = SchemaInfo("aten::add.Tensor(Tensor self, Tensor other, *, Scalar alpha=1) -> Tensor")
    assert not info.is_mutable()
    assert not info.is_mutable(out(0))


def test_running_stats_mutable_when_training_unbound():
    info = SchemaInfo(BATCH_NORM)
    assert info.is_mutable("running_mean")
    assert info.is_mutable("running_var")
    assert not info.is_mutable("input")
    assert info.is_mutable()


@pytest.mark.parametrize("training", [True, False])
def test_running_stats_follow_training_flag(training):
    info = SchemaInfo(BATCH_NORM)
    info.add_argument_value("training", training)
    assert info.is_mutable("running_mean") is training
    assert info.is_mutable("running_var") is training
    assert info.is_mutable() is training


def test_instance_norm_uses_input_stats_flag():
    info = SchemaInfo(INSTANCE_NORM)
    assert info.is_mutable("running_mean")
    info.add_argument_value("use_input_stats", False)
    assert not info.is_mutable("running_mean")


def test_input_aliasing_running_stat_inherits_flag():
    """An input sharing storage with running_mean is written exactly when it is."""
    t = Tensor()
    info = SchemaInfo(BATCH_NORM)
    info.add_argument_values({"input": t, "running_mean": t.view()})
    assert info.is_mutable("input")

    info.add_argument_value("training", False)
    assert not info.is_mutable("input")


def test_running_mean_on_unlisted_op_is_not_special():
    info = SchemaInfo("foo(Tensor running_mean, bool training) -> Tensor")
    assert not info.is_mutable("running_mean")


def test_training_flag_must_be_bool():
    info = SchemaInfo(BATCH_NORM)
    info.add_argument_value("training", 1)
    with pytest.raises(TypeError):
        info.is_mutable("running_mean")


def test_extra_training_ops():
    """Callers can extend the set of flag-dependent training ops."""
    text = "my::norm(Tensor input, Tensor(a!) running_mean, bool training) -> Tensor"
    info = SchemaInfo(text, training_ops=[parse_schema(text)])
    info.add_argument_value("training", False)
    assert not info.is_mutable("running_mean")

    # without it, the write annotation is all that matters
    plain = SchemaInfo(text)
    plain.add_argument_value("training", False)
    assert plain.is_mutable("running_mean")


# =============================================================================
# Aliasing
# =============================================================================

def test_declared_alias_of_in_place_result():
    """op(Tensor(a!) x, Tensor y) -> Tensor(a!)"""
    info = SchemaInfo("op(Tensor(a!) x, Tensor y) -> Tensor(a!)")
    assert info.is_mutable("x")
    assert info.may_alias(out(0), inp(0))
    assert info.may_alias(inp(0), out(0))
    assert not info.may_alias(out(0), inp(1))
    assert not info.may_alias(inp(0), inp(1))


def test_bound_inputs_sharing_storage_alias():
    info = SchemaInfo(SUB_)
    assert not info.may_alias(inp(1), out(0))

    t = Tensor()
    info.add_argument_values({"self": t, "other": t.view()})
    assert info.may_alias(inp(0), inp(1))
    assert info.may_alias(inp(1), out(0))


def test_scalar_arguments_never_alias():
    info = SchemaInfo(SUB_)
    assert not info.may_alias(inp(2), inp(0))
    assert not info.may_alias(inp(2), out(0))


def test_out_variant_outputs_alias_their_inputs_only():
    info = SchemaInfo(AMINMAX_OUT)
    assert info.may_alias(inp(3), out(0))
    assert info.may_alias(inp(4), out(1))
    assert not info.may_alias(inp(4), out(0))
    assert not info.may_alias(out(0), out(1))
    assert not info.may_alias(inp(0), out(0))

    t = Tensor()
    info.add_argument_values({"self": t, "min": t.view()})
    assert info.may_alias(out(0), inp(0))
    assert not info.may_alias(out(1), inp(0))


def test_outputs_alias_through_shared_inputs():
    info = SchemaInfo("foo(Tensor(a) x, Tensor(b) y) -> (Tensor(a), Tensor(b))")
    assert not info.may_alias(out(0), out(1))

    t = Tensor()
    info.add_argument_values({"x": t, "y": t.view()})
    assert info.may_alias(out(0), out(1))


def test_multiple_wildcard_inputs():
    """Two wildcards may alias each other; a plain input only through a binding."""
    info = SchemaInfo("foo(Tensor(*) a, Tensor(*) b, Tensor c) -> Tensor")
    assert info.may_alias(inp(0), inp(1))
    assert not info.may_alias(inp(0), inp(2))
    assert not info.may_alias(inp(1), inp(2))

    t = Tensor()
    info.add_argument_values({"a": t, "c": t.view()})
    assert info.may_alias(inp(0), inp(2))
    assert info.may_alias(inp(1), inp(2))
    assert inp(2) in info.wildcard_set


def test_value_inside_container_may_alias_wildcard():
    info = SchemaInfo(CONTAINER_OP)
    assert not info.may_alias(inp(0), inp(1))
    assert not info.may_contain_alias(inp(2), inp(0))

    t = Tensor()
    info.add_argument_values({"a": t, "c": [t]})
    assert info.may_alias(inp(0), inp(1))
    assert info.may_contain_alias(inp(2), inp(0))
    assert info.may_contain_alias(inp(0), inp(2))
    assert not info.may_contain_alias(inp(0), inp(2), bidirectional=False)


def test_self_referencing_container_binding():
    info = SchemaInfo(CONTAINER_OP)
    t = Tensor()
    xs = [t]
    xs.append(xs)
    info.add_argument_values({"a": t, "c": xs})
    assert info.may_alias(inp(0), inp(1))
    assert info.may_contain_alias(inp(2), inp(0))


def test_container_may_contain_wildcard_statically():
    info = SchemaInfo(CONTAINER_OP)
    assert info.may_contain_alias(inp(2), inp(1))
    assert info.may_contain_alias(inp(1), inp(2))
    assert info.container_set == frozenset({inp(2)})


def test_duplicate_alias_sets_degrade_to_wildcards(caplog):
    with caplog.at_level(logging.WARNING):
        info = SchemaInfo("foo(Tensor(a) x, Tensor(a) y) -> Tensor(a)")
    assert info.wildcard_set == frozenset({inp(0), inp(1), out(0)})
    assert info.may_alias(inp(0), inp(1))
    assert len([r for r in caplog.records if "appears twice" in r.getMessage()]) == 1


# =============================================================================
# Properties over many schemas and bindings
# =============================================================================

def _property_cases():
    t, u = Tensor(), Tensor()
    return [
        (SUB_, {}),
        (SUB_, {"self": t, "other": t.view()}),
        (AMINMAX_OUT, {"self": u, "max": u.view()}),
        (CONTAINER_OP, {"a": t, "c": [t]}),
        (CONTAINER_OP, {"a": t, "b": u, "c": [u.view()]}),
        ("foo(Tensor(*) a, Tensor(*) b, Tensor c) -> Tensor", {"a": t, "c": t}),
        ("foo(Tensor(a) x, Tensor(a) y) -> Tensor(a)", {}),
        (BATCH_NORM, {"training": False, "input": t, "running_var": t.view()}),
    ]


@pytest.mark.parametrize("text, bindings", _property_cases())
def test_may_alias_is_symmetric_and_reflexive(text, bindings):
    info = SchemaInfo(text)
    info.add_argument_values(bindings)
    refs = all_refs(info)
    for ref in refs:
        assert info.may_alias(ref, ref)
        assert info.may_contain_alias(ref, ref)
    for lhs, rhs in itertools.combinations(refs, 2):
        assert info.may_alias(lhs, rhs) == info.may_alias(rhs, lhs), (lhs, rhs)
        assert info.may_contain_alias(lhs, rhs) == info.may_contain_alias(rhs, lhs), (lhs, rhs)


@pytest.mark.parametrize("text, bindings", _property_cases())
def test_is_mutable_is_or_of_inputs(text, bindings):
    info = SchemaInfo(text)
    info.add_argument_values(bindings)
    expected = any(info.is_mutable(inp(i)) for i in range(len(info.schema.arguments)))
    assert info.is_mutable() == expected


# =============================================================================
# Non-determinism
# =============================================================================

def test_seeded_random_op_is_nondeterministic():
    info = SchemaInfo("aten::bernoulli.p(Tensor self, float p=0.5, *, Generator? generator=None) -> Tensor")
    assert info.is_nondeterministic()


def test_pure_op_is_deterministic():
    assert not SchemaInfo(SUB_).is_nondeterministic()


def test_dropout_depends_on_train_flag():
    info = SchemaInfo(DROPOUT_SIGNATURE)
    assert info.is_nondeterministic()
    info.add_argument_value("train", False)
    assert not info.is_nondeterministic()
    info.add_argument_value("train", True)
    assert info.is_nondeterministic()


def test_injected_registry():
    text = "my::sample(Tensor self) -> Tensor"
    assert not SchemaInfo(text).is_nondeterministic()

    registry = OperatorRegistry()
    registry.register("my::sample", "", (Tag.NONDETERMINISTIC_SEEDED,))
    assert SchemaInfo(text, registry=registry).is_nondeterministic()

    # an empty registry knows nothing about bernoulli
    bernoulli = "aten::bernoulli(Tensor self, *, Generator? generator=None) -> Tensor"
    assert not SchemaInfo(bernoulli, registry=OperatorRegistry()).is_nondeterministic()


# =============================================================================
# Bindings and contract violations
# =============================================================================

def test_bindings_invalidate_cached_maps():
    info = SchemaInfo(SUB_)
    assert not info.may_alias(inp(0), inp(1))
    t = Tensor()
    info.add_argument_value("self", t)
    info.add_argument_value("other", t)
    assert info.may_alias(inp(0), inp(1))
    info.clear_argument_values()
    assert not info.may_alias(inp(0), inp(1))
    assert dict(info.value_map) == {}


def test_positional_bindings_skip_none():
    t = Tensor()
    info = SchemaInfo(SUB_)
    info.add_argument_values([t, None])
    assert set(info.value_map) == {"self"}
    assert info.has_input_argument_named("other")
    assert not info.has_input_argument_named("out")


def test_too_many_positional_values():
    info = SchemaInfo(SUB_)
    with pytest.raises(ValueError):
        info.add_argument_values([Tensor(), Tensor(), 1, 2])


def test_unknown_argument_name():
    info = SchemaInfo(SUB_)
    with pytest.raises(ValueError):
        info.add_argument_value("nope", Tensor())
    with pytest.raises(ValueError):
        info.add_argument_values({"nope": Tensor()})
    with pytest.raises(ValueError):
        info.is_mutable("nope")


def test_out_of_range_index():
    info = SchemaInfo(SUB_)
    with pytest.raises(IndexError):
        info.is_mutable(inp(3))
    with pytest.raises(IndexError):
        info.may_alias(out(1), inp(0))
    with pytest.raises(IndexError):
        info.may_contain_alias(inp(0), inp(-1))


def test_accepts_parsed_schema():
    schema = parse_schema(SUB_)
    info = SchemaInfo(schema)
    assert info.schema is schema
    assert "aten::sub_.Tensor" in repr(info)
