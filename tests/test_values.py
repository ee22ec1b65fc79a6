"""
Tests for the bound value model: storage identity, sub-values and flags.
"""

import pytest

from schema_alias.values import (
    Storage,
    Tensor,
    contains_alias,
    get_sub_values,
    is_alias_of,
    to_bool,
)


def test_view_shares_storage():
    t = Tensor()
    v = t.view()
    assert is_alias_of(t, v)
    assert is_alias_of(v, t)
    assert v.storage is t.storage


def test_fresh_tensors_do_not_alias():
    assert not is_alias_of(Tensor(), Tensor())


def test_tensors_built_on_same_storage_alias():
    storage = Storage("s")
    assert is_alias_of(Tensor(storage), Tensor(storage))


def test_scalars_never_alias():
    """Even the same int object is not an alias."""
    x = 12345
    assert not is_alias_of(x, x)
    assert not is_alias_of(None, None)
    assert not is_alias_of(True, True)


def test_containers_alias_by_identity():
    xs = [Tensor()]
    assert is_alias_of(xs, xs)
    assert not is_alias_of(xs, list(xs))
    assert not is_alias_of(xs, xs[0])


def test_sub_values_recurse_into_containers():
    a, b, c = Tensor(label="a"), Tensor(label="b"), Tensor(label="c")
    inner = [b, 3]
    value = {"key": (a, inner), "other": c}
    subs = get_sub_values(value)

    assert subs[0] is value
    assert any(s is inner for s in subs)
    for t in (a, b, c):
        assert any(s is t for s in subs)
    # scalars and dict keys that are strings are skipped
    assert 3 not in subs
    assert "key" not in subs


def test_contains_alias_finds_nested_views():
    t = Tensor()
    assert contains_alias([[1, t]], t.view())
    assert not contains_alias([[1, Tensor()]], t)
    assert contains_alias(t, t)


def test_sub_values_of_self_referencing_list():
    """A list that contains itself is walked once."""
    t = Tensor()
    xs = [t]
    xs.append(xs)
    subs = get_sub_values(xs)
    assert len(subs) == 2
    assert subs[0] is xs and subs[1] is t
    assert contains_alias(xs, t.view())
    assert not contains_alias(xs, Tensor())


def test_to_bool():
    assert to_bool(True) is True
    assert to_bool(False) is False
    with pytest.raises(TypeError):
        to_bool(1)
    with pytest.raises(TypeError):
        to_bool(None)
