"""
Runtime values bound to schema arguments.

The analysis never executes an operator; it only needs three things from a
bound value:

1. **Alias identity**: do two values share underlying storage?
2. **Sub-values**: which aliasable values are reachable inside a value?
3. **Boolean payload**: the truth value of a flag argument.

Tensors are modelled by ``Tensor`` objects that point at a ``Storage``;
views share their base's storage. Containers (list, tuple, dict) and other
objects alias by identity. Scalars never alias.
"""

from __future__ import annotations

import itertools
from typing import Any, Iterator, List, Optional, Set


_SCALAR_TYPES = (bool, int, float, complex, str, bytes, type(None))

_storage_ids = itertools.count()


class Storage:
    """A block of memory. Identity is the only thing that matters."""

    def __init__(self, label: Optional[str] = None):
        self.id = next(_storage_ids)
        self.label = label

    def __repr__(self) -> str:
        if self.label:
            return f"Storage({self.label!r})"
        return f"Storage(#{self.id})"


class Tensor:
    """
    Stand-in for a tensor value: only the storage it reads and writes is
    tracked.

        t = Tensor()
        v = t.view()        # aliases t
        u = Tensor()        # fresh storage, aliases nothing
    """

    def __init__(self, storage: Optional[Storage] = None, label: Optional[str] = None):
        self.storage = storage if storage is not None else Storage(label)
        self.label = label

    def view(self, label: Optional[str] = None) -> Tensor:
        """A new tensor sharing this tensor's storage."""
        return Tensor(self.storage, label=label or self.label)

    def is_alias_of(self, other: Any) -> bool:
        return isinstance(other, Tensor) and self.storage is other.storage

    def __repr__(self) -> str:
        name = self.label or "tensor"
        return f"Tensor({name}, {self.storage!r})"


def is_scalar(value: Any) -> bool:
    return isinstance(value, _SCALAR_TYPES)


def is_alias_of(lhs: Any, rhs: Any) -> bool:
    """
    True if lhs and rhs share underlying storage.

    Tensors compare by storage, scalars never alias, everything else
    compares by object identity.
    """
    if isinstance(lhs, Tensor):
        return lhs.is_alias_of(rhs)
    if isinstance(rhs, Tensor):
        return False
    if is_scalar(lhs) or is_scalar(rhs):
        return False
    return lhs is rhs


def iter_sub_values(value: Any, _visited: Optional[Set[int]] = None) -> Iterator[Any]:
    """
    Yield every aliasable value reachable from ``value``, itself included.

    Lists and tuples yield their elements recursively, dicts their keys and
    values. Scalars are not yielded. Each object is yielded once, so
    self-referencing containers terminate.
    """
    if is_scalar(value):
        return
    if _visited is None:
        _visited = set()
    if id(value) in _visited:
        return
    _visited.add(id(value))
    yield value
    if isinstance(value, (list, tuple)):
        for element in value:
            yield from iter_sub_values(element, _visited)
    elif isinstance(value, dict):
        for key, item in value.items():
            yield from iter_sub_values(key, _visited)
            yield from iter_sub_values(item, _visited)


def get_sub_values(value: Any) -> List[Any]:
    return list(iter_sub_values(value))


def contains_alias(container: Any, value: Any) -> bool:
    """True if some sub-value of ``container`` aliases ``value``."""
    return any(is_alias_of(sub_value, value) for sub_value in iter_sub_values(container))


def to_bool(value: Any) -> bool:
    """Boolean payload of a flag argument."""
    if not isinstance(value, bool):
        raise TypeError(f"Expected a bool value but got {type(value).__name__}: {value!r}")
    return value
