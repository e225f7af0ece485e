"""
In-memory representation of a structured document.

A document is made of one or more branches. Each branch is an ordered list of
key/value items, where a value is a nested branch, a list of values or a
scalar. Order is preserved everywhere and keys are not required to be unique.
"""

import datetime
import typing

import attr

from .metadata import Metadata

# Kinds of path segment.
NAME = 'name'
INDEX = 'index'
SCALAR = 'scalar'

SCALAR_KEY_TYPES = (type(None), bool, int, float, datetime.date)


@attr.s(frozen=True, eq=False, repr=False)
class Key:
    """
    A path segment: a string name, an integer list index, or a mapping key
    that is some other scalar (null, a boolean, a number or a timestamp).

    Two keys are equal only when both their kind and their value match, so
    the name "1", the index 1 and the mapping key 1 are all different keys.
    """

    value: typing.Any = attr.ib()
    kind: str = attr.ib(validator=attr.validators.in_((NAME, INDEX, SCALAR)))

    @kind.default
    def _default_kind(self):
        if isinstance(self.value, int) and not isinstance(self.value, bool):
            return INDEX
        return NAME

    @value.validator
    def _check_value(self, attribute, value):
        if self.kind == NAME and isinstance(value, str):
            return
        if self.kind == INDEX and isinstance(value, int) and not isinstance(value, bool):
            return
        if self.kind == SCALAR and isinstance(value, SCALAR_KEY_TYPES):
            return
        raise TypeError(f"{value!r} is not a valid {self.kind} key")

    @classmethod
    def for_mapping(cls, value) -> 'Key':
        """The key of a mapping entry, keeping non-string keys as they are."""
        if isinstance(value, str):
            return cls(str(value))
        return cls(value, kind=SCALAR)

    @property
    def is_index(self) -> bool:
        return self.kind == INDEX

    def _identity(self):
        # True == 1 in Python, but not in a document.
        if self.kind == SCALAR:
            return (self.kind, type(self.value), self.value)
        return (self.kind, self.value)

    def __eq__(self, other):
        if not isinstance(other, Key):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self):
        return hash(self._identity())

    def __str__(self):
        return str(self.value)

    def __repr__(self):
        if self.kind == SCALAR:
            return f"Key({self.value!r}, kind={self.kind!r})"
        return f"Key({self.value!r})"


Path = typing.Sequence[Key]


def convert_key_to_path(key: str) -> typing.List[Key]:
    """Split a dotted key like 'a.b.c' into a path of string keys."""
    return [Key(segment) for segment in key.split('.')]


@attr.s(frozen=True)
class TreeItem:
    key: Key = attr.ib()
    value: typing.Any = attr.ib()


class TreeBranch(list):
    """An ordered sequence of TreeItem."""

    @classmethod
    def from_mapping(cls, mapping: typing.Mapping) -> 'TreeBranch':
        return cls(TreeItem(Key.for_mapping(key), _from_python(value)) for key, value in mapping.items())

    def to_python(self) -> dict:
        """
        Convert the branch to plain dicts and lists.

        Duplicate keys collapse to the last value.
        """
        return {item.key.value: _to_python(item.value) for item in self}

    def get(self, key: Key, default=None):
        for item in self:
            if item.key == key:
                return item.value
        return default

    def keys(self) -> typing.List[Key]:
        return [item.key for item in self]

    def set(self, path: Path, value) -> 'TreeBranch':
        """
        Return a copy of this branch with value set at path.

        Existing values are overwritten, missing keys are appended after the
        existing items and missing ancestors are created. The branch itself is
        never modified.
        """
        if not path:
            raise ValueError("Can't set a value at an empty path")

        head, rest = _as_key(path[0]), path[1:]
        branch = TreeBranch(self)
        for index, item in enumerate(branch):
            if item.key == head:
                branch[index] = attr.evolve(item, value=_set_value(item.value, rest, value))
                return branch

        branch.append(TreeItem(key=head, value=_set_value(None, rest, value)))
        return branch


def _as_key(segment) -> Key:
    return segment if isinstance(segment, Key) else Key(segment)


def _set_value(current, path: Path, value):
    if not path:
        return value

    head = _as_key(path[0])
    if not head.is_index:
        branch = current if isinstance(current, TreeBranch) else TreeBranch()
        return branch.set(path, value)

    items = list(current) if _is_list(current) else []
    if head.value < len(items):
        items[head.value] = _set_value(items[head.value], path[1:], value)
    else:
        items.append(_set_value(None, path[1:], value))
    return items


def _is_list(value) -> bool:
    return isinstance(value, list) and not isinstance(value, TreeBranch)


def _from_python(value):
    if isinstance(value, typing.Mapping):
        return TreeBranch.from_mapping(value)
    if isinstance(value, (list, tuple)):
        return [_from_python(v) for v in value]
    return value


def _to_python(value):
    if isinstance(value, TreeBranch):
        return value.to_python()
    if isinstance(value, list):
        return [_to_python(v) for v in value]
    return value


@attr.s
class Tree:
    branches: typing.List[TreeBranch] = attr.ib()
    metadata: Metadata = attr.ib()
