from __future__ import annotations
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Iterable, Optional, Tuple

import numbers
import struct

from ..errors import MalformedInputError, MissingTagError, UnknownTagTypeError


class TagType(IntEnum):
    END = 0
    BYTE = 1
    SHORT = 2
    INT = 3
    LONG = 4
    FLOAT = 5
    DOUBLE = 6
    BYTE_ARRAY = 7
    STRING = 8
    LIST = 9
    COMPOUND = 10
    INT_ARRAY = 11
    LONG_ARRAY = 12

    @classmethod
    def from_id(cls, tag_id: int, *, name: Optional[str] = None) -> "TagType":
        try:
            return cls(tag_id)
        except ValueError:
            raise UnknownTagTypeError(tag_id, name=name) from None


TYPE_NAMES = {
    TagType.END: "End",
    TagType.BYTE: "Byte",
    TagType.SHORT: "Short",
    TagType.INT: "Int",
    TagType.LONG: "Long",
    TagType.FLOAT: "Float",
    TagType.DOUBLE: "Double",
    TagType.BYTE_ARRAY: "Byte Array",
    TagType.STRING: "String",
    TagType.LIST: "List",
    TagType.COMPOUND: "Compound",
    TagType.INT_ARRAY: "Int Array",
    TagType.LONG_ARRAY: "Long Array",
}

# bit widths of the signed integer scalars and array elements
INT_BITS = {
    TagType.BYTE: 8,
    TagType.SHORT: 16,
    TagType.INT: 32,
    TagType.LONG: 64,
}
ARRAY_ELEMENT_TYPE = {
    TagType.INT_ARRAY: TagType.INT,
    TagType.LONG_ARRAY: TagType.LONG,
}
CONTAINER_TYPES = frozenset({TagType.LIST, TagType.COMPOUND})

MAX_STRING_BYTES = 0xFFFF
# nesting limit for lists and compounds, counting the root container as 1
MAX_DEPTH = 512

_FLOAT_FORMATS = {TagType.FLOAT: ">f", TagType.DOUBLE: ">d"}


def _check_int(value: Any, bits: int, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedInputError(f"{what}: expected int, got {type(value).__name__}")
    lo, hi = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    if not lo <= value <= hi:
        raise MalformedInputError(f"{what}: {value} does not fit in {bits} signed bits")
    return value


def _check_utf8(value: Any, what: str) -> str:
    if not isinstance(value, str):
        raise MalformedInputError(f"{what}: expected str, got {type(value).__name__}")
    if len(value.encode("utf-8")) > MAX_STRING_BYTES:
        raise MalformedInputError(f"{what}: longer than {MAX_STRING_BYTES} UTF-8 bytes")
    return value


def _check_float(value: Any, kind: TagType, what: str) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise MalformedInputError(f"{what}: expected float, got {type(value).__name__}")
    fmt = _FLOAT_FORMATS[kind]
    try:
        return struct.unpack(fmt, struct.pack(fmt, float(value)))[0]
    except (OverflowError, struct.error) as e:
        raise MalformedInputError(f"{what}: {value} does not fit in a {TYPE_NAMES[kind]}") from e


def _value_key(tag: "Tag") -> Any:
    # floats compare by bit pattern so NaN equals itself and -0.0 differs from 0.0
    if tag.kind in _FLOAT_FORMATS:
        return struct.pack(_FLOAT_FORMATS[tag.kind], tag.value)
    return tag.value


@dataclass(frozen=True, eq=False)
class Tag:
    """
    One named, typed node of a tag tree.

    The node shape is selected by ``kind``:

    - integer scalars: ``int`` within the signed width of the kind
    - FLOAT / DOUBLE: ``float`` (FLOAT values are rounded to 32 bits on construction)
    - STRING: ``str``
    - BYTE_ARRAY: ``bytes``
    - INT_ARRAY / LONG_ARRAY: tuple of ``int``
    - LIST: tuple of unnamed ``Tag`` that all have ``kind == element_type``
    - COMPOUND: tuple of named ``Tag``

    ``element_type`` is only meaningful (and required) for LIST.

    Equality and hashing walk the tree without recursion, so trees nested
    up to ``MAX_DEPTH`` compare safely.
    """
    kind: TagType
    name: str
    value: Any
    element_type: Optional[TagType] = None
    depth: int = field(default=0, init=False, repr=False)

    def __post_init__(self):
        kind = TagType.from_id(int(self.kind), name=self.name)
        object.__setattr__(self, "kind", kind)
        _check_utf8(self.name, "tag name")
        what = f"{TYPE_NAMES[kind]} tag '{self.name}'"

        if kind != TagType.LIST and self.element_type is not None:
            raise MalformedInputError(f"{what}: only list tags carry an element type")

        if kind == TagType.END:
            raise MalformedInputError("End tags only terminate compounds and cannot hold a value")
        elif kind in INT_BITS:
            value = _check_int(self.value, INT_BITS[kind], what)
        elif kind in _FLOAT_FORMATS:
            value = _check_float(self.value, kind, what)
        elif kind == TagType.STRING:
            value = _check_utf8(self.value, what)
        elif kind == TagType.BYTE_ARRAY:
            if not isinstance(self.value, (bytes, bytearray, memoryview)):
                raise MalformedInputError(f"{what}: expected bytes, got {type(self.value).__name__}")
            value = bytes(self.value)
        elif kind in ARRAY_ELEMENT_TYPE:
            bits = INT_BITS[ARRAY_ELEMENT_TYPE[kind]]
            value = tuple(_check_int(v, bits, what) for v in self.value)
        elif kind == TagType.LIST:
            value = self._validated_list(what)
        else:
            value = tuple(self.value)
            for child in value:
                if not isinstance(child, Tag):
                    raise MalformedInputError(f"{what}: children must be tags")
        object.__setattr__(self, "value", value)

        if kind in CONTAINER_TYPES:
            depth = 1 + max((child.depth for child in value), default=0)
            if depth > MAX_DEPTH:
                raise MalformedInputError(f"{what}: nested deeper than {MAX_DEPTH} levels")
            object.__setattr__(self, "depth", depth)

    def _structure(self) -> Tuple[Any, ...]:
        """Flat pre-order description of the tree, used for equality and hashing."""
        tokens = []
        pending = [self]
        while pending:
            tag = pending.pop()
            if tag.is_container:
                tokens.append((tag.kind, tag.name, tag.element_type, len(tag.value)))
                pending.extend(reversed(tag.value))
            else:
                tokens.append((tag.kind, tag.name, _value_key(tag)))
        return tuple(tokens)

    def __eq__(self, other):
        if not isinstance(other, Tag):
            return NotImplemented
        if self is other:
            return True
        if self.kind != other.kind or self.depth != other.depth:
            return False
        return self._structure() == other._structure()

    def __hash__(self):
        return hash(self._structure())

    def _validated_list(self, what: str) -> Tuple["Tag", ...]:
        if self.element_type is None:
            raise MalformedInputError(f"{what}: list tags need an element type")
        element_type = TagType.from_id(int(self.element_type), name=self.name)
        object.__setattr__(self, "element_type", element_type)
        items = tuple(self.value)
        if items and element_type == TagType.END:
            raise MalformedInputError(f"{what}: non-empty list cannot have element type End")
        for item in items:
            if not isinstance(item, Tag):
                raise MalformedInputError(f"{what}: list items must be tags")
            if item.kind != element_type:
                raise MalformedInputError(
                    f"{what}: expected {TYPE_NAMES[element_type]} items, "
                    f"got {TYPE_NAMES[item.kind]}"
                )
            if item.name:
                raise MalformedInputError(f"{what}: list items are unnamed, got '{item.name}'")
        return items

    @property
    def type_name(self) -> str:
        return TYPE_NAMES[self.kind]

    @property
    def is_container(self) -> bool:
        return self.kind in CONTAINER_TYPES

    # compound lookup ---------------------------------------------------------

    def _require_compound(self) -> None:
        if self.kind != TagType.COMPOUND:
            raise TypeError(f"{self.type_name} tag '{self.name}' has no named children")

    def names(self) -> list[str]:
        self._require_compound()
        return [child.name for child in self.value]

    def get(self, name: str, default: Optional["Tag"] = None) -> Optional["Tag"]:
        self._require_compound()
        for child in self.value:
            if child.name == name:
                return child
        return default

    def __getitem__(self, name: str) -> "Tag":
        child = self.get(name)
        if child is None:
            raise MissingTagError(name, context=f"compound '{self.name}'")
        return child

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    # pretty printing ---------------------------------------------------------

    def _summary(self) -> str:
        if self.kind == TagType.BYTE_ARRAY:
            return f"{len(self.value)} bytes"
        if self.kind in ARRAY_ELEMENT_TYPE or self.is_container:
            return f"{len(self.value)} entries"
        return repr(self.value)

    def _pretty_lines(self, label: Optional[str] = None) -> list[str]:
        label = self.name if label is None else label
        lines = [f"{label} ({self.type_name}): {self._summary()}"]
        if not self.is_container:
            return lines

        last_index = len(self.value) - 1
        for i, child in enumerate(self.value):
            child_label = f"[{i}]" if self.kind == TagType.LIST else None
            child_lines = child._pretty_lines(child_label)
            is_last = i == last_index
            lines.append(("  `- " if is_last else "  |- ") + child_lines[0])
            continuation = "     " if is_last else "  |  "
            lines.extend(continuation + line for line in child_lines[1:])
        return lines

    def format_tree(self) -> str:
        """Indented, one-line-per-tag dump of this tag and its descendants."""
        return "\n".join(self._pretty_lines())


def byte_tag(name: str, value: int) -> Tag:
    return Tag(TagType.BYTE, name, value)


def short_tag(name: str, value: int) -> Tag:
    return Tag(TagType.SHORT, name, value)


def int_tag(name: str, value: int) -> Tag:
    return Tag(TagType.INT, name, value)


def long_tag(name: str, value: int) -> Tag:
    return Tag(TagType.LONG, name, value)


def float_tag(name: str, value: float) -> Tag:
    return Tag(TagType.FLOAT, name, value)


def double_tag(name: str, value: float) -> Tag:
    return Tag(TagType.DOUBLE, name, value)


def string_tag(name: str, value: str) -> Tag:
    return Tag(TagType.STRING, name, value)


def byte_array_tag(name: str, value: bytes) -> Tag:
    return Tag(TagType.BYTE_ARRAY, name, value)


def int_array_tag(name: str, values: Iterable[int]) -> Tag:
    return Tag(TagType.INT_ARRAY, name, tuple(values))


def long_array_tag(name: str, values: Iterable[int]) -> Tag:
    return Tag(TagType.LONG_ARRAY, name, tuple(values))


def list_tag(name: str, element_type: TagType, items: Iterable[Tag]) -> Tag:
    return Tag(TagType.LIST, name, tuple(items), element_type=element_type)


def compound_tag(name: str, children: Iterable[Tag]) -> Tag:
    return Tag(TagType.COMPOUND, name, tuple(children))
