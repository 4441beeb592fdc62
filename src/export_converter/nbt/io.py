from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

import logging
import struct

import numpy as np

from ..errors import MalformedInputError, TruncatedDataError
from .tags import CONTAINER_TYPES, MAX_DEPTH, TYPE_NAMES, Tag, TagType

logger = logging.getLogger(__name__)

_SCALAR_FORMATS = {
    TagType.BYTE: ">b",
    TagType.SHORT: ">h",
    TagType.INT: ">i",
    TagType.LONG: ">q",
    TagType.FLOAT: ">f",
    TagType.DOUBLE: ">d",
}
_ARRAY_DTYPES = {
    TagType.INT_ARRAY: np.dtype(">i4"),
    TagType.LONG_ARRAY: np.dtype(">i8"),
}


@dataclass
class _Reader:
    """Cursor over an in-memory byte buffer; every read is bounds checked."""
    data: bytes
    offset: int = 0

    def read(self, n: int) -> bytes:
        available = len(self.data) - self.offset
        if n > available:
            raise TruncatedDataError(self.offset, n, available)
        out = self.data[self.offset:self.offset + n]
        self.offset += n
        return out

    def unpack(self, fmt: str):
        return struct.unpack(fmt, self.read(struct.calcsize(fmt)))[0]

    def read_u8(self) -> int:
        return self.read(1)[0]

    def read_count(self, what: str) -> int:
        n = self.unpack(">i")
        if n < 0:
            raise MalformedInputError(f"Negative length {n} for {what}")
        return n

    def read_string(self) -> str:
        length = self.unpack(">H")
        raw = self.read(length)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedInputError(f"Invalid UTF-8 string at offset {self.offset - length}: {e}") from e


def _read_leaf(reader: _Reader, kind: TagType, name: str) -> Tag:
    if kind in _SCALAR_FORMATS:
        return Tag(kind, name, reader.unpack(_SCALAR_FORMATS[kind]))

    if kind == TagType.STRING:
        return Tag(kind, name, reader.read_string())

    if kind == TagType.BYTE_ARRAY:
        n = reader.read_count(f"byte array '{name}'")
        return Tag(kind, name, reader.read(n))

    if kind in _ARRAY_DTYPES:
        dtype = _ARRAY_DTYPES[kind]
        n = reader.read_count(f"array '{name}'")
        values = np.frombuffer(reader.read(n * dtype.itemsize), dtype=dtype)
        return Tag(kind, name, tuple(int(v) for v in values))

    raise MalformedInputError(f"Tag '{name}' has type End outside of a compound")


@dataclass
class _OpenContainer:
    """A list or compound whose payload is still being read."""
    kind: TagType
    name: str
    element_type: Optional[TagType] = None
    count: int = 0
    items: List[Tag] = field(default_factory=list)

    def close(self) -> Tag:
        return Tag(self.kind, self.name, tuple(self.items), element_type=self.element_type)


def _open_container(reader: _Reader, kind: TagType, name: str) -> _OpenContainer:
    if kind == TagType.COMPOUND:
        return _OpenContainer(kind, name)
    element_type = TagType.from_id(reader.read_u8(), name=name)
    n = reader.read_count(f"list '{name}'")
    if n and element_type == TagType.END:
        raise MalformedInputError(f"List '{name}' declares {n} items of type End")
    return _OpenContainer(kind, name, element_type, n)


def _read_tree(reader: _Reader, kind: TagType, name: str) -> Tag:
    """
    Read the payload of a ``kind`` tag named ``name``.

    Containers are tracked on an explicit stack instead of recursing, so
    nesting is bounded by ``MAX_DEPTH`` rather than the interpreter stack.
    """
    stack: List[_OpenContainer] = []
    while True:
        if kind in CONTAINER_TYPES:
            if len(stack) >= MAX_DEPTH:
                raise MalformedInputError(
                    f"Tag '{name}' at offset {reader.offset} is nested deeper than {MAX_DEPTH} levels"
                )
            stack.append(_open_container(reader, kind, name))
            done = None
        else:
            done = _read_leaf(reader, kind, name)

        # attach finished tags to their parents until one needs another child
        while True:
            if done is not None:
                if not stack:
                    return done
                stack[-1].items.append(done)
                done = None
            top = stack[-1]
            if top.kind == TagType.LIST:
                if len(top.items) < top.count:
                    # items share the list's element type and carry no id byte or name
                    kind, name = top.element_type, ""
                    break
            else:
                child_id = reader.read_u8()
                if child_id != TagType.END:
                    kind, name = _read_header(reader, child_id)
                    break
            done = stack.pop().close()


def _read_header(reader: _Reader, tag_id: int) -> Tuple[TagType, str]:
    kind = TagType.from_id(tag_id)
    if kind == TagType.END:
        raise MalformedInputError(f"Unexpected End tag at offset {reader.offset - 1}")
    return kind, reader.read_string()


def decode(data: bytes) -> Tag:
    """
    Decode an uncompressed tag file held in memory.

    The top-level tag must be a compound and must span the whole buffer.
    """
    reader = _Reader(bytes(data))
    kind, name = _read_header(reader, reader.read_u8())
    if kind != TagType.COMPOUND:
        raise MalformedInputError(
            f"Top-level tag '{name}' is a {TYPE_NAMES[kind]}, expected Compound"
        )
    root = _read_tree(reader, kind, name)
    if reader.offset != len(reader.data):
        raise MalformedInputError(
            f"{len(reader.data) - reader.offset} trailing bytes after top-level compound"
        )
    return root


def _encode_string(s: str) -> bytes:
    raw = s.encode("utf-8")
    return struct.pack(">H", len(raw)) + raw


def _encode_leaf(tag: Tag) -> bytes:
    kind = tag.kind
    if kind in _SCALAR_FORMATS:
        return struct.pack(_SCALAR_FORMATS[kind], tag.value)
    if kind == TagType.STRING:
        return _encode_string(tag.value)
    if kind == TagType.BYTE_ARRAY:
        return struct.pack(">i", len(tag.value)) + tag.value
    values = np.asarray(tag.value, dtype=_ARRAY_DTYPES[kind])
    return struct.pack(">i", len(tag.value)) + values.tobytes()


_END_BYTE = bytes([TagType.END])


def encode(tag: Tag) -> bytes:
    """Serialize ``tag`` (id byte, name and payload) to bytes."""
    pieces = []
    # (tag, framed) pairs still to write; bytes entries are written verbatim
    pending = [(tag, True)]
    while pending:
        item, framed = pending.pop()
        if isinstance(item, bytes):
            pieces.append(item)
            continue
        if framed:
            pieces.append(bytes([item.kind]) + _encode_string(item.name))
        if item.kind == TagType.LIST:
            pieces.append(bytes([item.element_type]) + struct.pack(">i", len(item.value)))
            pending.extend((child, False) for child in reversed(item.value))
        elif item.kind == TagType.COMPOUND:
            pending.append((_END_BYTE, False))
            pending.extend((child, True) for child in reversed(item.value))
        else:
            pieces.append(_encode_leaf(item))
    return b"".join(pieces)


def load(path: Union[str, Path]) -> Tag:
    """Read an uncompressed tag file whose root is a compound."""
    p = Path(path)
    data = p.read_bytes()
    logger.info(f"Read {len(data)} bytes from {p}")
    root = decode(data)
    logger.debug(f"Decoded root compound '{root.name}' with {len(root.value)} entries")
    return root


def save(path: Union[str, Path], tag: Tag) -> None:
    if tag.kind != TagType.COMPOUND:
        raise MalformedInputError(f"Top-level tag must be a Compound, got {tag.type_name}")
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    data = encode(tag)
    p.write_bytes(data)
    logger.info(f"Wrote {len(data)} bytes to {p}")
