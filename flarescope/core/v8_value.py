"""Decoder for the V8 structured-clone wire format.

Actor storage keeps values in ``_cf_KV`` as bytes produced by the V8 value
serializer.  This module decodes the subset that plain storage values use:
primitives, strings, numbers, bigints, dates, regexps, plain objects,
dense and sparse arrays, maps, sets, array buffers, boxed primitives, and
back-references.  Anything else raises ``V8DecodeError`` so the caller
can fall back to the raw bytes.

Mapping to Python: objects and maps with hashable keys become ``dict``,
arrays and sets become ``list``, ``undefined``/``null``/holes become
``None``, dates become timezone-aware ``datetime``.
"""

from __future__ import annotations

import struct
from datetime import datetime, timezone
from typing import Any

_VERSION = 0xFF
_PADDING = 0x00

# Nesting bound; each level costs several Python frames.
MAX_DEPTH = 128
MAX_SPARSE_LENGTH = 1_000_000

_STRING_ENCODINGS = {'"': "latin-1", "S": "utf-8", "c": "utf-16-le"}


class V8DecodeError(ValueError):
    """Raised when bytes are not a value this decoder understands."""


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0
        self._objects: list[Any] = []
        self._depth = 0

    # -- primitives -----------------------------------------------------

    def _byte(self) -> int:
        if self._pos >= len(self._data):
            raise V8DecodeError("unexpected end of data")
        value = self._data[self._pos]
        self._pos += 1
        return value

    def _bytes(self, length: int) -> bytes:
        end = self._pos + length
        if end > len(self._data):
            raise V8DecodeError("unexpected end of data")
        chunk = self._data[self._pos : end]
        self._pos = end
        return chunk

    def _varint(self) -> int:
        result = 0
        shift = 0
        while True:
            byte = self._byte()
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return result
            shift += 7
            if shift > 70:
                raise V8DecodeError("varint too long")

    def _zigzag(self) -> int:
        raw = self._varint()
        return (raw >> 1) ^ -(raw & 1)

    def _double(self) -> float:
        return struct.unpack("<d", self._bytes(8))[0]

    def _bigint(self) -> int:
        bitfield = self._varint()
        digits = self._bytes(bitfield >> 1)
        value = int.from_bytes(digits, "little") if digits else 0
        return -value if bitfield & 1 else value

    def _tag(self) -> str:
        while True:
            byte = self._byte()
            if byte == _PADDING:
                continue
            if byte == ord("?"):
                self._varint()
                continue
            return chr(byte)

    def _peek_tag(self) -> str:
        saved = self._pos
        try:
            return self._tag()
        finally:
            self._pos = saved

    # -- entry points ---------------------------------------------------

    def read_header(self) -> None:
        if self._pos < len(self._data) and self._data[self._pos] == _VERSION:
            self._pos += 1
            self._varint()

    def at_end(self) -> bool:
        return all(b == _PADDING for b in self._data[self._pos :])

    def _remember(self, value: Any) -> Any:
        self._objects.append(value)
        return value

    def read_value(self) -> Any:
        self._depth += 1
        if self._depth > MAX_DEPTH:
            raise V8DecodeError(f"value nested deeper than {MAX_DEPTH} levels")
        try:
            return self._read_tagged()
        finally:
            self._depth -= 1

    def _read_tagged(self) -> Any:
        tag = self._tag()
        if tag in ("_", "0", "-"):
            return None
        if tag == "T":
            return True
        if tag == "F":
            return False
        if tag == "I":
            return self._zigzag()
        if tag == "U":
            return self._varint()
        if tag == "N":
            return self._double()
        if tag == "Z":
            return self._bigint()
        if tag in ('"', "S", "c"):
            return self._string(tag)
        if tag == "^":
            ref = self._varint()
            if ref >= len(self._objects):
                raise V8DecodeError(f"invalid object reference {ref}")
            return self._objects[ref]
        if tag == "o":
            return self._object()
        if tag == "A":
            return self._dense_array()
        if tag == "a":
            return self._sparse_array()
        if tag == "D":
            millis = self._double()
            return self._remember(self._date(millis))
        if tag in ("y", "x"):
            return self._remember(tag == "y")
        if tag == "n":
            return self._remember(self._double())
        if tag == "z":
            return self._remember(self._bigint())
        if tag == "s":
            return self._remember(self._string(self._tag()))
        if tag == "R":
            pattern = self._string(self._tag())
            self._varint()  # flags
            return self._remember(pattern)
        if tag == ";":
            return self._map()
        if tag == "'":
            return self._set()
        if tag == "B":
            return self._remember(self._bytes(self._varint()))
        raise V8DecodeError(f"unsupported tag {tag!r}")

    # -- compound values ------------------------------------------------

    def _string(self, tag: str) -> str:
        encoding = _STRING_ENCODINGS.get(tag)
        if encoding is None:
            raise V8DecodeError(f"expected a string, got tag {tag!r}")
        raw = self._bytes(self._varint())
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError as exc:
            raise V8DecodeError(f"undecodable {encoding} string") from exc

    @staticmethod
    def _date(millis: float) -> datetime:
        try:
            return datetime.fromtimestamp(millis / 1000.0, tz=timezone.utc)
        except (ValueError, OverflowError, OSError) as exc:
            raise V8DecodeError(f"invalid date value {millis!r}") from exc

    @staticmethod
    def _key(key: Any) -> str:
        if isinstance(key, float) and key.is_integer():
            return str(int(key))
        if isinstance(key, (str, int)):
            return str(key)
        raise V8DecodeError(f"invalid property key {key!r}")

    def _properties(self, target: dict[str, Any], end_tag: str) -> int:
        count = 0
        while self._peek_tag() != end_tag:
            key = self._key(self.read_value())
            target[key] = self.read_value()
            count += 1
        self._tag()
        return count

    def _object(self) -> dict[str, Any]:
        obj = self._remember({})
        count = self._properties(obj, "{")
        if self._varint() != count:
            raise V8DecodeError("object property count mismatch")
        return obj

    def _dense_array(self) -> list[Any]:
        length = self._varint()
        items: list[Any] = self._remember([])
        for _ in range(length):
            items.append(self.read_value())
        extra: dict[str, Any] = {}
        self._properties(extra, "$")
        self._varint()
        self._varint()
        for key, value in extra.items():
            if key.isdigit() and int(key) < len(items):
                items[int(key)] = value
        return items

    def _sparse_array(self) -> list[Any]:
        length = self._varint()
        if length > MAX_SPARSE_LENGTH:
            raise V8DecodeError(f"sparse array length {length} too large")
        items: list[Any] = self._remember([None] * length)
        extra: dict[str, Any] = {}
        self._properties(extra, "@")
        self._varint()
        self._varint()
        for key, value in extra.items():
            if key.isdigit() and int(key) < length:
                items[int(key)] = value
        return items

    def _map(self) -> Any:
        pairs: list[list[Any]] = []
        slot = len(self._objects)
        self._remember(pairs)
        while self._peek_tag() != ":":
            pairs.append([self.read_value(), self.read_value()])
        self._tag()
        self._varint()
        try:
            result: Any = {key: value for key, value in pairs}
        except TypeError:
            return pairs
        self._objects[slot] = result
        return result

    def _set(self) -> list[Any]:
        items: list[Any] = self._remember([])
        while self._peek_tag() != ",":
            items.append(self.read_value())
        self._tag()
        self._varint()
        return items


def deserialize(data: bytes) -> Any:
    """Decode one serialized value.

    Raises
    ------
    V8DecodeError
        If *data* is truncated, has trailing content, or uses a tag this
        decoder does not support.
    """
    reader = _Reader(bytes(data))
    reader.read_header()
    value = reader.read_value()
    if not reader.at_end():
        raise V8DecodeError("trailing data after value")
    return value


def decode_or_raw(value: Any) -> Any:
    """Decode *value* if it is bytes; return it unchanged when that fails."""
    if not isinstance(value, (bytes, bytearray, memoryview)):
        return value
    try:
        return deserialize(bytes(value))
    except V8DecodeError:
        return bytes(value)
