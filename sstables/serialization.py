"""Engines that turn values into bytes and read them back from a stream."""

from __future__ import annotations

import dataclasses
import json
import struct
from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Any, BinaryIO, Iterable


class SerializationError(Exception):
    """A value could not be encoded or decoded."""


class UnexpectedEOFError(SerializationError):
    """The stream ended before a whole value was read."""


def _type_name(cls: type) -> str:
    return getattr(cls, "TYPE_NAME", cls.__name__)


def _is_record(value: Any) -> bool:
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


class SerializationEngine(ABC):
    """Encodes values to bytes and decodes one value at a time from a stream.

    Dataclass instances are supported; to decode them their classes must be
    passed in ``types``.
    """

    def __init__(self, types: Iterable[type] = ()) -> None:
        self._types: dict[str, type] = {}
        for cls in types:
            if not (isinstance(cls, type) and dataclasses.is_dataclass(cls)):
                raise TypeError(f"{cls!r} is not a dataclass")
            self._types[_type_name(cls)] = cls

    @abstractmethod
    def serialize(self, data: Any) -> bytes:
        """Encode ``data`` to bytes."""

    @abstractmethod
    def deserialize(self, stream: BinaryIO) -> Any:
        """Read exactly one value from ``stream``."""

    def _build_record(self, name: str, values: dict[str, Any]) -> Any:
        cls = self._types.get(name)
        if cls is None:
            raise SerializationError(f"unknown record type {name!r}")
        try:
            return cls(**values)
        except TypeError as err:
            raise SerializationError(f"cannot build {name}: {err}") from err

    @staticmethod
    def _record_fields(record: Any) -> dict[str, Any]:
        return {f.name: getattr(record, f.name) for f in dataclasses.fields(record)}


class _Tag(IntEnum):
    NONE = 0
    FALSE = 1
    TRUE = 2
    INT = 3
    FLOAT = 4
    STR = 5
    BYTES = 6
    LIST = 7
    TUPLE = 8
    DICT = 9
    RECORD = 10


_FLOAT = struct.Struct("<d")


def _write_varint(out: bytearray, value: int) -> None:
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return


def _read(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size) if size else b""
    if data is None or len(data) < size:
        raise UnexpectedEOFError("stream ended inside a value")
    return data


def _read_varint(stream: BinaryIO) -> int:
    result = 0
    shift = 0
    while True:
        byte = _read(stream, 1)[0]
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result
        shift += 7


class BinarySerializationEngine(SerializationEngine):
    """Compact self-describing binary encoding with variable-length integers."""

    def serialize(self, data: Any) -> bytes:
        out = bytearray()
        self._encode(data, out)
        return bytes(out)

    def deserialize(self, stream: BinaryIO) -> Any:
        return self._decode(stream)

    def _encode_str(self, text: str, out: bytearray) -> None:
        data = text.encode("utf-8")
        _write_varint(out, len(data))
        out += data

    def _encode(self, value: Any, out: bytearray) -> None:
        if value is None:
            out.append(_Tag.NONE)
        elif value is True:
            out.append(_Tag.TRUE)
        elif value is False:
            out.append(_Tag.FALSE)
        elif isinstance(value, int):
            out.append(_Tag.INT)
            _write_varint(out, value * 2 if value >= 0 else -value * 2 - 1)
        elif isinstance(value, float):
            out.append(_Tag.FLOAT)
            out += _FLOAT.pack(value)
        elif isinstance(value, str):
            out.append(_Tag.STR)
            self._encode_str(value, out)
        elif isinstance(value, (bytes, bytearray)):
            out.append(_Tag.BYTES)
            _write_varint(out, len(value))
            out += value
        elif isinstance(value, (list, tuple)):
            out.append(_Tag.LIST if isinstance(value, list) else _Tag.TUPLE)
            _write_varint(out, len(value))
            for item in value:
                self._encode(item, out)
        elif isinstance(value, dict):
            out.append(_Tag.DICT)
            _write_varint(out, len(value))
            for key, item in value.items():
                self._encode(key, out)
                self._encode(item, out)
        elif _is_record(value):
            values = self._record_fields(value)
            out.append(_Tag.RECORD)
            self._encode_str(_type_name(type(value)), out)
            _write_varint(out, len(values))
            for name, item in values.items():
                self._encode_str(name, out)
                self._encode(item, out)
        else:
            raise SerializationError(
                f"Failed to encode: unsupported type {type(value).__name__}"
            )

    def _decode_str(self, stream: BinaryIO) -> str:
        data = _read(stream, _read_varint(stream))
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as err:
            raise SerializationError(f"Deserialization error: {err}") from err

    def _decode(self, stream: BinaryIO) -> Any:
        raw = _read(stream, 1)[0]
        try:
            tag = _Tag(raw)
        except ValueError:
            raise SerializationError(f"Deserialization error: unknown tag {raw}") from None

        if tag is _Tag.NONE:
            return None
        if tag is _Tag.TRUE:
            return True
        if tag is _Tag.FALSE:
            return False
        if tag is _Tag.INT:
            zigzag = _read_varint(stream)
            return zigzag >> 1 if not zigzag & 1 else -((zigzag + 1) >> 1)
        if tag is _Tag.FLOAT:
            return _FLOAT.unpack(_read(stream, _FLOAT.size))[0]
        if tag is _Tag.STR:
            return self._decode_str(stream)
        if tag is _Tag.BYTES:
            return _read(stream, _read_varint(stream))
        if tag in (_Tag.LIST, _Tag.TUPLE):
            items = [self._decode(stream) for _ in range(_read_varint(stream))]
            return items if tag is _Tag.LIST else tuple(items)
        if tag is _Tag.DICT:
            result: dict[Any, Any] = {}
            for _ in range(_read_varint(stream)):
                key = self._decode(stream)
                try:
                    result[key] = self._decode(stream)
                except TypeError as err:
                    raise SerializationError(f"Deserialization error: {err}") from err
            return result
        name = self._decode_str(stream)
        values = {}
        for _ in range(_read_varint(stream)):
            field_name = self._decode_str(stream)
            values[field_name] = self._decode(stream)
        return self._build_record(name, values)


class JsonSerializationEngine(SerializationEngine):
    """JSON encoding, one value per line."""

    _RECORD_KEYS = frozenset({"__record__", "fields"})

    def serialize(self, data: Any) -> bytes:
        try:
            text = json.dumps(data, default=self._default, separators=(",", ":"))
        except (TypeError, ValueError) as err:
            raise SerializationError(f"Failed to encode to JSON: {err}") from err
        return text.encode("utf-8") + b"\n"

    def deserialize(self, stream: BinaryIO) -> Any:
        line = stream.readline()
        if not line:
            raise UnexpectedEOFError("stream ended before a JSON value")
        try:
            return json.loads(line.decode("utf-8"), object_hook=self._hook)
        except UnicodeDecodeError as err:
            raise SerializationError(f"Deserialization error (JSON): {err}") from err
        except json.JSONDecodeError as err:
            if not line.endswith(b"\n"):
                raise UnexpectedEOFError("stream ended inside a JSON value") from err
            raise SerializationError(f"Deserialization error (JSON): {err}") from err

    def _default(self, value: Any) -> Any:
        if _is_record(value):
            return {
                "__record__": _type_name(type(value)),
                "fields": self._record_fields(value),
            }
        raise TypeError(f"unsupported type {type(value).__name__}")

    def _hook(self, obj: dict[str, Any]) -> Any:
        if obj.keys() == self._RECORD_KEYS and isinstance(obj["fields"], dict):
            return self._build_record(obj["__record__"], obj["fields"])
        return obj