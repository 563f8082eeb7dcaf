"""In-memory sorted table backed by an append-only operation log."""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, ClassVar, Iterator, Optional, Union

from sortedcontainers import SortedDict

from .serialization import SerializationEngine, SerializationError, UnexpectedEOFError

_log = logging.getLogger(__name__)


class MemTableRecord(ABC):
    """A storable record identified by a string key."""

    TYPE_NAME: ClassVar[str]

    @abstractmethod
    def key(self) -> str:
        """The key the record is stored under."""


@dataclass(frozen=True)
class Insert:
    """Log entry storing a record."""

    record: Any


@dataclass(frozen=True)
class Delete:
    """Log entry marking a key as deleted."""

    key: str


LogOperation = Union[Insert, Delete]


def _to_wire(op: LogOperation) -> dict[str, Any]:
    if isinstance(op, Insert):
        return {"Insert": {"record": op.record}}
    return {"Delete": {"key": op.key}}


def _from_wire(value: Any) -> LogOperation:
    if isinstance(value, dict) and len(value) == 1:
        ((kind, body),) = value.items()
        if isinstance(body, dict):
            if kind == "Insert" and "record" in body:
                return Insert(body["record"])
            if kind == "Delete" and isinstance(body.get("key"), str):
                return Delete(body["key"])
    raise SerializationError(f"not a log operation: {value!r}")


class MemTableLog:
    """Append-only file of log operations."""

    def __init__(self, file: BinaryIO) -> None:
        self.file = file

    def append(self, op: LogOperation, serializer: SerializationEngine) -> None:
        """Encode ``op`` and write it durably to the end of the log."""
        self.file.write(serializer.serialize(_to_wire(op)))
        self.file.flush()

    def clear(self) -> None:
        """Discard every entry in the log."""
        self.file.truncate(0)
        self.file.seek(0)
        self.file.flush()

    def close(self) -> None:
        self.file.close()

    def __enter__(self) -> MemTableLog:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class MemTableLogReader:
    """Reads log operations one by one from a stream."""

    def __init__(
        self, stream: BinaryIO, serializer: Optional[SerializationEngine] = None
    ) -> None:
        self.stream = stream
        self.serializer = serializer

    def next_op(
        self, serializer: Optional[SerializationEngine] = None
    ) -> Optional[LogOperation]:
        """Return the next operation, or None at the end of the log."""
        serializer = serializer if serializer is not None else self.serializer
        if serializer is None:
            raise TypeError("a serializer is required to read the log")
        try:
            return _from_wire(serializer.deserialize(self.stream))
        except UnexpectedEOFError:
            return None
        except SerializationError as err:
            raise OSError("Failed to read next record") from err

    def __iter__(self) -> Iterator[LogOperation]:
        while (op := self.next_op()) is not None:
            yield op


class MemTable:
    """Sorted key/record map whose changes are recorded in a log.

    A key mapped to None is a tombstone: the record was deleted.
    """

    def __init__(
        self,
        log: MemTableLog,
        serializer: SerializationEngine,
        tree: Optional[SortedDict] = None,
    ) -> None:
        self.tree: SortedDict = SortedDict() if tree is None else tree
        self.log = log
        self.serializer = serializer

    @classmethod
    def open_or_build(
        cls, path: str | os.PathLike[str], serializer: SerializationEngine
    ) -> MemTable:
        """Open the log at ``path``, replaying it if it exists."""
        path = Path(path)
        tree = SortedDict()
        if path.exists():
            with path.open("rb") as stream:
                for op in MemTableLogReader(stream, serializer):
                    if isinstance(op, Insert):
                        tree[op.record.key()] = op.record
                    else:
                        tree[op.key] = None
        return cls(MemTableLog(path.open("ab")), serializer, tree)

    def insert(self, record: MemTableRecord) -> None:
        """Log and store ``record``, replacing any previous value for its key."""
        key = record.key()
        self.log.append(Insert(record), self.serializer)
        self.tree[key] = record

    def delete(self, key: str) -> None:
        """Mark ``key`` as deleted and log the deletion."""
        self.tree[key] = None
        _log.debug("%s is being deleted. New min is %s", key, self.tree.peekitem(0)[0])
        self.log.append(Delete(key), self.serializer)

    def get(self, key: str) -> Optional[MemTableRecord]:
        """Return the record for ``key``; None if absent or deleted."""
        return self.tree.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self.tree

    def __len__(self) -> int:
        return len(self.tree)

    def __iter__(self) -> Iterator[str]:
        return iter(self.tree)

    def items(self):
        """Key/value pairs in key order; deleted keys carry None."""
        return self.tree.items()

    def clear(self) -> None:
        """Drop every entry and empty the log."""
        self.tree.clear()
        self.log.clear()

    def close(self) -> None:
        self.log.close()

    def __enter__(self) -> MemTable:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()