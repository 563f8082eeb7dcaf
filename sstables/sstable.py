"""Immutable sorted tables on disk: a storage file plus a fixed-width index."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from operator import itemgetter
from pathlib import Path
from typing import Any, BinaryIO, Optional

from .config import Config
from .serialization import SerializationEngine, SerializationError

_log = logging.getLogger(__name__)


class SSTableError(Exception):
    """A sorted table could not be written or read."""


class StorageFileExistsError(SSTableError):
    """The storage file of a new table already exists."""


class IndexFileExistsError(SSTableError):
    """The index file of a new table already exists."""


class FileCreationError(SSTableError):
    """A table file could not be created."""


class EncodingError(SSTableError):
    """A value could not be encoded for storage."""


class EmptyMemtableError(SSTableError):
    """A table cannot be built from an empty memtable."""


class DBFileDeletedError(SSTableError):
    """A file that belongs to a table is missing."""

    def __init__(self, file: str) -> None:
        super().__init__(f"database file {file} is missing")
        self.file = file


class DBFileCorruptedError(SSTableError):
    """A file that belongs to a table holds invalid data."""

    def __init__(self, file: str) -> None:
        super().__init__(f"database file {file} is corrupted")
        self.file = file


def _index_entry(key: str, offset: int, config: Config) -> bytes:
    size = config.index_key_string_size
    key_bytes = key.encode("utf-8")[:size].ljust(size, b"\0")
    try:
        offset_bytes = offset.to_bytes(config.index_offset_size, "little")
    except OverflowError as err:
        raise EncodingError(f"offset {offset} does not fit the index") from err
    return key_bytes + offset_bytes


@dataclass
class SSTable:
    """A flushed memtable: records in key order and an index to find them."""

    storage_path: str
    index_path: str
    min: str
    max: str
    size: int

    @classmethod
    def create(
        cls,
        storage_path: str | os.PathLike[str],
        index_path: str | os.PathLike[str],
        tree: Any,
        serializer: SerializationEngine,
        config: Config,
    ) -> SSTable:
        """Write the entries of ``tree`` (a key -> record-or-None mapping) to disk."""
        entries = sorted(tree.items(), key=itemgetter(0))
        if not entries:
            raise EmptyMemtableError("cannot build a table from an empty memtable")
        storage = str(storage_path)
        index = str(index_path)
        if Path(storage).exists():
            raise StorageFileExistsError(storage)
        if Path(index).exists():
            raise IndexFileExistsError(index)

        offsets: list[tuple[str, int]] = []
        try:
            storage_file = open(storage, "xb")
        except FileExistsError as err:
            raise StorageFileExistsError(storage) from err
        except OSError as err:
            raise FileCreationError(storage) from err
        with storage_file:
            for key, value in entries:
                offsets.append((key, storage_file.tell()))
                try:
                    encoded = serializer.serialize(value)
                except SerializationError as err:
                    raise EncodingError(f"cannot encode record {key!r}") from err
                try:
                    storage_file.write(encoded)
                except OSError as err:
                    raise SSTableError(f"failed to write {storage}: {err}") from err
        _log.debug("%s: %s", storage, " ".join(key for key, _ in entries))

        try:
            index_file = open(index, "xb")
        except FileExistsError as err:
            raise IndexFileExistsError(index) from err
        except OSError as err:
            raise FileCreationError(index) from err
        with index_file:
            for key, offset in offsets:
                try:
                    index_file.write(_index_entry(key, offset, config))
                except OSError as err:
                    raise SSTableError(f"failed to write {index}: {err}") from err

        return cls(storage, index, entries[0][0], entries[-1][0], len(entries))

    def get(self, key: str, config: Config, serializer: SerializationEngine) -> Optional[Any]:
        """Return the stored record for ``key``, or None if it was deleted.

        Raises KeyError when the table holds no entry for ``key``.
        """
        if key > self.max or key < self.min:
            raise KeyError(key)

        key_size = config.index_key_string_size
        offset_size = config.index_offset_size
        unit = key_size + offset_size
        try:
            index_file = open(self.index_path, "rb")
        except OSError as err:
            raise DBFileDeletedError(self.index_path) from err

        with index_file:
            if unit == 0 or os.fstat(index_file.fileno()).st_size != self.size * unit:
                raise DBFileCorruptedError(self.index_path)

            lo, hi = 0, self.size
            while lo < hi:
                mid = (lo + hi) // 2
                if self._read_key(index_file, mid * unit, key_size) < key:
                    lo = mid + 1
                else:
                    hi = mid

            if lo < self.size and self._read_key(index_file, lo * unit, key_size) == key:
                offset = int.from_bytes(self._read_exact(index_file, offset_size), "little")
                return self._load_record(offset, serializer)
        raise KeyError(key)

    def _read_exact(self, stream: BinaryIO, size: int) -> bytes:
        data = stream.read(size)
        if len(data) != size:
            raise DBFileCorruptedError(self.index_path)
        return data

    def _read_key(self, stream: BinaryIO, position: int, size: int) -> str:
        try:
            stream.seek(position)
        except OSError as err:
            raise DBFileCorruptedError(self.index_path) from err
        raw = self._read_exact(stream, size)
        return raw.decode("utf-8", errors="replace").rstrip("\0")

    def _load_record(self, offset: int, serializer: SerializationEngine) -> Optional[Any]:
        try:
            storage_file = open(self.storage_path, "rb")
        except OSError as err:
            raise DBFileDeletedError(self.storage_path) from err
        with storage_file:
            storage_file.seek(offset)
            try:
                return serializer.deserialize(storage_file)
            except SerializationError as err:
                raise DBFileCorruptedError(self.storage_path) from err