"""Storage engine combining a logged memtable with flushed sorted tables."""

from __future__ import annotations

import contextlib
import os
from pathlib import Path
from typing import Any, Optional

from .config import Config
from .memtable import MemTable, MemTableRecord
from .serialization import SerializationEngine, SerializationError
from .sstable import SSTable

_SUBDIRS = ("metadata", "indices", "storage", "logs")


class EngineError(Exception):
    """The storage engine failed."""


class DatabaseMissingError(EngineError):
    """The database directory does not exist."""


class MemtableInitializationError(EngineError):
    """The memtable log could not be opened or replayed."""


class InsertionError(EngineError):
    """A record could not be inserted."""


class DeletionError(EngineError):
    """A key could not be deleted."""


class Engine:
    """Key/record store for one record type inside a database directory."""

    def __init__(
        self,
        db: str | os.PathLike[str],
        type_name: str,
        memtable_serializer: SerializationEngine,
        storage_serializer: SerializationEngine,
        config: Config,
    ) -> None:
        self.db_path = Path(db)
        if not self.db_path.exists():
            raise DatabaseMissingError(f"database directory {db} does not exist")
        for sub in _SUBDIRS:
            with contextlib.suppress(OSError):
                (self.db_path / sub).mkdir(parents=True, exist_ok=True)

        self.type_name = type_name
        self.config = config
        self.serializer = storage_serializer

        try:
            self.memtable = MemTable.open_or_build(
                self.db_path / "logs" / f"{type_name}.log", memtable_serializer
            )
        except (OSError, SerializationError) as err:
            raise MemtableInitializationError(str(err)) from err

        metadata_path = self.db_path / "metadata" / f"{type_name}.meta"
        try:
            self._metadata = open(metadata_path, "a+", encoding="utf-8")
        except OSError as err:
            self.memtable.close()
            raise EngineError(f"cannot open metadata {metadata_path}: {err}") from err
        try:
            self.sstables: list[SSTable] = self._read_sstables()
        except EngineError:
            self.close()
            raise

    def memtable_len(self) -> int:
        """Number of entries, tombstones included, held in memory."""
        return len(self.memtable)

    def insert(self, record: MemTableRecord) -> None:
        """Store ``record``, flushing the memtable once it is large enough."""
        try:
            self.memtable.insert(record)
        except (OSError, SerializationError) as err:
            raise InsertionError(str(err)) from err
        self._flush_if_ready()

    def delete(self, key: str) -> None:
        """Mark ``key`` as deleted."""
        try:
            self.memtable.delete(key)
        except (OSError, SerializationError) as err:
            raise DeletionError(str(err)) from err

    def get(self, key: str) -> Optional[Any]:
        """Return the newest record for ``key``, or None if absent or deleted."""
        if key in self.memtable:
            return self.memtable.get(key)
        for table in reversed(self.sstables):
            try:
                return table.get(key, self.config, self.serializer)
            except KeyError:
                continue
        return None

    def close(self) -> None:
        self.memtable.close()
        self._metadata.close()

    def __enter__(self) -> Engine:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _flush_if_ready(self) -> None:
        pair_size = self.config.index_key_string_size + self.config.index_offset_size
        if pair_size * len(self.memtable) < self.config.memtable_threshold:
            return
        name = f"{self.type_name}-{len(self.sstables)}.log"
        table = SSTable.create(
            str(self.db_path / "storage" / name),
            str(self.db_path / "indices" / name),
            self.memtable.tree,
            self.serializer,
            self.config,
        )
        self._add_sstable_to_metadata(table)
        self.sstables.append(table)
        self.memtable.clear()

    def _read_sstables(self) -> list[SSTable]:
        self._metadata.seek(0)
        tables = []
        for line in self._metadata:
            values = line.rstrip("\n").split(" ")
            if len(values) != 5:
                raise EngineError("Invalid metadata")
            storage_path, index_path, low, high, size = values
            try:
                count = int(size)
            except ValueError as err:
                raise EngineError("Invalid metadata") from err
            tables.append(SSTable(storage_path, index_path, low, high, count))
        return tables

    def _add_sstable_to_metadata(self, table: SSTable) -> None:
        self._metadata.write(
            f"{table.storage_path} {table.index_path} {table.min} {table.max} {table.size}\n"
        )
        self._metadata.flush()