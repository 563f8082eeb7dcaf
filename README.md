# sstables

A small log-structured key-value store. Records go first into an in-memory
table kept in key order and backed by an append-only log. Once the table is
large enough it is flushed to disk as a sorted string table: a storage file
holding the encoded records and a fixed-width index file that is
binary-searched on lookup. Deletions are stored as tombstones, so a deleted key
stays deleted even when an older table still holds a value for it.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Configuration

`sstables.config.Config` holds three sizes and is read from YAML:

```yaml
index_key_string_size: 24
index_offset_size: 8
memtable_threshold: 1024
```

- `index_key_string_size` – bytes reserved for each key in an index file;
  longer keys are truncated, shorter ones padded with zero bytes.
- `index_offset_size` – bytes of the little-endian storage offset that follows
  each key.
- `memtable_threshold` – after an insert, when the number of memtable entries
  times the size of one index entry reaches this value, the memtable is flushed.

```python
from sstables.config import Config

config = Config.from_file("config.yaml")
```

`Config.from_file` raises `ValueError` if the file is not a mapping or a field
is missing or not a non-negative integer. Unknown keys are ignored.

## Records and serializers

A record is a dataclass that subclasses `sstables.memtable.MemTableRecord` and
returns its key from `key()`. A `TYPE_NAME` class attribute names it in encoded
data (the class name is used otherwise).

`sstables.serialization` has two serializers, `BinarySerializationEngine` and
`JsonSerializationEngine` (one JSON value per line). Both encode `None`,
booleans, numbers, strings, lists, tuples, dicts and dataclass instances; the
binary one also handles `bytes`. To decode records the serializer must be told
their classes: `BinarySerializationEngine(types=[Photo])`. Reading past the end
of a stream raises `UnexpectedEOFError`; any other failure raises
`SerializationError`.

## Using the engine

The database directory must already exist; `Engine` creates `metadata`,
`indices`, `storage` and `logs` inside it. One engine handles one record type.

```python
from dataclasses import dataclass
from typing import ClassVar

from sstables.config import Config
from sstables.engine import Engine
from sstables.memtable import MemTableRecord
from sstables.serialization import BinarySerializationEngine


@dataclass(frozen=True)
class Photo(MemTableRecord):
    TYPE_NAME: ClassVar[str] = "Photo"
    id: int
    url: str
    thumbnail_url: str

    def key(self) -> str:
        return str(self.id)


config = Config.from_file("config.yaml")
serializer = BinarySerializationEngine(types=[Photo])

with Engine("db/", Photo.TYPE_NAME, serializer, serializer, config) as engine:
    engine.insert(Photo(42, "https://example.com/42.png", "https://example.com/42t.png"))
    engine.delete("50")           # leaves a tombstone
    record = engine.get("42")     # the record, or None if absent or deleted
    print(engine.memtable_len())  # entries in memory, tombstones included
```

`get` checks the memtable first and then the flushed tables from newest to
oldest, so the latest write for a key wins. On opening, the engine replays the
memtable log and reads the list of flushed tables from its metadata file.
Failures raise `EngineError` or one of its subclasses
(`DatabaseMissingError`, `MemtableInitializationError`, `InsertionError`,
`DeletionError`); table files that are missing or damaged raise
`DBFileDeletedError` or `DBFileCorruptedError` from `sstables.sstable`.

The lower-level pieces can be used on their own: `MemTable.open_or_build`
gives a logged sorted map, and `SSTable.create` / `SSTable.get` write and look
up a table (`SSTable.get` raises `KeyError` when the table has no entry for the
key).

## The demo command

```
sstables [--config config.yaml] [--db temp/db/] [--photos resources/photos.txt] [--count 5000]
```

The database directory must exist. If the memtable is empty, the command loads
every line `<id> <url> <thumbnail_url>` of the photos file, then deletes photos
1000, 50 and 5000. It prints how many entries are in memory, then reads ids 1
to `--count`, printing each photo found and checking that the deleted ones are
gone. It exits with status 1 and a message on standard error if anything fails.

## What it does not do

Flushed tables are never merged or compacted, and old tables are never
removed. A flush happens only after an insert, never after a delete. Keys are
compared as strings. There is no server or network access: the store is a
library used from one process.