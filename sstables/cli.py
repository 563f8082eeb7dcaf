"""Command that seeds a photo database and reads every record back."""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from typing import ClassVar, Optional, Sequence

from .config import Config
from .engine import Engine, EngineError
from .memtable import MemTableRecord
from .serialization import BinarySerializationEngine
from .sstable import SSTableError

_DELETED_IDS = (1000, 50, 5000)


@dataclass(frozen=True)
class Photo(MemTableRecord):
    """A photo keyed by its numeric id."""

    TYPE_NAME: ClassVar[str] = "Photo"
    id: int
    url: str
    thumbnail_url: str

    def key(self) -> str:
        return str(self.id)


class _CheckFailed(Exception):
    pass


def _seed(engine: Engine, photos_path: str) -> None:
    with open(photos_path, encoding="utf-8") as handle:
        for line in handle:
            values = line.rstrip("\n").rstrip("\r").split(" ")
            if len(values) != 3:
                raise ValueError("Wrong value")
            engine.insert(Photo(int(values[0]), values[1], values[2]))
    for photo_id in _DELETED_IDS:
        engine.delete(str(photo_id))


def _verify(engine: Engine, count: int) -> None:
    for i in range(1, count + 1):
        photo = engine.get(str(i))
        if i in _DELETED_IDS:
            if photo is not None:
                raise _CheckFailed(f"{i} still exists")
            continue
        if photo is None:
            raise _CheckFailed(f"loading {i} failed")
        print(f"{photo.id} - {photo.url} - {photo.thumbnail_url}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="sstables", description="Seed a photo database and read it back."
    )
    parser.add_argument("--config", default="config.yaml", help="YAML configuration file")
    parser.add_argument("--db", default="temp/db/", help="database directory")
    parser.add_argument("--photos", default="resources/photos.txt", help="seed data")
    parser.add_argument("--count", type=int, default=5000, help="ids to read back")
    args = parser.parse_args(argv)

    serializer = BinarySerializationEngine(types=[Photo])
    try:
        config = Config.from_file(args.config)
        with Engine(args.db, Photo.TYPE_NAME, serializer, serializer, config) as engine:
            if engine.memtable_len() == 0:
                _seed(engine, args.photos)
            print(f"Engine has {engine.memtable_len()} in memory")
            _verify(engine, args.count)
    except (OSError, ValueError, EngineError, SSTableError, _CheckFailed) as err:
        print(f"error: {err}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())