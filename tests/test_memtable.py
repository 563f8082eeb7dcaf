import io
from dataclasses import dataclass

import pytest

from sstables.memtable import (
    Delete,
    Insert,
    MemTable,
    MemTableLog,
    MemTableLogReader,
    MemTableRecord,
)
from sstables.serialization import BinarySerializationEngine, JsonSerializationEngine


@dataclass
class Dummy(MemTableRecord):
    TYPE_NAME = "Dummy"

    name: str
    value: int

    def key(self):
        return self.name


@pytest.fixture(
    params=[BinarySerializationEngine, JsonSerializationEngine], ids=["binary", "json"]
)
def serializer(request):
    return request.param(types=[Dummy])


@pytest.fixture
def log_path(tmp_path):
    return tmp_path / "dummy.log"


def test_non_existing_folder_should_fail(serializer):
    with pytest.raises(OSError):
        MemTable.open_or_build("/invalid/path/to/file.log", serializer)


def test_no_repetitive_items(log_path, serializer):
    with MemTable.open_or_build(log_path, serializer) as table:
        table.insert(Dummy("hello", 10))
        table.insert(Dummy("hello", 20))
        assert len(table) == 1
        assert table.get("hello").value == 20


def test_roundtrip_get(log_path, serializer):
    with MemTable.open_or_build(log_path, serializer) as table:
        table.insert(Dummy("hello", 10))
        assert "hello" in table
        assert table.get("hello").value == 10


def test_deletion_marks_none(log_path, serializer):
    with MemTable.open_or_build(log_path, serializer) as table:
        table.insert(Dummy("hello", 1))
        assert len(table) == 1
        table.delete("hello")
        assert len(table) == 1
        assert "hello" in table
        assert table.get("hello") is None


def test_iterates_in_order(log_path, serializer):
    with MemTable.open_or_build(log_path, serializer) as table:
        table.insert(Dummy("b", 10))
        table.insert(Dummy("a", 20))
        table.insert(Dummy("c", 30))
        assert list(table) == ["a", "b", "c"]
        assert [v.value for _, v in table.items()] == [20, 10, 30]


def test_rebuild_from_log_preserves_state(log_path, serializer):
    with MemTable.open_or_build(log_path, serializer) as table:
        table.insert(Dummy("k1", 1))
        table.insert(Dummy("k2", 2))
        table.delete("k1")
        assert len(table) == 2

    with MemTable.open_or_build(log_path, serializer) as table:
        assert len(table) == 2
        assert table.get("k2") == Dummy("k2", 2)
        assert "k1" in table
        assert table.get("k1") is None


def test_missing_key_is_absent(log_path, serializer):
    with MemTable.open_or_build(log_path, serializer) as table:
        assert "nothing" not in table
        assert table.get("nothing") is None


def test_clear_empties_table_and_log(log_path, serializer):
    with MemTable.open_or_build(log_path, serializer) as table:
        table.insert(Dummy("a", 1))
        table.clear()
        assert len(table) == 0
        table.insert(Dummy("b", 2))
    assert log_path.stat().st_size > 0

    with MemTable.open_or_build(log_path, serializer) as table:
        assert list(table) == ["b"]


def test_truncated_log_tail_is_ignored(log_path, serializer):
    with MemTable.open_or_build(log_path, serializer) as table:
        table.insert(Dummy("a", 1))
        table.insert(Dummy("b", 2))
    data = log_path.read_bytes()
    log_path.write_bytes(data[:-3])

    with MemTable.open_or_build(log_path, serializer) as table:
        assert list(table) == ["a"]


def test_log_reader_yields_operations_in_order(serializer):
    buffer = io.BytesIO()
    log = MemTableLog(buffer)
    log.append(Insert(Dummy("x", 5)), serializer)
    log.append(Delete("x"), serializer)
    buffer.seek(0)

    ops = list(MemTableLogReader(buffer, serializer))
    assert ops == [Insert(Dummy("x", 5)), Delete("x")]


def test_log_reader_next_op_returns_none_at_end(serializer):
    reader = MemTableLogReader(io.BytesIO(b""))
    assert reader.next_op(serializer) is None


def test_log_reader_rejects_non_operations(serializer):
    stream = io.BytesIO(serializer.serialize({"Bogus": {"key": "x"}}))
    with pytest.raises(OSError, match="Failed to read next record"):
        MemTableLogReader(stream, serializer).next_op()


def test_log_clear_truncates(serializer):
    buffer = io.BytesIO()
    log = MemTableLog(buffer)
    log.append(Delete("x"), serializer)
    log.clear()
    assert buffer.getvalue() == b""