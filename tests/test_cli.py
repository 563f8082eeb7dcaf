import pytest

from sstables.cli import Photo, main


def write_config(path):
    path.write_text(
        "index_key_string_size: 24\nindex_offset_size: 8\nmemtable_threshold: 1024\n"
    )


@pytest.fixture
def setup(tmp_path):
    config = tmp_path / "config.yaml"
    write_config(config)
    db = tmp_path / "db"
    db.mkdir()
    photos = tmp_path / "photos.txt"
    photos.write_text(
        "".join(f"{i} url{i} thumb{i}\n" for i in range(1, 101))
    )
    return config, db, photos


def run(config, db, photos, count=100):
    return main(
        ["--config", str(config), "--db", str(db), "--photos", str(photos),
         "--count", str(count)]
    )


def test_photo_key():
    assert Photo(42, "u", "t").key() == "42"


def test_seed_and_verify(setup, capsys):
    assert run(*setup) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].startswith("Engine has ")
    assert "1 - url1 - thumb1" in lines
    assert "100 - url100 - thumb100" in lines
    assert not any(line.startswith("50 - ") for line in lines)
    assert len(lines) == 1 + 99


def test_second_run_reads_persisted_data(setup, capsys):
    assert run(*setup) == 0
    capsys.readouterr()
    assert run(*setup) == 0
    lines = capsys.readouterr().out.splitlines()
    assert "99 - url99 - thumb99" in lines


def test_missing_database(setup, tmp_path, capsys):
    config, _, photos = setup
    assert run(config, tmp_path / "absent", photos) == 1
    assert "error:" in capsys.readouterr().err


def test_malformed_seed_line(setup, capsys):
    config, db, photos = setup
    photos.write_text("1 only-two\n")
    assert run(config, db, photos) == 1
    assert "Wrong value" in capsys.readouterr().err


def test_missing_record_reported(setup, capsys):
    config, db, photos = setup
    photos.write_text("".join(f"{i} u{i} t{i}\n" for i in range(1, 11) if i != 7))
    assert run(config, db, photos, count=10) == 1
    assert "loading 7 failed" in capsys.readouterr().err