from datetime import datetime, timezone
import json
from pathlib import Path
import sqlite3

from typer.testing import CliRunner

from chatsweep.cli import app

runner = CliRunner()


def _ts(year: int, month: int) -> int:
    return int(datetime(year, month, 15, tzinfo=timezone.utc).timestamp())


def _put(path: Path, size: int) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x" * size)


def _setup(tmp_path: Path) -> list[str]:
    data = tmp_path / "Pic"
    _put(data / "2020-01" / "Ori" / "old.jpg", 300)
    _put(data / "2020-02" / "Ori" / "cat.jpg", 40)
    db = tmp_path / "db"
    db.mkdir()

    conn = sqlite3.connect(db / "files_in_chat.clean.db")
    conn.execute(
        "CREATE TABLE files_in_chat_table (`40001` INTEGER, `40010` INTEGER, `40021` TEXT, `40050` INTEGER,"
        " `45002` INTEGER, `45402` TEXT, `45403` TEXT, `45404` TEXT, `45405` INTEGER)"
    )
    conn.executemany(
        "INSERT INTO files_in_chat_table(`40021`, `40010`, `45402`, `40050`) VALUES (?, ?, ?, ?)",
        [("9", 2, "old.jpg", _ts(2020, 1)), ("8", 2, "cat.jpg", _ts(2020, 2)), ("7", 2, "gone.jpg", _ts(2020, 2))],
    )
    conn.commit()
    conn.close()

    conn = sqlite3.connect(db / "group_info.clean.db")
    conn.execute(
        "CREATE TABLE group_detail_info_ver1 (`60001` INTEGER, `60007` TEXT, `60026` TEXT, `60002` TEXT,"
        " `60004` INTEGER, `60005` INTEGER, `60006` INTEGER, `60340` INTEGER)"
    )
    conn.execute("INSERT INTO group_detail_info_ver1(`60001`, `60007`) VALUES (9, 'Old photos')")
    conn.commit()
    conn.close()

    return [
        "--config",
        str(tmp_path / "config.yaml"),
        "--data-dir",
        str(data),
        "--db-dir",
        str(db),
    ]


def test_groups_json_lists_non_empty_groups(tmp_path: Path) -> None:
    base = _setup(tmp_path)

    result = runner.invoke(app, [*base, "groups", "--json"])

    assert result.exit_code == 0, result.output
    rows = json.loads(result.stdout)
    assert [(r["group_id"], r["group_name"], r["total_size"]) for r in rows] == [
        ("9", "Old photos", 300),
        ("8", "Group 8", 40),
    ]
    assert (tmp_path / "config.yaml").exists()


def test_groups_show_empty_and_sort_by_name(tmp_path: Path) -> None:
    base = _setup(tmp_path)

    result = runner.invoke(app, [*base, "groups", "--show-empty", "--sort", "name", "--json"])

    assert result.exit_code == 0, result.output
    assert [r["group_name"] for r in json.loads(result.stdout)] == ["Group 7", "Group 8", "Old photos"]


def test_windows_reports_every_preset(tmp_path: Path) -> None:
    base = _setup(tmp_path)

    result = runner.invoke(app, [*base, "windows", "9", "8", "--json"])

    assert result.exit_code == 0, result.output
    rows = json.loads(result.stdout)
    assert [r["days"] for r in rows] == [None, 3, 7, 14, 30, 90, 180]
    assert {r["freeable"] for r in rows} == {340}


def test_clean_requires_confirmation(tmp_path: Path) -> None:
    base = _setup(tmp_path)

    result = runner.invoke(app, [*base, "clean", "9"], input="n\n")

    assert result.exit_code == 0
    assert (tmp_path / "Pic" / "2020-01" / "Ori" / "old.jpg").exists()


def test_clean_with_yes_deletes_selected_group(tmp_path: Path) -> None:
    base = _setup(tmp_path)

    result = runner.invoke(app, [*base, "clean", "9", "--older-than", "30", "--yes", "--json"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == [
        {"group_id": "9", "group_name": "Old photos", "deleted": 1, "failed": 0, "error": None}
    ]
    assert not (tmp_path / "Pic" / "2020-01" / "Ori" / "old.jpg").exists()
    assert (tmp_path / "Pic" / "2020-02" / "Ori" / "cat.jpg").exists()


def test_migrate_flat_copies_into_target(tmp_path: Path) -> None:
    base = _setup(tmp_path)
    target = tmp_path / "out"

    result = runner.invoke(app, [*base, "migrate", "8", "--target", str(target), "--flat", "--yes", "--json"])

    assert result.exit_code == 0, result.output
    row = json.loads(result.stdout)[0]
    assert (row["migrated"], row["failed"], row["total_size"], row["error"]) == (1, 0, 40, None)
    assert [p.name for p in target.iterdir()] == ["cat.jpg"]
    assert (tmp_path / "Pic" / "2020-02" / "Ori" / "cat.jpg").exists()


def test_missing_database_exits_with_error(tmp_path: Path) -> None:
    data = tmp_path / "Pic"
    data.mkdir()

    result = runner.invoke(
        app,
        ["--config", str(tmp_path / "c.yaml"), "--data-dir", str(data), "--db-dir", str(tmp_path / "nodb"), "status"],
    )

    assert result.exit_code == 1


def test_keep_source_overrides_configured_deletion(tmp_path: Path) -> None:
    base = _setup(tmp_path)
    (tmp_path / "config.yaml").write_text("migrate:\n  delete_after_migrate: true\n")
    target = tmp_path / "out"

    result = runner.invoke(app, [*base, "migrate", "8", "--target", str(target), "--keep-source", "--yes", "--json"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)[0]["migrated"] == 1
    assert (tmp_path / "Pic" / "2020-02" / "Ori" / "cat.jpg").exists()


def test_configured_deletion_applies_without_flag(tmp_path: Path) -> None:
    base = _setup(tmp_path)
    (tmp_path / "config.yaml").write_text("migrate:\n  delete_after_migrate: true\n")

    result = runner.invoke(app, [*base, "migrate", "8", "--target", str(tmp_path / "out"), "--yes", "--json"])

    assert result.exit_code == 0, result.output
    assert not (tmp_path / "Pic" / "2020-02" / "Ori" / "cat.jpg").exists()
