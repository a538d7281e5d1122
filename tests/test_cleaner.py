import asyncio
from datetime import datetime, timezone
from pathlib import Path

from chatsweep.cleaner import delete_group_files
from chatsweep.models import CHAT_TYPE_GROUP, FileRecord, GroupStats
from chatsweep.timewindow import AllTime, OlderThan

NOW = datetime(2024, 3, 1, tzinfo=timezone.utc).timestamp()


def _ts(year: int, month: int) -> int:
    return int(datetime(year, month, 15, tzinfo=timezone.utc).timestamp())


def _put(path: Path, size: int = 8) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x" * size)
    return path


def _stats(files: list[tuple[str, int]]) -> GroupStats:
    records = [
        FileRecord(
            record_id=str(i),
            peer_uid="g",
            chat_type=CHAT_TYPE_GROUP,
            file_name=name,
            file_size=8,
            msg_time=ts,
            actual_size=8,
        )
        for i, (name, ts) in enumerate(files)
    ]
    return GroupStats(group_id="g", group_name="g", files=records, file_count=len(records), exist_count=len(records))


def test_time_window_limits_deletion(tmp_path: Path) -> None:
    jan = _put(tmp_path / "2023-01" / "Ori" / "jan.jpg")
    jun = _put(tmp_path / "2023-06" / "Ori" / "jun.jpg")
    new = _put(tmp_path / "2024-01" / "Ori" / "new.jpg")
    stats = _stats([("jan.jpg", _ts(2023, 1)), ("jun.jpg", _ts(2023, 6)), ("new.jpg", _ts(2024, 1))])

    result = asyncio.run(delete_group_files(tmp_path, stats, window=OlderThan(180), now=NOW))

    assert (result.deleted, result.failed) == (2, 0)
    assert not jan.exists()
    assert not jun.exists()
    assert new.exists()


def test_counts_every_removed_variant_and_is_idempotent(tmp_path: Path) -> None:
    base = tmp_path / "2023-02"
    _put(base / "Ori" / "a.jpg")
    _put(base / "Thumb" / "a_0.jpg")
    _put(base / "Thumb" / "a_720.jpg")
    _put(base / "Thumb" / "b_0.jpg")
    stats = _stats([("a.jpg", _ts(2023, 2)), ("b.jpg", _ts(2023, 2)), ("", _ts(2023, 2))])

    first = asyncio.run(delete_group_files(tmp_path, stats))
    second = asyncio.run(delete_group_files(tmp_path, stats, window=AllTime()))

    assert (first.deleted, first.failed) == (4, 0)
    assert (second.deleted, second.failed) == (0, 0)
    assert list((base / "Thumb").iterdir()) == []


def test_failed_removal_is_counted_and_siblings_continue(tmp_path: Path) -> None:
    base = tmp_path / "2023-02"
    # A directory where a file is expected cannot be unlinked.
    (base / "Ori" / "stuck.jpg").mkdir(parents=True)
    thumb = _put(base / "Thumb" / "stuck_0.jpg")
    other = _put(base / "Ori" / "other.jpg")
    stats = _stats([("stuck.jpg", _ts(2023, 2)), ("other.jpg", _ts(2023, 2))])

    result = asyncio.run(delete_group_files(tmp_path, stats))

    assert (result.deleted, result.failed) == (2, 1)
    assert not thumb.exists()
    assert not other.exists()
    assert (base / "Ori" / "stuck.jpg").is_dir()


def test_nul_in_name_is_skipped_and_siblings_are_cleaned(tmp_path: Path) -> None:
    ok = _put(tmp_path / "2023-02" / "Ori" / "ok.jpg")
    stats = _stats([("bad\x00.jpg", _ts(2023, 2)), ("ok.jpg", _ts(2023, 2))])

    result = asyncio.run(delete_group_files(tmp_path, stats))

    assert (result.deleted, result.failed) == (1, 0)
    assert not ok.exists()
