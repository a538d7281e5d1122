import asyncio
from datetime import datetime, timezone
from pathlib import Path

import aiofiles.os

from chatsweep.models import CHAT_TYPE_GROUP, FileRecord
from chatsweep.resolver import resolve_records


def _ts(year: int, month: int) -> int:
    return int(datetime(year, month, 15, tzinfo=timezone.utc).timestamp())


def _record(record_id: str, name: str, ts: int) -> FileRecord:
    return FileRecord(
        record_id=record_id,
        peer_uid="100",
        chat_type=CHAT_TYPE_GROUP,
        file_name=name,
        file_size=0,
        msg_time=ts,
    )


def _put(path: Path, size: int) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x" * size)


def test_sums_original_and_thumbnails(tmp_path: Path) -> None:
    ts = _ts(2023, 5)
    _put(tmp_path / "2023-05" / "Ori" / "a.jpg", 100)
    _put(tmp_path / "2023-05" / "Thumb" / "a_0.jpg", 10)
    _put(tmp_path / "2023-05" / "Thumb" / "a_720.jpg", 5)
    _put(tmp_path / "2023-05" / "Thumb" / "b_720.jpg", 7)

    out = asyncio.run(
        resolve_records(tmp_path, [_record("1", "a.jpg", ts), _record("2", "b.jpg", ts), _record("3", "c.jpg", ts)])
    )

    assert [r.actual_size for r in out] == [115, 7, None]


def test_wrong_partition_is_not_found(tmp_path: Path) -> None:
    _put(tmp_path / "2023-04" / "Ori" / "a.jpg", 100)
    out = asyncio.run(resolve_records(tmp_path, [_record("1", "a.jpg", _ts(2023, 5))]))
    assert out[0].actual_size is None


def test_zero_byte_files_resolve_to_none(tmp_path: Path) -> None:
    _put(tmp_path / "2023-05" / "Ori" / "a.jpg", 0)
    out = asyncio.run(resolve_records(tmp_path, [_record("1", "a.jpg", _ts(2023, 5))]))
    assert out[0].actual_size is None


def test_empty_names_are_never_probed(tmp_path: Path, monkeypatch) -> None:
    calls: list[Path] = []
    real_stat = aiofiles.os.stat

    async def _counting_stat(path, *args, **kwargs):
        calls.append(Path(path))
        return await real_stat(path, *args, **kwargs)

    monkeypatch.setattr(aiofiles.os, "stat", _counting_stat)
    records = [_record(str(i), "", _ts(2023, 5)) for i in range(5)]
    records[0].actual_size = 42

    out = asyncio.run(resolve_records(tmp_path, records))

    assert calls == []
    assert all(r.actual_size is None for r in out)


def test_unreadable_candidate_contributes_zero(tmp_path: Path, monkeypatch) -> None:
    ts = _ts(2023, 5)
    ori = tmp_path / "2023-05" / "Ori" / "a.jpg"
    _put(ori, 100)
    _put(tmp_path / "2023-05" / "Thumb" / "a_0.jpg", 10)
    real_stat = aiofiles.os.stat

    async def _flaky_stat(path, *args, **kwargs):
        if Path(path) == ori:
            raise PermissionError(13, "denied", str(path))
        return await real_stat(path, *args, **kwargs)

    monkeypatch.setattr(aiofiles.os, "stat", _flaky_stat)
    out = asyncio.run(resolve_records(tmp_path, [_record("1", "a.jpg", ts)]))

    assert out[0].actual_size == 10


def test_results_follow_input_records(tmp_path: Path) -> None:
    ts = _ts(2022, 12)
    records = []
    for i in range(40):
        name = f"f{i}.bin"
        if i % 3 == 0:
            _put(tmp_path / "2022-12" / "Ori" / name, i + 1)
        records.append(_record(f"id-{i}", name, ts))

    out = asyncio.run(resolve_records(tmp_path, records, concurrency=4))

    assert [r.record_id for r in out] == [r.record_id for r in records]
    for i, rec in enumerate(out):
        assert rec.actual_size == (i + 1 if i % 3 == 0 else None)
    # inputs are left untouched
    assert all(r.actual_size is None for r in records)


def test_nul_in_name_does_not_abort_siblings(tmp_path: Path) -> None:
    _put(tmp_path / "2023-04" / "Ori" / "ok.jpg", 12)
    records = [_record("1", "bad\x00.jpg", _ts(2023, 4)), _record("2", "ok.jpg", _ts(2023, 4))]

    out = asyncio.run(resolve_records(tmp_path, records))

    assert [r.actual_size for r in out] == [None, 12]
