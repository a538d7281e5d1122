from __future__ import annotations

import asyncio
from dataclasses import replace
import logging
from pathlib import Path
from typing import Iterable

import aiofiles.os

from chatsweep.layout import candidate_paths, is_probeable
from chatsweep.models import FileRecord

log = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 64


async def probe_size(path: Path) -> int:
    try:
        st = await aiofiles.os.stat(path)
    except OSError:
        return 0
    return int(st.st_size)


async def resolve_one(data_dir: Path, record: FileRecord) -> int | None:
    if not is_probeable(record.file_name):
        return None
    total = 0
    for path, _ in candidate_paths(data_dir, record.file_name, record.msg_time):
        total += await probe_size(path)
    return total if total > 0 else None


async def resolve_records(
    data_dir: Path,
    records: Iterable[FileRecord],
    concurrency: int = DEFAULT_CONCURRENCY,
) -> list[FileRecord]:
    """Return copies of ``records`` with ``actual_size`` filled from the disk layout.

    Every record with a file name gets its own task; records are matched back
    by ``record_id`` so completion order does not matter.
    """
    items = list(records)
    sizes: dict[str, int | None] = {}
    gate = asyncio.Semaphore(max(1, concurrency))

    async def _probe(record: FileRecord) -> None:
        async with gate:
            sizes[record.record_id] = await resolve_one(data_dir, record)

    async with asyncio.TaskGroup() as tg:
        for record in items:
            if is_probeable(record.file_name):
                tg.create_task(_probe(record))

    found = sum(1 for size in sizes.values() if size is not None)
    log.debug("resolved %d records under %s, %d present", len(items), data_dir, found)
    return [replace(record, actual_size=sizes.get(record.record_id)) for record in items]
