from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from pathlib import Path

import aiofiles.os

from chatsweep.layout import candidate_paths, is_probeable
from chatsweep.models import FileRecord, GroupStats
from chatsweep.resolver import DEFAULT_CONCURRENCY
from chatsweep.timewindow import TimeWindow

log = logging.getLogger(__name__)


@dataclass(slots=True)
class CleanResult:
    deleted: int = 0
    failed: int = 0


async def remove_path(path: Path) -> bool | None:
    """True when removed, None when there was nothing to remove, False on error."""
    try:
        await aiofiles.os.remove(path)
    except FileNotFoundError:
        return None
    except OSError as exc:
        log.warning("failed to delete %s: %s", path, exc)
        return False
    return True


def is_eligible(record: FileRecord, window: TimeWindow | None, now: float | None = None) -> bool:
    if not is_probeable(record.file_name):
        return False
    return window is None or window.includes(record.msg_time, now)


async def delete_group_files(
    data_dir: Path,
    stats: GroupStats,
    window: TimeWindow | None = None,
    now: float | None = None,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> CleanResult:
    outcomes: list[CleanResult] = []
    gate = asyncio.Semaphore(max(1, concurrency))

    async def _clean(record: FileRecord) -> None:
        res = CleanResult()
        async with gate:
            for path, _ in candidate_paths(data_dir, record.file_name, record.msg_time):
                removed = await remove_path(path)
                if removed:
                    res.deleted += 1
                elif removed is False:
                    res.failed += 1
        outcomes.append(res)

    async with asyncio.TaskGroup() as tg:
        for record in stats.files:
            if is_eligible(record, window, now):
                tg.create_task(_clean(record))

    total = CleanResult(
        deleted=sum(r.deleted for r in outcomes),
        failed=sum(r.failed for r in outcomes),
    )
    log.info("cleaned %s (%s): %d removed, %d failed", stats.group_name, stats.group_id, total.deleted, total.failed)
    return total
