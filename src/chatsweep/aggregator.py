from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Mapping

from chatsweep.models import FileRecord, GroupRecord, GroupStats, fallback_group_name
from chatsweep.resolver import DEFAULT_CONCURRENCY, resolve_records

log = logging.getLogger(__name__)


def partition_by_group(records: Iterable[FileRecord]) -> dict[str, list[FileRecord]]:
    grouped: dict[str, list[FileRecord]] = {}
    for record in records:
        if not record.is_group_chat:
            continue
        grouped.setdefault(record.peer_uid, []).append(record)
    return grouped


def summarize(stats: GroupStats, files: list[FileRecord]) -> GroupStats:
    stats.files = files
    stats.file_count = len(files)
    stats.exist_count = sum(1 for f in files if f.actual_size is not None)
    stats.missing_count = stats.file_count - stats.exist_count
    stats.total_size = sum(f.actual_size or 0 for f in files)
    return stats


def display_name(group_id: str, record: GroupRecord | None) -> str:
    if record is not None and record.group_name:
        return record.group_name
    return fallback_group_name(group_id)


async def build_group_stats(
    data_dir: Path,
    records: Iterable[FileRecord],
    groups: Mapping[str, GroupRecord],
    concurrency: int = DEFAULT_CONCURRENCY,
) -> list[GroupStats]:
    out: list[GroupStats] = []
    for group_id, files in partition_by_group(records).items():
        resolved = await resolve_records(data_dir, files, concurrency=concurrency)
        record = groups.get(group_id)
        stats = GroupStats(group_id=group_id, group_name=display_name(group_id, record), record=record)
        out.append(summarize(stats, resolved))
    # sorted() is stable, so equal sizes keep partition order.
    out = sorted(out, key=lambda s: s.total_size, reverse=True)
    log.info("aggregated %d groups, %d files", len(out), sum(s.file_count for s in out))
    return out


async def refresh_group_stats(
    data_dir: Path,
    stats: GroupStats,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> GroupStats:
    resolved = await resolve_records(data_dir, stats.files, concurrency=concurrency)
    summarize(stats, resolved)
    log.debug(
        "refreshed %s: %d/%d present, %d bytes",
        stats.group_id,
        stats.exist_count,
        stats.file_count,
        stats.total_size,
    )
    return stats
