from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
import os
from pathlib import Path
import shutil

import aiofiles.os

from chatsweep.errors import MigrationSetupError, ResolutionAnomaly
from chatsweep.layout import candidate_paths, partition_name
from chatsweep.models import FileRecord, GroupStats
from chatsweep.progress import ProgressChannel
from chatsweep.resolver import DEFAULT_CONCURRENCY

log = logging.getLogger(__name__)


@dataclass(slots=True)
class MigrateOptions:
    target_dir: Path = Path("./backup")
    keep_structure: bool = True
    delete_after_migrate: bool = False


@dataclass(slots=True)
class MigrateResult:
    migrated_files: int = 0
    failed_files: int = 0
    total_size: int = 0
    anomalies: list[ResolutionAnomaly] = field(default_factory=list)


def group_target_dir(stats: GroupStats, options: MigrateOptions) -> Path:
    if not options.keep_structure:
        return options.target_dir
    name = f"{stats.group_name}_{stats.group_id}".replace("/", "_").replace(os.sep, "_")
    return options.target_dir / name


def destination_path(group_dir: Path, record: FileRecord, source: Path, subdir: str, keep_structure: bool) -> Path:
    if keep_structure:
        return group_dir / partition_name(record.msg_time) / subdir / source.name
    # Flat layout: same names from different groups or months overwrite each other.
    return group_dir / source.name


def _copy(src: Path, dst: Path) -> int:
    shutil.copyfile(src, dst)
    return dst.stat().st_size


async def existing_sources(candidates: list[tuple[Path, str]]) -> list[tuple[Path, str]]:
    out = []
    for path, subdir in candidates:
        if await aiofiles.os.path.exists(path):
            out.append((path, subdir))
    return out


async def migrate_path(src: Path, dst: Path, delete_source: bool) -> int | None:
    """Copy one path; returns bytes written or None on failure. The source is only removed after its copy."""
    try:
        await aiofiles.os.makedirs(dst.parent, exist_ok=True)
    except OSError as exc:
        log.warning("failed to create %s: %s", dst.parent, exc)
        return None

    loop = asyncio.get_running_loop()
    try:
        size = await loop.run_in_executor(None, _copy, src, dst)
    except OSError as exc:
        log.warning("failed to copy %s -> %s: %s", src, dst, exc)
        return None

    if delete_source:
        try:
            await aiofiles.os.remove(src)
        except OSError as exc:
            log.warning("copied %s but could not remove the source: %s", src, exc)
    return size


async def migrate_group_files(
    data_dir: Path,
    stats: GroupStats,
    options: MigrateOptions,
    progress: ProgressChannel | None = None,
    base_index: int = 0,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> MigrateResult:
    group_dir = group_target_dir(stats, options)
    try:
        await aiofiles.os.makedirs(group_dir, exist_ok=True)
    except OSError as exc:
        raise MigrationSetupError(stats.group_id, group_dir, str(exc)) from exc

    partials: list[MigrateResult] = []
    gate = asyncio.Semaphore(max(1, concurrency))
    # Records sharing a name and month share their source paths; each path is copied once.
    claimed: set[Path] = set()

    async def _migrate(index: int, record: FileRecord) -> None:
        if progress is not None:
            progress.emit(base_index + index + 1, record.file_name)
        if record.actual_size is None:
            return
        res = MigrateResult()
        async with gate:
            candidates = candidate_paths(data_dir, record.file_name, record.msg_time)
            fresh = [(src, subdir) for src, subdir in candidates if src not in claimed]
            if not fresh:
                return
            claimed.update(src for src, _ in fresh)
            sources = await existing_sources(fresh)
            if not sources:
                anomaly = ResolutionAnomaly(record_id=record.record_id, file_name=record.file_name, group_id=stats.group_id)
                log.warning("%s was resolved earlier but has no source path now", record.file_name)
                res.anomalies.append(anomaly)
            for src, subdir in sources:
                dst = destination_path(group_dir, record, src, subdir, options.keep_structure)
                size = await migrate_path(src, dst, options.delete_after_migrate)
                if size is None:
                    res.failed_files += 1
                else:
                    res.migrated_files += 1
                    res.total_size += size
        partials.append(res)

    async with asyncio.TaskGroup() as tg:
        for index, record in enumerate(stats.files):
            tg.create_task(_migrate(index, record))

    result = MigrateResult(
        migrated_files=sum(p.migrated_files for p in partials),
        failed_files=sum(p.failed_files for p in partials),
        total_size=sum(p.total_size for p in partials),
        anomalies=[a for p in partials for a in p.anomalies],
    )
    log.info(
        "migrated %s (%s) to %s: %d copied, %d failed, %d bytes",
        stats.group_name,
        stats.group_id,
        group_dir,
        result.migrated_files,
        result.failed_files,
        result.total_size,
    )
    return result
