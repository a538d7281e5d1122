from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path

from chatsweep.aggregator import build_group_stats, refresh_group_stats
from chatsweep.cleaner import CleanResult, delete_group_files
from chatsweep.config import AppConfig
from chatsweep.db import MetadataStore
from chatsweep.errors import DataDirNotFoundError, SweepError
from chatsweep.migrator import MigrateOptions, MigrateResult, migrate_group_files
from chatsweep.models import GroupStats
from chatsweep.progress import ProgressChannel
from chatsweep.selection import FilterCriteria, GroupView, SortKey
from chatsweep.timewindow import TimeWindow

log = logging.getLogger(__name__)


@dataclass(slots=True)
class CleanOutcome:
    group_id: str
    group_name: str
    result: CleanResult = field(default_factory=CleanResult)
    error: str | None = None


@dataclass(slots=True)
class MigrateOutcome:
    group_id: str
    group_name: str
    result: MigrateResult = field(default_factory=MigrateResult)
    error: str | None = None


def find_data_dir(config: AppConfig, home: Path | None = None) -> Path:
    paths = config.paths
    if paths.data_dir is not None:
        if not paths.data_dir.is_dir():
            raise DataDirNotFoundError(f"data directory not found: {paths.data_dir}")
        return paths.data_dir

    base = (home or Path.home()) / paths.qq_data_base
    if not base.is_dir():
        raise DataDirNotFoundError(f"client data directory not found: {base}")
    accounts = sorted(p for p in base.iterdir() if p.is_dir() and p.name.startswith(paths.nt_qq_prefix))
    if not accounts:
        raise DataDirNotFoundError(f"no {paths.nt_qq_prefix}* directory under {base}")
    data_dir = accounts[0] / paths.nt_data_subpath
    if not data_dir.is_dir():
        raise DataDirNotFoundError(f"attachment directory not found: {data_dir}")
    return data_dir


class SweepService:
    def __init__(self, config: AppConfig, store: MetadataStore | None = None):
        self.config = config
        self.store = store or MetadataStore(config.database.files_db_path, config.database.group_db_path)
        self._data_dir: Path | None = None
        self._view: GroupView | None = None

    @property
    def concurrency(self) -> int:
        return self.config.scan.max_concurrency

    @property
    def data_dir(self) -> Path:
        if self._data_dir is None:
            self._data_dir = find_data_dir(self.config)
        return self._data_dir

    @property
    def view(self) -> GroupView:
        if self._view is None:
            raise RuntimeError("groups not loaded; call load() first")
        return self._view

    async def load(
        self,
        criteria: FilterCriteria | None = None,
        window: TimeWindow | None = None,
        sort_key: SortKey = SortKey.SIZE,
    ) -> GroupView:
        records = self.store.get_all_file_records()
        groups = self.store.get_all_group_records()
        stats = await build_group_stats(self.data_dir, records, groups, concurrency=self.concurrency)
        view = GroupView(stats, criteria=criteria, window=window, sort_key=sort_key)
        if sort_key is not SortKey.SIZE:
            view.apply_sort()
        self._view = view
        return view

    def selected_file_total(self) -> int:
        return sum(st.file_count for st in self.view.selected_stats())

    async def _refresh(self, touched: list[GroupStats]) -> None:
        if not touched:
            return
        for stats in touched:
            await refresh_group_stats(self.data_dir, stats, concurrency=self.concurrency)
        self.view.apply_sort()

    async def clean_selected(
        self,
        window: TimeWindow | None = None,
        progress: ProgressChannel | None = None,
        now: float | None = None,
    ) -> list[CleanOutcome]:
        view = self.view
        if window is not None:
            view.set_window(window)
        win = view.window
        targets = view.selected_stats()
        log.info("cleaning %d groups (%s)", len(targets), win.describe())

        outcomes: list[CleanOutcome] = []
        touched: list[GroupStats] = []
        current = 0
        for stats in targets:
            outcome = CleanOutcome(group_id=stats.group_id, group_name=stats.group_name)
            outcome.result = await delete_group_files(
                self.data_dir, stats, window=win, now=now, concurrency=self.concurrency
            )
            current += stats.file_count
            if progress is not None:
                progress.emit(current, stats.group_name)
            if outcome.result.deleted > 0:
                touched.append(stats)
            outcomes.append(outcome)

        await self._refresh(touched)
        view.deselect_all()
        return outcomes

    async def migrate_selected(
        self,
        options: MigrateOptions | None = None,
        progress: ProgressChannel | None = None,
    ) -> list[MigrateOutcome]:
        view = self.view
        opts = options or MigrateOptions(
            target_dir=self.config.migrate.target_dir,
            keep_structure=self.config.migrate.keep_structure,
            delete_after_migrate=self.config.migrate.delete_after_migrate,
        )
        targets = view.selected_stats()
        log.info("migrating %d groups to %s", len(targets), opts.target_dir)

        outcomes: list[MigrateOutcome] = []
        touched: list[GroupStats] = []
        base_index = 0
        for stats in targets:
            outcome = MigrateOutcome(group_id=stats.group_id, group_name=stats.group_name)
            try:
                outcome.result = await migrate_group_files(
                    self.data_dir,
                    stats,
                    opts,
                    progress=progress,
                    base_index=base_index,
                    concurrency=self.concurrency,
                )
            except SweepError as exc:
                log.error("%s: %s", stats.group_name, exc)
                outcome.error = str(exc)
            base_index += stats.file_count
            if opts.delete_after_migrate and outcome.result.migrated_files > 0:
                touched.append(stats)
            outcomes.append(outcome)

        await self._refresh(touched)
        view.deselect_all()
        return outcomes
