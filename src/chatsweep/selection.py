from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from chatsweep.models import GroupStats
from chatsweep.timewindow import PRESETS, ActivityFilter, AllTime, AnyActivity, TimeWindow


class SortKey(str, Enum):
    SIZE = "size"
    EXISTING = "existing"
    NAME = "name"


@dataclass(slots=True)
class FilterCriteria:
    min_size: int = 0
    min_file_count: int = 0
    hide_empty: bool = True
    activity: ActivityFilter = field(default_factory=AnyActivity)

    def accepts(self, stats: GroupStats, now: float | None = None) -> bool:
        if self.hide_empty and stats.exist_count == 0:
            return False
        if stats.total_size < self.min_size:
            return False
        if stats.file_count < self.min_file_count:
            return False
        return self.activity.matches(stats.latest_msg_time, now)


@dataclass(slots=True, frozen=True)
class WindowProjection:
    file_count: int
    exist_count: int
    total_size: int


def window_projection(stats: GroupStats, window: TimeWindow, now: float | None = None) -> WindowProjection:
    files = [f for f in stats.files if window.includes(f.msg_time, now)]
    return WindowProjection(
        file_count=len(files),
        exist_count=sum(1 for f in files if f.actual_size is not None),
        total_size=sum(f.actual_size or 0 for f in files),
    )


def _sort_key(key: SortKey):
    if key is SortKey.SIZE:
        return (lambda s: s.total_size), True
    if key is SortKey.EXISTING:
        return (lambda s: s.exist_count), True
    if key is SortKey.NAME:
        return (lambda s: s.group_name), False
    raise ValueError(f"unknown sort key: {key!r}")


class GroupView:
    """The aggregate collection plus everything the presentation layer tracks about it.

    ``filtered`` holds indices into ``stats``. ``selected`` is parallel to
    ``stats`` and is permuted together with it on every re-sort, so a
    selection always stays attached to the same group. ``cursor`` indexes
    ``filtered``.
    """

    def __init__(
        self,
        stats: list[GroupStats],
        criteria: FilterCriteria | None = None,
        window: TimeWindow | None = None,
        sort_key: SortKey = SortKey.SIZE,
    ):
        self.stats = stats
        self.selected = [False] * len(stats)
        self.criteria = criteria or FilterCriteria()
        self.window: TimeWindow = window or AllTime()
        self.sort_key = sort_key
        self.filtered: list[int] = list(range(len(stats)))
        self.cursor = 0
        self.apply_filter()

    def apply_filter(self, now: float | None = None) -> list[int]:
        self.filtered = [idx for idx, st in enumerate(self.stats) if self.criteria.accepts(st, now)]
        self._clamp_cursor()
        return self.filtered

    def apply_sort(self, key: SortKey | None = None, now: float | None = None) -> list[int]:
        if key is not None:
            self.sort_key = key
        keyfunc, reverse = _sort_key(self.sort_key)
        pairs = sorted(zip(self.stats, self.selected), key=lambda p: keyfunc(p[0]), reverse=reverse)
        self.stats = [st for st, _ in pairs]
        self.selected = [sel for _, sel in pairs]
        # Old filtered indices point at the pre-sort order.
        return self.apply_filter(now)

    def set_criteria(self, criteria: FilterCriteria, now: float | None = None) -> list[int]:
        self.criteria = criteria
        return self.apply_filter(now)

    def set_window(self, window: TimeWindow) -> None:
        self.window = window

    def _clamp_cursor(self) -> None:
        if self.cursor >= len(self.filtered):
            self.cursor = max(len(self.filtered) - 1, 0)

    def current(self) -> GroupStats | None:
        if not self.filtered:
            return None
        return self.stats[self.filtered[self.cursor]]

    def next_item(self) -> None:
        if self.filtered:
            self.cursor = (self.cursor + 1) % len(self.filtered)

    def prev_item(self) -> None:
        if self.filtered:
            self.cursor = (self.cursor - 1) % len(self.filtered)

    def toggle(self, index: int) -> None:
        if 0 <= index < len(self.selected):
            self.selected[index] = not self.selected[index]

    def toggle_current(self) -> None:
        if self.filtered:
            self.toggle(self.filtered[self.cursor])

    def select_all_filtered(self) -> int:
        for idx in self.filtered:
            self.selected[idx] = True
        return len(self.filtered)

    def deselect_all(self) -> None:
        self.selected = [False] * len(self.stats)

    def select_ids(self, group_ids: Iterable[str]) -> list[str]:
        """Select groups by id; returns the ids that matched nothing."""
        wanted = set(group_ids)
        for idx, st in enumerate(self.stats):
            if st.group_id in wanted:
                self.selected[idx] = True
                wanted.discard(st.group_id)
        return sorted(wanted)

    def selected_indices(self) -> list[int]:
        return [idx for idx, sel in enumerate(self.selected) if sel]

    def selected_stats(self) -> list[GroupStats]:
        return [self.stats[idx] for idx in self.selected_indices()]

    def selected_count(self) -> int:
        return sum(1 for sel in self.selected if sel)

    def selected_total_size(self) -> int:
        return sum(st.total_size for st in self.selected_stats())

    def projection(self, stats: GroupStats, now: float | None = None) -> WindowProjection:
        return window_projection(stats, self.window, now)

    def selected_window_size(self, window: TimeWindow | None = None, now: float | None = None) -> int:
        win = window if window is not None else self.window
        return sum(window_projection(st, win, now).total_size for st in self.selected_stats())

    def window_choices(self, now: float | None = None) -> list[tuple[TimeWindow, int]]:
        return [(win, self.selected_window_size(win, now)) for win in PRESETS]
