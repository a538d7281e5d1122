from __future__ import annotations

from dataclasses import dataclass, field

CHAT_TYPE_GROUP = 2

_KB = 1024
_MB = _KB * 1024
_GB = _MB * 1024


def format_bytes(num: int) -> str:
    if num >= _GB:
        return f"{num / _GB:.2f} GB"
    if num >= _MB:
        return f"{num / _MB:.2f} MB"
    if num >= _KB:
        return f"{num / _KB:.2f} KB"
    return f"{num} B"


def fallback_group_name(group_id: str) -> str:
    return f"Group {group_id}"


@dataclass(slots=True)
class FileRecord:
    record_id: str
    peer_uid: str
    chat_type: int
    file_name: str
    file_size: int
    msg_time: int
    msg_id: int = 0
    element_type: int = 0
    file_path: str = ""
    thumb_path: str = ""
    # Set by the resolver only; None means nothing was found on disk.
    actual_size: int | None = None

    @property
    def is_group_chat(self) -> bool:
        return self.chat_type == CHAT_TYPE_GROUP


@dataclass(slots=True)
class GroupRecord:
    group_id: str
    group_name: str
    group_remark: str | None = None
    owner_uid: str = ""
    create_time: int = 0
    max_member: int = 0
    member_count: int = 0
    quit_flag: int = 0

    @property
    def has_quit(self) -> bool:
        return self.quit_flag != 0


@dataclass(slots=True)
class GroupStats:
    group_id: str
    group_name: str
    total_size: int = 0
    file_count: int = 0
    exist_count: int = 0
    missing_count: int = 0
    files: list[FileRecord] = field(default_factory=list)
    record: GroupRecord | None = None

    def format_size(self) -> str:
        return format_bytes(self.total_size)

    @property
    def latest_msg_time(self) -> int:
        return max((f.msg_time for f in self.files), default=0)
