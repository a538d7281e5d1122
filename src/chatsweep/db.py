from __future__ import annotations

from contextlib import contextmanager
import logging
from pathlib import Path
import sqlite3
from typing import Any, Iterator

from chatsweep.errors import MetadataStoreError
from chatsweep.models import FileRecord, GroupRecord, fallback_group_name

log = logging.getLogger(__name__)

FILES_TABLE = "files_in_chat_table"
GROUPS_TABLE = "group_detail_info_ver1"

# The client stores its tables with numeric tag columns.
FILE_SELECT_SQL = f"""
SELECT rowid AS record_id,
       `40001` AS msg_id,
       `40010` AS chat_type,
       `40021` AS peer_uid,
       `40050` AS msg_time,
       `45002` AS element_type,
       `45402` AS file_name,
       `45403` AS file_path,
       `45404` AS thumb_path,
       `45405` AS file_size
FROM {FILES_TABLE}
ORDER BY rowid
"""

GROUP_SELECT_SQL = f"""
SELECT `60001` AS group_id,
       `60007` AS group_name,
       `60026` AS group_remark,
       `60002` AS owner_uid,
       `60004` AS create_time,
       `60005` AS max_member,
       `60006` AS member_count,
       `60340` AS quit_flag
FROM {GROUPS_TABLE}
"""


def _int(value: Any, default: int = 0) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def row_to_file_record(row: sqlite3.Row) -> FileRecord:
    return FileRecord(
        record_id=str(row["record_id"]),
        peer_uid=_str(row["peer_uid"]),
        chat_type=_int(row["chat_type"]),
        file_name=_str(row["file_name"]),
        file_size=_int(row["file_size"]),
        msg_time=_int(row["msg_time"]),
        msg_id=_int(row["msg_id"]),
        element_type=_int(row["element_type"]),
        file_path=_str(row["file_path"]),
        thumb_path=_str(row["thumb_path"]),
    )


def row_to_group_record(row: sqlite3.Row) -> GroupRecord:
    group_id = _str(row["group_id"])
    remark = row["group_remark"]
    return GroupRecord(
        group_id=group_id,
        group_name=_str(row["group_name"]) or fallback_group_name(group_id),
        group_remark=_str(remark) if remark is not None else None,
        owner_uid=_str(row["owner_uid"]),
        create_time=_int(row["create_time"]),
        max_member=_int(row["max_member"]),
        member_count=_int(row["member_count"]),
        quit_flag=_int(row["quit_flag"]),
    )


class MetadataStore:
    """Read-only view over the decrypted files and group databases."""

    def __init__(self, files_db: Path, group_db: Path):
        self.files_db = files_db
        self.group_db = group_db

    @contextmanager
    def connect(self, path: Path) -> Iterator[sqlite3.Connection]:
        if not path.exists():
            raise MetadataStoreError(f"database not found: {path}")
        try:
            conn = sqlite3.connect(f"{path.resolve().as_uri()}?mode=ro", uri=True)
        except sqlite3.Error as exc:
            raise MetadataStoreError(f"cannot open {path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def get_all_file_records(self) -> list[FileRecord]:
        with self.connect(self.files_db) as conn:
            try:
                rows = conn.execute(FILE_SELECT_SQL).fetchall()
            except sqlite3.Error as exc:
                raise MetadataStoreError(f"cannot read {FILES_TABLE} from {self.files_db}: {exc}") from exc
        records = [row_to_file_record(r) for r in rows]
        log.debug("read %d file records from %s", len(records), self.files_db)
        return records

    def get_all_group_records(self) -> dict[str, GroupRecord]:
        with self.connect(self.group_db) as conn:
            try:
                rows = conn.execute(GROUP_SELECT_SQL).fetchall()
            except sqlite3.Error as exc:
                raise MetadataStoreError(f"cannot read {GROUPS_TABLE} from {self.group_db}: {exc}") from exc
        groups: dict[str, GroupRecord] = {}
        for row in rows:
            group = row_to_group_record(row)
            groups[group.group_id] = group
        log.debug("read %d group records from %s", len(groups), self.group_db)
        return groups
