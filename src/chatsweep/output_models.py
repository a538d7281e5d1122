from __future__ import annotations

from pydantic import BaseModel


class GroupOutput(BaseModel):
    index: int
    group_id: str
    group_name: str
    selected: bool = False
    total_size: int
    total_size_human: str
    file_count: int
    exist_count: int
    missing_count: int
    latest_msg_time: int
    window_file_count: int
    window_exist_count: int
    window_size: int


class WindowChoiceOutput(BaseModel):
    window: str
    days: int | None = None
    freeable: int
    freeable_human: str


class AnomalyOutput(BaseModel):
    record_id: str
    file_name: str


class CleanOutput(BaseModel):
    group_id: str
    group_name: str
    deleted: int = 0
    failed: int = 0
    error: str | None = None


class MigrateOutput(BaseModel):
    group_id: str
    group_name: str
    migrated: int = 0
    failed: int = 0
    total_size: int = 0
    anomalies: list[AnomalyOutput] = []
    error: str | None = None


class StatusOutput(BaseModel):
    config_path: str
    data_dir: str | None = None
    files_db: str
    group_db: str
    groups: int
    files: int
    exist: int
    total_size: int
    total_size_human: str
