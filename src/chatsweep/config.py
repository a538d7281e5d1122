from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from chatsweep.paths import config_root, default_db_dir, default_log_dir, default_migrate_dir

DEFAULT_QQ_DATA_BASE = "Library/Containers/com.tencent.qq/Data/Library/Application Support/QQ"


@dataclass(slots=True)
class PathsConfig:
    qq_data_base: str = DEFAULT_QQ_DATA_BASE
    nt_qq_prefix: str = "nt_qq_"
    nt_data_subpath: str = "nt_data/Pic"
    # Skips discovery under the home directory when set.
    data_dir: Path | None = None


@dataclass(slots=True)
class DatabaseConfig:
    db_dir: Path = field(default_factory=default_db_dir)
    files_db_name: str = "files_in_chat.clean.db"
    group_db_name: str = "group_info.clean.db"

    @property
    def files_db_path(self) -> Path:
        return self.db_dir / self.files_db_name

    @property
    def group_db_path(self) -> Path:
        return self.db_dir / self.group_db_name


@dataclass(slots=True)
class ScanConfig:
    max_concurrency: int = 64


@dataclass(slots=True)
class MigrateConfig:
    target_dir: Path = field(default_factory=default_migrate_dir)
    keep_structure: bool = True
    delete_after_migrate: bool = False


@dataclass(slots=True)
class LogConfig:
    log_dir: Path = field(default_factory=default_log_dir)
    to_file: bool = True


@dataclass(slots=True)
class AppConfig:
    paths: PathsConfig = field(default_factory=PathsConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)
    migrate: MigrateConfig = field(default_factory=MigrateConfig)
    log: LogConfig = field(default_factory=LogConfig)


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


def _opt_path(value: Any) -> Path | None:
    if value in (None, ""):
        return None
    return Path(str(value)).expanduser()


def _to_config(data: dict[str, Any]) -> AppConfig:
    paths = dict(data.get("paths") or {})
    database = dict(data.get("database") or {})
    migrate = dict(data.get("migrate") or {})
    log = dict(data.get("log") or {})

    paths["data_dir"] = _opt_path(paths.get("data_dir"))
    if "db_dir" in database:
        database["db_dir"] = Path(str(database["db_dir"])).expanduser()
    if "target_dir" in migrate:
        migrate["target_dir"] = Path(str(migrate["target_dir"])).expanduser()
    if "log_dir" in log:
        log["log_dir"] = Path(str(log["log_dir"])).expanduser()

    return AppConfig(
        paths=PathsConfig(**paths),
        database=DatabaseConfig(**database),
        scan=ScanConfig(**(data.get("scan") or {})),
        migrate=MigrateConfig(**migrate),
        log=LogConfig(**log),
    )


def default_config_path() -> Path:
    return config_root() / "config.yaml"


def load_config(config_path: Path | None = None, overrides: dict[str, Any] | None = None) -> AppConfig:
    path = config_path or default_config_path()
    base: dict[str, Any] = {}
    if path.exists():
        loaded = yaml.safe_load(path.read_text())
        if isinstance(loaded, dict):
            base = loaded
    if overrides:
        base = _merge(base, overrides)
    return _to_config(base)


def write_default_config(path: Path | None = None) -> Path:
    target = path or default_config_path()
    target.parent.mkdir(parents=True, exist_ok=True)
    if target.exists():
        return target
    target.write_text(
        yaml.safe_dump(
            {
                "paths": {
                    "qq_data_base": DEFAULT_QQ_DATA_BASE,
                    "nt_qq_prefix": "nt_qq_",
                    "nt_data_subpath": "nt_data/Pic",
                    "data_dir": None,
                },
                "database": {
                    "db_dir": str(default_db_dir()),
                    "files_db_name": "files_in_chat.clean.db",
                    "group_db_name": "group_info.clean.db",
                },
                "scan": {"max_concurrency": 64},
                "migrate": {
                    "target_dir": str(default_migrate_dir()),
                    "keep_structure": True,
                    "delete_after_migrate": False,
                },
                "log": {"log_dir": str(default_log_dir()), "to_file": True},
            },
            sort_keys=False,
        )
    )
    return target
