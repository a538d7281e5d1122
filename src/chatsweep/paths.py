from __future__ import annotations

from pathlib import Path
import os

APP_NAME = "chatsweep"


def _xdg_root(env_var: str, fallback: Path) -> Path:
    xdg = os.environ.get(env_var)
    if xdg:
        base = Path(xdg)
    else:
        base = fallback
    root = base / APP_NAME
    root.mkdir(parents=True, exist_ok=True)
    return root


def config_root() -> Path:
    return _xdg_root("XDG_CONFIG_HOME", Path.home() / ".config")


def data_root() -> Path:
    return _xdg_root("XDG_DATA_HOME", Path.home() / ".local" / "share")


def state_root() -> Path:
    return _xdg_root("XDG_STATE_HOME", Path.home() / ".local" / "state")


def default_db_dir() -> Path:
    return data_root() / "nt_db"


def default_log_dir() -> Path:
    return state_root() / "logs"


def default_migrate_dir() -> Path:
    return Path.home() / "Documents" / "chatsweep"
