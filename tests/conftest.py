from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def _isolated_xdg(tmp_path_factory, monkeypatch) -> None:
    # Default config factories create directories under the XDG roots.
    root = tmp_path_factory.mktemp("xdg")
    for var in ("XDG_CONFIG_HOME", "XDG_DATA_HOME", "XDG_STATE_HOME"):
        monkeypatch.setenv(var, str(root / var.lower()))
