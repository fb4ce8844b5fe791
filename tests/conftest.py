from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch) -> None:
    for name in ("npm_config_user_agent", "JSR_BIN_FOLDER", "JSR_VERBOSE"):
        monkeypatch.delenv(name, raising=False)
