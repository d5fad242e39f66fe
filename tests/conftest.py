"""
Shared fixtures.

Every test runs against default settings: no user config file and no
STREAMRENDER_* variables leaking in from the environment.
"""

import os

import pytest

from streamrender import config


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for key in list(os.environ):
        if key.startswith("STREAMRENDER_"):
            monkeypatch.delenv(key)
    config.reset_config()
    yield
    config.reset_config()
