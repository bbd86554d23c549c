import os

import pytest


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep the developer's CHAT_* variables and .env out of the settings under test."""
    for name in list(os.environ):
        if name.upper().startswith("CHAT_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
