"""Shared fixtures: every test runs against built-in default settings."""

import os
from pathlib import Path

import pytest

from specimen import config

pytest_plugins = ["pytester"]

DATA_DIR = Path(__file__).parent / "data"


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point the config file at a temp dir and drop SPECIMEN_* env vars."""
    config_dir = tmp_path / "specimen-config"
    monkeypatch.setattr(config, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config, "CONFIG_FILE", config_dir / "config.json")
    for name in list(os.environ):
        if name.startswith(config.ENV_PREFIX):
            monkeypatch.delenv(name)
    config.reset_settings()
    yield
    config.reset_settings()


@pytest.fixture
def data_dir() -> Path:
    return DATA_DIR
