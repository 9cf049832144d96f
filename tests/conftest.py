"""Shared fixtures: keep log and token files out of the user's data directory."""

import pytest

from agentrun import config


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("AGENTRUN_DIR", str(tmp_path / "agentrun-data"))
    config._reset_data_dir()
    yield tmp_path / "agentrun-data"
    config._reset_data_dir()
