"""Pytest configuration and shared fixtures."""

import pytest


@pytest.fixture
def data_path(tmp_path):
    """Credential file path inside an isolated directory."""
    directory = tmp_path / "memogram"
    directory.mkdir()
    return directory / "data.txt"
