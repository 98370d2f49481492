"""Shared fixtures: isolate configuration and DI singletons per test."""

import os

import pytest

from engine import config as config_module
from engine import di_container


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Clear GROOVE_* environment and cached singletons around each test."""
    for key in list(os.environ):
        if key.startswith("GROOVE_"):
            monkeypatch.delenv(key, raising=False)

    config_module.reset_config()
    di_container.cleanup_container()
    yield
    config_module.reset_config()
    di_container.cleanup_container()
