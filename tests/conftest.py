"""Pytest hooks and fixtures."""

import os

import pytest


@pytest.fixture(autouse=True)
def _clean_kvwire_env(monkeypatch):
    """Keep KVWIRE_* variables from the caller's shell out of config defaults."""
    for name in list(os.environ):
        if name.startswith("KVWIRE_"):
            monkeypatch.delenv(name, raising=False)
