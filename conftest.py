"""
Pytest configuration and hooks for the Grove test suite.

This conftest.py handles:
1. Registering the markers used by the suite
2. Skipping tests that need directory symlinks where the host forbids them
3. Skipping tests that spawn real child processes when GROVE_TEST_NO_SPAWN=1
"""

import os

import pytest

from grove.links.strategies import can_symlink


def pytest_configure(config):
    config.addinivalue_line("markers", "symlinks: needs permission to create directory symlinks")
    config.addinivalue_line("markers", "spawn: starts real child processes")


def pytest_collection_modifyitems(config, items):
    """
    Hook to modify test collection.

    - 'symlinks' tests are skipped when a symlink cannot be created
    - 'spawn' tests are skipped when GROVE_TEST_NO_SPAWN=1
    """
    symlinks_ok = can_symlink()
    no_spawn = os.environ.get("GROVE_TEST_NO_SPAWN") == "1"
    for item in items:
        if "symlinks" in item.keywords and not symlinks_ok:
            item.add_marker(pytest.mark.skip(reason="symlinks not permitted on this host"))
        if "spawn" in item.keywords and no_spawn:
            item.add_marker(pytest.mark.skip(reason="GROVE_TEST_NO_SPAWN=1"))
