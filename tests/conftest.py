import os
from pathlib import Path

import pytest

from grove.core import Grove
from grove.links.graph import LinkGraph
from grove.registry import Registry
from grove.state.storage import StateStore


@pytest.fixture(autouse=True)
def ensure_valid_cwd():
    try:
        os.getcwd()
    except FileNotFoundError:
        os.chdir(Path(__file__).resolve().parents[1])
    yield


@pytest.fixture(autouse=True)
def isolate_grove_root(tmp_path):
    """Isolate the grove root so tests never touch ~/grove.

    Sets GROVE_ROOT to a temporary directory for the duration of each test.
    """
    test_root = tmp_path / "grove_root"
    test_root.mkdir(exist_ok=True)

    old_value = os.environ.get('GROVE_ROOT')
    os.environ['GROVE_ROOT'] = str(test_root)

    yield test_root

    if old_value is not None:
        os.environ['GROVE_ROOT'] = old_value
    else:
        os.environ.pop('GROVE_ROOT', None)


@pytest.fixture
def grove(isolate_grove_root):
    return Grove.open(isolate_grove_root)


@pytest.fixture
def store(tmp_path):
    return StateStore(tmp_path / "state", lock_timeout=1.0)


@pytest.fixture
def registry(store):
    return Registry(store)


@pytest.fixture
def graph(registry):
    return LinkGraph(registry)


@pytest.fixture
def trees(tmp_path):
    """Factory creating a fresh directory to register as a node root."""
    def make(name: str) -> Path:
        path = tmp_path / "trees" / name
        path.mkdir(parents=True, exist_ok=True)
        return path
    return make
