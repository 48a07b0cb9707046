from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Iterator

import pytest

from refqueue.core.repository import Repository
from refqueue.store.objects import ObjectStore
from refqueue.store.refs import RefRegistry
from tests.utils import run_git


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Keep config reads and writes out of the real ~/.refqueue."""
    home = tmp_path / "refqueue-home"
    monkeypatch.setenv("REFQUEUE_HOME", str(home))
    yield home


@pytest.fixture()
def replica(tmp_path: Path) -> Repository:
    repo = Repository(tmp_path / "replica.git")
    repo.init(bare=True)
    return repo


@pytest.fixture()
def remote_path(tmp_path: Path) -> Path:
    """Bare repository playing the shared remote."""
    path = tmp_path / "remote.git"
    path.mkdir()
    run_git("init", "--bare", "--quiet", cwd=path)
    return path


@pytest.fixture()
def objects(replica: Repository) -> ObjectStore:
    return ObjectStore(replica)


@pytest.fixture()
def refs(replica: Repository) -> RefRegistry:
    return RefRegistry(replica)


@pytest.fixture()
def broken_stdin(monkeypatch: pytest.MonkeyPatch) -> None:
    """Make every write of input to a git process fail with a broken pipe."""
    real_communicate = subprocess.Popen.communicate

    def communicate(self, input=None, timeout=None):
        if input is not None:
            raise BrokenPipeError(32, "Broken pipe")
        return real_communicate(self, input, timeout)

    monkeypatch.setattr(subprocess.Popen, "communicate", communicate)
