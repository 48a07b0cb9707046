"""Tests for the local replica handle."""

from __future__ import annotations

from pathlib import Path

import pytest

from refqueue.core.exceptions import RegistryUnavailable
from refqueue.core.repository import Repository
from tests.utils import run_git


def test_missing_directory_is_not_a_repo(tmp_path: Path) -> None:
    assert Repository(tmp_path / "nope").is_repo() is False


def test_empty_directory_is_not_a_repo(tmp_path: Path) -> None:
    assert Repository(tmp_path).is_repo() is False


def test_init_creates_bare_repo(tmp_path: Path) -> None:
    repo = Repository(tmp_path / "replica.git")

    repo.init(bare=True)

    assert repo.is_repo()
    assert repo.git_dir == repo.path
    assert (repo.path / "HEAD").exists()


def test_init_is_idempotent(replica: Repository) -> None:
    (replica.path / "marker").write_text("keep", encoding="utf-8")

    replica.init(bare=True)

    assert (replica.path / "marker").read_text(encoding="utf-8") == "keep"


def test_working_repo_git_dir(tmp_path: Path) -> None:
    repo = Repository(tmp_path / "work")
    repo.init(bare=False)

    assert repo.git_dir == repo.path / ".git"


def test_subdirectory_of_repo_is_not_a_repo(tmp_path: Path) -> None:
    work = tmp_path / "work"
    work.mkdir()
    run_git("init", "--quiet", cwd=work)
    nested = work / "nested"
    nested.mkdir()

    assert Repository(nested).is_repo() is False


def test_git_dir_outside_repo_raises(tmp_path: Path) -> None:
    with pytest.raises(RegistryUnavailable):
        _ = Repository(tmp_path).git_dir
