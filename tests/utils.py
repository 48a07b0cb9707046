"""Shared helpers for refqueue tests."""

from __future__ import annotations

import subprocess
from pathlib import Path


def run_git(*args: str, cwd: Path) -> str:
    completed = subprocess.run(
        ["git", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout.strip()
