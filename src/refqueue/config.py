"""Queue configuration management"""
import os
from pathlib import Path
from typing import Any, Optional

import toml  # type: ignore[import-untyped]

from refqueue.core.exceptions import ConfigError

HOME_ENV_VAR = "REFQUEUE_HOME"
DEFAULT_NAMESPACE = "refs/queue/"


def refqueue_home() -> Path:
    """Return the refqueue state directory (``$REFQUEUE_HOME`` or ~/.refqueue)."""
    override = os.environ.get(HOME_ENV_VAR, "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / ".refqueue"


def validate_namespace(namespace: str) -> str:
    """Check that ``namespace`` is a ref prefix like ``refs/queue/``."""
    if not namespace.startswith("refs/") or not namespace.endswith("/") or namespace == "refs/":
        raise ConfigError(f"Namespace must look like 'refs/<name>/': {namespace!r}")
    if any(part in ("", ".", "..") for part in namespace[:-1].split("/")):
        raise ConfigError(f"Namespace has an empty or relative component: {namespace!r}")
    return namespace


class QueueConfig:
    """Manage queue configuration"""

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        self.config_dir = config_dir or refqueue_home()
        self.config_file = self.config_dir / "config.toml"

    def _load(self) -> dict[str, Any]:
        if not self.config_file.exists():
            return {}
        try:
            config: dict[str, Any] = toml.load(self.config_file)
        except (toml.TomlDecodeError, OSError) as exc:
            raise ConfigError(f"Cannot read {self.config_file}: {exc}") from exc
        return config

    def _get(self, key: str) -> Optional[str]:
        queue_section = self._load().get("queue")
        if isinstance(queue_section, dict):
            value = queue_section.get(key)
            if isinstance(value, str) and value:
                return value
        return None

    def _set(self, key: str, value: Optional[str]) -> None:
        self.config_dir.mkdir(parents=True, exist_ok=True)

        config = self._load()
        queue_section = config.get("queue")
        if not isinstance(queue_section, dict):
            queue_section = {}
            config["queue"] = queue_section

        if value is None:
            queue_section.pop(key, None)
        else:
            queue_section[key] = value

        with open(self.config_file, "w", encoding="utf-8") as f:
            toml.dump(config, f)

    def get_repo_path(self) -> Path:
        """Get local replica path from config"""
        value = self._get("repo_path")
        if value:
            return Path(value).expanduser()
        return self.config_dir / "replica"

    def set_repo_path(self, path: Path) -> None:
        self._set("repo_path", str(path))

    def get_namespace(self) -> str:
        """Get queue namespace from config"""
        return validate_namespace(self._get("namespace") or DEFAULT_NAMESPACE)

    def set_namespace(self, namespace: str) -> None:
        self._set("namespace", validate_namespace(namespace))

    def get_remote(self) -> Optional[str]:
        """Get remote location from config"""
        return self._get("remote")

    def set_remote(self, remote: Optional[str]) -> None:
        self._set("remote", remote)

    def to_dict(self) -> dict[str, Optional[str]]:
        return {
            "config_file": str(self.config_file),
            "repo_path": str(self.get_repo_path()),
            "namespace": self.get_namespace(),
            "remote": self.get_remote(),
        }
