from __future__ import annotations
import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import ClassVar, Tuple
import logging


log = logging.getLogger(__name__)


# Reserved selector meaning "no override, use ambient kubeconfig resolution".
DEFAULT_KUBECONFIG = "default"

# Relative to the user's home directory.
KUBECONFIG_STORAGE_DIR = ".kontour/kubeconfigs"

KUBECONFIG_FILE_EXTENSION = ".yaml"
# Maps registered names to stored file names. Not matched by the .yaml glob.
NAME_INDEX_FILE = ".names.yml"

UNSAFE_FILENAME_CHARS: Tuple[str, ...] = ("/", "\\", ":")
FILENAME_REPLACEMENT_CHAR = "_"


class AppPaths:
    """Manages all application-related paths."""

    def __init__(self, home_dir: Path | None = None) -> None:
        self.home_dir: Path = home_dir or self._determine_home_dir()
        self.storage_dir: Path = self.home_dir / KUBECONFIG_STORAGE_DIR

    @staticmethod
    def _determine_home_dir() -> Path:
        """KONTOUR_HOME takes precedence over the user's home directory."""
        override = os.environ.get("KONTOUR_HOME")
        if override:
            return Path(override).expanduser()
        return Path.home()

    def ensure_storage_dir(self) -> Path:
        """Returns the kubeconfig storage directory, creating it if absent."""
        if not self.storage_dir.exists():
            self.storage_dir.mkdir(parents=True, exist_ok=True)
            log.info("Created kubeconfig storage directory: %s", self.storage_dir)
        return self.storage_dir


def _log_level_from_env() -> str:
    return os.environ.get("KONTOUR_LOG_LEVEL", "INFO")


@dataclass(frozen=True)
class AppConfig:
    """Manages application-wide configuration settings."""

    _instance: ClassVar[AppConfig | None] = None

    log_level: str = field(default_factory=_log_level_from_env)
    default_selector: str = DEFAULT_KUBECONFIG
    # Seconds, applied to every constructed client.
    client_side_timeout: int = 10

    paths: AppPaths = field(default_factory=AppPaths)

    @classmethod
    def get_instance(cls) -> AppConfig:
        """Returns the singleton instance of the AppConfig."""
        if cls._instance is None:
            cls._instance = AppConfig()
            log.info("AppConfig singleton initialized.")
        return cls._instance
