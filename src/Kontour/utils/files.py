from __future__ import annotations
import logging
from pathlib import Path
from typing import Dict

import yaml

from Kontour.config import (
    AppPaths,
    FILENAME_REPLACEMENT_CHAR,
    KUBECONFIG_FILE_EXTENSION,
    NAME_INDEX_FILE,
    UNSAFE_FILENAME_CHARS,
)
from Kontour.core.exceptions import KubeconfigIOError, StorageError

log = logging.getLogger(__name__)


def sanitize_filename(name: str) -> str:
    """Replaces path separators and colons so a name is safe as a file name."""
    return "".join(
        FILENAME_REPLACEMENT_CHAR if c in UNSAFE_FILENAME_CHARS else c for c in name
    )


def get_kubeconfig_storage_dir(paths: AppPaths) -> Path:
    """Returns the storage directory, creating it if it doesn't exist."""
    try:
        return paths.ensure_storage_dir()
    except OSError as e:
        raise KubeconfigIOError(str(e)) from e


def save_kubeconfig_file(name: str, content: str, storage_dir: Path) -> str:
    """
    Writes ``content`` to ``<storage_dir>/<sanitized name>.yaml`` and returns
    the absolute path as a string.
    """
    file_path = storage_dir / f"{sanitize_filename(name)}{KUBECONFIG_FILE_EXTENSION}"
    try:
        storage_dir.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise KubeconfigIOError(str(e)) from e
    log.info("Saved kubeconfig '%s' to %s", name, file_path)
    return str(file_path.resolve())


def delete_kubeconfig_file(file_path: str) -> bool:
    """Removes a stored kubeconfig. Returns False when it was already gone."""
    path = Path(file_path)
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        raise KubeconfigIOError(str(e)) from e
    log.info("Deleted kubeconfig file %s", path)
    return True


def load_name_index(storage_dir: Path) -> Dict[str, str]:
    """
    Reads the registered-name to file-name index of ``storage_dir``. A missing
    index is empty.
    """
    index_path = storage_dir / NAME_INDEX_FILE
    try:
        text = index_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as e:
        raise KubeconfigIOError(str(e)) from e

    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise StorageError(f"Unreadable name index {index_path}: {e}") from e
    if not isinstance(data, dict):
        raise StorageError(f"Name index {index_path} is not a mapping")
    return {str(name): str(file_name) for name, file_name in data.items()}


def save_name_index(storage_dir: Path, index: Dict[str, str]) -> None:
    index_path = storage_dir / NAME_INDEX_FILE
    try:
        storage_dir.mkdir(parents=True, exist_ok=True)
        index_path.write_text(
            yaml.safe_dump(dict(sorted(index.items())), default_flow_style=False),
            encoding="utf-8",
        )
    except OSError as e:
        raise KubeconfigIOError(str(e)) from e
