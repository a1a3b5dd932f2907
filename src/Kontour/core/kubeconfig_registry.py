from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Generator, List, Optional, Tuple

from Kontour.config import KUBECONFIG_FILE_EXTENSION
from Kontour.core.exceptions import KubeconfigIOError, StorageError
from Kontour.utils.files import load_name_index, save_kubeconfig_file, save_name_index

log = logging.getLogger(__name__)


class KubeconfigRegistry:
    """
    Maps user-chosen names to kubeconfig file paths.

    Every operation holds the registry lock for the duration of a single dict
    access and never across I/O. Failing to take the lock within
    ``lock_timeout`` seconds raises ``StorageError``.
    """

    def __init__(self, lock_timeout: float = 5.0) -> None:
        self._entries: Dict[str, str] = {}
        self._lock = threading.Lock()
        self._lock_timeout = lock_timeout

    @contextmanager
    def _locked(self) -> Generator[Dict[str, str], None, None]:
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise StorageError("Failed to acquire storage lock")
        try:
            yield self._entries
        finally:
            self._lock.release()

    def put(self, name: str, file_path: str) -> None:
        """Registers ``name``; an existing entry is overwritten."""
        with self._locked() as entries:
            previous = entries.get(name)
            entries[name] = file_path
        if previous is not None and previous != file_path:
            log.info("Kubeconfig '%s' re-pointed from %s to %s", name, previous, file_path)
        else:
            log.debug("Kubeconfig '%s' registered at %s", name, file_path)

    def get(self, name: str) -> Optional[str]:
        with self._locked() as entries:
            return entries.get(name)

    def remove(self, name: str) -> bool:
        """Returns False when ``name`` was not registered."""
        with self._locked() as entries:
            removed = entries.pop(name, None) is not None
        if removed:
            log.debug("Kubeconfig '%s' removed", name)
        return removed

    def list_names(self) -> List[str]:
        with self._locked() as entries:
            return sorted(entries)

    def __contains__(self, name: object) -> bool:
        with self._locked() as entries:
            return name in entries

    def __len__(self) -> int:
        with self._locked() as entries:
            return len(entries)

    def import_file(self, name: str, content: str, storage_dir: Path) -> str:
        """
        Persists ``content`` under the storage directory, records ``name`` in
        the directory's name index and registers it.
        """
        file_path = save_kubeconfig_file(name, content, storage_dir)
        index = load_name_index(storage_dir)
        index[name] = Path(file_path).name
        save_name_index(storage_dir, index)
        self.put(name, file_path)
        return file_path

    def forget(self, name: str, storage_dir: Path) -> Optional[str]:
        """
        Unregisters ``name`` and drops it from the name index. Returns the path
        it pointed at, or None when it was not registered.
        """
        file_path = self.get(name)
        if file_path is None or not self.remove(name):
            return None
        index = load_name_index(storage_dir)
        if index.pop(name, None) is not None:
            save_name_index(storage_dir, index)
        return file_path

    def load_storage_dir(self, storage_dir: Path) -> List[str]:
        """
        Registers every stored kubeconfig: indexed files under the name they
        were imported with, any other ``*.yaml`` under its file stem. Entries
        that are already registered keep their current path.
        """
        if not storage_dir.is_dir():
            return []
        index = load_name_index(storage_dir)
        try:
            candidates = sorted(storage_dir.glob(f"*{KUBECONFIG_FILE_EXTENSION}"))
        except OSError as e:
            raise KubeconfigIOError(str(e)) from e

        indexed_files = set(index.values())
        stored: List[Tuple[str, Path]] = [
            (name, storage_dir / file_name) for name, file_name in sorted(index.items())
        ]
        stored += [(p.stem, p) for p in candidates if p.name not in indexed_files]

        loaded = []
        for name, path in stored:
            if not path.is_file():
                log.warning("Stored kubeconfig '%s' is missing: %s", name, path)
                continue
            with self._locked() as entries:
                if name in entries:
                    continue
                entries[name] = str(path.resolve())
            loaded.append(name)

        log.info("Loaded %d kubeconfig(s) from %s", len(loaded), storage_dir)
        return loaded
