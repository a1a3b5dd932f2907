import threading
from pathlib import Path

import pytest

from Kontour.core.exceptions import KubeconfigIOError, StorageError
from Kontour.core.kubeconfig_registry import KubeconfigRegistry
from Kontour.utils import (
    delete_kubeconfig_file,
    get_kubeconfig_storage_dir,
    load_name_index,
    sanitize_filename,
    save_kubeconfig_file,
    save_name_index,
)


class TestRegistry:
    def test_round_trip(self, registry):
        registry.put("a", "/tmp/x")
        assert registry.get("a") == "/tmp/x"
        assert registry.remove("a") is True
        assert registry.get("a") is None
        assert registry.remove("a") is False

    def test_put_overwrites(self, registry):
        registry.put("prod", "/tmp/one.yaml")
        registry.put("prod", "/tmp/two.yaml")
        assert registry.get("prod") == "/tmp/two.yaml"
        assert len(registry) == 1

    def test_list_names_is_sorted(self, registry):
        for name in ("zeta", "alpha", "mid"):
            registry.put(name, f"/tmp/{name}.yaml")
        assert registry.list_names() == ["alpha", "mid", "zeta"]
        assert "mid" in registry
        assert "missing" not in registry

    def test_lock_timeout_raises_storage_error(self):
        registry = KubeconfigRegistry(lock_timeout=0.01)
        registry._lock.acquire()
        try:
            with pytest.raises(StorageError, match="Failed to acquire storage lock"):
                registry.get("anything")
        finally:
            registry._lock.release()

    def test_concurrent_writers(self, registry):
        def writer(prefix):
            for i in range(200):
                registry.put(f"{prefix}-{i}", f"/tmp/{prefix}-{i}.yaml")

        threads = [threading.Thread(target=writer, args=(p,)) for p in "abcd"]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(registry) == 800

    def test_import_file_persists_and_registers(self, registry, tmp_path):
        storage = tmp_path / "store"
        path = registry.import_file("team/prod:eu", "apiVersion: v1\n", storage)
        assert Path(path) == (storage / "team_prod_eu.yaml").resolve()
        assert Path(path).read_text() == "apiVersion: v1\n"
        assert registry.get("team/prod:eu") == path

    def test_load_storage_dir_keeps_existing_entries(self, registry, tmp_path):
        (tmp_path / "dev.yaml").write_text("a")
        (tmp_path / "prod.yaml").write_text("b")
        (tmp_path / "notes.txt").write_text("c")
        registry.put("dev", "/elsewhere/dev.yaml")

        loaded = registry.load_storage_dir(tmp_path)

        assert loaded == ["prod"]
        assert registry.get("dev") == "/elsewhere/dev.yaml"
        assert registry.get("prod") == str((tmp_path / "prod.yaml").resolve())

    def test_imported_names_survive_a_reload(self, registry, tmp_path):
        registry.import_file("team/prod", "apiVersion: v1\n", tmp_path)
        registry.import_file("team_prod", "apiVersion: v1\n", tmp_path / "other")
        (tmp_path / "loose.yaml").write_text("c")

        fresh = KubeconfigRegistry()
        loaded = fresh.load_storage_dir(tmp_path)

        assert loaded == ["team/prod", "loose"]
        assert fresh.list_names() == ["loose", "team/prod"]
        assert fresh.get("team/prod") == str((tmp_path / "team_prod.yaml").resolve())

    def test_forget_drops_name_from_index(self, registry, tmp_path):
        path = registry.import_file("team/prod", "a", tmp_path)
        registry.import_file("dev", "b", tmp_path)

        assert registry.forget("team/prod", tmp_path) == path
        assert "team/prod" not in registry
        assert load_name_index(tmp_path) == {"dev": "dev.yaml"}
        assert registry.forget("team/prod", tmp_path) is None

    def test_indexed_file_that_is_gone_is_skipped(self, registry, tmp_path):
        save_name_index(tmp_path, {"gone": "gone.yaml"})
        assert registry.load_storage_dir(tmp_path) == []
        assert "gone" not in registry

    def test_load_missing_storage_dir(self, registry, tmp_path):
        assert registry.load_storage_dir(tmp_path / "nope") == []


class TestFileHelpers:
    def test_sanitize(self):
        assert sanitize_filename("a/b\\c:d") == "a_b_c_d"
        assert sanitize_filename("plain-name") == "plain-name"

    def test_storage_dir_is_created(self, app_paths):
        storage = get_kubeconfig_storage_dir(app_paths)
        assert storage.is_dir()
        assert storage == app_paths.home_dir / ".kontour" / "kubeconfigs"

    def test_storage_dir_failure_is_io_error(self, tmp_path):
        from Kontour.config import AppPaths

        blocker = tmp_path / "file"
        blocker.write_text("")
        with pytest.raises(KubeconfigIOError, match="^IO error: "):
            get_kubeconfig_storage_dir(AppPaths(home_dir=blocker))

    def test_save_failure_is_io_error(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        with pytest.raises(KubeconfigIOError):
            save_kubeconfig_file("x", "content", blocker)

    def test_delete(self, tmp_path):
        path = save_kubeconfig_file("x", "content", tmp_path)
        assert delete_kubeconfig_file(path) is True
        assert delete_kubeconfig_file(path) is False

    def test_home_override(self, monkeypatch, tmp_path):
        from Kontour.config import AppPaths

        monkeypatch.setenv("KONTOUR_HOME", str(tmp_path))
        assert AppPaths().storage_dir == tmp_path / ".kontour" / "kubeconfigs"

    def test_name_index_round_trip(self, tmp_path):
        assert load_name_index(tmp_path) == {}
        save_name_index(tmp_path, {"team/prod": "team_prod.yaml"})
        assert load_name_index(tmp_path) == {"team/prod": "team_prod.yaml"}

    @pytest.mark.parametrize("content", ["- a\n- b\n", "key: [unclosed\n"])
    def test_unreadable_name_index_is_storage_error(self, tmp_path, content):
        (tmp_path / ".names.yml").write_text(content)
        with pytest.raises(StorageError):
            load_name_index(tmp_path)
