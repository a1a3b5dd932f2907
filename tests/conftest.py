import pytest
from pathlib import Path

from Kontour.config import AppConfig, AppPaths
from Kontour.core.kubeconfig_registry import KubeconfigRegistry

KUBECONFIG_TEMPLATE = """\
apiVersion: v1
kind: Config
clusters:
- name: {name}
  cluster:
    server: https://{name}.example.com:6443
contexts:
- name: {name}
  context:
    cluster: {name}
    user: {name}-admin
current-context: {name}
users:
- name: {name}-admin
  user:
    token: not-a-real-token
"""


def kubeconfig_yaml(name: str = "staging") -> str:
    return KUBECONFIG_TEMPLATE.format(name=name)


@pytest.fixture
def app_paths(tmp_path: Path) -> AppPaths:
    return AppPaths(home_dir=tmp_path)


@pytest.fixture
def app_config(app_paths: AppPaths) -> AppConfig:
    return AppConfig(log_level="DEBUG", paths=app_paths)


@pytest.fixture
def registry() -> KubeconfigRegistry:
    return KubeconfigRegistry(lock_timeout=0.5)


@pytest.fixture
def kubeconfig_file(tmp_path: Path) -> Path:
    """A valid kubeconfig outside the storage directory."""
    path = tmp_path / "external" / "staging.yaml"
    path.parent.mkdir(parents=True)
    path.write_text(kubeconfig_yaml("staging"))
    return path


def meta(name: str, namespace: str = "default", **extra):
    metadata = {"name": name, "namespace": namespace, "uid": f"uid-{name}"}
    metadata.update(extra)
    return metadata
