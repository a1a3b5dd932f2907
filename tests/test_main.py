import logging
from unittest.mock import AsyncMock, MagicMock

import orjson
import pytest
from click.testing import CliRunner

from conftest import kubeconfig_yaml, meta
from Kontour.k8s.resource_usage import ClusterResourceUsage, ClusterStatus, ResourceHotspot
from Kontour.main import main
from Kontour.models.apps import DeploymentRow


@pytest.fixture(autouse=True)
def reset_kontour_logger():
    yield
    logger = logging.getLogger("Kontour")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def run(tmp_path):
    runner = CliRunner()

    def invoke(*args, input=None):
        return runner.invoke(
            main, ["--home", str(tmp_path), "--log-level", "WARNING", *args], input=input
        )

    return invoke


@pytest.fixture
def fake_client(monkeypatch):
    api_client = MagicMock()
    api_client.close = AsyncMock()

    async def connect(self, selector):
        api_client.selector = selector
        return api_client

    monkeypatch.setattr(
        "Kontour.core.kubernetes_client.ClientFactory.resolve_and_connect", connect
    )
    return api_client


def test_import_list_remove(run, tmp_path, monkeypatch):
    result = run("import", "team/prod", "-", input=kubeconfig_yaml("prod"))
    assert result.exit_code == 0, result.output
    stored = tmp_path / ".kontour" / "kubeconfigs" / "team_prod.yaml"
    assert stored.read_text() == kubeconfig_yaml("prod")

    # A fresh invocation sees the stored file under the name it was imported with.
    result = run("list", "-o", "json")
    assert result.exit_code == 0, result.output
    assert orjson.loads(result.output) == {"team/prod": str(stored.resolve())}

    list_workloads = AsyncMock(return_value=[])
    monkeypatch.setattr(
        "Kontour.core.kubernetes_client.KubernetesClient.list_workloads", list_workloads
    )
    result = run("workloads", "--context", "team/prod", "--kind", "jobs")
    assert result.exit_code == 0, result.output
    assert "Jobs (0)" in result.output
    list_workloads.assert_awaited_once()

    result = run("remove", "team/prod")
    assert result.exit_code == 0, result.output
    assert not stored.exists()

    result = run("list")
    assert "No kubeconfigs registered." in result.output


def test_remove_keeps_file_shared_by_another_name(run, tmp_path):
    stored = tmp_path / ".kontour" / "kubeconfigs" / "team_prod.yaml"
    run("import", "team/prod", "-", input=kubeconfig_yaml("prod"))
    run("import", "team_prod", "-", input=kubeconfig_yaml("prod"))

    result = run("list", "-o", "json")
    assert orjson.loads(result.output) == {
        "team/prod": str(stored.resolve()),
        "team_prod": str(stored.resolve()),
    }

    result = run("remove", "team/prod")
    assert result.exit_code == 0, result.output
    assert stored.exists()

    result = run("list", "-o", "json")
    assert orjson.loads(result.output) == {"team_prod": str(stored.resolve())}


def test_remove_unknown(run):
    result = run("remove", "ghost")
    assert result.exit_code == 1
    assert "Kubeconfig not found: ghost" in result.output


def test_workloads_json(run, fake_client):
    rows = [
        DeploymentRow(
            {
                "metadata": meta("web", "shop"),
                "spec": {"replicas": 2},
                "status": {
                    "readyReplicas": 2,
                    "updatedReplicas": 2,
                    "availableReplicas": 2,
                    "conditions": [
                        {"type": "Available", "status": "True"},
                        {"type": "Progressing", "status": "True"},
                    ],
                },
            }
        ),
        DeploymentRow({"metadata": meta("idle", "shop"), "spec": {"replicas": 0}}),
    ]
    fake_client.list_workloads = AsyncMock(return_value=rows)

    result = run(
        "workloads", "--context", "prod", "--kind", "deployments",
        "-n", "shop", "--status", "Available", "-o", "json",
    )

    assert result.exit_code == 0, result.output
    payload = orjson.loads(result.output)
    assert [(w["name"], w["status"], w["ready"]) for w in payload] == [("web", "Available", "2/2")]
    assert payload[0]["kind"] == "Deployment"
    fake_client.list_workloads.assert_awaited_once_with(DeploymentRow, "shop")
    assert fake_client.selector == "prod"
    fake_client.close.assert_awaited_once()


def test_workloads_table_lists_every_kind(run, fake_client):
    fake_client.list_workloads = AsyncMock(return_value=[])

    result = run("workloads")

    assert result.exit_code == 0, result.output
    assert fake_client.list_workloads.await_count == 5
    for title in ("Deployments (0)", "Daemon Sets (0)", "Stateful Sets (0)", "Jobs (0)", "CronJobs (0)"):
        assert title in result.output
    assert fake_client.selector == "default"


def test_workloads_unknown_context(run):
    result = run("workloads", "--context", "nowhere")
    assert result.exit_code == 1
    assert "Kubeconfig not found: nowhere" in result.output


def test_usage(run, fake_client):
    fake_client.fetch_cluster_usage = AsyncMock(
        return_value=ClusterResourceUsage(
            cpu_total=8,
            cpu_used=2,
            memory_total=32,
            memory_used=8,
            node_count=2,
            pod_count=10,
            running_pods=9,
            namespace_count=4,
            cluster_status=ClusterStatus(status="Warning", message="1 system pod(s) not running"),
        )
    )
    fake_client.fetch_resource_hotspots = AsyncMock(
        return_value=[ResourceHotspot("api", "shop", 95.0, 20.0, "High CPU Usage", "high")]
    )

    result = run("usage", "--hotspots")

    assert result.exit_code == 0, result.output
    assert "Cluster: Warning (1 system pod(s) not running)" in result.output
    assert "(25.0%)" in result.output
    assert "Pods: 9/10 running" in result.output
    assert "[high] shop/api: High CPU Usage" in result.output

    result = run("usage", "-o", "json")
    payload = orjson.loads(result.output)
    assert payload["cpu_percent"] == 25.0
    assert payload["cluster_status"]["status"] == "Warning"
    assert "hotspots" not in payload
