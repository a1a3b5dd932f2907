"""Cluster-wide resource summaries and per-pod usage hotspots.

Inputs are whatever the fetchers hand over: kubernetes model objects for
nodes, pods and namespaces, and plain dicts for metrics.k8s.io items. All
CPU figures are cores and all memory and storage figures are GiB.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Tuple

from Kontour.k8s.quantity import parse_cpu, parse_memory, parse_storage, usage_percent
from Kontour.models.status import resolve_field

log = logging.getLogger(__name__)

SYSTEM_NAMESPACE = "kube-system"
HOTSPOT_EXCLUDED_NAMESPACES = frozenset({"kube-system", "kube-public"})

# Whole-cluster utilisation above this ratio is a warning.
PRESSURE_RATIO = 0.85

HIGH_CPU_PERCENT = 20.0
HIGH_MEMORY_PERCENT = 80.0
LOW_USAGE_PERCENT = 10.0

_NODE_PROBLEM_CONDITIONS = ("MemoryPressure", "DiskPressure", "NetworkUnavailable")


@dataclass
class ClusterStatus:
    status: str = "Healthy"  # "Healthy", "Warning" or "Critical"
    message: str = "All systems operational"
    last_checked: str = ""


@dataclass
class ClusterResourceUsage:
    cpu_total: float = 0.0
    cpu_used: float = 0.0
    memory_total: float = 0.0
    memory_used: float = 0.0
    storage_total: float = 0.0
    storage_allocatable: float = 0.0
    node_count: int = 0
    pod_count: int = 0
    running_pods: int = 0
    namespace_count: int = 0
    cluster_status: ClusterStatus = field(default_factory=ClusterStatus)

    @property
    def cpu_percent(self) -> float:
        return usage_percent(self.cpu_used, self.cpu_total)

    @property
    def memory_percent(self) -> float:
        return usage_percent(self.memory_used, self.memory_total)


@dataclass(frozen=True)
class ResourceHotspot:
    name: str
    namespace: str
    cpu_usage: float  # percent of the pod's CPU limits
    memory_usage: float  # percent of the pod's memory limits
    hotspot_type: str
    severity: str  # "high" or "low"


def _name(obj: Any) -> str:
    return resolve_field(obj, "metadata", "name") or ""


def _phase(obj: Any) -> str | None:
    return resolve_field(obj, "status", "phase")


def _node_is_unhealthy(node: Any) -> bool:
    for condition in resolve_field(node, "status", "conditions") or []:
        type_ = resolve_field(condition, "type")
        status = resolve_field(condition, "status")
        if type_ == "Ready" and status != "True":
            return True
        if type_ in _NODE_PROBLEM_CONDITIONS and status == "True":
            return True
    return False


def calculate_cluster_status(
    nodes: Iterable[Any], pods: Iterable[Any], usage: ClusterResourceUsage
) -> ClusterStatus:
    """Node health first, then system pods, then overall resource pressure."""
    status = ClusterStatus(last_checked=datetime.now(timezone.utc).isoformat())

    unhealthy_nodes = [n for n in nodes if _node_is_unhealthy(n)]
    unhealthy_system_pods = [
        p
        for p in pods
        if resolve_field(p, "metadata", "namespace") == SYSTEM_NAMESPACE
        and _phase(p) not in ("Running", "Succeeded")
    ]
    high_cpu = usage.cpu_total > 0 and usage.cpu_used / usage.cpu_total > PRESSURE_RATIO
    high_memory = (
        usage.memory_total > 0 and usage.memory_used / usage.memory_total > PRESSURE_RATIO
    )

    if unhealthy_nodes:
        status.status = "Critical"
        status.message = f"{len(unhealthy_nodes)} node(s) unhealthy"
    elif unhealthy_system_pods:
        status.status = "Warning"
        status.message = f"{len(unhealthy_system_pods)} system pod(s) not running"
    elif high_cpu or high_memory:
        status.status = "Warning"
        status.message = "High resource utilization"
    return status


def summarize_cluster(
    nodes: Iterable[Any],
    node_metrics: Iterable[Dict[str, Any]],
    pods: Iterable[Any],
    namespaces: Iterable[Any],
) -> ClusterResourceUsage:
    nodes = list(nodes)
    pods = list(pods)
    usage = ClusterResourceUsage(
        node_count=len(nodes),
        pod_count=len(pods),
        running_pods=sum(1 for p in pods if _phase(p) == "Running"),
        namespace_count=sum(1 for ns in namespaces if _phase(ns) == "Active"),
    )

    metrics_by_node = {_name(m): m for m in node_metrics if _name(m)}

    for node in nodes:
        node_name = _name(node)
        allocatable = resolve_field(node, "status", "allocatable") or {}
        capacity = resolve_field(node, "status", "capacity") or {}

        usage.cpu_total += parse_cpu(allocatable.get("cpu"))
        usage.memory_total += parse_memory(allocatable.get("memory"))
        usage.storage_total += parse_storage(capacity.get("ephemeral-storage"))
        usage.storage_allocatable += parse_storage(allocatable.get("ephemeral-storage"))

        metrics = metrics_by_node.get(node_name)
        if metrics is None:
            log.debug("No metrics found for node %s", node_name)
            continue
        node_usage = metrics.get("usage") or {}
        usage.cpu_used += parse_cpu(node_usage.get("cpu"))
        usage.memory_used += parse_memory(node_usage.get("memory"))

    usage.cluster_status = calculate_cluster_status(nodes, pods, usage)
    return usage


def _pod_limits(pod: Any) -> Tuple[float, float]:
    cpu_limit = 0.0
    memory_limit = 0.0
    for container in resolve_field(pod, "spec", "containers") or []:
        limits = resolve_field(container, "resources", "limits") or {}
        cpu_limit += parse_cpu(limits.get("cpu"))
        memory_limit += parse_memory(limits.get("memory"))
    return cpu_limit, memory_limit


def _pod_usage(metrics: Dict[str, Any]) -> Tuple[float, float]:
    cpu = 0.0
    memory = 0.0
    for container in metrics.get("containers") or []:
        container_usage = container.get("usage") or {}
        cpu += parse_cpu(container_usage.get("cpu"))
        memory += parse_memory(container_usage.get("memory"))
    return cpu, memory


def find_resource_hotspots(
    pods: Iterable[Any], pod_metrics: Iterable[Dict[str, Any]]
) -> List[ResourceHotspot]:
    """
    Compares each pod's measured usage against the sum of its container
    limits. Pods without limits never produce a hotspot. Results are sorted by
    the larger of the two percentages, highest first.
    """
    limits_by_pod = {
        (resolve_field(p, "metadata", "namespace") or "", _name(p)): _pod_limits(p)
        for p in pods
    }

    hotspots: List[ResourceHotspot] = []
    for metrics in pod_metrics:
        name = _name(metrics)
        namespace = resolve_field(metrics, "metadata", "namespace") or ""
        if namespace in HOTSPOT_EXCLUDED_NAMESPACES:
            continue
        limits = limits_by_pod.get((namespace, name))
        if limits is None:
            continue

        cpu_limit, memory_limit = limits
        cpu_used, memory_used = _pod_usage(metrics)
        cpu_percent = usage_percent(cpu_used, cpu_limit)
        memory_percent = usage_percent(memory_used, memory_limit)

        def hotspot(hotspot_type: str, severity: str) -> ResourceHotspot:
            return ResourceHotspot(
                name=name,
                namespace=namespace,
                cpu_usage=cpu_percent,
                memory_usage=memory_percent,
                hotspot_type=hotspot_type,
                severity=severity,
            )

        if cpu_percent >= HIGH_CPU_PERCENT:
            hotspots.append(hotspot("High CPU Usage", "high"))
        elif memory_percent >= HIGH_MEMORY_PERCENT:
            hotspots.append(hotspot("High Memory Usage", "high"))

        if cpu_limit > 0 and cpu_percent <= LOW_USAGE_PERCENT:
            hotspots.append(hotspot("Low CPU Usage", "low"))
        if memory_limit > 0 and memory_percent <= LOW_USAGE_PERCENT:
            hotspots.append(hotspot("Low Memory Usage", "low"))

    hotspots.sort(key=lambda h: max(h.cpu_usage, h.memory_usage), reverse=True)
    return hotspots
