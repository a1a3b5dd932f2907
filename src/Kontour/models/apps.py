from abc import abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar, Optional, Type

from .base import (
    WorkloadRow,
    ApiInfo,
    apps_v1_api,
    column_field,
    ABC,
)
from .status import (
    CanonicalStatus,
    DaemonSetStatus,
    DeploymentStatus,
    StatefulSetStatus,
    resolve_field,
    snapshot_from_daemonset,
    snapshot_from_deployment,
    snapshot_from_statefulset,
)


@dataclass(frozen=True)
class BaseAppsV1Row(WorkloadRow, ABC):
    """Base class for Apps V1 API resources."""

    api_info: ClassVar[ApiInfo] = apps_v1_api
    namespaced: ClassVar[bool] = True

    @abstractmethod
    def __init__(self, raw: Any) -> None:
        super().__init__(raw=raw)


@dataclass(frozen=True)
class DeploymentRow(BaseAppsV1Row):
    """Represents a Deployment for UI display."""

    # --- API Metadata ---
    kind: ClassVar[str] = "Deployment"
    plural: ClassVar[str] = "deployments"
    display_name: ClassVar[str] = "Deployments"
    index: ClassVar[int] = 1
    status_enum: ClassVar[Type[CanonicalStatus]] = DeploymentStatus

    # --- Instance Fields ---
    ready: str = column_field(label="Ready", width=10)
    up_to_date: int = column_field(label="Up-to-date", width=10)
    available: int = column_field(label="Available", width=10)
    strategy: str = column_field(label="Strategy", width=14)

    def __init__(self, raw: Any):
        """Initialize the deployment row with data from the raw Kubernetes resource."""
        super().__init__(raw=raw)
        snapshot = snapshot_from_deployment(raw)
        object.__setattr__(self, "ready", f"{snapshot.ready}/{snapshot.desired}")
        object.__setattr__(self, "up_to_date", snapshot.updated)
        object.__setattr__(self, "available", snapshot.available)
        object.__setattr__(
            self,
            "strategy",
            resolve_field(raw, "spec", "strategy", "type") or "Unknown",
        )


@dataclass(frozen=True)
class DaemonSetRow(BaseAppsV1Row):
    """Represents a DaemonSet for UI display."""

    # --- API Metadata ---
    kind: ClassVar[str] = "DaemonSet"
    plural: ClassVar[str] = "daemonsets"
    display_name: ClassVar[str] = "Daemon Sets"
    index: ClassVar[int] = 2
    status_enum: ClassVar[Type[CanonicalStatus]] = DaemonSetStatus

    # --- Instance Fields ---
    desired: int = column_field(label="Desired", width=10)
    current: int = column_field(label="Current", width=10)
    ready: int = column_field(label="Ready", width=10)
    up_to_date: int = column_field(label="Up-to-date", width=10)
    available: int = column_field(label="Available", width=10)
    node_selector: str = column_field(label="Node Selector", width=20)

    def __init__(self, raw: Any):
        """Initialize the daemon set row with data from the raw Kubernetes resource."""
        super().__init__(raw=raw)
        snapshot = snapshot_from_daemonset(raw)
        object.__setattr__(self, "desired", snapshot.desired)
        object.__setattr__(self, "current", snapshot.current)
        object.__setattr__(self, "ready", snapshot.ready)
        object.__setattr__(self, "up_to_date", snapshot.updated)
        object.__setattr__(self, "available", snapshot.available)
        node_selector_dict = (
            resolve_field(raw, "spec", "template", "spec", "node_selector") or {}
        )
        object.__setattr__(
            self,
            "node_selector",
            ", ".join(f"{key}={value}" for key, value in node_selector_dict.items()),
        )


@dataclass(frozen=True)
class StatefulSetRow(BaseAppsV1Row):
    """Represents a StatefulSet for UI display."""

    # --- API Metadata ---
    kind: ClassVar[str] = "StatefulSet"
    plural: ClassVar[str] = "statefulsets"
    display_name: ClassVar[str] = "Stateful Sets"
    index: ClassVar[int] = 3
    status_enum: ClassVar[Type[CanonicalStatus]] = StatefulSetStatus

    # --- Instance Fields ---
    ready: str = column_field(label="Ready", width=10)
    current_revision: Optional[str] = column_field(label="Current Revision", width=20)
    update_revision: Optional[str] = column_field(label="Update Revision", width=20)
    service_name: str = column_field(label="Service", width=15)

    def __init__(self, raw: Any):
        """Initialize the stateful set row with data from the raw Kubernetes resource."""
        super().__init__(raw=raw)
        snapshot = snapshot_from_statefulset(raw)
        object.__setattr__(self, "ready", f"{snapshot.ready}/{snapshot.desired}")
        object.__setattr__(self, "current_revision", snapshot.current_revision)
        object.__setattr__(self, "update_revision", snapshot.update_revision)
        object.__setattr__(
            self, "service_name", resolve_field(raw, "spec", "service_name") or "-"
        )
