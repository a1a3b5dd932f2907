"""
Canonical lifecycle status for workloads.

Each classifier is a pure, total function from a ``WorkloadSnapshot`` to one
tag of its kind's closed set. Checks run top to bottom and the first match
wins. Snapshots are built from raw objects by the ``snapshot_from_*``
extractors, which default every missing sub-field to zero, ``False`` or
``None`` so that a freshly created object still classifies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

log = logging.getLogger(__name__)


class StatusTone(str, Enum):
    """Badge colour family used by the dashboard for a status."""

    RUNNING = "running"
    PENDING = "pending"
    FAILED = "failed"
    WARNING = "warning"
    UNKNOWN = "unknown"

    @property
    def css_class(self) -> str:
        return f"status-{self.value}"


class CanonicalStatus(str, Enum):
    """
    Base for the per-kind status enums. Member values are the canonical tags;
    ``label`` is the display text and ``tone`` the badge colour.
    """

    def __new__(cls, value: str, label: str, tone: StatusTone) -> CanonicalStatus:
        member = str.__new__(cls, value)
        member._value_ = value
        member.label = label  # type: ignore[attr-defined]
        member.tone = tone  # type: ignore[attr-defined]
        return member

    def __str__(self) -> str:
        return self.value


class DeploymentStatus(CanonicalStatus):
    SCALED_DOWN = ("ScaledDown", "Scaled Down", StatusTone.WARNING)
    PROGRESSING = ("Progressing", "Progressing", StatusTone.PENDING)
    AVAILABLE = ("Available", "Available", StatusTone.RUNNING)
    DEGRADED = ("Degraded", "Degraded", StatusTone.FAILED)
    UNKNOWN = ("Unknown", "Unknown", StatusTone.UNKNOWN)


class DaemonSetStatus(CanonicalStatus):
    NO_NODES = ("NoNodes", "No Nodes", StatusTone.WARNING)
    RUNNING = ("Running", "Running", StatusTone.RUNNING)
    NOT_READY = ("NotReady", "Not Ready", StatusTone.FAILED)
    PROGRESSING = ("Progressing", "Progressing", StatusTone.PENDING)
    UNKNOWN = ("Unknown", "Unknown", StatusTone.UNKNOWN)


class StatefulSetStatus(CanonicalStatus):
    SCALED_DOWN = ("ScaledDown", "Scaled Down", StatusTone.WARNING)
    ROLLING_UPDATE = ("RollingUpdate", "Rolling Update", StatusTone.PENDING)
    DEGRADED = ("Degraded", "Degraded", StatusTone.FAILED)
    PROGRESSING = ("Progressing", "Progressing", StatusTone.PENDING)
    AVAILABLE = ("Available", "Available", StatusTone.RUNNING)
    UNKNOWN = ("Unknown", "Unknown", StatusTone.UNKNOWN)


class JobStatus(CanonicalStatus):
    SUCCEEDED = ("Succeeded", "Succeeded", StatusTone.RUNNING)
    FAILED = ("Failed", "Failed", StatusTone.FAILED)
    ACTIVE = ("Active", "Active", StatusTone.PENDING)
    PENDING = ("Pending", "Pending", StatusTone.WARNING)


class CronJobStatus(CanonicalStatus):
    SUSPENDED = ("Suspended", "Suspended", StatusTone.WARNING)
    ACTIVE = ("Active", "Active", StatusTone.PENDING)
    SCHEDULED = ("Scheduled", "Scheduled", StatusTone.RUNNING)


@dataclass(frozen=True)
class Condition:
    """A status condition as reported by the API server."""

    type: str
    status: str
    reason: Optional[str] = None
    message: Optional[str] = None


@dataclass(frozen=True)
class WorkloadSnapshot:
    """The read-only projection of a workload needed for classification."""

    desired: int = 0
    ready: int = 0
    current: int = 0
    updated: int = 0
    available: int = 0
    succeeded: int = 0
    failed: int = 0
    active: int = 0
    suspended: bool = False
    paused: bool = False
    current_revision: Optional[str] = None
    update_revision: Optional[str] = None
    conditions: Tuple[Condition, ...] = field(default_factory=tuple)

    def has_condition(self, type_: str, status: str = "True") -> bool:
        return any(c.type == type_ and c.status == status for c in self.conditions)

    def has_reason(self, type_: str, reason: str) -> bool:
        return any(c.type == type_ and c.reason == reason for c in self.conditions)


# --- Classifiers ---


def deployment_status(snapshot: WorkloadSnapshot) -> DeploymentStatus:
    if snapshot.desired == 0:
        return DeploymentStatus.SCALED_DOWN

    is_progressing = snapshot.has_condition("Progressing")
    is_available = snapshot.has_condition("Available")
    has_replica_failure = snapshot.has_reason("Progressing", "ReplicaFailure")

    if has_replica_failure or (not is_progressing and not is_available):
        return DeploymentStatus.DEGRADED
    if (
        is_available
        and is_progressing
        and snapshot.updated == snapshot.desired
        and snapshot.available == snapshot.desired
    ):
        return DeploymentStatus.AVAILABLE
    return DeploymentStatus.PROGRESSING


def daemonset_status(snapshot: WorkloadSnapshot) -> DaemonSetStatus:
    desired = snapshot.desired
    if desired == 0:
        return DaemonSetStatus.NO_NODES
    if (
        snapshot.ready == desired
        and snapshot.current == desired
        and snapshot.updated == desired
    ):
        return DaemonSetStatus.RUNNING
    if snapshot.ready < desired:
        if snapshot.ready == 0:
            return DaemonSetStatus.NOT_READY
        return DaemonSetStatus.PROGRESSING
    # Over-scheduled or lagging rollout with every pod ready.
    return DaemonSetStatus.UNKNOWN


def statefulset_status(snapshot: WorkloadSnapshot) -> StatefulSetStatus:
    desired = snapshot.desired
    if desired == 0:
        return StatefulSetStatus.SCALED_DOWN
    # None compares as a value: a single populated revision is a mismatch.
    if snapshot.current_revision != snapshot.update_revision:
        return StatefulSetStatus.ROLLING_UPDATE
    if snapshot.ready < desired or snapshot.current < desired:
        if snapshot.ready == 0:
            return StatefulSetStatus.DEGRADED
        return StatefulSetStatus.PROGRESSING
    if snapshot.ready == desired and snapshot.current == desired:
        return StatefulSetStatus.AVAILABLE
    return StatefulSetStatus.UNKNOWN


def job_status(snapshot: WorkloadSnapshot) -> JobStatus:
    if snapshot.succeeded > 0:
        return JobStatus.SUCCEEDED
    if snapshot.failed > 0:
        return JobStatus.FAILED
    if snapshot.active > 0:
        return JobStatus.ACTIVE
    return JobStatus.PENDING


def cronjob_status(snapshot: WorkloadSnapshot) -> CronJobStatus:
    if snapshot.suspended:
        return CronJobStatus.SUSPENDED
    if snapshot.active > 0:
        return CronJobStatus.ACTIVE
    return CronJobStatus.SCHEDULED


# --- Snapshot extraction ---


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def resolve_field(obj: Any, *path: str) -> Any:
    """
    Walks ``path`` on a kubernetes model object or on its dict form (camelCase
    keys), returning None at the first missing step.
    """
    current = obj
    for part in path:
        if current is None:
            return None
        if isinstance(current, dict):
            current = current.get(_camel(part), current.get(part))
        else:
            current = getattr(current, part, None)
    return current


def _count(obj: Any, *path: str) -> int:
    value = resolve_field(obj, *path)
    try:
        return int(value) if value is not None else 0
    except (TypeError, ValueError):
        return 0


def _conditions(raw: Any) -> Tuple[Condition, ...]:
    items: Iterable[Any] = resolve_field(raw, "status", "conditions") or ()
    return tuple(
        Condition(
            type=str(resolve_field(c, "type") or ""),
            status=str(resolve_field(c, "status") or ""),
            reason=resolve_field(c, "reason"),
            message=resolve_field(c, "message"),
        )
        for c in items
    )


def snapshot_from_deployment(raw: Any) -> WorkloadSnapshot:
    return WorkloadSnapshot(
        desired=_count(raw, "spec", "replicas"),
        ready=_count(raw, "status", "ready_replicas"),
        updated=_count(raw, "status", "updated_replicas"),
        available=_count(raw, "status", "available_replicas"),
        paused=bool(resolve_field(raw, "spec", "paused")),
        conditions=_conditions(raw),
    )


def snapshot_from_daemonset(raw: Any) -> WorkloadSnapshot:
    current = _count(raw, "status", "current_number_scheduled")
    # Older API servers omit updatedNumberScheduled; it then tracks current.
    if resolve_field(raw, "status", "updated_number_scheduled") is None:
        updated = current
    else:
        updated = _count(raw, "status", "updated_number_scheduled")
    return WorkloadSnapshot(
        desired=_count(raw, "status", "desired_number_scheduled"),
        ready=_count(raw, "status", "number_ready"),
        current=current,
        updated=updated,
        available=_count(raw, "status", "number_available"),
        conditions=_conditions(raw),
    )


def snapshot_from_statefulset(raw: Any) -> WorkloadSnapshot:
    return WorkloadSnapshot(
        desired=_count(raw, "spec", "replicas"),
        ready=_count(raw, "status", "ready_replicas"),
        current=_count(raw, "status", "current_replicas"),
        updated=_count(raw, "status", "updated_replicas"),
        available=_count(raw, "status", "available_replicas"),
        current_revision=resolve_field(raw, "status", "current_revision"),
        update_revision=resolve_field(raw, "status", "update_revision"),
        conditions=_conditions(raw),
    )


def snapshot_from_job(raw: Any) -> WorkloadSnapshot:
    return WorkloadSnapshot(
        desired=_count(raw, "spec", "completions"),
        succeeded=_count(raw, "status", "succeeded"),
        failed=_count(raw, "status", "failed"),
        active=_count(raw, "status", "active"),
        suspended=bool(resolve_field(raw, "spec", "suspend")),
        conditions=_conditions(raw),
    )


def snapshot_from_cronjob(raw: Any) -> WorkloadSnapshot:
    active_jobs = resolve_field(raw, "status", "active") or []
    return WorkloadSnapshot(
        active=len(active_jobs),
        suspended=bool(resolve_field(raw, "spec", "suspend")),
    )


_CLASSIFIERS: Dict[str, Tuple[Callable[[Any], WorkloadSnapshot], Callable[[WorkloadSnapshot], CanonicalStatus]]] = {
    "Deployment": (snapshot_from_deployment, deployment_status),
    "DaemonSet": (snapshot_from_daemonset, daemonset_status),
    "StatefulSet": (snapshot_from_statefulset, statefulset_status),
    "Job": (snapshot_from_job, job_status),
    "CronJob": (snapshot_from_cronjob, cronjob_status),
}


def classify(kind: str, snapshot: WorkloadSnapshot) -> CanonicalStatus:
    """Classifies ``snapshot`` with the classifier registered for ``kind``."""
    try:
        _, classifier = _CLASSIFIERS[kind]
    except KeyError:
        raise ValueError(f"No status classifier for kind: {kind}") from None
    return classifier(snapshot)


def classify_raw(kind: str, raw: Any) -> CanonicalStatus:
    """Extracts a snapshot from a raw object of ``kind`` and classifies it."""
    try:
        extractor, classifier = _CLASSIFIERS[kind]
    except KeyError:
        raise ValueError(f"No status classifier for kind: {kind}") from None
    snapshot = extractor(raw)
    status = classifier(snapshot)
    log.debug("Classified %s as %s from %s", kind, status.value, snapshot)
    return status
