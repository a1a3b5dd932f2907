from __future__ import annotations

from typing import Dict, Type

from .base import WorkloadRow
from .apps import DaemonSetRow, DeploymentRow, StatefulSetRow
from .batch import CronJobRow, JobRow


WORKLOAD_MODELS: Dict[str, Type[WorkloadRow]] = {
    model.plural: model
    for model in sorted(
        [DeploymentRow, DaemonSetRow, StatefulSetRow, JobRow, CronJobRow],
        key=lambda m: m.index,
    )
}


def get_workload_model(name: str) -> Type[WorkloadRow]:
    """Looks a row class up by plural ("deployments") or kind ("Deployment")."""
    lowered = name.lower()
    for model in WORKLOAD_MODELS.values():
        if lowered in (model.plural, model.kind.lower()):
            return model
    raise KeyError(f"Unknown workload kind: {name}")
