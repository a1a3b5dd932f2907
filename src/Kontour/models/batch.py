from abc import abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, ClassVar, Optional, Type
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

from croniter import croniter, CroniterBadCronError

from .base import (
    WorkloadRow,
    ApiInfo,
    batch_v1_api,
    column_field,
    ABC,
)
from .status import (
    CanonicalStatus,
    CronJobStatus,
    JobStatus,
    resolve_field,
    snapshot_from_cronjob,
    snapshot_from_job,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BaseBatchV1Row(WorkloadRow, ABC):
    """Base class for Batch V1 API resources."""

    api_info: ClassVar[ApiInfo] = batch_v1_api
    namespaced: ClassVar[bool] = True

    @abstractmethod
    def __init__(self, raw: Any):
        super().__init__(raw=raw)


@dataclass(frozen=True)
class JobRow(BaseBatchV1Row):
    """Represents a Job for UI display."""

    # --- API Metadata ---
    kind: ClassVar[str] = "Job"
    plural: ClassVar[str] = "jobs"
    display_name: ClassVar[str] = "Jobs"
    index: ClassVar[int] = 4
    status_enum: ClassVar[Type[CanonicalStatus]] = JobStatus

    # --- Instance Fields ---
    completion: str = column_field(label="Completion", width=10)
    active: int = column_field(label="Active", width=8)
    failed: int = column_field(label="Failed", width=8)

    def __init__(self, raw: Any):
        """Initialize the job row with data from the raw Kubernetes resource."""
        super().__init__(raw=raw)
        snapshot = snapshot_from_job(raw)
        # A Job without spec.completions runs to a single success.
        completions = snapshot.desired or 1
        object.__setattr__(self, "completion", f"{snapshot.succeeded}/{completions}")
        object.__setattr__(self, "active", snapshot.active)
        object.__setattr__(self, "failed", snapshot.failed)


@dataclass(frozen=True)
class CronJobRow(BaseBatchV1Row):
    """Represents a CronJob for UI display."""

    # --- API Metadata ---
    kind: ClassVar[str] = "CronJob"
    plural: ClassVar[str] = "cronjobs"
    display_name: ClassVar[str] = "CronJobs"
    index: ClassVar[int] = 5
    status_enum: ClassVar[Type[CanonicalStatus]] = CronJobStatus

    # --- Instance Fields ---
    schedule: str = column_field(label="Schedule", width=12)
    suspend: bool = column_field(label="Suspend", width=8)
    active: int = column_field(label="Active", width=8)
    last_schedule: Optional[datetime] = column_field(
        label="Last Schedule", width=10, is_age=True, compare=False
    )
    next_execution: Optional[datetime] = column_field(
        label="Next Execution", width=10, is_countdown=True, compare=False
    )
    time_zone: str = column_field(label="Time zone", width=15)

    def __init__(self, raw: Any):
        """Initialize the cron job row with data from the raw Kubernetes resource."""
        super().__init__(raw=raw)
        snapshot = snapshot_from_cronjob(raw)
        object.__setattr__(self, "schedule", resolve_field(raw, "spec", "schedule") or "")
        object.__setattr__(self, "time_zone", resolve_field(raw, "spec", "time_zone") or "-")
        object.__setattr__(self, "active", snapshot.active)
        object.__setattr__(self, "suspend", snapshot.suspended)
        object.__setattr__(
            self,
            "last_schedule",
            self.to_datetime(resolve_field(raw, "status", "last_schedule_time")),
        )
        object.__setattr__(self, "next_execution", self._get_next_schedule())

    def _get_next_schedule(self) -> Optional[datetime]:
        """Calculates the next scheduled time for the cronjob."""
        if self.suspend or not self.schedule:
            return None

        # Count from the last run, or from now if it never ran.
        base_time = self.last_schedule or datetime.now(timezone.utc)
        tz_str = resolve_field(self.raw, "spec", "time_zone")

        try:
            if tz_str:
                try:
                    base_time = base_time.astimezone(ZoneInfo(tz_str))
                except ZoneInfoNotFoundError:
                    log.warning(
                        "Invalid timezone '%s' in CronJob %s", tz_str, self.name
                    )
                    return None

            # Without a timezone the schedule is interpreted in UTC.
            return croniter(self.schedule, base_time).get_next(datetime)
        except (CroniterBadCronError, ValueError, KeyError) as e:
            log.error("Error calculating next schedule for %s: %s", self.name, e)
            return None
