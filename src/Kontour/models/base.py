from __future__ import annotations

import logging
from abc import abstractmethod, ABCMeta, ABC
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Type, TypeVar
from functools import lru_cache

import ciso8601

from Kontour.models.status import CanonicalStatus, classify_raw, resolve_field


log = logging.getLogger(__name__)


class ModelMeta(ABCMeta):
    """
    A metaclass that enforces the presence of required class variables
    on any concrete (non-abstract) subclass of WorkloadRow.
    """

    def __new__(mcs, name, bases, dct) -> ModelMeta:
        cls = super().__new__(mcs, name, bases, dct)

        # Abstract bases list abc.ABC among their direct bases.
        is_abstract_base = any(b is ABC for b in bases)
        if is_abstract_base:
            return cls

        required_attrs = [
            "kind",
            "plural",
            "display_name",
            "namespaced",
            "index",
            "api_info",
            "status_enum",
        ]

        for attr in required_attrs:
            if not hasattr(cls, attr):
                raise TypeError(
                    f"Class '{name}' is missing required class variable '{attr}'. "
                    f"All Kontour models must define these attributes."
                )
        return cls


@dataclass(frozen=True)
class ApiInfo:
    """A dataclass to hold API client information."""

    client_name: str
    group: str
    version: str


core_v1_api = ApiInfo(
    client_name="CoreV1Api",
    group="",
    version="v1",
)
apps_v1_api = ApiInfo(
    client_name="AppsV1Api",
    group="apps",
    version="v1",
)
batch_v1_api = ApiInfo(
    client_name="BatchV1Api",
    group="batch",
    version="v1",
)
custom_objects_api = ApiInfo(
    client_name="CustomObjectsApi",
    group="",
    version="",
)

ALL_APIS = {
    api.client_name: api
    for api in [
        core_v1_api,
        apps_v1_api,
        batch_v1_api,
        custom_objects_api,
    ]
}


def column_field(
    *,
    label: str,
    width: int | None = None,
    is_age: bool = False,
    is_countdown: bool = False,
    index: int | None = None,
    compare: bool = True,
) -> Any:
    """Create a field with column metadata cleanly."""
    return field(  # pylint: disable=invalid-field-call
        metadata={
            "column": {
                "label": label,
                "width": width,
                "is_age": is_age,
                "is_countdown": is_countdown,
                "index": index,
            }
        },
        init=False,
        compare=compare,
    )


def format_age(created: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Renders the time since ``created`` as "42s", "5m", "3h" or "2d"."""
    if created is None:
        return "unknown"
    now = now or datetime.now(timezone.utc)
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)

    seconds = max(int((now - created).total_seconds()), 0)
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"


R = TypeVar("R", bound="WorkloadRow")


@dataclass(frozen=True)
class WorkloadRow(ABC, metaclass=ModelMeta):
    """
    The most generic abstract base class for a workload view model.
    It cannot be instantiated directly.
    """

    # --- Subclasses must define API Metadata (Class-level) ---
    api_info: ClassVar[ApiInfo]
    kind: ClassVar[str]
    plural: ClassVar[str]
    display_name: ClassVar[str]
    namespaced: ClassVar[bool]
    index: ClassVar[int]
    status_enum: ClassVar[Type[CanonicalStatus]]

    raw: Any = field(repr=False, compare=False)
    uid: Optional[str] = field(init=False, repr=False, compare=False)
    name: str = column_field(label="Name", index=0, width=25)
    namespace: Optional[str] = column_field(label="Namespace", index=1, width=15)
    status: CanonicalStatus = column_field(label="Status", index=2, width=14)
    created: Optional[datetime] = column_field(
        label="Age", width=10, is_age=True, index=999, compare=False
    )
    labels: Dict[str, str] = field(init=False, repr=False, compare=False)

    @abstractmethod
    def __init__(self, raw: Any) -> None:
        """Initialize the row with data from the raw Kubernetes resource."""
        object.__setattr__(self, "raw", raw)
        object.__setattr__(self, "uid", resolve_field(raw, "metadata", "uid"))
        object.__setattr__(self, "name", resolve_field(raw, "metadata", "name") or "")
        object.__setattr__(self, "namespace", resolve_field(raw, "metadata", "namespace"))
        object.__setattr__(
            self,
            "created",
            self.to_datetime(resolve_field(raw, "metadata", "creation_timestamp")),
        )
        object.__setattr__(self, "labels", dict(resolve_field(raw, "metadata", "labels") or {}))
        object.__setattr__(self, "status", self.classify())

    def classify(self) -> CanonicalStatus:
        """Derives the canonical status from ``self.raw`` by ``kind``."""
        return classify_raw(self.kind, self.raw)

    @property
    def age(self) -> str:
        return format_age(self.created)

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}" if self.namespace else self.name

    @classmethod
    @lru_cache(maxsize=32)
    def get_columns(cls) -> list[dict[str, Any]]:
        """
        Inspects the dataclass fields to find columns and their metadata.
        Columns without an index sit between the explicitly indexed ones;
        an index of 999 or more pins the column to the end.
        """
        start_columns = []
        middle_columns = []
        end_columns = []

        end_index_threshold = 999

        for f in fields(cls):
            if "column" in f.metadata:
                column_meta = f.metadata["column"].copy()
                column_meta["key"] = f.name

                index = column_meta.get("index")
                if index is None:
                    middle_columns.append(column_meta)
                elif index >= end_index_threshold:
                    end_columns.append(column_meta)
                else:
                    start_columns.append(column_meta)

        start_columns.sort(key=lambda c: c["index"])
        end_columns.sort(key=lambda c: c["index"])

        return start_columns + middle_columns + end_columns

    @classmethod
    def get_column_keys(cls) -> list[str]:
        return [c["key"] for c in cls.get_columns()]

    @staticmethod
    def to_datetime(timestamp: Any) -> Optional[datetime]:
        """Accepts the datetime kubernetes models carry or an RFC 3339 string."""
        if timestamp is None or isinstance(timestamp, datetime):
            return timestamp
        return _parse_timestamp(str(timestamp))


@lru_cache(maxsize=1024)
def _parse_timestamp(timestamp: str) -> Optional[datetime]:
    try:
        return ciso8601.parse_datetime(timestamp)
    except ValueError:
        log.debug("Unparseable timestamp: %r", timestamp)
        return None


def filter_by_status(rows: Iterable[R], status: Optional[str]) -> List[R]:
    """
    Keeps the rows whose status matches ``status`` by canonical tag or display
    label. ``None``, "" and "All" keep every row.
    """
    if not status or status == "All":
        return list(rows)
    return [r for r in rows if r.status.value == status or r.status.label == status]  # type: ignore[attr-defined]
