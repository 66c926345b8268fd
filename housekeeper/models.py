"""Snapshots of Nomad jobs as the housekeeper sees them.

Field aliases are the Nomad HTTP API's JSON keys, so payloads from
/v1/jobs and /v1/job/<name> validate straight into these models.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator

JOB_TYPE_SERVICE = "service"
JOB_TYPE_BATCH = "batch"
JOB_TYPE_SYSTEM = "system"
JOB_TYPE_SYSBATCH = "sysbatch"

STATUS_RUNNING = "running"

_NS_PER_SECOND = 1_000_000_000


def to_nomad_time(dt: datetime) -> int:
    """datetime -> Nomad timestamp (Unix nanoseconds)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(round(dt.timestamp() * _NS_PER_SECOND))


class _NomadModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class WorkloadStub(_NomadModel):
    """One entry of the job listing."""

    id: str = Field(..., alias="ID")
    name: str = Field(..., alias="Name")
    namespace: str = Field("default", alias="Namespace")
    status: str = Field("", alias="Status")
    type: str = Field("", alias="Type")


class Workload(_NomadModel):
    """Full job detail."""

    id: str = Field(..., alias="ID")
    name: str = Field(..., alias="Name")
    namespace: str = Field("default", alias="Namespace")
    status: str = Field("", alias="Status")
    type: str = Field(JOB_TYPE_SERVICE, alias="Type")
    periodic: bool = Field(False, alias="Periodic")
    parent_id: str = Field("", alias="ParentID")
    submit_time: int = Field(0, alias="SubmitTime", description="Unix nanoseconds")
    meta: Dict[str, str] = Field(default_factory=dict, alias="Meta")

    @field_validator("periodic", mode="before")
    @classmethod
    def _periodic(cls, v: Any) -> bool:
        # Detail payloads carry the periodic block itself (or null); a job is
        # periodic whenever the block is present.
        if isinstance(v, dict):
            return True
        return bool(v)

    @field_validator("parent_id", mode="before")
    @classmethod
    def _parent_id(cls, v: Any) -> str:
        return v or ""

    @field_validator("meta", mode="before")
    @classmethod
    def _meta(cls, v: Any) -> Dict[str, str]:
        if not v:
            return {}
        return {str(k): "" if val is None else str(val) for k, val in dict(v).items()}

    @property
    def submitted_at(self) -> datetime:
        return datetime.fromtimestamp(self.submit_time / _NS_PER_SECOND, timezone.utc)
