"""Expiration policy for Nomad jobs.

Jobs opt in through metadata tags (default prefix ``housekeeper/``):

- ``housekeeper/ttl``: duration after submission, e.g. ``24h`` or ``7d``
- ``housekeeper/expires``: absolute timestamp in any common format
- ``housekeeper/purge``: ``true`` to purge the job on removal

The ttl tag wins when both ttl and expires are set. Tags that cannot be
parsed never expire a job; a warning is logged instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from dateutil import parser as dateparser

from .durations import DurationError, parse_duration
from .models import JOB_TYPE_BATCH, STATUS_RUNNING, Workload

log = logging.getLogger("housekeeper.expiration")


@dataclass(frozen=True)
class PolicyTags:
    ttl: str = "housekeeper/ttl"
    expires: str = "housekeeper/expires"
    purge: str = "housekeeper/purge"

    @classmethod
    def with_prefix(cls, prefix: str) -> "PolicyTags":
        return cls(ttl=f"{prefix}ttl", expires=f"{prefix}expires", purge=f"{prefix}purge")


DEFAULT_TAGS = PolicyTags()


@dataclass(frozen=True)
class Decision:
    skip: bool
    expired: bool
    purge: bool
    reason: str


def _now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def should_skip(job: Workload) -> bool:
    """Only running, non-batch, non-periodic jobs are eligible for cleanup."""
    if job.status != STATUS_RUNNING:
        return True
    if job.type == JOB_TYPE_BATCH:
        return True
    if job.periodic:
        return True
    return False


def should_purge(job: Workload, tags: PolicyTags = DEFAULT_TAGS) -> bool:
    # Children of a parameterized/periodic job live and die with their parent.
    if job.parent_id:
        return False
    value = job.meta.get(tags.purge)
    if value is None:
        return False
    return value.lower() == "true"


def parse_expiration(value: str) -> datetime:
    """Free-form timestamp -> aware datetime. Naive timestamps are UTC.

    Raises ValueError (dateutil's ParserError included) or OverflowError.
    """
    dt = dateparser.parse(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def expired(job: Workload, now: Optional[datetime] = None, tags: PolicyTags = DEFAULT_TAGS) -> bool:
    now = _now(now)

    ttl_value = job.meta.get(tags.ttl)
    if ttl_value is not None:
        try:
            deadline = job.submitted_at + parse_duration(ttl_value)
        except (DurationError, OverflowError):
            # Out-of-range deadlines fail open like unparsable ones.
            log.warning(
                "could not interpret ttl for job %s: %s", job.id, ttl_value,
                extra={"job_id": job.id, "namespace": job.namespace},
            )
            return False
        return now > deadline

    expires_value = job.meta.get(tags.expires)
    if expires_value is not None:
        try:
            expiration = parse_expiration(expires_value)
        except (ValueError, OverflowError):
            log.warning(
                "could not interpret expiration date (%s) for job %s", expires_value, job.id,
                extra={"job_id": job.id, "namespace": job.namespace},
            )
            return False
        return now > expiration

    return False


def evaluate(job: Workload, now: Optional[datetime] = None, tags: PolicyTags = DEFAULT_TAGS) -> Decision:
    """All three answers for one job, plus a reason for the logs."""
    if should_skip(job):
        return Decision(skip=True, expired=False, purge=False, reason=f"status={job.status} type={job.type} periodic={job.periodic}")
    if not expired(job, now=now, tags=tags):
        return Decision(skip=False, expired=False, purge=False, reason="not expired or set up for cleanup")
    purge = should_purge(job, tags=tags)
    return Decision(skip=False, expired=True, purge=purge, reason="expired")
