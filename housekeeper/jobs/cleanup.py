from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from ..config import Config
from ..connectors.nomad import ALL_NAMESPACES
from ..errors import CleanupError, NomadError
from ..expiration import PolicyTags, evaluate
from ..models import Workload, WorkloadStub

log = logging.getLogger("housekeeper.cleanup")


class JobsAPI(Protocol):
    def list_jobs(self, namespace: Optional[str] = None, stale: bool = False) -> List[WorkloadStub]: ...

    def get_job(self, name: str, namespace: Optional[str] = None) -> Workload: ...

    def deregister_job(self, job_id: str, namespace: Optional[str] = None, purge: bool = False) -> Any: ...


@dataclass
class RemovedJob:
    namespace: str
    name: str
    purge: bool


@dataclass
class CleanupReport:
    dry_run: bool = False
    listed: int = 0
    skipped: int = 0
    expired: int = 0
    deregistered: int = 0
    would_deregister: int = 0
    errors: int = 0
    removed: List[RemovedJob] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Housekeeper:
    """Runs cleanup cycles against a Nomad cluster."""

    def __init__(self, client: JobsAPI, config: Config):
        self.client = client
        self.config = config
        self.tags = PolicyTags.with_prefix(config.tag_prefix)

    def run_cycle(self, now: Optional[datetime] = None) -> CleanupReport:
        """One pass over every job in every namespace.

        Raises CleanupError when the job listing fails. Failures on a single
        job are logged and the pass moves on to the next one.
        """
        report = CleanupReport(dry_run=self.config.dry_run)

        try:
            stubs = self.client.list_jobs(namespace=ALL_NAMESPACES, stale=True)
        except NomadError as e:
            raise CleanupError(f"could not list jobs running on cluster: {e}") from e
        report.listed = len(stubs)

        for stub in stubs:
            try:
                job = self.client.get_job(stub.name, namespace=stub.namespace)
            except NomadError as e:
                log.error("could not get details for job %s : %s", stub.name, e,
                          extra={"job": stub.name, "namespace": stub.namespace})
                report.errors += 1
                continue

            log.debug("Looking at %s", job.name)

            decision = evaluate(job, now=now, tags=self.tags)
            if decision.skip:
                log.debug("Skipping %s (%s)", job.name, decision.reason)
                report.skipped += 1
                continue

            if not decision.expired:
                log.debug("Job %s %s", stub.name, decision.reason)
                continue
            report.expired += 1

            purge = decision.purge

            if self.config.dry_run:
                log.info("Would have stopped %s", stub.name,
                         extra={"job": stub.name, "namespace": stub.namespace, "purge": purge})
                report.would_deregister += 1
                continue

            log.debug("Stopping %s", job.name)
            try:
                self.client.deregister_job(stub.id, namespace=stub.namespace, purge=purge)
            except NomadError as e:
                log.warning("could not remove job %s: %s", stub.name, e,
                            extra={"job": stub.name, "namespace": stub.namespace})
                report.errors += 1
                continue

            log.info("Stopped %s", stub.name, extra={"job": stub.name, "namespace": stub.namespace, "purge": purge})
            report.deregistered += 1
            report.removed.append(RemovedJob(namespace=stub.namespace, name=stub.name, purge=purge))

        log.info("cleanup cycle done", extra={"report": report.as_dict()})
        return report
