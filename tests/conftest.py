import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from housekeeper.errors import NomadError  # noqa: E402
from housekeeper.models import Workload, WorkloadStub, to_nomad_time  # noqa: E402

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_job(
    name: str = "web",
    *,
    namespace: str = "default",
    status: str = "running",
    type: str = "service",
    periodic: bool = False,
    parent_id: str = "",
    submitted: datetime = NOW,
    meta: Optional[Dict[str, str]] = None,
) -> Workload:
    return Workload(
        id=name,
        name=name,
        namespace=namespace,
        status=status,
        type=type,
        periodic=periodic,
        parent_id=parent_id,
        submit_time=to_nomad_time(submitted),
        meta=meta or {},
    )


class FakeNomad:
    """In-memory stand-in for NomadClient."""

    def __init__(self, jobs: List[Workload] = ()):
        self.jobs = {(j.namespace, j.name): j for j in jobs}
        self.list_error: Optional[NomadError] = None
        self.get_errors: Dict[str, NomadError] = {}
        self.deregister_errors: Dict[str, NomadError] = {}
        self.leader_error: Optional[NomadError] = None
        self.list_calls: List[Dict[str, Any]] = []
        self.deregistered: List[Dict[str, Any]] = []

    def list_jobs(self, namespace=None, stale=False):
        self.list_calls.append({"namespace": namespace, "stale": stale})
        if self.list_error:
            raise self.list_error
        return [
            WorkloadStub(id=j.id, name=j.name, namespace=j.namespace, status=j.status, type=j.type)
            for j in self.jobs.values()
        ]

    def get_job(self, name, namespace=None):
        if name in self.get_errors:
            raise self.get_errors[name]
        return self.jobs[(namespace, name)]

    def deregister_job(self, job_id, namespace=None, purge=False):
        if job_id in self.deregister_errors:
            raise self.deregister_errors[job_id]
        self.deregistered.append({"id": job_id, "namespace": namespace, "purge": purge})
        return {"EvalID": "eval-" + job_id}

    def leader(self):
        if self.leader_error:
            raise self.leader_error
        return "10.0.0.1:4647"


@pytest.fixture(autouse=True)
def _restore_root_logger():
    # main() and setup_logging() install stream handlers on the root logger.
    root = logging.getLogger()
    level = root.level
    yield
    for h in list(root.handlers):
        if getattr(h, "_housekeeper_handler", False):
            root.removeHandler(h)
    root.setLevel(level)
