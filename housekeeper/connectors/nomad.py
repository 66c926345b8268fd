"""Nomad HTTP API connector.

Only the handful of endpoints the housekeeper needs:

- GET    /v1/jobs            list jobs
- GET    /v1/job/<name>      job detail
- DELETE /v1/job/<id>        deregister (optionally purge)
- GET    /v1/status/leader   health probe

Address, token, namespace, region and TLS settings come from the same NOMAD_*
environment variables the nomad CLI reads.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote, urlparse

import requests
from pydantic import ValidationError

from ..errors import NomadError
from ..models import Workload, WorkloadStub

log = logging.getLogger("housekeeper.nomad")

DEFAULT_ADDR = "http://127.0.0.1:4646"
ALL_NAMESPACES = "*"


def _env_bool(v: Optional[str]) -> bool:
    return str(v or "").strip().lower() in ("1", "true", "yes", "y", "on")


class NomadClient:
    def __init__(
        self,
        address: str = DEFAULT_ADDR,
        token: str = "",
        namespace: str = "",
        region: str = "",
        timeout: float = 10.0,
        verify: Any = True,
        cert: Any = None,
        session: Optional[requests.Session] = None,
    ):
        parsed = urlparse(address)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise NomadError(f"invalid Nomad address: {address!r}")
        self.address = address.rstrip("/")
        self.namespace = namespace
        self.region = region
        self.timeout = timeout

        self.session = session or requests.Session()
        self.session.verify = verify
        if cert is not None:
            self.session.cert = cert
        if token:
            self.session.headers["X-Nomad-Token"] = token

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, timeout: float = 10.0) -> "NomadClient":
        env = os.environ if environ is None else environ

        verify: Any = True
        if _env_bool(env.get("NOMAD_SKIP_VERIFY")):
            verify = False
        elif env.get("NOMAD_CACERT"):
            verify = env["NOMAD_CACERT"]

        cert = None
        if env.get("NOMAD_CLIENT_CERT") and env.get("NOMAD_CLIENT_KEY"):
            cert = (env["NOMAD_CLIENT_CERT"], env["NOMAD_CLIENT_KEY"])

        return cls(
            address=env.get("NOMAD_ADDR") or DEFAULT_ADDR,
            token=env.get("NOMAD_TOKEN", ""),
            namespace=env.get("NOMAD_NAMESPACE", ""),
            region=env.get("NOMAD_REGION", ""),
            timeout=timeout,
            verify=verify,
            cert=cert,
        )

    def _params(self, namespace: Optional[str], extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        ns = namespace or self.namespace
        if ns:
            params["namespace"] = ns
        if self.region:
            params["region"] = self.region
        if extra:
            params.update(extra)
        return params

    def _request(self, method: str, path: str, params: Dict[str, Any]) -> Any:
        url = f"{self.address}{path}"
        try:
            r = self.session.request(method, url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise NomadError(f"{method} {path}: {e}") from e

        if not 200 <= r.status_code < 300:
            body = (r.text or "").strip()
            raise NomadError(f"{method} {path}: {r.status_code} {body}".rstrip(), status_code=r.status_code)

        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            raise NomadError(f"{method} {path}: invalid JSON in response", status_code=r.status_code) from e

    def list_jobs(self, namespace: Optional[str] = None, stale: bool = False) -> List[WorkloadStub]:
        extra = {"stale": "true"} if stale else None
        data = self._request("GET", "/v1/jobs", self._params(namespace, extra)) or []
        try:
            return [WorkloadStub.model_validate(item) for item in data]
        except ValidationError as e:
            raise NomadError(f"GET /v1/jobs: unexpected payload: {e}") from e

    def get_job(self, name: str, namespace: Optional[str] = None) -> Workload:
        data = self._request("GET", f"/v1/job/{quote(name, safe='')}", self._params(namespace))
        if not data:
            raise NomadError(f"GET /v1/job/{name}: empty response")
        try:
            return Workload.model_validate(data)
        except ValidationError as e:
            raise NomadError(f"GET /v1/job/{name}: unexpected payload: {e}") from e

    def deregister_job(self, job_id: str, namespace: Optional[str] = None, purge: bool = False) -> Dict[str, Any]:
        extra = {"purge": "true" if purge else "false"}
        data = self._request("DELETE", f"/v1/job/{quote(job_id, safe='')}", self._params(namespace, extra))
        log.debug("deregistered %s", job_id, extra={"job_id": job_id, "purge": purge, "response": data})
        return data or {}

    def leader(self) -> str:
        leader = self._request("GET", "/v1/status/leader", self._params(None))
        if not leader:
            raise NomadError("GET /v1/status/leader: no cluster leader")
        return str(leader)
