from __future__ import annotations

import json
from typing import Any, Dict, List

import pytest
import requests

from housekeeper.connectors.nomad import NomadClient
from housekeeper.errors import NomadError


def _response(status: int, body: Any = None) -> requests.Response:
    r = requests.Response()
    r.status_code = status
    if isinstance(body, (bytes, str)):
        r._content = body.encode() if isinstance(body, str) else body
    else:
        r._content = b"" if body is None else json.dumps(body).encode()
    return r


class Recorder:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, method, url, params=None, timeout=None, **kwargs):
        self.calls.append({"method": method, "url": url, "params": params, "timeout": timeout})
        nxt = self.responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt


@pytest.fixture
def make_client(monkeypatch: pytest.MonkeyPatch):
    def _make(*responses, **kwargs):
        session = requests.Session()
        rec = Recorder(*responses)
        monkeypatch.setattr(session, "request", rec)
        client = NomadClient(address=kwargs.pop("address", "http://nomad:4646"), session=session, **kwargs)
        return client, rec

    return _make


JOB_DETAIL = {
    "ID": "web",
    "Name": "web",
    "Namespace": "team-a",
    "Status": "running",
    "Type": "service",
    "Periodic": None,
    "ParentID": "",
    "SubmitTime": 1717243200000000000,
    "Meta": {"housekeeper/ttl": "24h"},
    "TaskGroups": [],
}


def test_list_jobs_across_namespaces(make_client) -> None:
    client, rec = make_client(
        _response(200, [
            {"ID": "web", "Name": "web", "Namespace": "team-a", "Status": "running", "Type": "service"},
            {"ID": "db", "Name": "db", "Namespace": "default", "Status": "dead", "Type": "service"},
        ])
    )
    stubs = client.list_jobs(namespace="*", stale=True)

    assert [(s.namespace, s.name) for s in stubs] == [("team-a", "web"), ("default", "db")]
    call = rec.calls[0]
    assert call["method"] == "GET"
    assert call["url"] == "http://nomad:4646/v1/jobs"
    assert call["params"] == {"namespace": "*", "stale": "true"}
    assert call["timeout"] == 10.0


def test_get_job_parses_detail(make_client) -> None:
    client, rec = make_client(_response(200, JOB_DETAIL), region="eu")
    job = client.get_job("web", namespace="team-a")

    assert rec.calls[0]["url"] == "http://nomad:4646/v1/job/web"
    assert rec.calls[0]["params"] == {"namespace": "team-a", "region": "eu"}
    assert job.id == "web"
    assert job.periodic is False
    assert job.meta == {"housekeeper/ttl": "24h"}
    assert job.submitted_at.isoformat() == "2024-06-01T12:00:00+00:00"


def test_job_names_are_url_quoted(make_client) -> None:
    client, rec = make_client(_response(200, dict(JOB_DETAIL, ID="a/b", Name="a/b")))
    client.get_job("a/b")
    assert rec.calls[0]["url"] == "http://nomad:4646/v1/job/a%2Fb"


def test_deregister_with_purge(make_client) -> None:
    client, rec = make_client(_response(200, {"EvalID": "e1"}), _response(200, {"EvalID": "e2"}))
    assert client.deregister_job("web", namespace="team-a", purge=True) == {"EvalID": "e1"}
    client.deregister_job("web", namespace="team-a")

    assert rec.calls[0]["method"] == "DELETE"
    assert rec.calls[0]["params"] == {"namespace": "team-a", "purge": "true"}
    assert rec.calls[1]["params"] == {"namespace": "team-a", "purge": "false"}


def test_default_namespace_from_client(make_client) -> None:
    client, rec = make_client(_response(200, JOB_DETAIL), namespace="ops")
    client.get_job("web")
    assert rec.calls[0]["params"] == {"namespace": "ops"}


def test_non_2xx_raises_with_status(make_client) -> None:
    client, _ = make_client(_response(403, "Permission denied"))
    with pytest.raises(NomadError) as ei:
        client.list_jobs()
    assert ei.value.status_code == 403
    assert "Permission denied" in str(ei.value)


def test_transport_error_raises(make_client) -> None:
    client, _ = make_client(requests.ConnectionError("refused"))
    with pytest.raises(NomadError) as ei:
        client.leader()
    assert ei.value.status_code is None


def test_leader(make_client) -> None:
    client, rec = make_client(_response(200, '"10.0.0.1:4647"'), _response(200, '""'))
    assert client.leader() == "10.0.0.1:4647"
    assert rec.calls[0]["url"] == "http://nomad:4646/v1/status/leader"
    with pytest.raises(NomadError, match="no cluster leader"):
        client.leader()


def test_invalid_json_raises(make_client) -> None:
    client, _ = make_client(_response(200, "<html>proxy</html>"))
    with pytest.raises(NomadError, match="invalid JSON"):
        client.list_jobs()


def test_from_env() -> None:
    client = NomadClient.from_env(
        {
            "NOMAD_ADDR": "https://nomad.example:4646/",
            "NOMAD_TOKEN": "s3cr3t",
            "NOMAD_NAMESPACE": "ops",
            "NOMAD_SKIP_VERIFY": "true",
        },
        timeout=3.0,
    )
    assert client.address == "https://nomad.example:4646"
    assert client.session.headers["X-Nomad-Token"] == "s3cr3t"
    assert client.namespace == "ops"
    assert client.session.verify is False
    assert client.timeout == 3.0


def test_from_env_defaults() -> None:
    client = NomadClient.from_env({})
    assert client.address == "http://127.0.0.1:4646"
    assert "X-Nomad-Token" not in client.session.headers
    assert client.session.verify is True


def test_invalid_address_is_a_setup_error() -> None:
    with pytest.raises(NomadError, match="invalid Nomad address"):
        NomadClient(address="nomad:4646")


def test_malformed_job_detail_raises_nomad_error(make_client) -> None:
    client, _ = make_client(_response(200, {"Name": "broken", "SubmitTime": "yesterday"}))
    with pytest.raises(NomadError, match="unexpected payload"):
        client.get_job("broken")


def test_malformed_listing_raises_nomad_error(make_client) -> None:
    client, _ = make_client(_response(200, [{"Name": "no-id"}]))
    with pytest.raises(NomadError, match="unexpected payload"):
        client.list_jobs(namespace="*")
