from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ...errors import NomadError

log = logging.getLogger("housekeeper.health")

router = APIRouter()


@router.get("/health")
def health(request: Request):
    """Liveness: the Nomad API answers with a cluster leader."""
    log.info("Received health check")
    client = request.app.state.nomad
    try:
        client.leader()
    except NomadError as e:
        log.warning("health check failed: %s", e)
        return JSONResponse(status_code=503, content={"message": "Can't connect to Nomad API"})
    return {"message": "ALL GOOD"}
