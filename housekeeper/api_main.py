"""FastAPI app serving the housekeeper's health probe.

- GET /health: 200 when the Nomad API reports a leader, 503 otherwise
- every response carries X-Request-Id; log lines are correlated by it
- unhandled errors come back as JSON with the request id
"""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .api.routers import health
from .config import Config
from .request_context import bind_request_id, unbind_request_id

log = logging.getLogger("housekeeper.api")


def create_app(client, config: Config) -> FastAPI:
    # Docs and tracebacks only in debug mode.
    app = FastAPI(
        title="Nomad Housekeeper",
        version="0.1",
        debug=config.debug,
        docs_url="/docs" if config.debug else None,
        redoc_url="/redoc" if config.debug else None,
        openapi_url="/openapi.json" if config.debug else None,
    )
    app.state.nomad = client
    app.state.config = config

    @app.middleware("http")
    async def _request_id_middleware(request: Request, call_next):
        rid, token = bind_request_id(request.headers.get("X-Request-Id"))
        start = time.time()
        try:
            response = await call_next(request)
        except Exception:
            log.exception("Unhandled exception %s %s", request.method, request.url.path)
            response = JSONResponse(
                status_code=500,
                content={"message": "Internal Server Error", "request_id": rid},
            )
        finally:
            unbind_request_id(token)

        response.headers["X-Request-Id"] = rid
        log.debug(
            "%s %s %s %dms",
            request.method,
            request.url.path,
            response.status_code,
            int((time.time() - start) * 1000),
            extra={"request_id": rid},
        )
        return response

    app.include_router(health.router)

    return app
