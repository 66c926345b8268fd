from __future__ import annotations

import contextvars
import uuid

# "-" outside of an HTTP request (cleanup loop, startup).
_REQUEST_ID: contextvars.ContextVar[str] = contextvars.ContextVar("housekeeper_request_id", default="-")


def get_request_id() -> str:
    return _REQUEST_ID.get()


def bind_request_id(header_value: str | None) -> tuple[str, contextvars.Token]:
    """Use the caller's X-Request-Id if it sent one, otherwise mint a new id."""
    rid = (header_value or "").strip() or uuid.uuid4().hex
    return rid, _REQUEST_ID.set(rid)


def unbind_request_id(token: contextvars.Token) -> None:
    _REQUEST_ID.reset(token)
