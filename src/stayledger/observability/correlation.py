"""Correlation ID management for request tracing."""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Iterator

# One id per HTTP request; log lines emitted while serving it carry the same id
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Longer incoming ids are replaced rather than echoed into every log line
_MAX_INCOMING_LENGTH = 128


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def get_correlation_id() -> str:
    """Current request's correlation ID, or "" outside a request."""
    return correlation_id_var.get()


def set_correlation_id(cid: str) -> Token[str]:
    return correlation_id_var.set(cid)


def reset_correlation_id(token: Token[str]) -> None:
    correlation_id_var.reset(token)


def resolve_correlation_id(incoming: str | None) -> str:
    """Reuse the caller's id when it is usable, otherwise mint a new one."""
    cid = (incoming or "").strip()
    if not cid or len(cid) > _MAX_INCOMING_LENGTH or not cid.isprintable():
        return generate_correlation_id()
    return cid


@contextmanager
def correlation_scope(incoming: str | None = None) -> Iterator[str]:
    """Bind a correlation id for the duration of one request.

    Usage:
        with correlation_scope(request.headers.get(CORRELATION_ID_HEADER)) as cid:
            ...
    """
    cid = resolve_correlation_id(incoming)
    token = set_correlation_id(cid)
    try:
        yield cid
    finally:
        reset_correlation_id(token)
