"""Correlation context carried across calls via contextvars.

Fields bound with ``log_context`` are merged into every entry emitted in
that context (explicit per-call metadata wins). Nested contexts layer on
top of their parent and are restored on exit.
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

_CONTEXT: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar(
    "logs_gateway_context", default={}
)


def current_context() -> dict[str, Any]:
    """Copy of the fields bound in the current context."""
    return dict(_CONTEXT.get())


def new_correlation_id() -> str:
    return uuid.uuid4().hex


@contextmanager
def log_context(**fields: Any) -> Iterator[dict[str, Any]]:
    """Bind correlation fields (run_id, correlation_id, ...) for the enclosed block.

    Example::

        with log_context(run_id="r1", correlation_id=new_correlation_id()):
            log.info("started")
    """
    merged = {**_CONTEXT.get(), **{k: v for k, v in fields.items() if v is not None}}
    token = _CONTEXT.set(merged)
    try:
        yield merged
    finally:
        _CONTEXT.reset(token)
