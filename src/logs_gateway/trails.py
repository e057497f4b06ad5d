"""Operation and thread trails carried across calls via contextvars.

An operation is a named unit of work inside one trace. Starting an
operation under another extends the dotted ``operation_path`` and keeps
the parent's ``trace_id``; a child operation also advances
``operation_step``. A thread follows a chain of events across processes:
each ``next_event_id`` bumps ``sequence_no`` and records the previous
event in ``causation_id``.

Both contexts are copied onto every envelope the gateway builds while
they are active, and can be passed between services as ``x-*`` headers.

Example::

    with start_operation("checkout") as op:
        with child_operation("charge"):
            log.info("charging card")
        headers = inject_operation_headers({}, op)
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field, replace
from typing import Any, Generic, TypeVar

from logs_gateway.errors import TrailContextError

_OPERATION: contextvars.ContextVar[OperationContext | None] = contextvars.ContextVar(
    "logs_gateway_operation", default=None
)
_THREAD: contextvars.ContextVar[ThreadContext | None] = contextvars.ContextVar(
    "logs_gateway_thread", default=None
)

OPERATION_HEADERS = {
    "operation_id": "x-operation-id",
    "parent_operation_id": "x-parent-operation-id",
    "operation_name": "x-operation-name",
    "operation_path": "x-operation-path",
    "operation_step": "x-operation-step",
    "trace_id": "x-trace-id",
    "span_id": "x-span-id",
}

THREAD_HEADERS = {
    "thread_id": "x-thread-id",
    "event_id": "x-event-id",
    "sequence_no": "x-seq-no",
    "causation_id": "x-causation-id",
    "partition_key": "x-partition-key",
    "attempt": "x-attempt",
    "shard_id": "x-shard-id",
    "worker_id": "x-worker-id",
}

_INT_FIELDS = frozenset({"operation_step", "sequence_no", "attempt"})


def _new_id(length: int = 12) -> str:
    return uuid.uuid4().hex[:length]


@dataclass(frozen=True)
class OperationContext:
    operation_id: str
    operation_name: str
    operation_path: str
    trace_id: str
    span_id: str
    operation_step: int = 0
    parent_operation_id: str | None = None

    def fields(self) -> dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}


@dataclass(frozen=True)
class ThreadContext:
    thread_id: str
    event_id: str
    sequence_no: int = 0
    causation_id: tuple[str, ...] = field(default_factory=tuple)
    partition_key: str | None = None
    attempt: int | None = None
    shard_id: str | None = None
    worker_id: str | None = None

    def fields(self) -> dict[str, Any]:
        values = {k: v for k, v in self.__dict__.items() if v is not None}
        if self.causation_id:
            values["causation_id"] = list(self.causation_id)
        else:
            values.pop("causation_id")
        return values


T = TypeVar("T")


class TrailScope(Generic[T]):
    """Handle for a context set by ``start_operation`` or ``new_thread``.

    Use as a context manager, or call ``end()`` to restore whatever was
    active before. Ending twice is a no-op.
    """

    def __init__(self, var: contextvars.ContextVar[T | None], context: T) -> None:
        self.context = context
        self._var = var
        self._token: contextvars.Token | None = var.set(context)

    def end(self) -> None:
        if self._token is None:
            return
        token, self._token = self._token, None
        try:
            self._var.reset(token)
        except ValueError:
            # Token from another context (ended in a different task).
            self._var.set(None)

    def __enter__(self) -> T:
        return self.context

    def __exit__(self, *exc_info: object) -> None:
        self.end()


# -- operations ----------------------------------------------------------


def current_operation() -> OperationContext | None:
    return _OPERATION.get()


def start_operation(name: str) -> TrailScope[OperationContext]:
    """Start an operation, nested under the current one when there is one."""
    parent = _OPERATION.get()
    context = OperationContext(
        operation_id=_new_id(),
        operation_name=name,
        operation_path=f"{parent.operation_path}.{name}" if parent else name,
        trace_id=parent.trace_id if parent else _new_id(16),
        span_id=_new_id(),
        operation_step=0,
        parent_operation_id=parent.operation_id if parent else None,
    )
    return TrailScope(_OPERATION, context)


def child_operation(name: str) -> TrailScope[OperationContext]:
    """Start the next step of the current operation.

    Raises:
        TrailContextError: If no operation is active.
    """
    parent = _OPERATION.get()
    if parent is None:
        raise TrailContextError(
            "No parent operation context available. Call start_operation() first."
        )
    context = OperationContext(
        operation_id=_new_id(),
        operation_name=name,
        operation_path=f"{parent.operation_path}.{name}",
        trace_id=parent.trace_id,
        span_id=_new_id(),
        operation_step=parent.operation_step + 1,
        parent_operation_id=parent.operation_id,
    )
    return TrailScope(_OPERATION, context)


# -- threads -------------------------------------------------------------


def current_thread() -> ThreadContext | None:
    return _THREAD.get()


def _as_causation(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(value)


def new_thread(
    thread_id: str | None = None,
    *,
    sequence_no: int = 0,
    causation_id: str | list[str] | tuple[str, ...] | None = None,
    partition_key: str | None = None,
    attempt: int | None = None,
    shard_id: str | None = None,
    worker_id: str | None = None,
) -> TrailScope[ThreadContext]:
    """Begin a thread with a fresh event id."""
    context = ThreadContext(
        thread_id=thread_id or _new_id(),
        event_id=_new_id(),
        sequence_no=sequence_no,
        causation_id=_as_causation(causation_id),
        partition_key=partition_key,
        attempt=attempt,
        shard_id=shard_id,
        worker_id=worker_id,
    )
    return TrailScope(_THREAD, context)


def continue_thread(**fields: Any) -> TrailScope[ThreadContext]:
    """Resume a thread, typically from ``extract_thread_headers`` output.

    Fields not given are taken from the current thread, when there is one.
    The event id is always new.
    """
    unknown = set(fields) - set(THREAD_HEADERS)
    if unknown:
        raise TypeError(f"Unknown thread fields: {', '.join(sorted(unknown))}")
    current = _THREAD.get()
    base = current.fields() if current is not None else {}
    merged = {**base, **{k: v for k, v in fields.items() if v is not None}}
    context = ThreadContext(
        thread_id=merged.get("thread_id") or _new_id(),
        event_id=_new_id(),
        sequence_no=merged.get("sequence_no", 0),
        causation_id=_as_causation(merged.get("causation_id")),
        partition_key=merged.get("partition_key"),
        attempt=merged.get("attempt"),
        shard_id=merged.get("shard_id"),
        worker_id=merged.get("worker_id"),
    )
    return TrailScope(_THREAD, context)


def next_event_id() -> str:
    """Advance the current thread to a new event and return its id.

    Raises:
        TrailContextError: If no thread is active.
    """
    current = _THREAD.get()
    if current is None:
        raise TrailContextError(
            "No thread context available. Call new_thread() or continue_thread() first."
        )
    event_id = f"evt_{_new_id()}"
    _THREAD.set(
        replace(
            current,
            event_id=event_id,
            sequence_no=current.sequence_no + 1,
            causation_id=current.causation_id + (current.event_id,),
        )
    )
    return event_id


def clear_all_contexts() -> None:
    _OPERATION.set(None)
    _THREAD.set(None)


def trail_fields() -> dict[str, Any]:
    """Fields of the active operation and thread, for envelope building."""
    values: dict[str, Any] = {}
    thread = _THREAD.get()
    if thread is not None:
        values.update(thread.fields())
    operation = _OPERATION.get()
    if operation is not None:
        values.update(operation.fields())
    return values


# -- headers -------------------------------------------------------------


def _inject(
    headers: MutableMapping[str, str], names: Mapping[str, str], values: dict[str, Any]
) -> MutableMapping[str, str]:
    for name, header in names.items():
        value = values.get(name)
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            value = ",".join(value)
        headers[header] = str(value)
    return headers


def _extract(headers: Mapping[str, str], names: Mapping[str, str]) -> dict[str, Any]:
    lowered = {str(k).lower(): v for k, v in headers.items()}
    values: dict[str, Any] = {}
    for name, header in names.items():
        raw = lowered.get(header)
        if not raw:
            continue
        if name in _INT_FIELDS:
            try:
                values[name] = int(raw)
            except ValueError:
                continue
        elif name == "causation_id":
            values[name] = raw.split(",") if "," in raw else raw
        else:
            values[name] = raw
    return values


def inject_operation_headers(
    headers: MutableMapping[str, str], context: OperationContext | None = None
) -> MutableMapping[str, str]:
    """Write ``x-operation-*`` headers for context (default: the current operation)."""
    context = context or _OPERATION.get()
    if context is None:
        return headers
    return _inject(headers, OPERATION_HEADERS, context.fields())


def extract_operation_headers(headers: Mapping[str, str]) -> dict[str, Any]:
    """Read operation fields from headers; non-numeric steps are skipped."""
    return _extract(headers, OPERATION_HEADERS)


def inject_thread_headers(
    headers: MutableMapping[str, str], context: ThreadContext | None = None
) -> MutableMapping[str, str]:
    """Write ``x-thread-id`` and related headers (default: the current thread)."""
    context = context or _THREAD.get()
    if context is None:
        return headers
    return _inject(headers, THREAD_HEADERS, context.fields())


def extract_thread_headers(headers: Mapping[str, str]) -> dict[str, Any]:
    """Read thread fields from headers, suitable for ``continue_thread(**fields)``."""
    return _extract(headers, THREAD_HEADERS)
