"""Log envelope and routing directive models.

A LogEnvelope is created once per log call, before any filtering
decision, and never mutated afterwards. Sanitized variants are built
with ``dataclasses.replace``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

from pydantic import BaseModel, Field

# Metadata keys lifted onto the envelope when present in a call's data.
CORRELATION_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "job_id",
    "run_id",
    "session_id",
    "trace_id",
    "span_id",
    "operation_id",
    "operation_name",
)

# Operation and thread trail fields, taken from the active trails when
# a call's data does not set them.
TRAIL_FIELDS: tuple[str, ...] = (
    "parent_operation_id",
    "operation_path",
    "operation_step",
    "thread_id",
    "event_id",
    "sequence_no",
    "causation_id",
    "partition_key",
    "attempt",
    "shard_id",
    "worker_id",
)

ROUTING_KEY = "_routing"
SHADOW_KEY = "_shadow"
SANITIZATION_KEY = "_sanitization"

# Source marker for entries produced by the gateway about itself.
INTERNAL_SOURCE = "logs-gateway-internal"


class RoutingMeta(BaseModel):
    """Per-entry routing directive carried under the ``_routing`` key.

    A destination listed in ``block_outputs`` never receives the entry,
    even when it is also listed in ``allowed_outputs``.
    """

    model_config = {"extra": "ignore", "populate_by_name": True}

    allowed_outputs: list[str] | None = Field(default=None, alias="allowedOutputs")
    block_outputs: list[str] = Field(default_factory=list, alias="blockOutputs")
    reason: str | None = None
    tags: list[str] = Field(default_factory=list)

    def blocks(self, output: str) -> bool:
        return output in self.block_outputs

    def allows(self, output: str) -> bool:
        if self.blocks(output):
            return False
        if self.allowed_outputs is not None and output not in self.allowed_outputs:
            return False
        return True


@dataclass(frozen=True)
class LogEnvelope:
    """Normalized in-memory representation of one log entry."""

    timestamp: str
    package: str
    level: str
    message: str
    source: str
    identity: str | None = None
    data: Any = None
    correlation_id: str | None = None
    job_id: str | None = None
    run_id: str | None = None
    session_id: str | None = None
    trace_id: str | None = None
    span_id: str | None = None
    operation_id: str | None = None
    operation_name: str | None = None
    parent_operation_id: str | None = None
    operation_path: str | None = None
    operation_step: int | None = None
    thread_id: str | None = None
    event_id: str | None = None
    sequence_no: int | None = None
    causation_id: list[str] | None = None
    partition_key: str | None = None
    attempt: int | None = None
    shard_id: str | None = None
    worker_id: str | None = None
    tags: list[str] | None = None
    app_name: str | None = None
    app_version: str | None = None
    routing: RoutingMeta | None = field(default=None)

    def to_record(self) -> dict[str, Any]:
        """Flatten to a plain dict for serialization, dropping unset fields."""
        record: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, RoutingMeta):
                value = value.model_dump(exclude_none=True)
            record[f.name] = value
        return record
