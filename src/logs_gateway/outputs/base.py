"""Destination interface shared by console, file, and aggregator outputs."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from logs_gateway.models.envelope import LogEnvelope

CONSOLE_OUTPUT = "console"
FILE_OUTPUT = "file"
AGGREGATOR_OUTPUT = "unified-logger"


@runtime_checkable
class Output(Protocol):
    """A destination that receives sanitized envelopes.

    ``name`` is the identifier matched against routing directives.
    Implementations must not raise from ``write``.
    """

    name: str

    def write(self, envelope: LogEnvelope) -> None: ...
