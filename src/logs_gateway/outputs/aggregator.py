"""Hand-off to an external log aggregation service."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from logs_gateway.models.config import LEVEL_PRIORITY, AggregatorConfig
from logs_gateway.models.envelope import ROUTING_KEY, LogEnvelope
from logs_gateway.outputs.base import AGGREGATOR_OUTPUT

logger = logging.getLogger(__name__)

# Aggregators know four levels; verbose entries are shipped as debug.
_LEVEL_MAP = {
    "verbose": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class AggregatorTransport(Protocol):
    def send(self, level: str, message: str, payload: dict[str, Any]) -> None: ...


class LoggingTransport:
    """Default transport: forwards to a stdlib logger named after the service.

    Attach handlers (syslog, HTTP, a vendor SDK) to that logger to ship
    entries off-host.
    """

    def __init__(self, service: str) -> None:
        self.logger = logging.getLogger(service)

    def send(self, level: str, message: str, payload: dict[str, Any]) -> None:
        self.logger.log(_LEVEL_MAP.get(level, logging.INFO), message, extra={"payload": payload})


class AggregatorOutput:
    """Filters by level and routing, then passes a flat payload to a transport."""

    name = AGGREGATOR_OUTPUT

    def __init__(
        self,
        config: AggregatorConfig,
        transport: AggregatorTransport | None = None,
    ) -> None:
        self.config = config
        self.transport = transport or LoggingTransport(config.service)
        self._failing = False

    def accepts(self, envelope: LogEnvelope) -> bool:
        if self.config.levels is not None:
            if envelope.level not in self.config.levels:
                return False
        elif LEVEL_PRIORITY[envelope.level] < LEVEL_PRIORITY[self.config.level]:
            return False
        if envelope.routing is not None and not envelope.routing.allows(self.name):
            return False
        return True

    def build_payload(self, envelope: LogEnvelope) -> dict[str, Any]:
        payload = envelope.to_record()
        payload.pop("message", None)
        payload.pop("routing", None)
        data = payload.pop("data", None)
        if isinstance(data, dict):
            payload.update({k: v for k, v in data.items() if k != ROUTING_KEY})
        elif data is not None:
            payload["data"] = data
        payload["service"] = self.config.service
        if self.config.env:
            payload["env"] = self.config.env
        return payload

    def write(self, envelope: LogEnvelope) -> None:
        if not self.accepts(envelope):
            return
        try:
            self.transport.send(envelope.level, envelope.message, self.build_payload(envelope))
        except Exception as exc:
            if not self._failing:
                self._failing = True
                logger.warning("Failed to send entry to aggregator: %s", exc)
            return
        self._failing = False
