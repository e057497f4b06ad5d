"""Exception hierarchy for logs-gateway.

Only constructor misconfiguration and misuse of the shadow control
surface reach the caller. Everything else is raised and handled inside
the emission pipeline so that a log call never unwinds its caller.
"""

from __future__ import annotations

from typing import Any


class LogsGatewayError(Exception):
    """Base class for all logs-gateway errors.

    Attributes:
        message: Human-readable description.
        error_code: Machine-readable identifier, defaults to the class name.
        details: Extra context (paths, run ids, validation errors).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}


class ConfigError(LogsGatewayError):
    """Fatal misconfiguration detected while constructing a gateway."""


class ScopingConfigError(LogsGatewayError):
    """Invalid debug scoping configuration. Scoping is disabled, never fatal."""


class SanitizationCycleError(LogsGatewayError):
    """A metadata tree reaches the same dict or list twice; the entry degrades to a placeholder."""


class TrailContextError(LogsGatewayError):
    """A child operation or next event was requested with no active parent."""


class ShadowNotFoundError(LogsGatewayError):
    """No active or stored shadow capture exists for the requested run id."""

    def __init__(self, run_id: str) -> None:
        super().__init__(
            f"Shadow capture not found for run id: {run_id}",
            details={"run_id": run_id},
        )
        self.run_id = run_id
