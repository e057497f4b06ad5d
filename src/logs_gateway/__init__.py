"""logs-gateway: a package-scoped logging gateway with sanitization,
debug scoping, and per-run shadow capture."""

from logs_gateway.context import current_context, log_context, new_correlation_id
from logs_gateway.errors import (
    ConfigError,
    LogsGatewayError,
    SanitizationCycleError,
    ScopingConfigError,
    ShadowNotFoundError,
    TrailContextError,
)
from logs_gateway.gateway import LogsGateway, create_logger
from logs_gateway.models import GatewayConfig, LogEnvelope, ScopingConfig
from logs_gateway.trails import (
    child_operation,
    clear_all_contexts,
    continue_thread,
    current_operation,
    current_thread,
    extract_operation_headers,
    extract_thread_headers,
    inject_operation_headers,
    inject_thread_headers,
    new_thread,
    next_event_id,
    start_operation,
)

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "GatewayConfig",
    "LogEnvelope",
    "LogsGateway",
    "LogsGatewayError",
    "SanitizationCycleError",
    "ScopingConfigError",
    "ScopingConfig",
    "ShadowNotFoundError",
    "TrailContextError",
    "__version__",
    "child_operation",
    "clear_all_contexts",
    "continue_thread",
    "create_logger",
    "current_context",
    "current_operation",
    "current_thread",
    "extract_operation_headers",
    "extract_thread_headers",
    "inject_operation_headers",
    "inject_thread_headers",
    "log_context",
    "new_correlation_id",
    "new_thread",
    "next_event_id",
    "start_operation",
]
