"""logs-gateway data models - re-exports all public model classes."""

from logs_gateway.models.config import (
    LEVEL_PRIORITY,
    AggregatorConfig,
    GatewayConfig,
    LogFormat,
    LogLevel,
    RollingBufferConfig,
    SanitizationConfig,
    ShadowConfig,
)
from logs_gateway.models.envelope import (
    INTERNAL_SOURCE,
    LogEnvelope,
    RoutingMeta,
)
from logs_gateway.models.scoping import BetweenRule, DebugConfig, ScopingConfig

__all__ = [
    "INTERNAL_SOURCE",
    "LEVEL_PRIORITY",
    "AggregatorConfig",
    "BetweenRule",
    "DebugConfig",
    "GatewayConfig",
    "LogEnvelope",
    "LogFormat",
    "LogLevel",
    "RollingBufferConfig",
    "RoutingMeta",
    "SanitizationConfig",
    "ScopingConfig",
    "ShadowConfig",
]
