"""Configuration loaders for the gateway and its debug scoping file."""

from logs_gateway.loader.config_loader import (
    config_from_env,
    load_gateway_config,
    read_config_file,
)
from logs_gateway.loader.debug_config import (
    ValidationErrorDetail,
    discover_scoping_config,
    find_debug_config,
    load_scoping_config,
    validate_debug_config,
)

__all__ = [
    "ValidationErrorDetail",
    "config_from_env",
    "discover_scoping_config",
    "find_debug_config",
    "load_gateway_config",
    "load_scoping_config",
    "read_config_file",
    "validate_debug_config",
]
