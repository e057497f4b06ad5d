"""Gateway configuration loading.

Builds a GatewayConfig from, in increasing precedence: built-in
defaults, ``<PREFIX>_*`` environment variables, an optional YAML file,
and explicit keyword overrides. Values arrive as strings from the
environment and are coerced by pydantic during validation.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from logs_gateway.errors import ConfigError
from logs_gateway.loader.debug_config import discover_scoping_config
from logs_gateway.models.config import GatewayConfig

# Environment suffix -> dotted config path.
_SCALAR_ENV_KEYS: dict[str, str] = {
    "LOG_TO_CONSOLE": "log_to_console",
    "LOG_TO_FILE": "log_to_file",
    "LOG_FILE": "log_file_path",
    "LOG_LEVEL": "log_level",
    "LOG_FORMAT": "log_format",
    "LOG_TO_AGGREGATOR": "enable_aggregator",
    "DEFAULT_SOURCE": "default_source",
    "AGGREGATOR_SERVICE": "aggregator.service",
    "AGGREGATOR_ENV": "aggregator.env",
    "SANITIZE_ENABLED": "sanitization.enabled",
    "SANITIZE_MASK": "sanitization.mask_with",
    "SANITIZE_PARTIAL_RATIO": "sanitization.partial_mask_ratio",
    "SANITIZE_MAX_DEPTH": "sanitization.max_depth",
    "SANITIZE_TIME_BUDGET_MS": "sanitization.time_budget_ms",
    "SANITIZE_DETECT_EMAILS": "sanitization.detect_emails",
    "SANITIZE_DETECT_IPS": "sanitization.detect_ips",
    "SANITIZE_DETECT_PHONES": "sanitization.detect_phone_numbers",
    "SANITIZE_DETECT_JWTS": "sanitization.detect_jwts",
    "SANITIZE_DETECT_APIKEYS": "sanitization.detect_api_keys",
    "SANITIZE_DETECT_AWSCREDS": "sanitization.detect_aws_creds",
    "SANITIZE_DETECT_AZUREKEYS": "sanitization.detect_azure_keys",
    "SANITIZE_DETECT_GCPKEYS": "sanitization.detect_gcp_keys",
    "SANITIZE_DETECT_PASSWORDS": "sanitization.detect_passwords",
    "SANITIZE_DETECT_CREDITCARDS": "sanitization.detect_credit_cards",
    "SHADOW_ENABLED": "shadow.enabled",
    "SHADOW_FORMAT": "shadow.format",
    "SHADOW_DIR": "shadow.directory",
    "SHADOW_TTL_SECONDS": "shadow.ttl_seconds",
    "SHADOW_RESPECT_ROUTING": "shadow.respect_routing_blocks",
    "SHADOW_BUFFER_ENTRIES": "shadow.rolling_buffer.max_entries",
    "SHADOW_BUFFER_AGE_SECONDS": "shadow.rolling_buffer.max_age_seconds",
}

# Comma-separated list variables.
_LIST_ENV_KEYS: dict[str, str] = {
    "SANITIZE_KEYS_DENYLIST": "sanitization.keys_denylist",
    "SANITIZE_KEYS_ALLOWLIST": "sanitization.keys_allowlist",
    "SANITIZE_FIELDS_HASH": "sanitization.fields_hash_instead_of_mask",
}


def _set_path(target: dict[str, Any], dotted: str, value: Any) -> None:
    parts = dotted.split(".")
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    target[parts[-1]] = value


def _deep_merge(base: dict[str, Any], update: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge update into a copy of base; update wins."""
    merged = dict(base)
    for key, value in update.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def default_env_prefix(package_name: str) -> str:
    """Derive an environment prefix: ``my-app`` -> ``MY_APP``."""
    return package_name.upper().replace("-", "_").replace(".", "_")


def config_from_env(
    package_name: str,
    env_prefix: str | None = None,
    debug_namespace: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Collect raw (unvalidated) config values from environment variables.

    ``DEBUG`` containing the debug namespace (default: the lowercased
    package name) forces verbose output and defaults the level to verbose.
    """
    env = os.environ if environ is None else environ
    prefix = env_prefix or default_env_prefix(package_name)
    data: dict[str, Any] = {}

    for suffix, dotted in _SCALAR_ENV_KEYS.items():
        value = env.get(f"{prefix}_{suffix}")
        if value is not None and value != "":
            _set_path(data, dotted, value)

    for suffix, dotted in _LIST_ENV_KEYS.items():
        value = env.get(f"{prefix}_{suffix}")
        if value is not None:
            _set_path(data, dotted, [item.strip() for item in value.split(",") if item.strip()])

    namespace = debug_namespace or package_name.lower()
    if namespace and namespace in env.get("DEBUG", ""):
        data["force_verbose"] = True
        data.setdefault("log_level", "verbose")

    return data


def read_config_file(config_path: Path) -> dict[str, Any]:
    """Read a YAML gateway config file. An empty file yields an empty dict.

    Raises:
        ConfigError: If the file is unreadable, malformed, or not a mapping.
    """
    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(
            f"Cannot load gateway config {config_path}: {exc}",
            details={"path": str(config_path)},
        ) from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(
            f"Gateway config {config_path} must be a mapping",
            details={"path": str(config_path)},
        )
    return raw


def load_gateway_config(
    package_name: str,
    env_prefix: str | None = None,
    config_path: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
    discover_scoping: bool = False,
) -> GatewayConfig:
    """Load a validated GatewayConfig.

    Args:
        package_name: Display name of the logging package.
        env_prefix: Environment variable prefix (default derived from name).
        config_path: Optional YAML file with config values.
        overrides: Explicit values; highest precedence.
        environ: Environment mapping (default: ``os.environ``).
        discover_scoping: When True and no scoping section was provided,
            search upward from the cwd for a logger-debug file.

    Raises:
        ConfigError: If the merged configuration fails validation.
    """
    overrides = dict(overrides or {})
    debug_namespace = overrides.get("debug_namespace")

    merged = config_from_env(package_name, env_prefix, debug_namespace, environ)
    if config_path is not None:
        merged = _deep_merge(merged, read_config_file(config_path))
    merged = _deep_merge(merged, overrides)
    merged["package_name"] = package_name
    merged.setdefault("env_prefix", env_prefix or default_env_prefix(package_name))

    try:
        config = GatewayConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(
            f"Invalid configuration for {package_name}: {exc.error_count()} error(s)",
            details={"errors": exc.errors(include_url=False)},
        ) from exc

    if discover_scoping and config.scoping is None:
        config = config.model_copy(update={"scoping": discover_scoping_config()})
    return config
