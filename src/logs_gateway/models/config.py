"""Gateway configuration models.

Every knob of the emission pipeline lives here as a pydantic model so
that YAML files, environment variables and keyword overrides all pass
through the same validation before a gateway is built.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from logs_gateway.models.scoping import ScopingConfig

LogLevel = Literal["verbose", "debug", "info", "warn", "error"]
LogFormat = Literal["text", "json", "yaml", "table"]
ShadowFormat = Literal["json", "yaml"]

# Ordered lowest to highest; the level gate compares these priorities.
LEVEL_PRIORITY: dict[str, int] = {
    "verbose": 0,
    "debug": 1,
    "info": 2,
    "warn": 3,
    "error": 4,
}

DEFAULT_KEYS_DENYLIST: list[str] = [
    "authorization",
    "token",
    "secret",
    "api_key",
    "passwd",
    "password",
]


class SanitizationConfig(BaseModel):
    """Redaction settings. Sanitization is off unless explicitly enabled."""

    model_config = {"extra": "forbid"}

    enabled: bool = False
    detect_emails: bool = True
    detect_ips: bool = True
    detect_phone_numbers: bool = True
    detect_jwts: bool = True
    detect_api_keys: bool = True
    detect_aws_creds: bool = True
    detect_azure_keys: bool = True
    detect_gcp_keys: bool = True
    detect_passwords: bool = True
    detect_credit_cards: bool = True
    mask_with: str = "[REDACTED]"
    partial_mask_ratio: float = Field(default=1.0, gt=0.0, le=1.0)
    max_depth: int = 5
    time_budget_ms: float = Field(default=100.0, gt=0.0)
    keys_denylist: list[str] = Field(default_factory=lambda: list(DEFAULT_KEYS_DENYLIST))
    keys_allowlist: list[str] = Field(default_factory=list)
    fields_hash_instead_of_mask: list[str] = Field(default_factory=list)

    @field_validator("max_depth")
    @classmethod
    def _clamp_depth(cls, value: int) -> int:
        return max(1, value)

    @field_validator("keys_denylist", "keys_allowlist", "fields_hash_instead_of_mask")
    @classmethod
    def _lower_keys(cls, value: list[str]) -> list[str]:
        return [key.strip().lower() for key in value if key.strip()]


class RollingBufferConfig(BaseModel):
    """Retroactive capture buffer.

    Disabled when both bounds are zero. A zero ``max_entries`` with a
    positive ``max_age_seconds`` keeps every entry younger than that age.
    """

    model_config = {"extra": "forbid"}

    max_entries: int = Field(default=0, ge=0)
    max_age_seconds: float = Field(default=0.0, ge=0.0)


class ShadowConfig(BaseModel):
    """Per-run shadow capture defaults; ``enable()`` may override most of them."""

    model_config = {"extra": "forbid"}

    enabled: bool = False
    format: ShadowFormat = "json"
    directory: str = "./logs/shadow"
    ttl_seconds: float = Field(default=86_400.0, ge=0.0)
    respect_routing_blocks: bool = True
    rolling_buffer: RollingBufferConfig = Field(default_factory=RollingBufferConfig)


class AggregatorConfig(BaseModel):
    """Settings for the external aggregator destination."""

    model_config = {"extra": "forbid"}

    service: str = "logs-gateway"
    env: str | None = None
    level: LogLevel = "info"
    levels: list[LogLevel] | None = None


class GatewayConfig(BaseModel):
    """Complete configuration of one LogsGateway instance."""

    model_config = {"extra": "forbid"}

    package_name: str
    env_prefix: str | None = None
    debug_namespace: str | None = None
    log_to_console: bool = True
    log_to_file: bool = False
    log_file_path: str | None = None
    log_level: LogLevel = "info"
    log_format: LogFormat = "text"
    enable_aggregator: bool = False
    aggregator: AggregatorConfig = Field(default_factory=AggregatorConfig)
    default_source: str = "application"
    app_name: str | None = None
    app_version: str | None = None
    auto_identity: bool = False
    force_verbose: bool = False
    sanitization: SanitizationConfig = Field(default_factory=SanitizationConfig)
    shadow: ShadowConfig = Field(default_factory=ShadowConfig)
    scoping: ScopingConfig | None = None
