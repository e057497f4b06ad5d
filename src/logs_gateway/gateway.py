"""The logging pipeline.

Each call runs, in order:

1. identity resolution (explicit, metadata, optional call-site resolver,
   then the entry source);
2. the scope filter; an excluded entry is dropped with no further work;
3. shadow capture of the raw envelope, before level filtering and
   sanitization;
4. the level threshold (bypassed when ``force_verbose`` is set);
5. sanitization, when enabled;
6. per-destination routing checks and dispatch.

Envelopes pick up the active operation and thread trails for any field
the call's metadata leaves unset.

Only construction can raise (``ConfigError``). Faults while handling an
entry are reported on the ``logs_gateway`` stdlib logger and never reach
the caller.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from logs_gateway.app_info import detect_app_info
from logs_gateway.context import current_context
from logs_gateway.errors import ConfigError
from logs_gateway.formatting import get_formatter
from logs_gateway.identity import IdentityResolver, caller_identity
from logs_gateway.loader.config_loader import load_gateway_config
from logs_gateway.models.config import LEVEL_PRIORITY, GatewayConfig, LogLevel
from logs_gateway.models.envelope import (
    CORRELATION_FIELDS,
    INTERNAL_SOURCE,
    ROUTING_KEY,
    SANITIZATION_KEY,
    TRAIL_FIELDS,
    LogEnvelope,
    RoutingMeta,
)
from logs_gateway.outputs import (
    AGGREGATOR_OUTPUT,
    AggregatorOutput,
    AggregatorTransport,
    ConsoleOutput,
    FileOutput,
    Output,
)
from logs_gateway.sanitization import SanitizationResult, Sanitizer
from logs_gateway.scoping import ScopeFilter
from logs_gateway.shadow import DisabledShadowController, ShadowRecorder
from logs_gateway.trails import trail_fields

logger = logging.getLogger(__name__)


class CustomLogger(Protocol):
    """Replacement sink receiving sanitized ``(message, data)`` per level."""

    def verbose(self, message: str, data: Any = None) -> None: ...
    def debug(self, message: str, data: Any = None) -> None: ...
    def info(self, message: str, data: Any = None) -> None: ...
    def warn(self, message: str, data: Any = None) -> None: ...
    def error(self, message: str, data: Any = None) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _lookup(data: Any, name: str) -> Any:
    """Read a snake_case key, falling back to its camelCase spelling."""
    if not isinstance(data, dict):
        return None
    value = data.get(name)
    if value is None:
        value = data.get(_camel(name))
    return value


def _pick(data: Any, trail: dict[str, Any], name: str) -> Any:
    """Explicit metadata first, then the active operation or thread."""
    value = _lookup(data, name)
    return trail.get(name) if value is None else value


class LogsGateway:
    """A configured logger for one package.

    Args:
        config: Validated gateway configuration.
        outputs: Destinations to use instead of those built from config.
        custom_logger: Receives sanitized entries instead of the outputs.
        transport: Aggregator transport (default: a stdlib logger named
            after the aggregator service).
        identity_resolver: Call-site identity source; defaults to the
            stack-based resolver when ``config.auto_identity`` is set.
        clock: Returns the entry timestamp.

    Raises:
        ConfigError: If file output is enabled without a path.
    """

    def __init__(
        self,
        config: GatewayConfig,
        outputs: Sequence[Output] | None = None,
        custom_logger: CustomLogger | None = None,
        transport: AggregatorTransport | None = None,
        identity_resolver: IdentityResolver | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if config.log_to_file and not config.log_file_path:
            raise ConfigError(
                f"{config.package_name}: log_file_path is required when log_to_file is true",
                details={"package_name": config.package_name},
            )

        self.config = config
        self.custom_logger = custom_logger
        self.clock = clock
        self.formatter = get_formatter(config.log_format)
        self.scope_filter = ScopeFilter(config.scoping)
        self.sanitizer = Sanitizer(config.sanitization)
        self.shadow: ShadowRecorder | DisabledShadowController = (
            ShadowRecorder(config.shadow, config.package_name)
            if config.shadow.enabled
            else DisabledShadowController()
        )
        if identity_resolver is None and config.auto_identity:
            identity_resolver = caller_identity
        self.identity_resolver = identity_resolver
        self.outputs: list[Output] = (
            list(outputs) if outputs is not None else self._build_outputs(transport)
        )
        self._failing_outputs: set[str] = set()

    def _build_outputs(self, transport: AggregatorTransport | None) -> list[Output]:
        config = self.config
        outputs: list[Output] = []
        if config.log_to_console:
            outputs.append(ConsoleOutput(self.formatter))
        if config.log_to_file:
            outputs.append(FileOutput(config.log_file_path, self.formatter))
        if config.enable_aggregator:
            outputs.append(AggregatorOutput(config.aggregator, transport))
        return outputs

    # -- public API ------------------------------------------------------

    def verbose(self, message: str, data: Any = None, *, identity: str | None = None) -> None:
        self._emit("verbose", message, data, identity)

    def debug(self, message: str, data: Any = None, *, identity: str | None = None) -> None:
        self._emit("debug", message, data, identity)

    def info(self, message: str, data: Any = None, *, identity: str | None = None) -> None:
        self._emit("info", message, data, identity)

    def warn(self, message: str, data: Any = None, *, identity: str | None = None) -> None:
        self._emit("warn", message, data, identity)

    def error(self, message: str, data: Any = None, *, identity: str | None = None) -> None:
        self._emit("error", message, data, identity)

    def success(self, message: str, data: Any = None, *, identity: str | None = None) -> None:
        """Emit at info level."""
        self._emit("info", message, data, identity)

    def get_config(self) -> GatewayConfig:
        return self.config.model_copy(deep=True)

    def should_log(self, level: LogLevel) -> bool:
        if self.config.force_verbose:
            return True
        return LEVEL_PRIORITY[level] >= LEVEL_PRIORITY[self.config.log_level]

    def is_level_enabled(self, level: LogLevel) -> bool:
        return self.should_log(level)

    def should_send(self, output_name: str, envelope: LogEnvelope) -> bool:
        """Routing check for one destination.

        A block always wins over an allow-list, and entries from the
        gateway itself never reach the aggregator.
        """
        if output_name == AGGREGATOR_OUTPUT and envelope.source == INTERNAL_SOURCE:
            return False
        if envelope.routing is None:
            return True
        return envelope.routing.allows(output_name)

    # -- pipeline --------------------------------------------------------

    def _resolve_identity(self, identity: str | None, data: Any, source: str) -> str:
        if identity:
            return identity
        from_meta = _lookup(data, "identity")
        if isinstance(from_meta, str) and from_meta:
            return from_meta
        if self.identity_resolver is not None:
            try:
                resolved = self.identity_resolver()
            except Exception as exc:
                logger.debug("Identity resolver failed: %s", exc)
                resolved = None
            if resolved:
                return resolved
        return source

    def _parse_routing(self, data: Any) -> RoutingMeta | None:
        raw = data.get(ROUTING_KEY) if isinstance(data, dict) else None
        if raw is None:
            return None
        try:
            return RoutingMeta.model_validate(raw)
        except ValidationError as exc:
            logger.debug("Ignoring malformed routing directive: %s", exc)
            return None

    def _build_envelope(self, level: LogLevel, message: str, data: Any) -> LogEnvelope:
        source = _lookup(data, "source")
        trail = trail_fields()
        correlation = {name: _pick(data, trail, name) for name in CORRELATION_FIELDS}
        trails = {name: _pick(data, trail, name) for name in TRAIL_FIELDS}
        tags = _lookup(data, "tags")
        return LogEnvelope(
            timestamp=self.clock().isoformat(timespec="milliseconds"),
            package=self.config.package_name,
            level=level,
            message=message,
            source=source if isinstance(source, str) else self.config.default_source,
            data=data,
            tags=list(tags) if isinstance(tags, (list, tuple)) else None,
            app_name=self.config.app_name,
            app_version=self.config.app_version,
            routing=self._parse_routing(data),
            **{k: str(v) for k, v in correlation.items() if v is not None},
            **{k: v for k, v in trails.items() if v is not None},
        )

    def _emit(self, level: LogLevel, message: str, data: Any, identity: str | None) -> None:
        try:
            if not isinstance(message, str):
                message = str(message)
            self._process(level, message, data, identity)
        except Exception as exc:
            logger.warning("Dropped %s entry from %s: %s", level, self.config.package_name, exc)

    def _process(
        self, level: LogLevel, message: str, data: Any, identity: str | None
    ) -> None:
        context = current_context()
        if context:
            if data is None:
                data = context
            elif isinstance(data, dict):
                data = {**context, **data}

        raw = self._build_envelope(level, message, data)
        resolved_identity = self._resolve_identity(identity, data, raw.source)
        if not self.scope_filter.include(
            message, resolved_identity, self.config.app_name, data
        ):
            return

        raw = replace(raw, identity=resolved_identity)
        self.shadow.write(raw, data)

        if not self.should_log(level):
            return

        result = self.sanitizer.sanitize(message, data)
        sanitized_data = self._annotate(result)

        if self.custom_logger is not None:
            self._call_custom(level, result.message, sanitized_data)
            return

        envelope = replace(raw, message=result.message, data=sanitized_data)
        for output in self.outputs:
            if self.should_send(output.name, envelope):
                self._dispatch(output, envelope)

    @staticmethod
    def _annotate(result: SanitizationResult) -> Any:
        if result.error or result.redaction_count == 0:
            return result.data
        marker = {
            SANITIZATION_KEY: {
                "redaction_count": result.redaction_count,
                "truncated": result.truncated,
            }
        }
        if result.data is None:
            return marker
        if isinstance(result.data, dict):
            return {**result.data, **marker}
        return result.data

    def _call_custom(self, level: LogLevel, message: str, data: Any) -> None:
        try:
            getattr(self.custom_logger, level)(message, data)
        except Exception as exc:
            logger.warning("Custom logger failed for %s entry: %s", level, exc)

    def _dispatch(self, output: Output, envelope: LogEnvelope) -> None:
        try:
            output.write(envelope)
        except Exception as exc:
            if output.name not in self._failing_outputs:
                self._failing_outputs.add(output.name)
                logger.warning("Output %s failed: %s", output.name, exc)
            return
        self._failing_outputs.discard(output.name)


def create_logger(
    package_name: str,
    *,
    env_prefix: str | None = None,
    config_path: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
    discover_scoping: bool = False,
    detect_app: bool = True,
    **kwargs: Any,
) -> LogsGateway:
    """Load configuration and build a LogsGateway.

    Extra keyword arguments are passed to LogsGateway (outputs,
    custom_logger, transport, identity_resolver, clock).

    Raises:
        ConfigError: If the configuration is invalid.
    """
    config = load_gateway_config(
        package_name,
        env_prefix=env_prefix,
        config_path=Path(config_path) if config_path is not None else None,
        overrides=overrides,
        environ=environ,
        discover_scoping=discover_scoping,
    )
    if detect_app and config.app_name is None:
        info = detect_app_info()
        config = config.model_copy(
            update={"app_name": info.name, "app_version": config.app_version or info.version}
        )
    return LogsGateway(config, **kwargs)
