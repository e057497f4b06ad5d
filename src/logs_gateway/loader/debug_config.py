"""Loader for the ``logger-debug`` scoping configuration file.

Two-stage loading: parse the file (JSON or YAML, by suffix), then
validate against the DebugConfig pydantic model. Any failure disables
scoping: the loader logs a warning and returns None, it never raises
into the application.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from logs_gateway.errors import ScopingConfigError
from logs_gateway.models.scoping import DebugConfig, ScopingConfig

logger = logging.getLogger(__name__)

DEBUG_CONFIG_FILENAMES: tuple[str, ...] = (
    "logger-debug.json",
    "logger-debug.yaml",
    "logger-debug.yml",
)


@dataclass
class ValidationErrorDetail:
    """A single scoping validation problem.

    Attributes:
        field: Dotted path of the offending field (``scoping.between.0.action``).
        message: Human-readable error description.
        type: Pydantic error type, or ``parse_error`` / ``empty_file``.
    """

    field: str
    message: str
    type: str


def _loc_to_field_path(loc: tuple[str | int, ...]) -> str:
    return ".".join(str(part) for part in loc)


def parse_debug_config_file(path: Path) -> Any:
    """Read and parse a debug config file.

    ``.json`` files are parsed as JSON, anything else as YAML.

    Raises:
        ScopingConfigError: If the file cannot be read or parsed.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ScopingConfigError(
            f"Cannot read {path}: {exc}", details={"path": str(path)}
        ) from exc

    try:
        if path.suffix == ".json":
            return json.loads(content)
        return yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ScopingConfigError(
            f"Failed to parse {path}: {exc}", details={"path": str(path)}
        ) from exc


def validate_debug_config(
    raw: Any,
) -> tuple[ScopingConfig | None, list[ValidationErrorDetail]]:
    """Validate parsed debug config data.

    Returns:
        Tuple of (ScopingConfig, []) on success, or (None, errors) on failure.
    """
    if raw is None:
        return None, [
            ValidationErrorDetail(
                field="<file>",
                message="File is empty or contains only comments",
                type="empty_file",
            )
        ]

    try:
        config = DebugConfig.model_validate(raw)
    except ValidationError as exc:
        return None, [
            ValidationErrorDetail(
                field=_loc_to_field_path(err.get("loc", ())) or "<root>",
                message=err.get("msg", "Validation error"),
                type=err.get("type", "unknown"),
            )
            for err in exc.errors()
        ]

    return config.scoping, []


def load_scoping_config(path: Path) -> ScopingConfig | None:
    """Load and validate a scoping config file.

    Returns:
        The validated ScopingConfig, or None when the file is unreadable,
        malformed or invalid. A warning is logged in the failure cases.
    """
    try:
        raw = parse_debug_config_file(path)
    except ScopingConfigError as exc:
        logger.warning("Scoping disabled: %s", exc.message)
        return None

    config, errors = validate_debug_config(raw)
    if errors:
        summary = "; ".join(f"{err.field}: {err.message}" for err in errors)
        logger.warning("Scoping disabled: invalid %s (%s)", path, summary)
        return None
    return config


def find_debug_config(start: Path | None = None) -> Path | None:
    """Walk up from start (default: cwd) looking for a logger-debug file.

    Returns:
        Path to the first matching file, or None if none is found.
    """
    current = (start or Path.cwd()).resolve()
    if current.is_file():
        current = current.parent
    while True:
        for name in DEBUG_CONFIG_FILENAMES:
            candidate = current / name
            if candidate.is_file():
                return candidate
        if current == current.parent:
            return None
        current = current.parent


def discover_scoping_config(start: Path | None = None) -> ScopingConfig | None:
    """Find the nearest logger-debug file and load it. Nothing is cached."""
    path = find_debug_config(start)
    if path is None:
        return None
    return load_scoping_config(path)
