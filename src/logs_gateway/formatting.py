"""Render log envelopes as text for console and file destinations.

Four formats are supported:

- ``text``: ``[timestamp] [package] [LEVEL] message {json data}``
- ``json``: one JSON object per entry
- ``yaml``: one YAML document per entry, prefixed with ``---``; falls back
  to JSON with a ``format_fallback`` marker when the data cannot be dumped
- ``table``: a single-row rich table of the key fields
"""

from __future__ import annotations

import io
import json
from collections.abc import Callable
from datetime import datetime
from typing import Any

import yaml
from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from logs_gateway.models.config import LogFormat
from logs_gateway.models.envelope import (
    ROUTING_KEY,
    SANITIZATION_KEY,
    SHADOW_KEY,
    LogEnvelope,
)

Formatter = Callable[[LogEnvelope], str]

_INTERNAL_KEYS = (ROUTING_KEY, SANITIZATION_KEY, SHADOW_KEY)


def _dump_data(data: Any) -> str:
    try:
        return json.dumps(data, default=str, ensure_ascii=False)
    except (TypeError, ValueError):
        return repr(data)


def format_text(envelope: LogEnvelope) -> str:
    line = (
        f"[{envelope.timestamp}] [{envelope.package}] "
        f"[{envelope.level.upper()}] {envelope.message}"
    )
    if envelope.data is not None:
        line += f" {_dump_data(envelope.data)}"
    return line


def format_json(envelope: LogEnvelope) -> str:
    return json.dumps(envelope.to_record(), default=str, ensure_ascii=False)


def format_yaml(envelope: LogEnvelope) -> str:
    """Render as a YAML document, or as JSON if YAML dumping fails."""
    record = envelope.to_record()
    try:
        # Round-trip through JSON so only plain scalars/containers reach the dumper.
        plain = json.loads(json.dumps(record, ensure_ascii=False))
        return "---\n" + yaml.safe_dump(
            plain, sort_keys=False, allow_unicode=True, width=120
        )
    except (TypeError, ValueError, yaml.YAMLError):
        record["format_fallback"] = "yaml->json"
        return json.dumps(record, default=str, ensure_ascii=False)


def _short_time(timestamp: str) -> str:
    try:
        return datetime.fromisoformat(timestamp).strftime("%H:%M:%S.%f")[:-3]
    except ValueError:
        return timestamp


def summarize_data(data: Any, max_fields: int = 3, max_len: int = 80) -> str:
    """Compact ``key:value`` summary of metadata, skipping internal keys."""
    if not isinstance(data, dict):
        return "" if data is None else str(data)
    visible = [(k, v) for k, v in data.items() if k not in _INTERNAL_KEYS]
    parts = []
    for key, value in visible[:max_fields]:
        text = _dump_data(value) if isinstance(value, (dict, list)) else str(value)
        if len(text) > 30:
            text = text[:30] + "..."
        parts.append(f"{key}:{text}")
    summary = ", ".join(parts)
    return summary if len(summary) <= max_len else summary[:max_len] + "..."


def format_table(envelope: LogEnvelope) -> str:
    """Render the entry as a one-row table of its populated fields."""
    columns: list[tuple[str, str]] = [
        ("Time", _short_time(envelope.timestamp)),
        ("Level", envelope.level.upper()),
        ("Package", envelope.package),
        ("Message", envelope.message),
    ]
    if envelope.source and envelope.source != "application":
        columns.append(("Source", envelope.source))
    if envelope.app_name:
        columns.append(("App", envelope.app_name))
    if envelope.correlation_id:
        columns.append(("Correlation", envelope.correlation_id))
    if envelope.run_id:
        columns.append(("Run", envelope.run_id))
    if envelope.operation_path or envelope.operation_name:
        columns.append(("Operation", envelope.operation_path or envelope.operation_name))
    if envelope.thread_id:
        columns.append(("Thread", f"{envelope.thread_id}#{envelope.sequence_no or 0}"))
    if envelope.trace_id:
        columns.append(("Trace", envelope.trace_id[:8]))
    summary = summarize_data(envelope.data)
    if summary:
        columns.append(("Data", summary))
    if envelope.tags:
        columns.append(("Tags", ", ".join(envelope.tags)))

    table = Table(box=box.SIMPLE, show_header=True, padding=(0, 1))
    for name, _ in columns:
        table.add_column(name, overflow="fold")
    table.add_row(*(Text(value) for _, value in columns))

    buffer = io.StringIO()
    console = Console(file=buffer, width=160, color_system=None, highlight=False)
    console.print(table)
    return buffer.getvalue().rstrip("\n")


_FORMATTERS: dict[str, Formatter] = {
    "text": format_text,
    "json": format_json,
    "yaml": format_yaml,
    "table": format_table,
}


def get_formatter(name: LogFormat) -> Formatter:
    """Look up a formatter by format name.

    Raises:
        KeyError: If name is not a known format.
    """
    try:
        return _FORMATTERS[name]
    except KeyError:
        raise KeyError(
            f"Unknown log format '{name}'. Available: {', '.join(sorted(_FORMATTERS))}"
        ) from None
