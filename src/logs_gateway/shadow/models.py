"""Models for shadow capture runs and their on-disk index manifest."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from logs_gateway.models.config import ShadowFormat
from logs_gateway.models.envelope import LogEnvelope

# Current schema version for shadow index files.
CURRENT_INDEX_SCHEMA_VERSION = 1

INDEX_FILENAME = "index.json"


def data_file_name(run_id: str, shadow_format: ShadowFormat) -> str:
    """Name of a run's data file: JSONL for json, multi-document YAML for yaml."""
    suffix = "jsonl" if shadow_format == "json" else "yaml"
    return f"{run_id}.{suffix}"


class ShadowIndexMeta(BaseModel):
    """Host/process metadata recorded when a run is enabled."""

    model_config = {"extra": "forbid"}

    host: str
    pid: int
    package: str


class ShadowIndex(BaseModel):
    """The ``index.json`` manifest stored beside each run's data file."""

    model_config = {"extra": "forbid"}

    schema_version: int = CURRENT_INDEX_SCHEMA_VERSION
    run_id: str
    created_at: datetime
    updated_at: datetime
    ttl_seconds: float = Field(ge=0.0)
    format: ShadowFormat
    entry_count: int = Field(default=0, ge=0)
    file_name: str
    meta: ShadowIndexMeta

    def expires_at(self) -> float:
        """Epoch seconds after which the run is eligible for cleanup."""
        return self.updated_at.timestamp() + self.ttl_seconds


@dataclass
class ShadowRunMeta:
    """An active shadow run held in memory by the recorder."""

    run_id: str
    enabled_at: datetime
    format: ShadowFormat
    directory: Path
    ttl_seconds: float
    respect_routing_blocks: bool
    index: ShadowIndex
    entry_count: int = 0

    @property
    def data_path(self) -> Path:
        return self.directory / self.index.file_name

    @property
    def index_path(self) -> Path:
        return self.directory / INDEX_FILENAME


@dataclass(frozen=True)
class ActiveRunInfo:
    """Summary returned by ``list_active()``."""

    run_id: str
    since: datetime
    format: ShadowFormat


@dataclass
class BufferedEntry:
    """An entry held in the rolling buffer for retroactive capture."""

    envelope: LogEnvelope
    raw_data: Any
    captured_at: float
    target_run_id: str | None = field(default=None)
