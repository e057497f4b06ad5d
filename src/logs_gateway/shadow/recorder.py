"""Per-run raw capture of log entries to disk.

A shadow run stores every entry tagged with its run id, unsanitized and
regardless of level, under ``<directory>/<run_id>/``:

    <run_id>/
        index.json          # ShadowIndex manifest
        <run_id>.jsonl      # one JSON record per line (format "json")
        <run_id>.yaml       # one YAML document per entry (format "yaml")

Entries written before a run is enabled can be captured retroactively
through the rolling buffer. Index writes are atomic (write to .tmp, then
replace).
"""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
import socket
import threading
import time
from collections import deque
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from logs_gateway.errors import ShadowNotFoundError
from logs_gateway.models.config import ShadowConfig, ShadowFormat
from logs_gateway.models.envelope import SHADOW_KEY, LogEnvelope
from logs_gateway.shadow.models import (
    INDEX_FILENAME,
    ActiveRunInfo,
    BufferedEntry,
    ShadowIndex,
    ShadowIndexMeta,
    ShadowRunMeta,
    data_file_name,
)

logger = logging.getLogger(__name__)

_RUN_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

# Routing destinations that, when blocked, keep an entry out of shadow files.
SHADOW_BLOCKING_OUTPUTS = ("file", "shadow")


def resolve_run_id(envelope: LogEnvelope, raw_data: Any) -> str | None:
    """Run id targeted by an entry: ``_shadow.run_id`` override, else the envelope's."""
    if isinstance(raw_data, dict):
        override = raw_data.get(SHADOW_KEY)
        if isinstance(override, dict):
            run_id = override.get("run_id") or override.get("runId")
            if isinstance(run_id, str) and run_id:
                return run_id
    return envelope.run_id


def serialize_record(record: dict[str, Any], shadow_format: ShadowFormat) -> str:
    """Render one record as a JSONL line or a YAML document."""
    if shadow_format == "json":
        return json.dumps(record, default=str, ensure_ascii=False) + "\n"
    plain = json.loads(json.dumps(record, default=str))
    return "---\n" + yaml.safe_dump(plain, sort_keys=False, allow_unicode=True)


def _to_datetime(epoch: float) -> datetime:
    return datetime.fromtimestamp(epoch, tz=timezone.utc)


class ShadowRecorder:
    """Captures raw entries for explicitly enabled runs.

    All mutable state (active runs, rolling buffer, failure markers) is
    guarded by one re-entrant lock.

    Args:
        config: Shadow defaults (directory, format, TTL, buffer bounds).
        package_name: Recorded in each run's index metadata.
        clock: Wall clock in epoch seconds, injectable for tests.
    """

    def __init__(
        self,
        config: ShadowConfig,
        package_name: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.package_name = package_name
        self.clock = clock
        self.directory = Path(config.directory)
        # Base directories seen this process, so cleanup and export also
        # reach runs enabled with a per-run directory override.
        self._base_dirs: list[Path] = [self.directory]
        self._lock = threading.RLock()
        self._active: dict[str, ShadowRunMeta] = {}
        self._buffer: deque[BufferedEntry] = deque()
        self._failed_runs: set[str] = set()

    # -- control surface -------------------------------------------------

    def enable(
        self,
        run_id: str,
        *,
        format: ShadowFormat | None = None,
        ttl_seconds: float | None = None,
        directory: str | Path | None = None,
        respect_routing_blocks: bool | None = None,
    ) -> ShadowRunMeta:
        """Start capturing entries for run_id and replay matching buffered entries.

        Enabling a run that is already active returns its existing state.

        Raises:
            ValueError: If run_id is not usable as a directory name.
            OSError: If the run directory or index cannot be created.
        """
        if not _RUN_ID_RE.match(run_id):
            raise ValueError(f"Invalid shadow run id: {run_id!r}")

        with self._lock:
            existing = self._active.get(run_id)
            if existing is not None:
                return existing

            shadow_format = format or self.config.format
            base = Path(directory) if directory is not None else self.directory
            run_dir = base / run_id
            if base not in self._base_dirs:
                self._base_dirs.append(base)
            run_dir.mkdir(parents=True, exist_ok=True)

            now = _to_datetime(self.clock())
            index = self._load_index(run_dir)
            if index is None or index.format != shadow_format:
                index = ShadowIndex(
                    run_id=run_id,
                    created_at=now,
                    updated_at=now,
                    ttl_seconds=(
                        ttl_seconds if ttl_seconds is not None else self.config.ttl_seconds
                    ),
                    format=shadow_format,
                    file_name=data_file_name(run_id, shadow_format),
                    meta=ShadowIndexMeta(
                        host=socket.gethostname(),
                        pid=os.getpid(),
                        package=self.package_name,
                    ),
                )
            elif ttl_seconds is not None:
                index = index.model_copy(update={"ttl_seconds": ttl_seconds})

            run = ShadowRunMeta(
                run_id=run_id,
                enabled_at=now,
                format=shadow_format,
                directory=run_dir,
                ttl_seconds=index.ttl_seconds,
                respect_routing_blocks=(
                    respect_routing_blocks
                    if respect_routing_blocks is not None
                    else self.config.respect_routing_blocks
                ),
                index=index,
                entry_count=index.entry_count,
            )
            run.data_path.touch(exist_ok=True)
            self._write_index(run)
            self._active[run_id] = run
            logger.debug("Shadow capture enabled for run %s in %s", run_id, run_dir)

            self._replay_buffer(run)
            return run

    def disable(self, run_id: str) -> ShadowRunMeta:
        """Stop capturing run_id after a final index update.

        Raises:
            ShadowNotFoundError: If run_id is not active.
        """
        with self._lock:
            run = self._active.get(run_id)
            if run is None:
                raise ShadowNotFoundError(run_id)
            try:
                self._write_index(run)
            except OSError as exc:
                logger.warning("Could not finalize shadow index for run %s: %s", run_id, exc)
            del self._active[run_id]
            self._failed_runs.discard(run_id)
            return run

    def is_enabled(self, run_id: str) -> bool:
        with self._lock:
            return run_id in self._active

    def list_active(self) -> list[ActiveRunInfo]:
        with self._lock:
            return [
                ActiveRunInfo(run_id=run.run_id, since=run.enabled_at, format=run.format)
                for run in self._active.values()
            ]

    def list_stored(self, directory: str | Path | None = None) -> list[ShadowIndex]:
        """Index manifests of every run stored on disk, oldest first.

        Without a directory, every base directory used by this recorder is
        searched.
        """
        bases = [Path(directory)] if directory is not None else list(self._base_dirs)
        indexes = []
        for run_dir in self._stored_run_dirs(bases):
            index = self._load_index(run_dir)
            if index is not None:
                indexes.append(index)
        return sorted(indexes, key=lambda index: index.created_at)

    def export(self, run_id: str, dest: str | Path | None = None) -> Path:
        """Copy a run's data file to dest and return the written path.

        dest defaults to ``./<run_id>.jsonl`` (or ``.yaml``); an existing
        directory receives a file of that name.

        Raises:
            ShadowNotFoundError: If run_id is neither active nor stored.
        """
        with self._lock:
            run = self._active.get(run_id)
            if run is not None:
                source = run.data_path
                file_name = run.index.file_name
            else:
                for base in self._base_dirs:
                    index = self._load_index(base / run_id)
                    if index is not None:
                        break
                else:
                    raise ShadowNotFoundError(run_id)
                source = base / run_id / index.file_name
                file_name = index.file_name

            if not source.exists():
                raise ShadowNotFoundError(run_id)

            target = Path(dest) if dest is not None else Path.cwd() / file_name
            if target.is_dir():
                target = target / file_name
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
            return target

    def cleanup_expired(self, now: float | None = None) -> int:
        """Delete stored runs whose ``updated_at + ttl`` is before now.

        Args:
            now: Epoch seconds; defaults to the recorder clock.

        Returns:
            Number of run directories deleted.
        """
        current = self.clock() if now is None else now
        deleted = 0
        with self._lock:
            for run_dir in self._stored_run_dirs(self._base_dirs):
                index = self._load_index(run_dir)
                if index is None or index.expires_at() >= current:
                    continue
                try:
                    shutil.rmtree(run_dir)
                except OSError as exc:
                    logger.warning("Could not delete expired shadow run %s: %s", run_dir.name, exc)
                    continue
                self._active.pop(index.run_id, None)
                self._failed_runs.discard(index.run_id)
                deleted += 1
        if deleted:
            logger.info("Deleted %d expired shadow run(s)", deleted)
        return deleted

    @staticmethod
    def _stored_run_dirs(bases: list[Path]) -> list[Path]:
        run_dirs: list[Path] = []
        for base in bases:
            if base.is_dir():
                run_dirs.extend(path for path in sorted(base.iterdir()) if path.is_dir())
        return run_dirs

    # -- capture ---------------------------------------------------------

    def write(self, envelope: LogEnvelope, raw_data: Any = None) -> bool:
        """Buffer an entry and append it to its run's file when that run is active.

        Never raises.

        Returns:
            True if the entry was appended to an active run.
        """
        data = envelope.data if raw_data is None else raw_data
        run_id = resolve_run_id(envelope, data)

        with self._lock:
            self._buffer_entry(envelope, data, run_id)
            if run_id is None:
                return False
            run = self._active.get(run_id)
            if run is None:
                return False
            return self._append(run, envelope, data)

    def _buffer_entry(self, envelope: LogEnvelope, data: Any, run_id: str | None) -> None:
        bounds = self.config.rolling_buffer
        if bounds.max_entries <= 0 and bounds.max_age_seconds <= 0:
            return
        now = self.clock()
        self._buffer.append(
            BufferedEntry(envelope=envelope, raw_data=data, captured_at=now, target_run_id=run_id)
        )
        if bounds.max_entries > 0:
            while len(self._buffer) > bounds.max_entries:
                self._buffer.popleft()
        if bounds.max_age_seconds > 0:
            while self._buffer and now - self._buffer[0].captured_at > bounds.max_age_seconds:
                self._buffer.popleft()

    def _replay_buffer(self, run: ShadowRunMeta) -> None:
        matching = [entry for entry in self._buffer if entry.target_run_id == run.run_id]
        if not matching:
            return
        for entry in matching:
            self._append(run, entry.envelope, entry.raw_data)
        # Replayed entries are consumed so a later re-enable cannot duplicate them.
        self._buffer = deque(
            entry for entry in self._buffer if entry.target_run_id != run.run_id
        )
        logger.debug("Replayed %d buffered entries into shadow run %s", len(matching), run.run_id)

    def _append(self, run: ShadowRunMeta, envelope: LogEnvelope, data: Any) -> bool:
        if run.respect_routing_blocks and envelope.routing is not None:
            if any(envelope.routing.blocks(output) for output in SHADOW_BLOCKING_OUTPUTS):
                return False

        record = envelope.to_record()
        if data is not None:
            record["data"] = data
        try:
            line = serialize_record(record, run.format)
            with run.data_path.open("a", encoding="utf-8") as handle:
                handle.write(line)
            run.entry_count += 1
            self._write_index(run)
        except (OSError, TypeError, ValueError, yaml.YAMLError) as exc:
            if run.run_id not in self._failed_runs:
                self._failed_runs.add(run.run_id)
                logger.warning("Shadow write failed for run %s: %s", run.run_id, exc)
            return False
        self._failed_runs.discard(run.run_id)
        return True

    # -- index -----------------------------------------------------------

    def _write_index(self, run: ShadowRunMeta) -> None:
        run.index = run.index.model_copy(
            update={
                "updated_at": _to_datetime(self.clock()),
                "entry_count": run.entry_count,
                "ttl_seconds": run.ttl_seconds,
            }
        )
        content = json.dumps(run.index.model_dump(mode="json"), indent=2)
        tmp_file = run.directory / f"{INDEX_FILENAME}.tmp"
        tmp_file.write_text(content, encoding="utf-8")
        tmp_file.replace(run.index_path)

    @staticmethod
    def _load_index(run_dir: Path) -> ShadowIndex | None:
        index_path = run_dir / INDEX_FILENAME
        if not index_path.exists():
            return None
        try:
            return ShadowIndex.model_validate_json(index_path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            logger.warning("Skipping unreadable shadow index %s: %s", index_path, exc)
            return None


class DisabledShadowController:
    """Shadow surface used when shadow capture is turned off in configuration."""

    def enable(self, run_id: str, **_: Any) -> None:
        logger.warning("Shadow capture is disabled; ignoring enable(%r)", run_id)

    def disable(self, run_id: str) -> None:
        raise ShadowNotFoundError(run_id)

    def is_enabled(self, run_id: str) -> bool:
        return False

    def list_active(self) -> list[ActiveRunInfo]:
        return []

    def list_stored(self, directory: str | Path | None = None) -> list[ShadowIndex]:
        return []

    def export(self, run_id: str, dest: str | Path | None = None) -> Path:
        raise ShadowNotFoundError(run_id)

    def cleanup_expired(self, now: float | None = None) -> int:
        return 0

    def write(self, envelope: LogEnvelope, raw_data: Any = None) -> bool:
        return False
