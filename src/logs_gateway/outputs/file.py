"""Append-only file destination."""

from __future__ import annotations

import logging
from pathlib import Path

from logs_gateway.formatting import Formatter
from logs_gateway.models.envelope import LogEnvelope
from logs_gateway.outputs.base import FILE_OUTPUT

logger = logging.getLogger(__name__)


class FileOutput:
    """Appends one formatted entry per line to a log file.

    Parent directories are created on construction. A failing write is
    reported once on the fallback logger until a later write succeeds.
    """

    name = FILE_OUTPUT

    def __init__(self, path: str | Path, formatter: Formatter) -> None:
        self.path = Path(path)
        self.formatter = formatter
        self._failing = False
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("Could not create log directory %s: %s", self.path.parent, exc)

    def write(self, envelope: LogEnvelope) -> None:
        text = self.formatter(envelope)
        try:
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(text if text.endswith("\n") else text + "\n")
        except OSError as exc:
            if not self._failing:
                self._failing = True
                logger.warning("Failed to write to log file %s: %s", self.path, exc)
            return
        self._failing = False
