"""Detect the host application's name and version from pyproject.toml."""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_OWN_DISTRIBUTION = "logs-gateway"


@dataclass(frozen=True)
class AppInfo:
    name: str | None = None
    version: str | None = None


def _read_project_table(path: Path) -> dict | None:
    try:
        with path.open("rb") as handle:
            document = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        logger.debug("Skipping unreadable %s: %s", path, exc)
        return None
    project = document.get("project")
    return project if isinstance(project, dict) else None


def detect_app_info(start: str | Path | None = None) -> AppInfo:
    """Walk up from start (default: cwd) to the nearest usable pyproject.toml.

    This library's own pyproject is skipped unless it is the only one
    found, so an application embedding the gateway reports itself.
    """
    current = Path(start).resolve() if start is not None else Path.cwd().resolve()
    own: AppInfo | None = None
    for directory in (current, *current.parents):
        candidate = directory / "pyproject.toml"
        if not candidate.is_file():
            continue
        project = _read_project_table(candidate)
        if project is None:
            continue
        info = AppInfo(
            name=project.get("name"),
            version=str(project["version"]) if "version" in project else None,
        )
        if info.name == _OWN_DISTRIBUTION:
            own = own or info
            continue
        return info
    return own or AppInfo()
