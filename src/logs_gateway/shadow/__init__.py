"""Shadow capture: per-run raw archives with a retroactive rolling buffer."""

from logs_gateway.shadow.models import (
    ActiveRunInfo,
    BufferedEntry,
    ShadowIndex,
    ShadowIndexMeta,
    ShadowRunMeta,
)
from logs_gateway.shadow.recorder import (
    DisabledShadowController,
    ShadowRecorder,
    resolve_run_id,
)

__all__ = [
    "ActiveRunInfo",
    "BufferedEntry",
    "DisabledShadowController",
    "ShadowIndex",
    "ShadowIndexMeta",
    "ShadowRecorder",
    "ShadowRunMeta",
    "resolve_run_id",
]
