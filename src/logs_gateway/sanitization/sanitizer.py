"""Bounded-traversal sanitizer for log messages and metadata trees.

Walks the metadata depth-first applying per-key policy (allowlist, hash,
denylist) and pattern detection on string values. The walk is bounded
three ways:

- depth: composites nested deeper than ``max_depth`` are returned
  unmodified and the result is flagged ``truncated``;
- time: a monotonic deadline is checked before each string scan and at
  each recursion step; once it passes, the remaining structure is
  returned unmodified and flagged ``truncated``;
- cycles: a dict or list reached a second time during one call aborts
  the whole call with an error result whose message is the mask token
  and whose redaction count is zero. Tuples are not tracked; any cycle
  passes through a dict or list.

Partial masking keeps ``floor(len * (1 - partial_mask_ratio))`` trailing
characters of each detected span and replaces the rest with the mask
token; a ratio of 1.0 replaces the whole span.
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from logs_gateway.errors import SanitizationCycleError
from logs_gateway.models.config import SanitizationConfig
from logs_gateway.models.envelope import SANITIZATION_KEY
from logs_gateway.sanitization.patterns import DETECTORS, Detector

logger = logging.getLogger(__name__)


@dataclass
class SanitizationResult:
    """Outcome of one sanitize() call.

    Attributes:
        message: Sanitized message text.
        data: Sanitized copy of the metadata (the original object when
            sanitization is disabled).
        redaction_count: Masked spans plus masked or hashed keys.
        truncated: True when depth or time limits left content unscanned.
        error: True when the call degraded to the error placeholder.
    """

    message: str
    data: Any = None
    redaction_count: int = 0
    truncated: bool = False
    error: bool = False


def hash_value(value: str) -> str:
    """One-way SHA-256 hex digest used for hash-instead-of-mask keys."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _key_matches(rules: Iterable[str], key: str, path: str) -> bool:
    """Match a bare key, a full dotted path, or a ``*.key`` wildcard."""
    for rule in rules:
        if rule == key or rule == path:
            return True
        if rule.startswith("*.") and rule[2:] == key:
            return True
    return False


class _SanitizationPass:
    """Mutable state for a single sanitize() call."""

    def __init__(self, sanitizer: Sanitizer, deadline: float) -> None:
        self.sanitizer = sanitizer
        self.config = sanitizer.config
        self.deadline = deadline
        self.redaction_count = 0
        self.truncated = False
        self._visited: set[int] = set()

    def expired(self) -> bool:
        if self.sanitizer.clock() > self.deadline:
            self.truncated = True
            return True
        return False

    def scan(self, text: str) -> str:
        if self.expired():
            return text
        for detector in self.sanitizer.detectors:
            text, count = detector.apply(text, self.sanitizer.mask)
            self.redaction_count += count
        return text

    def walk(self, node: Any, depth: int, path: tuple[str, ...]) -> Any:
        if depth > self.config.max_depth:
            self.truncated = True
            return node
        if self.expired():
            return node
        if isinstance(node, str):
            return self.scan(node)
        if isinstance(node, dict):
            self._visit(node)
            return self._walk_mapping(node, depth, path)
        if isinstance(node, (list, tuple)):
            if isinstance(node, list):
                self._visit(node)
            items = [self.walk(item, depth + 1, path) for item in node]
            return items if isinstance(node, list) else tuple(items)
        return node

    def _walk_mapping(self, node: dict, depth: int, path: tuple[str, ...]) -> dict:
        config = self.config
        result: dict[Any, Any] = {}
        for key, value in node.items():
            lowered = str(key).lower()
            item_path = path + (lowered,)
            dotted = ".".join(item_path)

            if _key_matches(config.keys_allowlist, lowered, dotted):
                result[key] = value
            elif _key_matches(config.fields_hash_instead_of_mask, lowered, dotted):
                if isinstance(value, str):
                    result[key] = hash_value(value)
                    self.redaction_count += 1
                else:
                    result[key] = self.walk(value, depth + 1, item_path)
            elif _key_matches(config.keys_denylist, lowered, dotted):
                result[key] = config.mask_with
                self.redaction_count += 1
            elif isinstance(value, str):
                result[key] = self.scan(value)
            else:
                result[key] = self.walk(value, depth + 1, item_path)
        return result

    def _visit(self, node: Any) -> None:
        node_id = id(node)
        if node_id in self._visited:
            raise SanitizationCycleError(
                "Circular or shared reference detected in log metadata",
                details={"node_id": node_id},
            )
        self._visited.add(node_id)


class Sanitizer:
    """Detects and masks sensitive content according to a SanitizationConfig.

    Args:
        config: Sanitization settings.
        clock: Monotonic clock in seconds, injectable for tests.
    """

    def __init__(
        self,
        config: SanitizationConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.clock = clock
        self.detectors: tuple[Detector, ...] = tuple(
            detector for detector in DETECTORS if getattr(config, detector.toggle)
        )

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def mask(self, value: str) -> str:
        """Mask a detected span, honoring the partial-mask ratio."""
        ratio = self.config.partial_mask_ratio
        if ratio >= 1.0:
            return self.config.mask_with
        keep = math.floor(len(value) * (1.0 - ratio))
        if keep <= 0:
            return self.config.mask_with
        return self.config.mask_with + value[-keep:]

    def detect_and_mask(self, text: str) -> str:
        """Run every enabled detector over text without any budget."""
        for detector in self.detectors:
            text, _ = detector.apply(text, self.mask)
        return text

    def sanitize(self, message: str, data: Any = None) -> SanitizationResult:
        """Sanitize a message and its metadata.

        Never raises. Cyclic metadata, or any failure while walking it,
        degrades the entry to the error placeholder instead.
        """
        if not self.config.enabled:
            return SanitizationResult(message=message, data=data)

        deadline = self.clock() + self.config.time_budget_ms / 1000.0
        run = _SanitizationPass(self, deadline)
        try:
            sanitized_message = run.scan(message)
            sanitized_data = data if data is None else run.walk(data, 0, ())
        except SanitizationCycleError as exc:
            logger.debug("Sanitization aborted: %s", exc.message)
            return self.error_result()
        except Exception as exc:
            logger.warning("Sanitization failed: %s", exc)
            return self.error_result()

        return SanitizationResult(
            message=sanitized_message,
            data=sanitized_data,
            redaction_count=run.redaction_count,
            truncated=run.truncated,
        )

    def error_result(self) -> SanitizationResult:
        """The fail-safe placeholder returned when sanitization cannot finish."""
        return SanitizationResult(
            message=self.config.mask_with,
            data={
                SANITIZATION_KEY: {
                    "sanitization_error": True,
                    "redaction_count": 0,
                    "truncated": True,
                }
            },
            redaction_count=0,
            truncated=True,
            error=True,
        )
