"""Debug scope filter with stateful "between" range rules.

Simple allow-lists decide inclusion by identity or application name.
Between rules open and close observation windows across a stream of
calls: a start match activates a rule, an end match deactivates it, and
a call matching both toggles it. Active include rules win over active
exclude rules, which win over the allow-lists.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Iterable
from typing import Any

from logs_gateway.models.scoping import BetweenRule, ScopingConfig


class BetweenRangeState:
    """Set of currently active between-rule indices.

    Owned by a single ScopeFilter and mutated on every evaluated call.
    """

    def __init__(self) -> None:
        self._active: set[int] = set()

    def is_active(self, index: int) -> bool:
        return index in self._active

    def activate(self, index: int) -> None:
        self._active.add(index)

    def deactivate(self, index: int) -> None:
        self._active.discard(index)

    def toggle(self, index: int) -> None:
        if index in self._active:
            self._active.remove(index)
        else:
            self._active.add(index)

    def active_indices(self) -> frozenset[int]:
        return frozenset(self._active)

    def reset(self) -> None:
        self._active.clear()


def _stringify_metadata(metadata: Any) -> str:
    if metadata is None:
        return ""
    try:
        return json.dumps(metadata, default=str, ensure_ascii=False)
    except (TypeError, ValueError):
        # Self-referencing metadata cannot be JSON encoded.
        return repr(metadata)


def _matches_any(patterns: Iterable[str], text: str, exact: bool, whole_text: bool) -> bool:
    """Return True if any pattern matches text.

    Exact mode compares case-sensitively: equality against a bare
    identity, substring containment when text is the whole log line.
    Otherwise the match is a case-insensitive substring test.
    """
    if exact:
        if whole_text:
            return any(pattern in text for pattern in patterns)
        return any(pattern == text for pattern in patterns)
    lowered = text.lower()
    return any(pattern.lower() in lowered for pattern in patterns)


class ScopeFilter:
    """Decides whether a log entry is observable under a ScopingConfig.

    A None or disabled config includes everything. The range state is
    guarded by a lock so a single filter can be shared across threads.
    """

    def __init__(self, config: ScopingConfig | None) -> None:
        self.config = config
        self.state = BetweenRangeState()
        self._lock = threading.RLock()

    @property
    def active(self) -> bool:
        return self.config is not None and self.config.enabled and self.config.has_filters

    def reset(self) -> None:
        """Clear all range state, as if no call had been evaluated yet."""
        with self._lock:
            self.state.reset()

    def include(
        self,
        message: str,
        identity: str | None,
        app_name: str | None = None,
        metadata: Any = None,
    ) -> bool:
        """Evaluate one call and return whether it should be observed."""
        if not self.active:
            return True

        config = self.config
        identity_text = identity or ""
        matches_existing_filter = (
            identity_text in config.filter_identities
            or (app_name is not None and app_name in config.filtered_applications)
        )

        with self._lock:
            if config.between:
                log_text: str | None = None
                for index, rule in enumerate(config.between):
                    if rule.search_log:
                        if log_text is None:
                            log_text = " ".join(
                                (message, identity_text, _stringify_metadata(metadata))
                            )
                        self._advance(index, rule, log_text, whole_text=True)
                    else:
                        self._advance(index, rule, identity_text, whole_text=False)

            active_rules = [config.between[i] for i in sorted(self.state.active_indices())]

        # Include ranges are checked before exclude ranges.
        if any(rule.action == "include" for rule in active_rules):
            return True
        if any(rule.action == "exclude" for rule in active_rules):
            return False
        return matches_existing_filter

    def _advance(self, index: int, rule: BetweenRule, text: str, whole_text: bool) -> None:
        if rule.start_identities:
            match_start = _matches_any(rule.start_identities, text, rule.exact_match, whole_text)
        else:
            match_start = True
        if rule.end_identities:
            match_end = _matches_any(rule.end_identities, text, rule.exact_match, whole_text)
        else:
            match_end = False

        if match_start and match_end:
            self.state.toggle(index)
        elif match_start:
            self.state.activate(index)
        elif match_end:
            self.state.deactivate(index)
