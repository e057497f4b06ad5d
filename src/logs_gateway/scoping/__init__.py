"""Debug scoping: allow-lists and stateful between-range rules."""

from logs_gateway.scoping.filter import BetweenRangeState, ScopeFilter

__all__ = ["BetweenRangeState", "ScopeFilter"]
