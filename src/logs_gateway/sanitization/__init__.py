"""PII and credential sanitization for log entries."""

from logs_gateway.sanitization.patterns import DETECTORS, Detector, luhn_valid
from logs_gateway.sanitization.sanitizer import (
    SanitizationResult,
    Sanitizer,
    hash_value,
)

__all__ = [
    "DETECTORS",
    "Detector",
    "SanitizationResult",
    "Sanitizer",
    "hash_value",
    "luhn_valid",
]
