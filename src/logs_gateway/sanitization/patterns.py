"""Sensitive-content detectors for log text.

Each detector is a compiled regex bound to one SanitizationConfig
toggle, optionally paired with a validator that must accept the match
before it is masked (Luhn for card numbers, address parsing for IPv6,
charset mixing for generic tokens). Detectors run in declaration order,
specific credential shapes first and broad heuristics last.
"""

from __future__ import annotations

import ipaddress
import re
import string
from collections.abc import Callable
from dataclasses import dataclass


def luhn_valid(digits: str) -> bool:
    """Validate a 13-19 digit string with the Luhn checksum."""
    if not digits.isdigit() or not 13 <= len(digits) <= 19:
        return False
    total = 0
    for position, char in enumerate(reversed(digits)):
        digit = int(char)
        if position % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def _is_card_number(match: str) -> bool:
    return luhn_valid(re.sub(r"[ -]", "", match))


def _is_ipv6(match: str) -> bool:
    if not any(char in string.hexdigits for char in match):
        return False
    try:
        ipaddress.IPv6Address(match)
    except ValueError:
        return False
    return True


def _is_mixed_token(match: str) -> bool:
    # Pure digits or pure letters (plus separators) are ordinary words/ids.
    return any(char.isdigit() for char in match) and any(char.isalpha() for char in match)


@dataclass(frozen=True)
class Detector:
    """A named pattern gated by a SanitizationConfig boolean field."""

    name: str
    toggle: str
    pattern: re.Pattern[str]
    validate: Callable[[str], bool] | None = None

    def apply(self, text: str, mask: Callable[[str], str]) -> tuple[str, int]:
        """Mask every accepted match in text.

        Returns:
            Tuple of (new text, number of masked spans).
        """
        count = 0

        def _replace(match: re.Match[str]) -> str:
            nonlocal count
            value = match.group(0)
            if self.validate is not None and not self.validate(value):
                return value
            count += 1
            return mask(value)

        return self.pattern.sub(_replace, text), count


DETECTORS: tuple[Detector, ...] = (
    Detector(
        "jwt",
        "detect_jwts",
        re.compile(r"\beyJ[A-Za-z0-9_-]*\.[A-Za-z0-9_-]*\.[A-Za-z0-9_-]*"),
    ),
    Detector("bearer", "detect_api_keys", re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*")),
    Detector("anthropic_key", "detect_api_keys", re.compile(r"\bsk-ant-[A-Za-z0-9_-]{20,}")),
    Detector("openai_key", "detect_api_keys", re.compile(r"\bsk-[A-Za-z0-9_-]{10,}")),
    Detector("generic_ak", "detect_api_keys", re.compile(r"\bak_[A-Za-z0-9]{10,}")),
    Detector("github_token", "detect_api_keys", re.compile(r"\bgh[pousr]_[A-Za-z0-9]{36}\b")),
    Detector("slack_token", "detect_api_keys", re.compile(r"\bxox[abprs]-[A-Za-z0-9-]{10,}")),
    Detector("aws_access_key", "detect_aws_creds", re.compile(r"\b(?:AKIA|ASIA)[0-9A-Z]{16}\b")),
    Detector(
        "aws_secret_key",
        "detect_aws_creds",
        re.compile(r"(?i)aws_secret_access_key\s*[:=]\s*[A-Za-z0-9/+=]{40}"),
    ),
    Detector(
        "azure_account_key",
        "detect_azure_keys",
        re.compile(r"(?i)\b(?:AccountKey|SharedAccessKey)=[A-Za-z0-9+/=]{20,}"),
    ),
    Detector("gcp_api_key", "detect_gcp_keys", re.compile(r"\bAIza[0-9A-Za-z_-]{35}\b")),
    Detector("gcp_oauth_token", "detect_gcp_keys", re.compile(r"\bya29\.[0-9A-Za-z_-]{20,}")),
    Detector(
        "password_assignment",
        "detect_passwords",
        re.compile(r"(?i)\b(?:password|passwd|pass|pwd|secret)\s*[:=]\s*\S+"),
    ),
    Detector(
        "credit_card",
        "detect_credit_cards",
        re.compile(r"(?<!\d)(?:\d[ -]?){12,18}\d(?!\d)"),
        validate=_is_card_number,
    ),
    Detector(
        "email",
        "detect_emails",
        re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
    ),
    Detector(
        "ipv4",
        "detect_ips",
        re.compile(
            r"(?<![\d.])(?:(?:25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)\.){3}"
            r"(?:25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)(?![\d.])"
        ),
    ),
    Detector(
        "ipv6",
        "detect_ips",
        re.compile(r"(?<![\w:])(?:[0-9A-Fa-f]{0,4}:){2,7}[0-9A-Fa-f]{0,4}(?![\w:])"),
        validate=_is_ipv6,
    ),
    Detector(
        "phone_international",
        "detect_phone_numbers",
        re.compile(r"(?<![\w+])\+[1-9]\d{0,3}(?:[\s.-]?\(?\d{1,4}\)?){2,5}(?!\w)"),
    ),
    Detector(
        "phone_domestic",
        "detect_phone_numbers",
        re.compile(r"(?<![\w+])(?:\(\d{3}\)\s?|\d{3}[-.\s])\d{3}[-.\s]\d{4}(?!\w)"),
    ),
    Detector(
        "high_entropy_token",
        "detect_api_keys",
        re.compile(r"(?<![\w-])[A-Za-z0-9_-]{20,}(?![\w-])"),
        validate=_is_mixed_token,
    ),
)
