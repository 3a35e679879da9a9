"""Logging filters that scrub payment and credential details."""

from __future__ import annotations

import logging
import re

_SENSITIVE_PATTERN = re.compile(
    r"(Authorization: Bearer\s+[\w\.-]+|access_token\"\s*:\s*\"[^\"]+\")",
    re.IGNORECASE,
)
_CARD_NUMBER_PATTERN = re.compile(r"\b(?:\d[ -]?){12,15}(\d{4})\b")


def scrub(message: str) -> str:
    """Redact bearer tokens and mask card numbers down to their last four digits."""
    message = _SENSITIVE_PATTERN.sub("**REDACTED**", message)
    return _CARD_NUMBER_PATTERN.sub(r"**** \1", message)


class SensitiveFilter(logging.Filter):
    """Apply :func:`scrub` to log messages and string arguments."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = scrub(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(
                scrub(arg) if isinstance(arg, str) else arg for arg in record.args
            )
        return True


def install_sensitive_filter(*logger_names: str) -> None:
    """Attach a single SensitiveFilter to each named logger."""
    for name in logger_names:
        target = logging.getLogger(name)
        if not any(isinstance(flt, SensitiveFilter) for flt in target.filters):
            target.addFilter(SensitiveFilter())


__all__ = ["SensitiveFilter", "install_sensitive_filter", "scrub"]
