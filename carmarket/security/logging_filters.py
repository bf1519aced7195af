"""Logging filters that scrub sensitive content."""

from __future__ import annotations

import logging
import re

_SENSITIVE_PATTERN = re.compile(
    r"(Bearer\s+[\w\.-]+"
    r"|(?:access_token|password|new_password|token)\"?\s*[:=]\s*\"?[^\"\s,}]+"
    r"|whsec_[A-Za-z0-9+/=]+"
    r"|(?:Stripe-Signature|webhook-signature)\"?\s*[:=]\s*\"?[^\"\n]+"
    r"|sk_(?:live|test)_[A-Za-z0-9]+)",
    re.IGNORECASE,
)


def redact(text: str) -> str:
    return _SENSITIVE_PATTERN.sub("**REDACTED**", text)


class SensitiveFilter(logging.Filter):
    """Replace sensitive tokens in log messages with a redaction marker."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact(record.msg)
        if record.args:
            args = record.args if isinstance(record.args, tuple) else (record.args,)
            record.args = tuple(
                redact(arg) if isinstance(arg, str) else arg for arg in args
            )
        return True


__all__ = ["SensitiveFilter", "redact"]
