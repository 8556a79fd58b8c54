"""Map raw transport and server errors to user-facing categories.

Classification is presentation only. Queue and retry decisions never
look at it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum


class ErrorCategory(StrEnum):
    CONNECTIVITY = "connectivity"
    TIMEOUT = "timeout"
    TLS = "tls"
    SERVER = "server"
    GENERIC = "generic"


@dataclass(frozen=True)
class Classification:
    category: ErrorCategory
    message: str
    status_code: str | None = None
    raw: str | None = None


CONNECTIVITY_MARKERS = (
    "unable to resolve host",
    "failed to connect",
    "no address",
    "unknownhost",
    "network is unreachable",
    "enetunreach",
    "enetworkunreach",
    "network unreachable",
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
    "connection refused",
    "all connection attempts failed",
)
TIMEOUT_MARKERS = ("timeout", "timed out")
TLS_MARKERS = ("ssl", "certificate", "handshake")

_SERVER_CODE_RE = re.compile(r"server returned code\s*(\S+)?")

DEFAULT_MESSAGE = "Sync failed"


def classify(raw: str | None) -> Classification:
    """Classify a raw error message, most specific category first."""
    if raw is None or not raw.strip():
        return Classification(ErrorCategory.GENERIC, DEFAULT_MESSAGE, raw=raw)

    text = raw.lower()

    if any(marker in text for marker in CONNECTIVITY_MARKERS):
        return Classification(
            ErrorCategory.CONNECTIVITY, "No connection", raw=raw
        )
    if any(marker in text for marker in TIMEOUT_MARKERS):
        return Classification(
            ErrorCategory.TIMEOUT, "Network timeout", raw=raw
        )
    if any(marker in text for marker in TLS_MARKERS):
        return Classification(
            ErrorCategory.TLS, "Network security error", raw=raw
        )

    match = _SERVER_CODE_RE.search(text)
    if match is not None:
        code = (match.group(1) or "").upper() or None
        message = f"Server error (code {code})" if code else "Server error"
        return Classification(
            ErrorCategory.SERVER, message, status_code=code, raw=raw
        )

    return Classification(
        ErrorCategory.GENERIC, f"Failed: {raw.strip()}", raw=raw
    )


def classify_exception(exc: BaseException) -> Classification:
    return classify(str(exc) or type(exc).__name__)
