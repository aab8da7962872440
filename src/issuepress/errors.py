"""Error taxonomy & redaction for the publishing pipeline.

Every failure in the pipeline falls into one of four buckets:

- input malformed (bad URL, odd markup): degraded to escaped literal output
  and never propagated past the converter or link renderer;
- upstream unavailable (a backend fetch failed): treated as suppression and
  logged, never fatal to the overall render;
- invariant violation (an impossible converter state): a programming defect,
  fatal to the current render only;
- consistency warning (declared vs. enumerated counts disagree): logged only.

Public API:
- classify_error(exc) -> ErrorInfo
- redact(text) -> str
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

# Credentials that backends and URLs can leak into log lines
_SENSITIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"(?<=://)[^/@\s:]+:[^/@\s]+@"), "<redacted>@"),  # user:pass@host
    (
        re.compile(
            r"(?i)(?<=[?&])(signature|sig|token|access_token|api_key|apikey|password)=[^&#\s]+"
        ),
        r"\1=<redacted>",
    ),
    (re.compile(r"(?i)\b(authorization:\s*basic)\s+[A-Za-z0-9+/=]+"), r"\1 <redacted>"),
]


class PublishError(RuntimeError):
    """Base class for pipeline failures."""


class InputMalformedError(PublishError):
    """Untrusted input (a URL, a markup fragment) could not be interpreted."""


class MarkupParseError(InputMalformedError):
    """A markup converter gave up on its input."""


class UpstreamUnavailableError(PublishError):
    """A backend request failed or returned something unusable."""

    def __init__(self, message: str, *, status: int | None = None):
        super().__init__(message)
        self.status = status


class NotFoundError(UpstreamUnavailableError):
    """The backend has no record for the requested key."""


class MarkupStateError(AssertionError):
    """The markup state machine reached a state it has no rule for."""


class ConsistencyWarning(UserWarning):
    """Backend-declared totals disagree with the records actually delivered."""


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    """Mask credentials embedded in URLs, query strings and auth headers."""
    if not text:
        return text
    redacted = text
    for pat, replacement in _SENSITIVE_PATTERNS:
        redacted = pat.sub(replacement, redacted)
    return redacted


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception.

    Taxonomy classes win over message heuristics; only otherwise untyped
    errors are inspected for network keywords.
    """
    msg = redact(str(exc)) if exc else ""
    name = exc.__class__.__name__

    if isinstance(exc, NotFoundError):
        return ErrorInfo(
            "upstream.not_found", msg, name, details={"status": exc.status}
        )
    if isinstance(exc, UpstreamUnavailableError):
        return ErrorInfo(
            "upstream.unavailable", msg, name, transient=True, details={"status": exc.status}
        )
    if isinstance(exc, InputMalformedError):
        return ErrorInfo("input.malformed", msg, name)
    if isinstance(exc, MarkupStateError):
        return ErrorInfo("invariant", msg, name)
    low = msg.lower()
    if any(k in low for k in ("timeout", "timed out", "connection reset", "temporarily unavailable")):
        return ErrorInfo("network", msg, name, transient=True)
    return ErrorInfo("generic", msg, name)


__all__ = [
    "ConsistencyWarning",
    "ErrorInfo",
    "InputMalformedError",
    "MarkupParseError",
    "MarkupStateError",
    "NotFoundError",
    "PublishError",
    "UpstreamUnavailableError",
    "classify_error",
    "redact",
]
