from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

# Jira-style issue keys: PROJECT-NUMBER
ISSUE_KEY_RE = re.compile(r'^[A-Z]+-[0-9]+$')

RawIssue = dict[str, Any]
RemoteLink = dict[str, Any]


def is_issue_key(key: object) -> bool:
    return isinstance(key, str) and ISSUE_KEY_RE.match(key) is not None


@dataclass(frozen=True)
class VisibilityDecision:
    """Whether a linked issue may be disclosed.

    A decision is visible exactly when it carries the fetched issue.
    """

    key: str
    issue: RawIssue | None = None

    @property
    def visible(self) -> bool:
        return self.issue is not None

    @classmethod
    def disclose(cls, key: str, issue: RawIssue) -> VisibilityDecision:
        return cls(key=key, issue=issue)

    @classmethod
    def suppress(cls, key: str) -> VisibilityDecision:
        return cls(key=key)


@dataclass
class SanitizedIssue:
    """Redacted projection of an issue plus its allowed remote links."""

    issue: dict[str, Any]
    remotelinks: list[RemoteLink] = field(default_factory=list)

    @property
    def key(self) -> str:
        return str(self.issue.get('key', ''))

    @property
    def fields(self) -> dict[str, Any]:
        return self.issue.get('fields', {})

    def to_dict(self) -> dict[str, Any]:
        return {'issue': self.issue, 'remotelinks': self.remotelinks}


__all__ = [
    'ISSUE_KEY_RE',
    'RawIssue',
    'RemoteLink',
    'SanitizedIssue',
    'VisibilityDecision',
    'is_issue_key',
]
