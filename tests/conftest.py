"""Pytest configuration for issuepress tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install (`pip install -e .`).
"""

from __future__ import annotations

import sys
from copy import deepcopy
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from issuepress.config import PublishConfig  # noqa: E402


class RecordingLogger:
    """Stand-in for StructuredLogger that remembers every call."""

    def __init__(self) -> None:
        self.records: list[tuple[str, str, dict[str, Any]]] = []

    def _record(self, level: str, message: str, **kw: Any) -> None:
        self.records.append((level, message, kw))

    def debug(self, message: str, **kw: Any) -> None:
        self._record("debug", message, **kw)

    def info(self, message: str, **kw: Any) -> None:
        self._record("info", message, **kw)

    def warning(self, message: str, **kw: Any) -> None:
        self._record("warning", message, **kw)

    def error(self, message: str, **kw: Any) -> None:
        self._record("error", message, **kw)

    def log_error(self, message: str, error: str | None = None, **kw: Any) -> None:
        self._record("error", message, error=error, **kw)

    def log_operation(self, operation: str, **kw: Any) -> None:
        self._record("info", f"Operation: {operation}", **kw)

    def log_issue(self, action: str, issue_key: str, **kw: Any) -> None:
        self._record("info", f"issue {action} {issue_key}", **kw)

    def log_performance(self, operation: str, duration_ms: float, **kw: Any) -> None:
        self._record("info", f"Performance: {operation}", **kw)

    def timed_operation(self, operation: str, **kw: Any) -> Any:
        from contextlib import nullcontext

        self.log_operation(f"{operation}_start", **kw)
        return nullcontext()

    def messages(self, level: str | None = None) -> list[str]:
        return [m for lvl, m, _ in self.records if level is None or lvl == level]


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def publish_config() -> PublishConfig:
    return PublishConfig(
        public_label="public",
        allowed_labels=("bhyve", "networking"),
        allowed_domains=("github.com", "cr.example.org"),
        web_url_base="https://issues.example.org/view/",
    )


RAW_ISSUE: dict[str, Any] = {
    "id": "10001",
    "key": "OS-100",
    "self": "https://jira.internal/rest/api/2/issue/10001",
    "expand": "renderedFields,names",
    "fields": {
        "summary": "zone fails to boot",
        "description": "h2. Problem\nThe zone *does not* boot.",
        "labels": ["public", "bhyve", "customer-acme"],
        "issuetype": {
            "id": "1",
            "name": "Bug",
            "description": "A problem",
            "iconUrl": "https://jira.internal/icon.png",
            "self": "https://jira.internal/rest/api/2/issuetype/1",
        },
        "priority": {"id": "3", "name": "Major", "iconUrl": "https://jira.internal/p.png"},
        "status": {"id": "5", "name": "Resolved", "statusCategory": {"id": 3}},
        "resolution": {"id": "1", "name": "Fixed", "description": "A fix was made"},
        "resolutiondate": "2020-03-04T05:06:07.000+0000",
        "created": "2020-01-02T03:04:05.000+0000",
        "updated": "2020-03-04T05:06:07.000+0000",
        "creator": {
            "name": "jdoe",
            "key": "jdoe",
            "emailAddress": "jdoe@example.com",
            "displayName": "Jo Doe",
            "avatarUrls": {"48x48": "https://jira.internal/a.png"},
            "timeZone": "UTC",
            "active": True,
        },
        "reporter": {"name": "jdoe", "displayName": "Jo Doe"},
        "assignee": None,
        "customfield_10100": "internal cost centre 42",
        "fixVersions": [
            {
                "id": "20",
                "name": "2020-release",
                "archived": False,
                "released": True,
                "releaseDate": "2020-03-05",
                "self": "https://jira.internal/rest/api/2/version/20",
                "description": "secret roadmap",
            }
        ],
        "issuelinks": [
            {
                "id": "900",
                "self": "https://jira.internal/rest/api/2/issueLink/900",
                "type": {
                    "id": "10000",
                    "name": "Relates",
                    "inward": "relates to",
                    "outward": "relates to",
                    "self": "https://jira.internal/x",
                },
                "outwardIssue": {
                    "id": "10002",
                    "key": "OS-200",
                    "fields": {"summary": "public neighbour", "status": {"name": "Open"}},
                },
            },
            {
                "id": "901",
                "type": {"id": "10001", "name": "Duplicate", "inward": "is duplicated by", "outward": "duplicates"},
                "inwardIssue": {
                    "id": "10003",
                    "key": "OS-300",
                    "fields": {"summary": "private neighbour"},
                },
            },
            {
                "id": "902",
                "type": {"id": "10001", "name": "Duplicate", "inward": "is duplicated by", "outward": "duplicates"},
                "outwardIssue": {
                    "id": "10002",
                    "key": "OS-200",
                    "fields": {"summary": "public neighbour"},
                },
            },
        ],
        "comment": {
            "startAt": 0,
            "maxResults": 3,
            "total": 3,
            "comments": [
                {
                    "id": "1",
                    "created": "2020-01-03T00:00:00.000+0000",
                    "updated": "2020-01-03T00:00:00.000+0000",
                    "body": "looking into it",
                    "author": {"name": "jdoe", "displayName": "Jo Doe", "avatarUrls": {}},
                    "updateAuthor": {"name": "jdoe", "displayName": "Jo Doe"},
                    "self": "https://jira.internal/comment/1",
                },
                {
                    "id": "2",
                    "created": "2020-01-04T00:00:00.000+0000",
                    "body": "customer is ACME",
                    "author": {"name": "support", "displayName": "Support"},
                    "visibility": {"type": "role", "value": "Developers"},
                },
                {
                    "id": "3",
                    "created": "2020-01-05T00:00:00.000+0000",
                    "updated": "2020-01-06T00:00:00.000+0000",
                    "body": "fixed in {{abc123}}",
                    "author": {"name": "rsmith", "displayName": "Ro Smith"},
                },
            ],
        },
    },
}


@pytest.fixture
def raw_issue() -> dict[str, Any]:
    return deepcopy(RAW_ISSUE)


def linked_issue(key: str, labels: list[str]) -> dict[str, Any]:
    return {"id": key.split("-")[1], "key": key, "fields": {"summary": f"summary of {key}", "labels": labels}}


@pytest.fixture
def make_linked_issue() -> Any:
    return linked_issue
