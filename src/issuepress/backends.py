from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote

import requests

from .config import ConfigError, ServiceConfig
from .errors import NotFoundError, UpstreamUnavailableError, redact
from .models import RawIssue, RemoteLink, is_issue_key

USER_AGENT = "issuepress/0.1.0"
HTTP_NOT_FOUND = 404
HTTP_ERROR_STATUS = 400


class Backend(Protocol):
    """Source of raw issue records.

    Both methods raise NotFoundError for unknown records and
    UpstreamUnavailableError for anything else that goes wrong.
    """

    name: str

    def fetch_issue(self, key: str) -> RawIssue: ...

    def fetch_remote_links(self, issue_id: str) -> list[RemoteLink]: ...


@dataclass
class JiraBackend:
    """Read-only client for the Jira REST API."""

    url_base: str
    url_path: str
    username: str
    password: str = field(repr=False)
    session: requests.Session | None = None
    timeout: float = 30
    name: str = "jira"
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._session = self.session or requests.Session()
        self._session.auth = (self.username, self.password)
        self._session.headers.setdefault("Accept", "application/json")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    def _url(self, path: str) -> str:
        return "/".join(
            [self.url_base.rstrip("/"), self.url_path.strip("/"), path.lstrip("/")]
        )

    def _get(self, path: str) -> Any:
        url = self._url(path)
        try:
            response = self._session.request(
                "GET",
                url,
                headers=self._session.headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise UpstreamUnavailableError(f"Jira GET {url} failed: {redact(str(exc))}") from exc
        if response.status_code == HTTP_NOT_FOUND:
            raise NotFoundError(f"Jira GET {url} found nothing", status=response.status_code)
        if response.status_code >= HTTP_ERROR_STATUS:
            raise UpstreamUnavailableError(
                f"Jira GET {url} failed with {response.status_code}",
                status=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamUnavailableError(f"Jira GET {url} returned invalid JSON") from exc

    def fetch_issue(self, key: str) -> RawIssue:
        data = self._get(f"issue/{quote(key, safe='')}")
        if not isinstance(data, dict):
            raise UpstreamUnavailableError(f"unexpected issue payload for {key}")
        return data

    def fetch_remote_links(self, issue_id: str) -> list[RemoteLink]:
        data = self._get(f"issue/{quote(str(issue_id), safe='')}/remotelink")
        if not isinstance(data, list):
            raise UpstreamUnavailableError(f"unexpected remote link payload for {issue_id}")
        return [entry for entry in data if isinstance(entry, dict)]


@dataclass
class FilesBackend:
    """Serve issues from a directory of JSON documents.

    Layout: ``issues/<KEY>.json`` and ``remotelinks/<issue id>.json``. An
    issue without a remote link document has no remote links.
    """

    root: Path
    name: str = "files"

    def _load(self, path: Path) -> Any:
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise NotFoundError(f"no such record: {path.name}") from exc
        except (OSError, json.JSONDecodeError) as exc:
            raise UpstreamUnavailableError(f"could not read {path}: {exc}") from exc

    def fetch_issue(self, key: str) -> RawIssue:
        # Keys become file names, so anything not shaped like a key is refused
        if not is_issue_key(key):
            raise NotFoundError(f"invalid issue key {key!r}")
        data = self._load(Path(self.root) / "issues" / f"{key}.json")
        if not isinstance(data, dict):
            raise UpstreamUnavailableError(f"unexpected issue document for {key}")
        return data

    def fetch_remote_links(self, issue_id: str) -> list[RemoteLink]:
        if not str(issue_id).isdigit():
            raise NotFoundError(f"invalid issue id {issue_id!r}")
        try:
            data = self._load(Path(self.root) / "remotelinks" / f"{issue_id}.json")
        except NotFoundError:
            return []
        if not isinstance(data, list):
            raise UpstreamUnavailableError(f"unexpected remote link document for {issue_id}")
        return [entry for entry in data if isinstance(entry, dict)]


def create_backend(config: ServiceConfig, session: requests.Session | None = None) -> Backend:
    """Local store when configured, otherwise the Jira REST API."""
    if config.local_store is not None:
        return FilesBackend(config.local_store)
    if not (config.jira_url_base and config.jira_url_path and config.jira_username and config.jira_password):
        raise ConfigError("Jira backend requires url.base, url.path, username and password")
    return JiraBackend(
        url_base=config.jira_url_base,
        url_path=config.jira_url_path,
        username=config.jira_username,
        password=config.jira_password,
        session=session,
    )


__all__ = ["Backend", "FilesBackend", "JiraBackend", "create_backend"]
