"""Issue publishing pipeline.

``IssuePublisher`` ties the pieces together for one already-fetched primary
issue:

1. resolve which linked issues may be disclosed (concurrent fetches);
2. fetch the issue's remote links and keep only allowed hosts;
3. project the raw record onto the publishable field set;
4. render the sanitized record as an HTML fragment or JSON.

Fetching the primary issue and deciding what to do when that fails is the
caller's concern.
"""

from __future__ import annotations

import asyncio
from typing import Any

from .assemble import render_issue
from .backends import Backend
from .config import PublishConfig
from .converters import MarkupConverter, default_converter
from .errors import classify_error
from .logging import StructuredLogger, get_logger
from .models import RawIssue, RemoteLink, SanitizedIssue
from .projector import filter_remote_links, project, summarize
from .visibility import is_public, resolve_related


class IssuePublisher:
    def __init__(
        self,
        backend: Backend,
        config: PublishConfig,
        converter: MarkupConverter | None = None,
        logger: StructuredLogger | None = None,
    ) -> None:
        self.backend = backend
        self.config = config
        self.logger = logger or get_logger()
        self.converter = converter or default_converter(self.logger)
        if config.unrestricted:
            self.logger.warning('unrestricted operation enabled')

    def is_public(self, issue: RawIssue) -> bool:
        return is_public(issue, self.config)

    async def _remote_links(self, issue: RawIssue) -> list[RemoteLink]:
        issue_id = issue.get('id')
        if issue_id is None:
            return []
        loop = asyncio.get_running_loop()
        try:
            links = await loop.run_in_executor(
                None, self.backend.fetch_remote_links, str(issue_id)
            )
        except Exception as exc:
            info = classify_error(exc)
            self.logger.warning(
                'remote link fetch failed',
                issue_id=issue_id,
                error=info.message,
                category=info.category,
            )
            return []
        return list(links)

    async def sanitize(self, issue: RawIssue) -> SanitizedIssue:
        decisions, links = await asyncio.gather(
            resolve_related(issue, self.backend.fetch_issue, self.config, self.logger),
            self._remote_links(issue),
        )
        allowed = filter_remote_links(links, self.config)
        return project(issue, decisions, allowed, self.config, self.logger)

    async def render_html(self, issue: RawIssue) -> str:
        key = str(issue.get('key'))
        with self.logger.timed_operation('render_issue', issue=key, output='html'):
            sanitized = await self.sanitize(issue)
            html = render_issue(sanitized, self.config, self.converter)
        self.logger.log_issue('render', key, output='html', backend=self.backend.name)
        return html

    async def render_json(self, issue: RawIssue) -> dict[str, Any]:
        key = str(issue.get('key'))
        with self.logger.timed_operation('render_issue', issue=key, output='json'):
            sanitized = await self.sanitize(issue)
        self.logger.log_issue('render', key, output='json', backend=self.backend.name)
        return sanitized.to_dict()

    def summary(self, issue: RawIssue) -> dict[str, Any]:
        return summarize(issue, self.config)

    def render_html_sync(self, issue: RawIssue) -> str:
        return asyncio.run(self.render_html(issue))

    def render_json_sync(self, issue: RawIssue) -> dict[str, Any]:
        return asyncio.run(self.render_json(issue))


__all__ = ['IssuePublisher']
