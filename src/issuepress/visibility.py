"""Related-issue visibility resolution.

Access to issues is restricted to those carrying the public label. That
includes related issues: a link may only disclose the existence and summary
of an issue that is itself public. Each distinct related key is fetched once,
all fetches run concurrently, and the call returns once every fetch has
settled. A failed fetch suppresses that one issue; its siblings carry on.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable, Mapping
from typing import Any

from .config import PublishConfig
from .errors import redact
from .logging import StructuredLogger, get_logger
from .models import RawIssue, VisibilityDecision, is_issue_key

FetchIssue = Callable[[str], Any]

_LINK_ENDPOINTS = ('outwardIssue', 'inwardIssue')


def is_public(issue: Mapping[str, Any], config: PublishConfig) -> bool:
    """Whether ``issue`` may be published under ``config``."""
    if config.unrestricted:
        return True
    labels = (issue.get('fields') or {}).get('labels') or []
    return config.public_label in labels


def related_keys(issue: Mapping[str, Any]) -> list[str]:
    """Distinct keys of linked issues in first-seen order.

    An issue may be linked more than once, e.g. both "relates to" and
    "duplicates" the same other issue.
    """
    keys: dict[str, None] = {}
    for link in (issue.get('fields') or {}).get('issuelinks') or []:
        for side in _LINK_ENDPOINTS:
            endpoint = link.get(side)
            if endpoint and endpoint.get('key'):
                keys.setdefault(str(endpoint['key']), None)
    return list(keys)


async def _fetch_one(fetch: FetchIssue, key: str) -> Any:
    if inspect.iscoroutinefunction(fetch):
        return await fetch(key)
    # Blocking fetchers run in a worker thread so the fan-out stays concurrent
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, fetch, key)


async def resolve_related(
    issue: Mapping[str, Any],
    fetch: FetchIssue,
    config: PublishConfig,
    logger: StructuredLogger | None = None,
) -> dict[str, VisibilityDecision]:
    """Decide, per related key, whether the linked issue may be disclosed."""
    log = logger or get_logger()
    keys = related_keys(issue)
    decisions: dict[str, VisibilityDecision] = {}

    candidates: list[str] = []
    for key in keys:
        if is_issue_key(key):
            candidates.append(key)
        else:
            log.debug('related issue key malformed', related=key)
            decisions[key] = VisibilityDecision.suppress(key)

    results = await asyncio.gather(
        *(_fetch_one(fetch, key) for key in candidates), return_exceptions=True
    )

    for key, result in zip(candidates, results):
        if isinstance(result, Exception):
            log.warning('related issue fetch failed', related=key, error=redact(str(result)))
            decisions[key] = VisibilityDecision.suppress(key)
        elif isinstance(result, BaseException):
            raise result
        elif not isinstance(result, dict):
            log.warning('related issue fetch returned no record', related=key)
            decisions[key] = VisibilityDecision.suppress(key)
        elif is_public(result, config):
            decisions[key] = VisibilityDecision.disclose(key, result)
        else:
            log.debug('related issue not public', issue=issue.get('key'), related=key)
            decisions[key] = VisibilityDecision.suppress(key)

    return {key: decisions[key] for key in keys}


def resolve_related_sync(
    issue: RawIssue,
    fetch: FetchIssue,
    config: PublishConfig,
    logger: StructuredLogger | None = None,
) -> dict[str, VisibilityDecision]:
    return asyncio.run(resolve_related(issue, fetch, config, logger))


__all__ = [
    'FetchIssue',
    'is_public',
    'related_keys',
    'resolve_related',
    'resolve_related_sync',
]
