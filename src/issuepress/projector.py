"""Field allowlist projection.

A raw tracker record carries far more than we are willing to publish. The
projector copies only explicitly enumerated fields and sub-keys into a fresh
record; anything not listed here never reaches the output.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import urlsplit

from .config import PublishConfig
from .errors import ConsistencyWarning
from .logging import StructuredLogger, get_logger
from .models import RawIssue, RemoteLink, SanitizedIssue, VisibilityDecision

# Keys worth keeping from object-valued fields (type, status, people, ...)
ISSUE_OBJECT_KEYS = ('id', 'name', 'description', 'key', 'emailAddress', 'displayName')

# Release versions have their own set of meaningful properties
RELEASE_OBJECT_KEYS = ('id', 'name', 'archived', 'released', 'releaseDate')

PERSON_KEYS = ('name', 'key', 'emailAddress', 'displayName')

LINK_TYPE_KEYS = ('id', 'name', 'inward', 'outward')

COMMENT_KEYS = ('id', 'created', 'updated', 'body')


def _pick(source: Mapping[str, Any], keys: Iterable[str]) -> dict[str, Any]:
    return {k: source[k] for k in keys if source.get(k) is not None}


def _project_endpoint(endpoint: Mapping[str, Any]) -> dict[str, Any]:
    return {
        'id': endpoint.get('id'),
        'key': endpoint.get('key'),
        'fields': {'summary': (endpoint.get('fields') or {}).get('summary')},
    }


def _is_visible(endpoint: Any, visible_links: Mapping[str, VisibilityDecision]) -> bool:
    if not endpoint:
        return False
    decision = visible_links.get(endpoint.get('key'))
    return decision is not None and decision.visible


def project_issue_links(
    links: Iterable[Mapping[str, Any]], visible_links: Mapping[str, VisibilityDecision]
) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for link in links:
        projected: dict[str, Any] = {
            'id': link.get('id'),
            'type': _pick(link.get('type') or {}, LINK_TYPE_KEYS),
        }
        keep = False
        for side in ('outwardIssue', 'inwardIssue'):
            endpoint = link.get(side)
            if _is_visible(endpoint, visible_links):
                projected[side] = _project_endpoint(endpoint)
                keep = True
        if keep:
            out.append(projected)
    return out


def project_comments(
    comment: Mapping[str, Any], issue_key: str, logger: StructuredLogger | None = None
) -> dict[str, Any]:
    comments = comment.get('comments') or []
    total = comment.get('total')
    max_results = comment.get('maxResults')
    if (total is not None and total != len(comments)) or (
        max_results is not None and total is not None and max_results != total
    ):
        (logger or get_logger()).warning(
            'comment count mismatch',
            issue=issue_key,
            total=total,
            enumerated=len(comments),
            max_results=max_results,
            category=ConsistencyWarning.__name__,
        )

    kept: list[dict[str, Any]] = []
    for com in comments:
        if com.get('visibility'):
            # Any visibility rule at all hides the whole comment
            continue
        out = _pick(com, COMMENT_KEYS)
        for person in ('author', 'updateAuthor'):
            if com.get(person):
                out[person] = _pick(com[person], PERSON_KEYS)
        kept.append(out)
    return {'maxResults': len(kept), 'total': len(kept), 'startAt': 0, 'comments': kept}


def project_remote_links(links: Iterable[Mapping[str, Any]]) -> list[RemoteLink]:
    out: list[RemoteLink] = []
    for rl in links:
        obj = rl.get('object') or {}
        out.append({'id': rl.get('id'), 'object': {'url': obj.get('url'), 'title': obj.get('title')}})
    return out


def project(
    issue: RawIssue,
    visible_links: Mapping[str, VisibilityDecision],
    remote_links: Iterable[Mapping[str, Any]],
    config: PublishConfig,
    logger: StructuredLogger | None = None,
) -> SanitizedIssue:
    """Build the publishable projection of ``issue``.

    ``visible_links`` comes from the visibility resolver and
    ``remote_links`` should already be filtered by filter_remote_links().
    """
    fields: Mapping[str, Any] = issue.get('fields') or {}
    out_fields: dict[str, Any] = {'summary': fields.get('summary')}

    def copy_obj(fname: str) -> None:
        if fields.get(fname):
            out_fields[fname] = _pick(fields[fname], ISSUE_OBJECT_KEYS)

    def copy_simple(fname: str) -> None:
        if fields.get(fname):
            out_fields[fname] = fields[fname]

    copy_obj('issuetype')
    copy_obj('priority')
    copy_obj('status')

    copy_simple('created')
    copy_simple('updated')

    copy_obj('creator')
    copy_obj('reporter')
    copy_obj('assignee')

    copy_obj('resolution')
    copy_simple('resolutiondate')

    if fields.get('fixVersions') is not None:
        out_fields['fixVersions'] = [_pick(fv, RELEASE_OBJECT_KEYS) for fv in fields['fixVersions']]

    if fields.get('issuelinks') is not None:
        out_fields['issuelinks'] = project_issue_links(fields['issuelinks'], visible_links)

    out_fields['labels'] = [lbl for lbl in fields.get('labels') or [] if config.is_allowed_label(lbl)]

    copy_simple('description')

    if fields.get('comment'):
        out_fields['comment'] = project_comments(
            fields['comment'], str(issue.get('key')), logger
        )

    sanitized = {'id': issue.get('id'), 'key': issue.get('key'), 'fields': out_fields}
    return SanitizedIssue(issue=sanitized, remotelinks=project_remote_links(remote_links))


def filter_remote_links(
    links: Iterable[Mapping[str, Any]], config: PublishConfig
) -> list[Mapping[str, Any]]:
    """Keep remote links whose host is explicitly allowed.

    Links to other hosts (signed object-store URLs, internal tools) are
    dropped, as are links whose URL has no host or cannot be parsed.
    """
    kept: list[Mapping[str, Any]] = []
    for link in links:
        url = (link.get('object') or {}).get('url')
        if not isinstance(url, str):
            continue
        try:
            hostname = urlsplit(url.strip()).hostname
        except ValueError:
            continue
        if hostname and config.is_allowed_domain(hostname):
            kept.append(link)
    return kept


def summarize(issue: RawIssue, config: PublishConfig) -> dict[str, Any]:
    """Compact JSON form of an issue: key, summary and public page URL."""
    key = issue.get('key')
    return {
        'id': key,
        'summary': (issue.get('fields') or {}).get('summary'),
        'web_url': f"{config.web_url_base.rstrip('/')}/{key}",
    }


__all__ = [
    'ISSUE_OBJECT_KEYS',
    'PERSON_KEYS',
    'RELEASE_OBJECT_KEYS',
    'filter_remote_links',
    'project',
    'project_comments',
    'project_issue_links',
    'project_remote_links',
    'summarize',
]
