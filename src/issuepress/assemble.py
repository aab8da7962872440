"""HTML fragment for a sanitized issue.

The fragment has no surrounding document; the caller wraps it in whatever
page shell it serves. Every value copied from the record is escaped here.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from .config import PublishConfig
from .converters import MarkupConverter, format_markup
from .entities import encode
from .links import render_link
from .models import SanitizedIssue

_TIMESTAMP_FORMATS = ('%Y-%m-%dT%H:%M:%S.%f%z', '%Y-%m-%dT%H:%M:%S%z')


def iso_timestamp(value: str) -> str:
    """Render a tracker timestamp as ISO-8601 UTC with milliseconds.

    Values that do not parse are returned unchanged.
    """
    parsed: datetime | None = None
    for fmt in _TIMESTAMP_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
            break
        except ValueError:
            continue
    if parsed is None:
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return value
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    parsed = parsed.astimezone(timezone.utc)
    return parsed.strftime('%Y-%m-%dT%H:%M:%S.') + f'{parsed.microsecond // 1000:03d}Z'


def issue_title(issue: Mapping[str, Any]) -> str:
    """Plain-text page title: ``KEY: summary``."""
    out = str(issue.get('key', ''))
    summary = (issue.get('fields') or {}).get('summary')
    if summary:
        out += ': ' + summary
    return out


def label_link(label: str, config: PublishConfig, bold: bool = False) -> str:
    text = encode(label)
    if bold:
        text = f'<b>{text}</b>'
    return f'<a href="{encode(config.label_url_base + label)}">{text}</a>'


def render_table(heading: str, rows: Sequence[tuple[str, str]]) -> str:
    """Heading plus a two-column table, or nothing when there are no rows.

    Row values must already be escaped.
    """
    if not rows:
        return ''
    out = [f'<h2>{heading}</h2>', '<table>']
    for name, value in rows:
        out.append(f'<tr><th><b>{name}</b></th><td>{value}</td></tr>')
    out.append('</table>')
    return '\n'.join(out) + '\n'


def _details(fields: Mapping[str, Any]) -> list[tuple[str, str]]:
    rows: list[tuple[str, str]] = []
    for fname, label in (('issuetype', 'Issue Type:'), ('priority', 'Priority:'), ('status', 'Status:')):
        name = (fields.get(fname) or {}).get('name')
        if name:
            rows.append((label, encode(name)))
    for fname, label in (('created', 'Created at:'), ('updated', 'Updated at:')):
        if fields.get(fname):
            rows.append((label, encode(iso_timestamp(fields[fname]))))
    return rows


def _people(fields: Mapping[str, Any]) -> list[tuple[str, str]]:
    rows: list[tuple[str, str]] = []
    for fname, label in (('creator', 'Created by:'), ('reporter', 'Reported by:'), ('assignee', 'Assigned to:')):
        display = (fields.get(fname) or {}).get('displayName')
        if display:
            rows.append((label, encode(display)))
    return rows


def _resolution(fields: Mapping[str, Any]) -> str:
    resolution = fields.get('resolution')
    if not resolution:
        return ''
    out = '<h2>Resolution</h2>\n'
    out += f"<p><b>{encode(resolution.get('name'))}:</b>"
    if resolution.get('description'):
        out += ' ' + encode(resolution['description'])
    out += '<br>\n'
    if fields.get('resolutiondate'):
        out += f"(Resolution Date: {encode(iso_timestamp(fields['resolutiondate']))})"
    return out + '</p>\n'


def _fix_versions(fields: Mapping[str, Any]) -> str:
    versions = fields.get('fixVersions') or []
    if not versions:
        return ''
    out = '<h2>Fix Versions</h2>\n'
    for fv in versions:
        out += f"<p><b>{encode(fv.get('name'))}</b>"
        if fv.get('releaseDate'):
            out += f" (Release Date: {encode(fv['releaseDate'])})"
        out += '</p>\n'
    return out


def _related_issues(fields: Mapping[str, Any], config: PublishConfig) -> str:
    items: list[str] = []
    for link in fields.get('issuelinks') or []:
        link_type = link.get('type') or {}
        for side, verb in (('outwardIssue', 'outward'), ('inwardIssue', 'inward')):
            endpoint = link.get(side)
            if not endpoint:
                continue
            key = endpoint.get('key') or ''
            summary = (endpoint.get('fields') or {}).get('summary')
            items.append(
                f'<li>{encode(link_type.get(verb))} '
                f'<a href="{encode(config.issue_url_base + key)}">{encode(key)}</a> '
                f'{encode(summary)}</li>'
            )
    if not items:
        return ''
    return '<h2>Related Issues</h2>\n<p><ul>' + '\n'.join(items) + '</ul></p>\n'


def _related_links(remotelinks: Sequence[Mapping[str, Any]]) -> str:
    if not remotelinks:
        return ''
    out = '<h2>Related Links</h2>\n<p><ul>\n'
    for rl in remotelinks:
        obj = rl.get('object') or {}
        url = obj.get('url') or ''
        out += f"<li>{render_link(url, obj.get('title') or url)}</li>\n"
    return out + '</ul></p>\n'


def _comments(fields: Mapping[str, Any], converter: MarkupConverter | None) -> str:
    comment = fields.get('comment')
    if not comment:
        return ''
    out = '<h2>Comments</h2>\n'
    for i, com in enumerate(comment.get('comments') or []):
        if i != 0:
            out += '<hr>\n'
        author = (com.get('author') or {}).get('displayName') or 'Unknown'
        out += '<div>\n<b>'
        out += f'<a name="comment-{i}"></a>'
        out += f'Comment by {encode(author)}<br>\n'
        if com.get('created'):
            out += f"Created at {encode(iso_timestamp(com['created']))}<br>\n"
        if com.get('updated') and com.get('updated') != com.get('created'):
            out += f"Updated at {encode(iso_timestamp(com['updated']))}<br>\n"
        out += '</b>'
        out += format_markup(com.get('body'), converter)
        out += '</div>\n'
    return out


def render_issue(
    sanitized: SanitizedIssue,
    config: PublishConfig,
    converter: MarkupConverter | None = None,
) -> str:
    """Render the full issue fragment from a sanitized record."""
    issue = sanitized.issue
    fields = sanitized.fields

    out = f'<h1>{encode(issue_title(issue))}</h1>\n'
    out += render_table('Details', _details(fields))
    out += render_table('People', _people(fields))
    out += _resolution(fields)
    out += _fix_versions(fields)
    out += _related_issues(fields, config)
    out += _related_links(sanitized.remotelinks)

    labels = [label_link(lbl, config) for lbl in fields.get('labels') or []]
    if labels:
        out += '<h2>Labels</h2>\n<p>' + ', '.join(labels) + '</p>\n'

    if fields.get('description'):
        out += '<h2>Description</h2>\n<div>'
        out += format_markup(fields['description'], converter)
        out += '</div>\n'

    out += _comments(fields, converter)
    return out


__all__ = ['iso_timestamp', 'issue_title', 'label_link', 'render_issue', 'render_table']
