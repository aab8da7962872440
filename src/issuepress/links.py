"""URL normalisation and hardened anchor rendering.

Links inside issue text point at arbitrary third-party sites, and some point
at internal hosts that have public mirrors. Every anchor we emit:

- has its URL rewritten to the public mirror when a rewrite rule matches;
- opens in a new, blank browsing context (``target="_blank"``);
- withholds referrer information and ``window.opener`` access from the
  target page (``rel="noopener noreferrer"``).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import NamedTuple
from urllib.parse import urlsplit, urlunsplit

from .entities import encode
from .errors import InputMalformedError, redact
from .logging import StructuredLogger, get_logger


class RewriteRule(NamedTuple):
    prefix: str
    target_host: str
    target_prefix: str


HOST_REWRITES: Mapping[str, Sequence[RewriteRule]] = {
    'mo.joyent.com': (
        RewriteRule('/illumos-joyent', 'github.com', '/joyent/illumos-joyent'),
        RewriteRule('/smartos-live', 'github.com', '/joyent/smartos-live'),
        RewriteRule('/illumos-live', 'github.com', '/joyent/smartos-live'),
        RewriteRule('/illumos-extra', 'github.com', '/joyent/illumos-extra'),
        RewriteRule('/sdc-napi', 'github.com', '/joyent/sdc-napi'),
    ),
}

SAFE_SCHEMES = frozenset({'', 'http', 'https', 'mailto', 'ftp'})


def normalize_url(
    raw_url: str, rewrites: Mapping[str, Sequence[RewriteRule]] | None = None
) -> str:
    """Return ``raw_url`` trimmed and, for known internal hosts, rewritten.

    Raises InputMalformedError when the URL cannot be parsed or uses a
    scheme we will not link to.
    """
    candidate = (raw_url or '').strip()
    if not candidate:
        raise InputMalformedError('empty url')
    try:
        parts = urlsplit(candidate)
        parts.port  # noqa: B018 - validates the port lazily parsed by urlsplit
    except ValueError as exc:
        raise InputMalformedError(f'unparseable url {candidate!r}: {exc}') from exc
    if parts.scheme.lower() not in SAFE_SCHEMES:
        raise InputMalformedError(f'refusing url scheme {parts.scheme!r}')

    table = HOST_REWRITES if rewrites is None else rewrites
    for rule in table.get(parts.hostname or '', ()):
        if parts.path.startswith(rule.prefix):
            path = rule.target_prefix + parts.path[len(rule.prefix):]
            return urlunsplit(parts._replace(netloc=rule.target_host, path=path))
    return candidate


def anchor(href: str, text_html: str) -> str:
    """Wrap already-escaped ``text_html`` in a hardened anchor for ``href``."""
    return (
        f'<a rel="noopener noreferrer" target="_blank" href="{encode(href)}">'
        f'{text_html}</a>'
    )


def render_link(
    raw_url: str, display_text: str | None = None, logger: StructuredLogger | None = None
) -> str:
    """Render ``display_text`` as a link to ``raw_url``.

    The display text defaults to the URL itself. A malformed URL is logged
    and the display text is returned escaped, without a link.
    """
    text = raw_url if display_text is None else display_text
    try:
        href = normalize_url(raw_url)
    except InputMalformedError as exc:
        (logger or get_logger()).error(
            'url parse error', url=redact(str(raw_url)), error=redact(str(exc))
        )
        return encode(text)
    return anchor(href, encode(text))


__all__ = [
    'HOST_REWRITES',
    'RewriteRule',
    'SAFE_SCHEMES',
    'anchor',
    'normalize_url',
    'render_link',
]
