"""Markup converter selection.

Two converters share one capability, ``convert(text) -> html``:

- ``StrictConverter`` translates tracker markup to Markdown, renders it with
  a CommonMark parser, runs the result through an HTML sanitizer and
  entity-encodes the quotes the sanitizer leaves in text;
- ``FallbackConverter`` is the hand-written best-effort converter in
  :mod:`issuepress.markup`.

``PreferredConverter`` tries the first and falls back to the second when it
raises MarkupParseError.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Protocol

import nh3
from jira2markdown import convert as jira_to_markdown
from markdown_it import MarkdownIt

from . import markup
from .errors import InputMalformedError, MarkupParseError
from .links import normalize_url
from .logging import StructuredLogger, get_logger

# Allowed HTML tags for strict rendering
ALLOWED_TAGS = {
    "p",
    "br",
    "strong",
    "b",
    "em",
    "i",
    "s",
    "del",
    "ul",
    "ol",
    "li",
    "code",
    "pre",
    "blockquote",
    "a",
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "hr",
    "table",
    "thead",
    "tbody",
    "tr",
    "th",
    "td",
}

# Allowed attributes per tag
ALLOWED_ATTRIBUTES = {
    "a": {"href", "rel", "target"},
    "code": {"class"},
    "th": {"align"},
    "td": {"align"},
}


_LIST_ITEM_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s")
_FENCES = ("```", "~~~")

# A serialized tag (attribute values are always double-quoted) or a quote
# character in text content
_TAG_OR_TEXT_QUOTE_RE = re.compile(r"(<[^>\"]*(?:\"[^\"]*\"[^>\"]*)*>)|([\"'])")
_TEXT_QUOTE_ENTITIES = {'"': "&#34;", "'": "&#39;"}


class MarkupConverter(Protocol):
    def convert(self, text: str) -> str:
        """Return an HTML fragment for ``text``; may raise MarkupParseError."""
        ...


def _render_link_open(self: Any, tokens: Any, idx: int, options: Any, env: Any) -> str:
    token = tokens[idx]
    href = token.attrGet("href")
    try:
        token.attrSet("href", normalize_url(str(href or "")))
    except InputMalformedError:
        token.attrs.pop("href", None)
    token.attrSet("target", "_blank")
    token.attrSet("rel", "noopener noreferrer")
    return str(self.renderToken(tokens, idx, options, env))


def _build_markdown() -> MarkdownIt:
    # - html disabled: raw tags in issue text are shown, not interpreted
    # - breaks: single newlines become <br>, as tracker users expect
    md = MarkdownIt("commonmark", {"html": False, "breaks": True}).enable(
        ["table", "strikethrough"]
    )
    md.add_render_rule("link_open", _render_link_open)
    return md


def separate_lists(markdown: str) -> str:
    """End every list before the first line that is not a list item.

    Markdown would otherwise fold such a line into the last item as a lazy
    continuation. The separated line loses its indentation so it cannot
    become an indented code block or a nested paragraph.
    """
    out: list[str] = []
    in_list = False
    in_fence = False
    for line in markdown.split("\n"):
        fence = line.lstrip().startswith(_FENCES)
        if in_fence:
            # Fenced code is copied verbatim
            out.append(line)
            in_fence = not fence
            continue
        if _LIST_ITEM_RE.match(line):
            in_list = True
        elif in_list:
            if line.strip():
                out.append("")
                line = line.lstrip()
            in_list = False
        in_fence = fence
        out.append(line)
    return "\n".join(out)


def escape_text_quotes(html: str) -> str:
    """Entity-encode quote characters outside tags.

    The sanitizer re-serializes text nodes escaping only ``&``, ``<`` and
    ``>``.
    """
    return _TAG_OR_TEXT_QUOTE_RE.sub(
        lambda m: m.group(1) or _TEXT_QUOTE_ENTITIES[m.group(2)], html
    )


class StrictConverter:
    def __init__(self) -> None:
        self._md = _build_markdown()

    def convert(self, text: str) -> str:
        try:
            rendered = self._md.render(separate_lists(jira_to_markdown(text)))
            cleaned = nh3.clean(
                rendered,
                tags=ALLOWED_TAGS,
                attributes=ALLOWED_ATTRIBUTES,
                link_rel=None,
            )
            return escape_text_quotes(cleaned)
        except Exception as exc:
            raise MarkupParseError(f"strict markup conversion failed: {exc}") from exc


class FallbackConverter:
    def convert(self, text: str) -> str:
        return markup.convert(text)


@dataclass
class PreferredConverter:
    primary: MarkupConverter
    fallback: MarkupConverter
    logger: StructuredLogger | None = None

    def convert(self, text: str) -> str:
        try:
            return self.primary.convert(text)
        except MarkupParseError as exc:
            (self.logger or get_logger()).warning(
                "strict markup conversion failed",
                error=str(exc),
                markup_length=len(text),
            )
        return self.fallback.convert(text)


def default_converter(logger: StructuredLogger | None = None) -> MarkupConverter:
    return PreferredConverter(StrictConverter(), FallbackConverter(), logger)


def format_markup(text: str | None, converter: MarkupConverter | None = None) -> str:
    if not text:
        return ""
    return (converter or default_converter()).convert(text)


__all__ = [
    "ALLOWED_ATTRIBUTES",
    "ALLOWED_TAGS",
    "FallbackConverter",
    "MarkupConverter",
    "PreferredConverter",
    "StrictConverter",
    "default_converter",
    "escape_text_quotes",
    "format_markup",
    "separate_lists",
]
