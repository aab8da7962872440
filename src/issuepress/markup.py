"""Best-effort conversion of tracker wiki markup to HTML.

This is neither rigorous nor particularly compliant; it exists so that an
issue still renders when a stricter interpreter rejects its text. Two levels
cooperate:

- the block scanner groups lines into regions toggled by ``{quote}``,
  ``{panel}``, ``{code}`` and ``{noformat}`` marker lines. Markers do not
  nest: while a region is open, *any* marker closes it.
- the inline parser handles one line at a time: list items, headings,
  ``*bold*``, ``_italic_``, ``{{code}}`` spans and the three link forms.

Inline state that outlives a line (open list, heading of the previous line)
lives in an immutable ``ParserState`` threaded from line to line.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from .entities import encode
from .errors import MarkupStateError
from .links import render_link

MODE_LEADING_SPACES = 'leading_spaces'
MODE_TEXT = 'text'
MODE_LINK_TITLE = 'link_title'
MODE_LINK_URL = 'link_url'
MODE_LINK_USER = 'link_user'
MODE_LINK_ATTACHMENT = 'link_attachment'

_LINK_MODES = frozenset({MODE_LINK_TITLE, MODE_LINK_URL, MODE_LINK_USER, MODE_LINK_ATTACHMENT})

BOLD = 'bold'
ITALIC = 'italic'
CODE = 'code'

_FORMAT_TAGS = {BOLD: 'b', ITALIC: 'i', CODE: 'code'}
_EMPHASIS = {'*': BOLD, '_': ITALIC}
_LIST_MARKERS = {'*': 'ul', '-': 'ul', '#': 'ol'}
_HEADING_LEVELS = frozenset('123456')

PLAIN = 'plain'
QUOTE = 'quote'
PANEL = 'panel'
CODE_BLOCK = 'code'
NOFORMAT = 'noformat'

_MARKER_RE = re.compile(r'^\{(quote|code|panel|noformat)')
_EAT_MARKER_RE = re.compile(r'^\{[^}]*\}?(.*)$')
_LINE_SPLIT_RE = re.compile(r'\r\n|\r|\n')


def _panel_open(*names: str) -> str:
    outer = ' '.join(names)
    inner = ' '.join(f'{name}Content' for name in names)
    return f'<div class="{outer}"><div class="{inner}">'


# kind -> (opening markup, closing markup)
_CONTAINERS: dict[str, tuple[str, str]] = {
    QUOTE: ('<blockquote>\n', '</blockquote>'),
    PANEL: (_panel_open('panel') + '\n', '</div></div>\n'),
    NOFORMAT: (_panel_open('preformatted', 'panel') + '<pre>\n', '</pre></div></div>\n'),
    CODE_BLOCK: (_panel_open('code', 'panel') + '<pre>\n', '</pre></div></div>\n'),
}


@dataclass(frozen=True)
class ParserState:
    """Inline parser state.

    ``mode`` and ``formats`` describe where the last line ended; every line
    starts again in MODE_LEADING_SPACES with an empty format stack. The
    list kind and heading level carry across lines.
    """

    mode: str = MODE_LEADING_SPACES
    formats: tuple[str, ...] = ()
    list_kind: str | None = None
    heading: str | None = None

    @property
    def active_format(self) -> str | None:
        return self.formats[-1] if self.formats else None


@dataclass
class Block:
    kind: str
    lines: list[str] = field(default_factory=list)

    @property
    def literal(self) -> bool:
        return self.kind in (CODE_BLOCK, NOFORMAT)

    @property
    def opening(self) -> str:
        return _CONTAINERS[self.kind][0] if self.kind != PLAIN else ''

    @property
    def closing(self) -> str:
        return _CONTAINERS[self.kind][1] if self.kind != PLAIN else ''


@dataclass
class MarkupDocument:
    blocks: list[Block] = field(default_factory=list)

    def _append(self, kind: str) -> Block:
        block = Block(kind)
        self.blocks.append(block)
        return block


def may_open_format(previous: str) -> bool:
    """Whether ``*`` or ``_`` after ``previous`` may open emphasis.

    Emphasis only opens at the start of a line or after a non-letter, so
    symbols in the middle of a word (``snake_case``, ``a*b``) stay literal.
    """
    return not (previous.isascii() and previous.isalpha())


def close_list(state: ParserState) -> tuple[str, ParserState]:
    if state.list_kind is None:
        return '', state
    return f'</li></{state.list_kind}>', ParserState(heading=state.heading)


def parse_line(line: str, state: ParserState) -> tuple[str, ParserState]:  # noqa: C901
    """Convert a single line of markup, returning its HTML and the next state."""
    if '\n' in line or '\r' in line:
        raise MarkupStateError('parse_line() expects a single line')

    out: list[str] = []
    text: list[str] = []
    mode = MODE_LEADING_SPACES
    formats: list[str] = []
    list_kind = state.list_kind
    heading: str | None = None
    leading_spaces = 0
    item_started = False
    link_start = 0
    link_title: list[str] = []
    link_url: list[str] = []

    def commit_text() -> None:
        if text:
            out.append(encode(''.join(text)))
            text.clear()

    i = 0
    n = len(line)
    while i < n:
        c = line[i]
        nc = line[i + 1] if i + 1 < n else ''
        pc = line[i - 1] if i > 0 else ''

        if mode == MODE_LEADING_SPACES:
            if c == ' ':
                leading_spaces += 1
                i += 1
                continue
            kind = _LIST_MARKERS.get(c)
            if kind is not None and nc == ' ':
                if list_kind == kind:
                    out.append('</li>')
                else:
                    if list_kind is not None:
                        out.append(f'</li></{list_kind}>')
                    out.append(f'<{kind}>')
                list_kind = kind
                out.append('<li>')
                item_started = True
                leading_spaces = 0
                i += 2
                continue
            if list_kind is not None and not item_started:
                out.append(f'</li></{list_kind}>')
                list_kind = None
            # Emit the counted spaces and rescan this character as text
            text.append(' ' * leading_spaces)
            mode = MODE_TEXT
            continue

        if mode == MODE_TEXT:
            top = formats[-1] if formats else None

            if i == 0 and c == 'h' and nc in _HEADING_LEVELS and line[i + 2:i + 3] == '.':
                commit_text()
                heading = f'h{nc}'
                out.append(f'<{heading}>')
                i += 3
                if line[i:i + 1] == ' ':
                    i += 1
                continue

            if c == '[' and top != CODE:
                commit_text()
                link_start = i
                link_title = []
                link_url = []
                if nc == '~':
                    mode = MODE_LINK_USER
                    i += 2
                elif nc == '^':
                    mode = MODE_LINK_ATTACHMENT
                    i += 2
                else:
                    mode = MODE_LINK_TITLE
                    i += 1
                continue

            fmt = _EMPHASIS.get(c)
            if fmt is not None and top != CODE:
                tag = _FORMAT_TAGS[fmt]
                if top == fmt:
                    commit_text()
                    formats.pop()
                    out.append(f'</{tag}>')
                    i += 1
                    continue
                if not formats and may_open_format(pc):
                    commit_text()
                    formats.append(fmt)
                    out.append(f'<{tag}>')
                    i += 1
                    continue

            if c == '{' and nc == '{' and top != CODE:
                commit_text()
                formats.append(CODE)
                out.append('<code>')
                i += 2
                continue

            if top == CODE:
                if c == '\\':
                    text.append(nc or c)
                    i += 2
                    continue
                if c == '}' and nc == '}':
                    commit_text()
                    formats.pop()
                    out.append('</code>')
                    i += 2
                    continue

            text.append(c)
            i += 1
            continue

        if mode == MODE_LINK_TITLE:
            if c == '|':
                mode = MODE_LINK_URL
            elif c == ']':
                title = ''.join(link_title)
                out.append(render_link(title, title))
                mode = MODE_TEXT
            else:
                link_title.append(c)
        elif mode == MODE_LINK_URL:
            if c == ']':
                out.append(render_link(''.join(link_url), ''.join(link_title)))
                mode = MODE_TEXT
            else:
                link_url.append(c)
        elif mode == MODE_LINK_USER:
            if c == ']':
                out.append('<b>@' + encode(''.join(link_title)) + '</b>')
                mode = MODE_TEXT
            else:
                link_title.append(c)
        elif mode == MODE_LINK_ATTACHMENT:
            if c == ']':
                out.append('<b>[attachment ' + encode(''.join(link_title)) + ']</b>')
                mode = MODE_TEXT
            else:
                link_title.append(c)
        else:
            raise MarkupStateError(f'unknown parser mode: {mode!r}')
        i += 1

    if mode in _LINK_MODES:
        # An unterminated link is shown as the text that was typed
        text.append(line[link_start:])
        mode = MODE_TEXT
    commit_text()
    if heading is not None:
        out.append(f'</{heading}>')
    return ''.join(out), ParserState(
        mode=mode, formats=tuple(formats), list_kind=list_kind, heading=heading
    )


def scan_blocks(text: str) -> MarkupDocument:
    """Group the lines of ``text`` into plain and marker-delimited regions."""
    doc = MarkupDocument()
    current = doc._append(PLAIN)
    for line in _LINE_SPLIT_RE.split(text):
        m = _MARKER_RE.match(line)
        if m is None:
            current.lines.append(line)
            continue
        rest = _EAT_MARKER_RE.match(line).group(1)  # type: ignore[union-attr]
        if current.kind != PLAIN:
            # Any marker closes the open region, whatever its name
            current = doc._append(PLAIN)
            if rest:
                current.lines.append(rest)
            continue
        kind = m.group(1)
        current = doc._append(kind)
        closer = re.search(r'\{' + kind + r'\}', rest)
        if closer is None:
            if rest:
                current.lines.append(rest)
            continue
        inner, trailing = rest[:closer.start()], rest[closer.end():]
        if inner:
            current.lines.append(inner)
        current = doc._append(PLAIN)
        if trailing:
            current.lines.append(trailing)
    doc.blocks = [b for b in doc.blocks if b.kind != PLAIN or b.lines]
    return doc


def render_document(doc: MarkupDocument) -> str:
    out: list[str] = []
    state = ParserState()
    last_was_heading = False
    for block in doc.blocks:
        in_region = block.kind != PLAIN
        if in_region:
            html, state = close_list(state)
            out.append(html)
            out.append(block.opening)
        for line in block.lines:
            if block.literal:
                out.append(encode(line))
                is_heading = False
            else:
                html, state = parse_line(line, state)
                out.append(html)
                is_heading = state.heading is not None
            if in_region:
                out.append('<br>\n' if block.kind == QUOTE else '\n')
            elif not is_heading and not last_was_heading:
                out.append('<br>\n')
            last_was_heading = is_heading
        if in_region:
            html, state = close_list(state)
            out.append(html)
            out.append(block.closing)
    html, state = close_list(state)
    out.append(html)
    return ''.join(out)


def convert(raw_text: str | None) -> str:
    """Convert wiki markup to an HTML fragment.

    Never raises for odd input; MarkupStateError signals a defect in the
    state machine itself.
    """
    if not raw_text:
        return ''
    return render_document(scan_blocks(raw_text))


__all__ = [
    'Block',
    'MarkupDocument',
    'ParserState',
    'close_list',
    'convert',
    'may_open_format',
    'parse_line',
    'render_document',
    'scan_blocks',
]
