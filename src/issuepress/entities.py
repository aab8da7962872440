"""HTML entity encoding for untrusted text."""

from __future__ import annotations

from markupsafe import escape


def encode(text: object) -> str:
    """Escape ``text`` for embedding in HTML element content or attributes.

    ``&``, ``<``, ``>``, ``"`` and ``'`` are replaced by entities; ``None``
    encodes to the empty string.
    """
    if text is None:
        return ''
    return str(escape(str(text)))


__all__ = ['encode']
