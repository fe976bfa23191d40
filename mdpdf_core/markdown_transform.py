"""Markdown to HTML fragment conversion.

The renderer escapes raw HTML found in the Markdown, so the fragment it
returns is safe to embed verbatim in the print template.
"""
from __future__ import annotations

import html
import logging

from markdown_it import MarkdownIt
from mdit_py_plugins.tasklists import tasklists_plugin

from .heading_anchors import add_heading_ids


logger = logging.getLogger(__name__)


def build_parser() -> MarkdownIt:
    # GitHub-flavoured subset: tables, strikethrough, task lists. Raw HTML is
    # rendered as text and autolinking of bare URLs stays off.
    md = MarkdownIt("commonmark", {"html": False, "linkify": False, "typographer": False})
    md.enable(["table", "strikethrough"])
    md.use(tasklists_plugin, enabled=False)
    return md


# The parser holds no per-document state; rendering takes a fresh env each call.
_PARSER = build_parser()


def _literal_fallback(markdown_source: str) -> str:
    paragraphs = [p for p in markdown_source.replace("\r\n", "\n").split("\n\n") if p.strip()]
    return "\n".join(f"<p>{html.escape(p)}</p>" for p in paragraphs) + "\n"


def to_html(markdown_source: str) -> str:
    """Render Markdown to an HTML fragment with anchored headings.

    Same input, same output. Input the parser cannot cope with is emitted as
    escaped literal text instead of failing the conversion.
    """
    text = markdown_source or ""
    try:
        fragment = _PARSER.render(text, {})
    except Exception:
        logger.warning("Markdown parser failed; emitting document as literal text", exc_info=True)
        return _literal_fallback(text)
    return add_heading_ids(fragment).html
