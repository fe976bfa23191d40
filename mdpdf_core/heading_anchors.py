from __future__ import annotations

import re
from dataclasses import dataclass

from bs4 import BeautifulSoup
from bs4.element import Tag


HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]

_SEPARATORS_RE = re.compile(r"[\s\-_.]+")
_NON_SLUG_RE = re.compile(r"[^\w\-]")


@dataclass(frozen=True)
class HeadingAnchorResult:
    html: str
    anchored: int


def slugify(text: str) -> str:
    """Turn visible heading text into an anchor slug.

    Letters from any script survive (so CJK headings still get anchors);
    punctuation is dropped and runs of separators collapse to a single '-'.
    """
    t = re.sub(r"^#+\s*", "", str(text or "").strip())
    t = _SEPARATORS_RE.sub("-", t)
    t = _NON_SLUG_RE.sub("", t.lower())
    return t.strip("-")


def _anchor_for(level: int, base: str) -> str:
    # H1 uses the plain slug; H2+ are prefixed so "## Intro" never shadows "# Intro".
    return base if level == 1 else f"h{level}-{base}"


def add_heading_ids(html_text: str) -> HeadingAnchorResult:
    """Give every heading in an HTML fragment a stable, unique ``id``.

    Rules:
    - The anchor comes from the heading's visible text, not its markup.
    - H1 headings use the bare slug, H2-H6 use ``h<level>-<slug>``.
    - Repeated anchors get ``-1``, ``-2``, ... suffixes in document order.
    - Headings with no usable text are left without an id.

    Fragments without headings are returned untouched.
    """
    raw = html_text or ""
    if not re.search(r"<h[1-6][\s>]", raw, re.IGNORECASE):
        return HeadingAnchorResult(html=raw, anchored=0)

    soup = BeautifulSoup(raw, "html.parser")
    counts: dict[str, int] = {}
    used: set[str] = set()
    anchored = 0
    for heading in soup.find_all(HEADING_TAGS):
        if not isinstance(heading, Tag):
            continue
        base = slugify(heading.get_text())
        if not base:
            if "id" in heading.attrs:
                del heading["id"]
            continue

        base_anchor = _anchor_for(int(heading.name[1]), base)
        count = counts.get(base_anchor, 0)
        anchor = f"{base_anchor}-{count}" if count else base_anchor
        # A suffixed name may already belong to an earlier heading's own slug.
        while anchor in used:
            count += 1
            anchor = f"{base_anchor}-{count}"
        counts[base_anchor] = count + 1
        used.add(anchor)

        heading["id"] = anchor
        anchored += 1

    return HeadingAnchorResult(html=str(soup), anchored=anchored)
