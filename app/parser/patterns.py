"""Regex-based pattern matchers over raw markup.

Recipe pages are too irregular to be worth a DOM, so each structure the
extractors care about (JSON-LD blocks, headings, lists, itemprop values) has a
small matcher here that works directly on the markup string.  Only itemprop
elements balance nested tags of the same name; lists end at the first closing
tag.
"""

import re
from typing import NamedTuple

from app.parser.text import strip_tags

_JSON_LD_RE = re.compile(
    r"<script\b[^>]*\btype\s*=\s*[\"']?application/ld\+json[\"']?[^>]*>(.*?)</script\s*>",
    re.IGNORECASE | re.DOTALL,
)
_LIST_RE = re.compile(r"<(ul|ol)\b([^>]*)>(.*?)</\1\s*>", re.IGNORECASE | re.DOTALL)
_LI_RE = re.compile(r"<li\b[^>]*>(.*?)(?=<li\b|</li\s*>|$)", re.IGNORECASE | re.DOTALL)
_OPEN_TAG_RE = re.compile(r"<([a-zA-Z][a-zA-Z0-9]*)\b([^>]*)>", re.DOTALL)
_ATTR_RE = re.compile(
    r"""([a-zA-Z_:][-a-zA-Z0-9_:.]*)\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'>]+))"""
)
_VOID_TAGS = frozenset({"meta", "link", "img", "br", "hr", "input", "source"})


class Heading(NamedTuple):
    level: int
    text: str
    start: int
    end: int


class ListBlock(NamedTuple):
    tag: str
    attrs: dict[str, str]
    items: list[str]
    start: int
    end: int


def find_json_ld_blocks(html: str) -> list[str]:
    """Return the body of every JSON-LD script block, in document order."""
    if not html:
        return []
    return [m.group(1) for m in _JSON_LD_RE.finditer(html)]


def heading_pattern(levels: str = "1-6") -> re.Pattern:
    return re.compile(
        rf"<h([{levels}])\b[^>]*>(.*?)</h\1\s*>", re.IGNORECASE | re.DOTALL
    )


def find_headings(html: str, levels: str = "1-6") -> list[Heading]:
    """Return every heading of the given levels with its stripped text."""
    if not html:
        return []
    return [
        Heading(int(m.group(1)), strip_tags(m.group(2)), m.start(), m.end())
        for m in heading_pattern(levels).finditer(html)
    ]


def list_items(fragment: str) -> list[str]:
    """Stripped, non-empty ``<li>`` texts of a markup fragment."""
    if not fragment:
        return []
    items = (strip_tags(m.group(1)) for m in _LI_RE.finditer(fragment))
    return [item for item in items if item]


def find_lists(html: str) -> list[ListBlock]:
    """Return every ``<ul>``/``<ol>`` element with its items, in document order."""
    if not html:
        return []
    return [
        ListBlock(
            m.group(1).lower(),
            parse_attributes(m.group(2)),
            list_items(m.group(3)),
            m.start(),
            m.end(),
        )
        for m in _LIST_RE.finditer(html)
    ]


def find_list_by_attribute(html: str, keywords: tuple[str, ...]) -> list[str]:
    """Items of the first non-empty list whose class or id mentions a keyword."""
    for block in find_lists(html):
        marker = f"{block.attrs.get('class', '')} {block.attrs.get('id', '')}".lower()
        if block.items and any(k in marker for k in keywords):
            return block.items
    return []


def parse_attributes(tag_body: str) -> dict[str, str]:
    """Parse the attribute portion of an opening tag into a dict."""
    attrs = {}
    for m in _ATTR_RE.finditer(tag_body or ""):
        value = next((v for v in m.group(2, 3, 4) if v is not None), "")
        attrs.setdefault(m.group(1).lower(), value)
    return attrs


def find_itemprop(html: str, prop: str) -> list[str]:
    """Values of every element tagged ``itemprop="prop"``, in document order.

    The value is the ``content`` attribute when present, otherwise the stripped
    inner text.  An element wrapping a list yields one value per ``<li>``.
    """
    if not html or not prop:
        return []
    wanted = prop.lower()
    values = []
    for m in _OPEN_TAG_RE.finditer(html):
        tag = m.group(1).lower()
        attrs = parse_attributes(m.group(2))
        if wanted not in attrs.get("itemprop", "").lower().split():
            continue

        if "content" in attrs:
            value = strip_tags(attrs["content"])
            if value:
                values.append(value)
            continue
        if tag in _VOID_TAGS or m.group(2).rstrip().endswith("/"):
            continue

        inner = _inner_markup(html, tag, m.end())
        if re.search(r"<li\b", inner, re.IGNORECASE):
            values.extend(list_items(inner))
        else:
            value = strip_tags(inner)
            if value:
                values.append(value)
    return values


def _inner_markup(html: str, tag: str, start: int) -> str:
    """Markup up to the closing tag that balances the element opened before start."""
    depth = 1
    for m in re.finditer(rf"<(/?){tag}\b[^>]*>", html[start:], re.IGNORECASE):
        if m.group(1):
            depth -= 1
            if depth == 0:
                return html[start : start + m.start()]
        elif not m.group(0).endswith("/>"):
            depth += 1
    return ""
