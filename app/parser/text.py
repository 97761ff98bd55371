"""Plain-text helpers for raw markup fragments."""

import re

_ENTITIES = {
    "&nbsp;": " ",
    "&amp;": "&",
    "&quot;": '"',
    "&#39;": "'",
    "&apos;": "'",
    "&lt;": "<",
    "&gt;": ">",
}
_ENTITY_RE = re.compile("|".join(re.escape(e) for e in _ENTITIES))
_BLOCK_TAG_RE = re.compile(
    r"<(?:/?(?:address|article|aside|blockquote|dd|div|dl|dt|figcaption|figure"
    r"|footer|h[1-6]|header|li|main|nav|ol|p|section|table|td|th|tr|ul)\b[^>]*"
    r"|br\b[^>]*|hr\b[^>]*)>",
    re.IGNORECASE,
)
_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")


def decode_entities(text: str | None) -> str:
    """Replace the common named HTML entities; anything else passes through."""
    if not text:
        return ""
    return _ENTITY_RE.sub(lambda m: _ENTITIES[m.group(0)], text)


def strip_tags(markup: str | None) -> str:
    """Drop tags, decode entities and collapse whitespace.

    Inline tags are removed outright; block-level tags and line breaks leave a
    single space so neighbouring paragraphs and list items stay separate words.
    """
    if not markup:
        return ""
    text = _BLOCK_TAG_RE.sub(" ", markup)
    text = _TAG_RE.sub("", text)
    text = decode_entities(text)
    return _WHITESPACE_RE.sub(" ", text).strip()
