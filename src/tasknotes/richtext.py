"""
Rich-text helpers for stored task content.

Task content is HTML produced by the browser editor: paragraphs, headings,
inline marks, bullet/ordered/task lists and images (often inlined as base64
data URLs). These helpers clean that HTML before it is stored and derive plain
text for previews and blank checks.
"""

import logging
from typing import Optional

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

ALLOWED_TAGS = {
    "p", "br", "hr", "h1", "h2", "h3", "h4", "h5", "h6",
    "strong", "b", "em", "i", "s", "strike", "u", "code", "pre", "blockquote",
    "ul", "ol", "li", "label", "input", "span", "div", "img",
}

# Removed together with everything inside them
DROP_TAGS = ["script", "style", "iframe", "object", "embed", "template", "noscript"]

ALLOWED_ATTRIBUTES = {
    "img": {"src", "alt", "title", "width", "height"},
    "ul": {"data-type"},
    "li": {"data-type", "data-checked"},
    "input": {"type", "checked", "disabled"},
    "ol": {"start"},
}

IMAGE_SOURCE_PREFIXES = ("data:image/", "https://", "http://")


def _parse(html: Optional[str]) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def sanitize_html(html: Optional[str]) -> str:
    """
    Reduce editor HTML to the tags and attributes the editor itself emits.

    Scripts and similar elements are dropped with their content, unknown tags
    are unwrapped so their text survives, event handler and style attributes
    are removed, and images must use a data:image or http(s) source.
    """
    if not html:
        return ""

    soup = _parse(html)

    for tag in soup.find_all(DROP_TAGS):
        tag.decompose()

    for tag in soup.find_all(True):
        if tag.name not in ALLOWED_TAGS:
            tag.unwrap()
            continue

        allowed = ALLOWED_ATTRIBUTES.get(tag.name, set())
        for attr in list(tag.attrs):
            if attr not in allowed:
                del tag.attrs[attr]

        if tag.name == "img":
            src = (tag.get("src") or "").strip()
            if not src.lower().startswith(IMAGE_SOURCE_PREFIXES):
                logger.warning("Dropping image with unsupported source")
                tag.decompose()
                continue
            for dim in ("width", "height"):
                value = tag.get(dim)
                if value is not None and not str(value).isdigit():
                    del tag.attrs[dim]
        elif tag.name == "input" and tag.get("type") != "checkbox":
            tag.decompose()

    return str(soup)


def plain_text(html: Optional[str]) -> str:
    """Collapse HTML to whitespace-normalized text."""
    text = _parse(html).get_text(separator=" ")
    return " ".join(text.split())


def is_blank_html(html: Optional[str]) -> bool:
    """True when the content has no text and no images.

    An untouched editor produces ``<p></p>``, which counts as blank.
    """
    if not html or not html.strip():
        return True
    soup = _parse(html)
    if soup.find("img"):
        return False
    return not soup.get_text().strip()


def preview_text(html: Optional[str], limit: int = 160) -> str:
    """Plain-text excerpt for task cards, truncated on a word boundary."""
    text = plain_text(html)
    if len(text) <= limit:
        return text
    cut = text[:limit].rsplit(" ", 1)[0] or text[:limit]
    return cut.rstrip() + "…"
