"""Render plain email bodies into sanitized HTML alternatives."""
import re

import bleach
from markdown_it import MarkdownIt


# Single parser reused across emails; raw HTML in bodies is never passed through.
_md = MarkdownIt("commonmark", {"linkify": True, "typographer": True, "html": False, "breaks": True}).enable(
    ["linkify", "table", "strikethrough"]
)

EMAIL_ALLOWED_TAGS = [
    "p",
    "ul",
    "ol",
    "li",
    "strong",
    "em",
    "h1",
    "h2",
    "h3",
    "h4",
    "table",
    "thead",
    "tbody",
    "tr",
    "th",
    "td",
    "hr",
    "a",
    "br",
]

ALLOWED_ATTRIBUTES = {
    "a": ["href", "title", "rel", "target"],
    "th": ["colspan", "rowspan", "align"],
    "td": ["colspan", "rowspan", "align"],
}


def _normalize_whitespace(text: str) -> str:
    cleaned = re.sub(r"[\r\t]+", " ", text or "")
    cleaned = re.sub(r" +", " ", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


def markdown_to_html(md_text: str) -> str:
    rendered = _md.render(_normalize_whitespace(md_text))
    return bleach.clean(rendered, tags=EMAIL_ALLOWED_TAGS, attributes=ALLOWED_ATTRIBUTES, strip=True)


def markdown_to_email_html(md_text: str) -> str:
    safe_html = markdown_to_html(md_text)
    return (
        "<div style=\"font-family: 'Segoe UI', Arial, sans-serif; font-size: 14px; line-height: 1.6; color: #0f172a;\">"
        f"{safe_html}"
        "</div>"
    )

