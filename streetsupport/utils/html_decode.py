import html
import re
from typing import Optional

_MARKDOWN_LINE_PATTERNS = [
    (re.compile(r"^\s{0,3}#{1,6}\s+", re.MULTILINE), ""),  # headers
    (re.compile(r"^\s{0,3}>\s?", re.MULTILINE), ""),  # blockquotes
    (re.compile(r"^\s*[-*+]\s+", re.MULTILINE), ""),  # list markers
    (re.compile(r"^\s*\d+\.\s+", re.MULTILINE), ""),  # numbered lists
]

_MARKDOWN_INLINE_PATTERNS = [
    (re.compile(r"\[([^\]]+)\]\([^)]*\)"), r"\1"),  # links keep their text
    (re.compile(r"\*\*(.+?)\*\*"), r"\1"),
    (re.compile(r"(?<!\w)__(.+?)__(?!\w)"), r"\1"),
    (re.compile(r"(?<![\w*])\*(?!\s)(.+?)(?<!\s)\*(?![\w*])"), r"\1"),
    (re.compile(r"(?<!\w)_(?!\s)(.+?)(?<!\s)_(?!\w)"), r"\1"),
    (re.compile(r"~~(.+?)~~"), r"\1"),
    (re.compile(r"`([^`]+)`"), r"\1"),
]

def decode_html_entities(text: Optional[str]) -> str:
    """Decode named, decimal and hex HTML entities. `&nbsp;` becomes a plain space."""
    if not text:
        return ""
    return html.unescape(text).replace("\xa0", " ")

def decode_markdown(text: Optional[str]) -> str:
    """Strip markdown formatting, keeping the visible text."""
    if not text:
        return ""
    for pattern, replacement in _MARKDOWN_LINE_PATTERNS:
        text = pattern.sub(replacement, text)
    for pattern, replacement in _MARKDOWN_INLINE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text

def decode_text(text: Optional[str]) -> str:
    """Plain display text from CMS content that may carry entities and markdown."""
    if not text:
        return ""
    return decode_markdown(decode_html_entities(text)).strip()
