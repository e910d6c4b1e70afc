"""Text decoding for leaf content found inside containers."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup
from charset_normalizer import from_bytes

_WHITESPACE_RE = re.compile(r"[ \t\f\v]+")
_BLANK_LINES_RE = re.compile(r"\n\s*\n+")

HTML_TYPES = {"text/html", "application/xhtml+xml"}


def normalize_whitespace(text: str) -> str:
    """Collapse runs of inline whitespace and blank lines, trim boundaries."""

    collapsed = _WHITESPACE_RE.sub(" ", text.replace("\r\n", "\n").replace("\r", "\n"))
    return _BLANK_LINES_RE.sub("\n\n", collapsed).strip()


def detect_encoding(raw: bytes) -> str:
    best = from_bytes(raw).best()
    if best and best.encoding:
        return best.encoding

    for fallback in ("utf-8", "cp1252"):
        try:
            raw.decode(fallback)
            return fallback
        except UnicodeDecodeError:
            continue
    return "latin-1"


def decode_text(raw: bytes) -> str:
    if not raw:
        return ""
    return normalize_whitespace(raw.decode(detect_encoding(raw), errors="replace"))


def html_to_text(raw: bytes) -> str:
    soup = BeautifulSoup(raw, "lxml")
    for node in soup(["script", "style"]):
        node.decompose()
    return normalize_whitespace(soup.get_text("\n", strip=True))


def extract_text(raw: bytes, content_type: str | None) -> str:
    """Return readable text for text-like content, empty string otherwise."""

    base_type = (content_type or "").split(";", 1)[0].strip().lower()
    if base_type in HTML_TYPES:
        return html_to_text(raw)
    if base_type.startswith("text/"):
        return decode_text(raw)
    return ""
