"""Message content analysis.

Cheap pattern checks that decide whether a message asks something of the
reader or mentions a deadline, plus HTML-to-text cleanup for previews.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

PREVIEW_LENGTH = 120

QUESTION_PATTERNS = [
    re.compile(r"\?"),
    re.compile(r"\b(can|could|would) you\b", re.IGNORECASE),
    re.compile(r"what do you think", re.IGNORECASE),
    re.compile(r"\bthoughts\b", re.IGNORECASE),
    re.compile(r"let me know", re.IGNORECASE),
    re.compile(r"waiting for", re.IGNORECASE),
    re.compile(r"need your", re.IGNORECASE),
    re.compile(r"please (confirm|review|approve|check)", re.IGNORECASE),
]

DEADLINE_PATTERNS = [
    re.compile(r"by (monday|tuesday|wednesday|thursday|friday|saturday|sunday)", re.IGNORECASE),
    re.compile(r"by (end of day|eod|cob|close of business)", re.IGNORECASE),
    re.compile(r"deadline", re.IGNORECASE),
    re.compile(r"due (by|on|date)", re.IGNORECASE),
    re.compile(r"\burgent\b", re.IGNORECASE),
    re.compile(r"\basap\b", re.IGNORECASE),
    re.compile(r"time.?sensitive", re.IGNORECASE),
    # "by 3/15" or "by 3-15"
    re.compile(r"by \d{1,2}[/-]\d{1,2}"),
    re.compile(r"by (tomorrow|today|next week)", re.IGNORECASE),
]

_WHITESPACE = re.compile(r"\s+")


def _matches_any(patterns: list[re.Pattern[str]], text: str | None) -> bool:
    if not text:
        return False
    return any(pattern.search(text) for pattern in patterns)


def detect_question(text: str | None) -> bool:
    """Check whether text asks a question or expects a response.

    Args:
        text: Plain-text message content.

    Returns:
        True if any question pattern matches.
    """
    return _matches_any(QUESTION_PATTERNS, text)


def detect_deadline(text: str | None) -> bool:
    """Check whether text mentions a deadline or urgency.

    Args:
        text: Plain-text message content.

    Returns:
        True if any deadline pattern matches.
    """
    return _matches_any(DEADLINE_PATTERNS, text)


def strip_html(html: str | None) -> str:
    """Convert HTML message bodies to a single line of plain text.

    Args:
        html: HTML (or plain) content. None is treated as empty.

    Returns:
        Text with tags removed, entities decoded and whitespace collapsed.
    """
    if not html:
        return ""
    if "<" in html or "&" in html:
        text = BeautifulSoup(html, "html.parser").get_text(separator=" ")
    else:
        text = html
    return _WHITESPACE.sub(" ", text.replace("\xa0", " ")).strip()


def make_preview(text: str | None, max_length: int = PREVIEW_LENGTH) -> str:
    """Truncate text to a preview of at most max_length characters."""
    if not text:
        return ""
    return text[:max_length]
