"""Wikitext processing helpers.

Every masking function here keeps the length of its input so that offsets computed on masked code
point at the same characters of the original markup.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from talkmatch.config import SiteConfig

MASK_START = "\x01"
MASK_END = "\x02"
TABLE_MASK_START = "\x03"
TABLE_MASK_END = "\x04"

_HTML_COMMENT_RE = re.compile(r"<!--([\s\S]*?)-->")
_TABLE_RE = re.compile(r"^\{\|[\s\S]*?\n\|\}", re.MULTILINE)
_DISTRACTING_TAGS = ("nowiki", "pre", "source", "syntaxhighlight")
_WORD_RE = re.compile(r"[^\W\d_]{2,}")


def _marker(length: int, start: str = MASK_START, end: str = MASK_END) -> str:
    if length <= 0:
        return ""
    if length == 1:
        return start
    return start + " " * (length - 2) + end


def _tag_re(tag: str) -> re.Pattern[str]:
    return re.compile(rf"(<{tag}(?: [^>]+)?>)([\s\S]*?)(</{tag} *>)", re.IGNORECASE)


def hide_html_comments(code: str) -> str:
    """Blank out the contents of HTML comments, keeping ``<!--`` and ``-->``."""
    return _HTML_COMMENT_RE.sub(lambda m: "<!--" + " " * len(m.group(1)) + "-->", code)


def mask_distracting_code(code: str) -> str:
    """Mask HTML comments and the contents of code-like tags.

    HTML comments turn into ``\\x01`` + spaces + ``\\x02`` so that lines consisting only of comments
    can still be told apart.
    """
    for tag in _DISTRACTING_TAGS:
        code = _tag_re(tag).sub(lambda m: m.group(1) + " " * len(m.group(2)) + m.group(3), code)
    return _HTML_COMMENT_RE.sub(lambda m: _marker(len(m.group(0))), code)


def find_templates(code: str) -> list[tuple[int, int]]:
    """Return ``(start, end)`` spans of the outermost ``{{...}}`` constructs.

    Unclosed ``{{`` run to the end of the code; unopened ``}}`` are ignored.
    """
    spans: list[tuple[int, int]] = []
    stack: list[int] = []
    pos = 0
    while True:
        left = code.find("{{", pos)
        right = code.find("}}", pos)
        if left == -1 and right == -1:
            break
        if left != -1 and (right == -1 or left < right):
            stack.append(left)
            pos = left + 2
            continue
        if not stack:
            pos = right + 2
            continue
        start = stack.pop()
        pos = right + 2
        if not stack:
            spans.append((start, pos))
    if stack:
        spans.append((stack[0], len(code)))
    return spans


def mask_spans(code: str, spans: list[tuple[int, int]], start: str = MASK_START, end: str = MASK_END) -> str:
    for span_start, span_end in spans:
        code = code[:span_start] + _marker(span_end - span_start, start, end) + code[span_end:]
    return code


def mask_sensitive_code(code: str) -> str:
    """Mask templates (including nested ones), tables and code-like tags."""
    code = mask_spans(code, find_templates(code))
    code = _TABLE_RE.sub(lambda m: _marker(len(m.group(0)), TABLE_MASK_START, TABLE_MASK_END), code)
    for tag in _DISTRACTING_TAGS:
        code = _tag_re(tag).sub(lambda m: _marker(len(m.group(0))), code)
    return code


def remove_wiki_markup(code: str) -> str:
    """Strip formatting, links, tags and comments for comparison purposes."""
    code = re.sub(r"<!--[\s\S]*?-->", "", code)
    code = re.sub(r"\[\[:?(?:[^|\[\]<>\n]+\|)?(.+?)\]\]", r"\1", code)
    code = re.sub(r"\{\{:?(?:[^|{}<>\n]+)(?:\|(.+?))?\}\}", lambda m: m.group(1) or "", code)
    code = re.sub(r"\[https?://[^\[\]<>\"\n ]+ *([^\]]*)\]", r"\1", code)
    code = re.sub(r"'''(.+?)'''", r"\1", code)
    code = re.sub(r"''(.+?)''", r"\1", code)
    code = re.sub(r"<br ?/?>", " ", code)
    code = re.sub(r"<\w+(?: [\w ]+?=[^<>]+?| ?/?)>", "", code)
    code = re.sub(r"</\w+ ?>", "", code)
    code = re.sub(r" {2,}", " ", code)
    return code.strip()


_CODE_ENTITIES = (
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&#91;", "["),
    ("&#93;", "]"),
    ("&#123;", "{"),
    ("&#124;", "|"),
    ("&#125;", "}"),
)


def normalize_code(text: str) -> str:
    for entity, char in _CODE_ENTITIES:
        text = text.replace(entity, char)
    return re.sub(r"\s+", " ", text)


def calculate_word_overlap(s1: str, s2: str, case_insensitive: bool = False) -> float:
    """Share of unique words (two letters or more) present in both strings among all of them."""

    def words(text: str) -> list[str]:
        if case_insensitive:
            text = text.lower()
        return list(dict.fromkeys(_WORD_RE.findall(text)))

    words1 = words(s1)
    words2 = words(s2)
    if not words1 or not words2:
        return 0.0
    total = len(words2)
    overlap = 0
    for word in words1:
        if word in words2:
            overlap += 1
        else:
            total += 1
    return overlap / total


def generate_page_name_pattern(name: str) -> str:
    """Regex source for a page name: first letter case-insensitive, spaces and underscores alike."""
    if not name:
        return ""
    first = name[0]
    upper, lower = first.upper(), first.lower()
    first_pattern = f"[{upper}{lower}]" if upper != lower and len(upper) == 1 else re.escape(first)
    rest = re.sub(r"(?:\\ |_)+", "[ _]+", re.escape(name[1:]))
    return first_pattern + rest


def count_occurrences(text: str, pattern: str | re.Pattern[str]) -> int:
    return len(re.findall(pattern, text))


def normalize_user_name(name: str) -> str:
    name = re.sub(r"[ _]+", " ", name).strip()
    if not name:
        return name
    return name[0].upper() + name[1:]


def parse_timestamp(text: str, site: SiteConfig) -> datetime | None:
    """Parse the first timestamp in ``text`` into an aware UTC datetime."""
    if not site.timestamp_pattern:
        return None
    match = re.search(site.timestamp_pattern, text)
    if not match:
        return None
    parts = match.groupdict()
    try:
        month_value = parts["month"]
        if month_value.isdigit():
            month = int(month_value)
        else:
            month = site.month_names.index(month_value) + 1
        local = datetime(
            int(parts["year"]),
            month,
            int(parts["day"]),
            int(parts["hour"]),
            int(parts["minute"]),
            tzinfo=timezone.utc,
        )
    except (KeyError, ValueError, TypeError):
        return None
    return local - timedelta(minutes=site.utc_offset_minutes)
