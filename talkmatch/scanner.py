"""Signature extraction from raw markup."""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass

from talkmatch.models import UNDATED_AUTHOR, Signature
from talkmatch.site import SIGNATURE_SCAN_LIMIT, SitePatterns
from talkmatch.wikitext import hide_html_comments, normalize_user_name

logger = logging.getLogger(__name__)


@dataclass
class _FoundSignature:
    author: str
    timestamp: str | None
    start: int
    end: int
    next_comment_start: int


class SignatureScanner:
    """Find ``(author, timestamp, range)`` triples in markup.

    Only basic signature detection happens here. The comment boundaries are refined by
    :class:`talkmatch.locator.CommentLocator`.
    """

    def __init__(self, patterns: SitePatterns) -> None:
        self.patterns = patterns
        self._timestamp_line: re.Pattern[str] | None = None
        self._signature_line: re.Pattern[str] | None = None
        if patterns.timestamp_source:
            timestamp = r"(?P<timestamp>" + patterns.timestamp_source + r")(?:\}\}|</small>)?"
            self._timestamp_line = re.compile(
                r"^(?P<before>.*)" + timestamp + r".*\n*",
                re.IGNORECASE | re.MULTILINE,
            )
            self._signature_line = re.compile(
                r"^(?P<before>.*)(?P<signature>"
                + patterns.author_link_source
                + ".{1,%d}" % SIGNATURE_SCAN_LIMIT
                + timestamp
                + r")",
                re.IGNORECASE,
            )

    def mask(self, markup: str) -> str:
        """Blank out HTML comments, quotes and excluded lines, keeping offsets intact."""
        code = hide_html_comments(markup)
        code = self.patterns.quote.sub(lambda m: m.group(1) + " " * len(m.group(2)) + m.group(3), code)
        for exclusion in self.patterns.scan_exclusions:
            code = exclusion.sub(lambda m: " " * len(m.group(0)), code)
        return code

    def scan(self, markup: str) -> list[Signature]:
        if self._timestamp_line is None or self._signature_line is None:
            return []

        code = self.mask(markup)
        unsigned = self._scan_unsigned(code)
        unsigned_spans = [(found.start, found.end) for found in unsigned]
        found_signatures = [
            found
            for found in self._scan_timestamps(code, self._timestamp_line, self._signature_line)
            if not any(start <= found.start < end for start, end in unsigned_spans)
        ]
        found_signatures.extend(unsigned)
        found_signatures.sort(key=lambda found: found.start)

        signatures: list[Signature] = []
        previous: _FoundSignature | None = None
        for found in found_signatures:
            comment_start = self._trim_comment_start(code, previous.next_comment_start, found.start) if previous else 0
            previous = found
            signatures.append(
                Signature(
                    author=found.author,
                    timestamp=found.timestamp,
                    date=self.patterns.parse_date(found.timestamp),
                    dirty_source_code=markup[found.start : found.end],
                    start_index=found.start,
                    end_index=found.end,
                    comment_start_index=comment_start,
                    sequence_id=len(signatures),
                )
            )
        logger.debug("Found %d signatures in %d characters of markup", len(signatures), len(markup))
        return signatures

    def _scan_timestamps(
        self, code: str, timestamp_line: re.Pattern[str], signature_line: re.Pattern[str]
    ) -> list[_FoundSignature]:
        found: list[_FoundSignature] = []
        for line_match in timestamp_line.finditer(code):
            line_start = line_match.start()
            line = line_match.group(0)
            line_end = line_start + len(line.rstrip("\n"))
            next_comment_start = line_match.end()

            signature_match = signature_line.match(line)
            if signature_match is None:
                found.append(
                    _FoundSignature(
                        author=UNDATED_AUTHOR,
                        timestamp=line_match.group("timestamp"),
                        start=line_match.start("timestamp"),
                        end=line_end,
                        next_comment_start=next_comment_start,
                    )
                )
                continue

            author = normalize_user_name(html.unescape(signature_match.group("author")))
            start = line_start + signature_match.start("signature")

            # The greedy match finds the last link to the author; the signature starts at the first one.
            window_start = max(0, signature_match.start("timestamp") - SIGNATURE_SCAN_LIMIT)
            for link in self.patterns.author_link.finditer(line, window_start):
                if link.group("slash"):
                    continue
                if normalize_user_name(html.unescape(link.group("author"))) == author:
                    start = min(start, line_start + link.start())
                    break

            found.append(
                _FoundSignature(
                    author=author,
                    timestamp=signature_match.group("timestamp"),
                    start=start,
                    end=line_end,
                    next_comment_start=next_comment_start,
                )
            )
        return found

    def _scan_unsigned(self, code: str) -> list[_FoundSignature]:
        if self.patterns.unsigned is None:
            return []
        no_timezone = self.patterns.timestamp_no_timezone
        found: list[_FoundSignature] = []
        for match in self.patterns.unsigned.finditer(code):
            first, second = match.group("first"), match.group("second")
            if no_timezone is not None and no_timezone.search(first):
                timestamp, author = first, second
            elif second and no_timezone is not None and no_timezone.search(second):
                timestamp, author = second, first
            else:
                timestamp, author = None, first
            if not author:
                continue
            found.append(
                _FoundSignature(
                    author=normalize_user_name(html.unescape(author)),
                    timestamp=timestamp,
                    start=match.start(),
                    end=match.end("template"),
                    next_comment_start=match.end(),
                )
            )
        return found

    def _trim_comment_start(self, code: str, start: int, limit: int) -> int:
        pattern = self.patterns.closed_ending_line
        if pattern is None:
            return start
        while True:
            match = pattern.match(code, start)
            if match is None or match.end() > limit:
                return start
            start = match.end()
