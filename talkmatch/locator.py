"""Locating rendered comments in raw markup."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from talkmatch.config import LocatorConfig
from talkmatch.errors import LOCATE_COMMENT, NO_CODE, ParseError
from talkmatch.models import UNDATED_AUTHOR, HeadingMatch, LocatedComment, RenderedComment, Signature
from talkmatch.scanner import SignatureScanner
from talkmatch.site import SitePatterns
from talkmatch.wikitext import (
    calculate_word_overlap,
    count_occurrences,
    mask_sensitive_code,
    normalize_code,
    remove_wiki_markup,
)

logger = logging.getLogger(__name__)

HEADING_RE = re.compile(r"([\s\S]*(?:^|\n))((=+)(.*)\3[ \t\x01\x02]*\n)")
_LINE_RE = re.compile(r"^(.+)\n", re.MULTILINE)
_LINK_TEXT_RE = re.compile(r"\[\[:?(?:[^|\[\]<>\n]+\|)?(.+?)\]\]")
_REPLY_LINE_RE = re.compile(r"\n([:*#]*[:*])(?!:*#).*\Z")

# Parts at the end of the comment code that belong to the signature, applied in order.
_QUOTES_RE = re.compile(r"'+\Z")
_SPACED_QUOTES_RE = re.compile(r"\s+'+\Z")
_UNSIGNED_COMMENT_RE = re.compile(r"<!-- *Template:Unsigned.*\Z")


@dataclass
class _Candidate:
    """Mutable working state for one signature while its comment boundaries are adjusted."""

    signature: Signature
    code: str
    start_index: int
    end_index: int
    signature_dirty_code: str
    line_start_index: int = 0
    original_indentation: str = ""
    indentation: str = ""
    indentation_spacing: str = ""
    reply_indentation: str = ""
    signature_code: str = ""
    in_small_font: bool = False
    heading: HeadingMatch | None = None
    score: float = 0.0
    signals: dict[str, float] = field(default_factory=dict)


class CommentLocator:
    """Find the span of markup that holds a rendered comment."""

    def __init__(
        self,
        patterns: SitePatterns,
        config: LocatorConfig | None = None,
        scanner: SignatureScanner | None = None,
    ) -> None:
        self.patterns = patterns
        self.config = config or LocatorConfig()
        self.scanner = scanner or SignatureScanner(patterns)

    def locate(
        self,
        comment: RenderedComment,
        markup: str | None,
        prior_comments: Sequence[RenderedComment] = (),
    ) -> LocatedComment:
        """Locate ``comment`` in ``markup``.

        ``prior_comments`` are the comments preceding ``comment`` in the same rendering, in page
        order. Raises :class:`ParseError` with ``noCode`` when there is no markup and with
        ``locateComment`` when no candidate is good enough.
        """
        if markup is None:
            raise ParseError(NO_CODE)

        candidates = self._scored_candidates(comment, markup, prior_comments)
        for candidate in candidates:
            logger.debug(
                "Candidate signature %d for comment %d scored %.4f %s",
                candidate.signature.sequence_id,
                comment.sequence_id,
                candidate.score,
                candidate.signals,
            )

        accepted = [candidate for candidate in candidates if candidate.score > self.config.acceptance_threshold]
        if not accepted:
            raise ParseError(
                LOCATE_COMMENT,
                f"no source match for comment {comment.sequence_id} by {comment.author} among {len(candidates)} candidates",
            )
        accepted.sort(
            key=lambda c: (-c.score, abs(c.signature.sequence_id - comment.sequence_id), c.signature.sequence_id)
        )
        return self._to_located(accepted[0], comment)

    def score_candidates(
        self,
        comment: RenderedComment,
        markup: str,
        prior_comments: Sequence[RenderedComment] = (),
    ) -> list[tuple[Signature, float]]:
        """Return every considered signature with its score, for diagnostics."""
        candidates = self._scored_candidates(comment, markup, prior_comments)
        return [(candidate.signature, candidate.score) for candidate in candidates]

    def _scored_candidates(
        self,
        comment: RenderedComment,
        markup: str,
        prior_comments: Sequence[RenderedComment],
    ) -> list[_Candidate]:
        signatures = self.scanner.scan(markup)
        candidates = [
            self._build_candidate(comment, signature, markup)
            for signature in signatures
            if self._is_signature_of(signature, comment)
        ]
        checked = self.config.previous_comments_checked
        previous = list(reversed(list(prior_comments)[-checked:])) if checked > 0 else []
        for candidate in candidates:
            self._score(candidate, comment, len(candidates), signatures, previous)
        return candidates

    @staticmethod
    def _is_signature_of(signature: Signature, comment: RenderedComment) -> bool:
        if signature.author != comment.author and signature.author != UNDATED_AUTHOR:
            return False
        if signature.timestamp == comment.timestamp:
            return True
        # Timezones may be left out of timestamps in "unsigned" templates.
        return bool(comment.timestamp and signature.timestamp and comment.timestamp.startswith(signature.timestamp))

    def _build_candidate(self, comment: RenderedComment, signature: Signature, markup: str) -> _Candidate:
        candidate = _Candidate(
            signature=signature,
            code=markup[signature.comment_start_index : signature.start_index],
            start_index=signature.comment_start_index,
            end_index=signature.start_index,
            signature_dirty_code=signature.dirty_source_code,
            line_start_index=signature.comment_start_index,
        )
        self._exclude_heading_and_bad_beginnings(candidate, comment)
        self._exclude_indentation(candidate, comment)
        self._adjust_signature(candidate)
        self._adjust_reply_indentation(candidate, comment, markup)
        return candidate

    def _exclude_heading_and_bad_beginnings(self, candidate: _Candidate, comment: RenderedComment) -> None:
        heading_match = HEADING_RE.match(mask_sensitive_code(candidate.code))
        if heading_match:
            code = candidate.code
            heading_start = candidate.start_index + heading_match.end(1)
            candidate.heading = HeadingMatch(
                code=code[heading_match.start(2) : heading_match.end(2)],
                start_index=heading_start,
                level=len(heading_match.group(3)),
                headline_code=code[heading_match.start(4) : heading_match.end(4)].strip(),
            )
            candidate.start_index += heading_match.end(0)
            candidate.code = code[heading_match.end(0) :]
            candidate.line_start_index = heading_start if comment.is_opening_section else candidate.start_index
            return

        # Lines of a previous comment that was signed improperly.
        endings = [self.patterns.signature_ending]
        if not comment.has_foreign_timestamps and self.patterns.timezone is not None:
            endings.append(re.compile(self.patterns.timezone.pattern + "$"))
        for ending in endings:
            if ending is None:
                continue
            cut = 0
            for line_match in _LINE_RE.finditer(candidate.code):
                line = _LINK_TEXT_RE.sub(r"\1", line_match.group(1))
                if ending.search(line):
                    if line_match.end() == len(candidate.code):
                        break
                    cut = line_match.end()
            if cut:
                candidate.code = candidate.code[cut:]
                candidate.start_index += cut
                candidate.line_start_index += cut

        for pattern in self.patterns.bad_comment_beginnings:
            while True:
                match = pattern.match(candidate.code)
                if not match or not match.group(0):
                    break
                length = len(match.group(0))
                candidate.code = candidate.code[length:]
                candidate.line_start_index = candidate.start_index + match.group(0).rfind("\n") + 1
                candidate.start_index += length

    def _exclude_indentation(self, candidate: _Candidate, comment: RenderedComment) -> None:
        """Strip the indentation characters and any intro code preceding them."""
        if comment.level == 0:
            return

        def replace(match: re.Match[str]) -> None:
            before, chars, after = match.group(1), match.group(2), match.group(3) or ""
            remainder = ""
            shift = len(match.group(0))
            if not before and count_occurrences(candidate.code, r"(?:^|\n)[:*#]") >= 2 and chars.endswith("#"):
                # A numbered list item glued to the indentation: keep "#" with the content.
                chars = chars[:-1]
                candidate.original_indentation = chars
                if len(chars) < comment.level:
                    chars += ":"
                shift -= 1 + len(after)
                remainder = "#" + after
            else:
                candidate.original_indentation = chars
            candidate.indentation = chars
            candidate.line_start_index = candidate.start_index + len(before)
            candidate.start_index += shift
            candidate.indentation_spacing = after
            candidate.code = remainder + candidate.code[match.end() :]

        match = re.match(r"()\n*([:*#]+)( *)", candidate.code)
        if match:
            replace(match)

        if candidate.indentation == "":
            match = re.match(r"([\s\S]*?\n)\n*([:*#]+)( *)(?![\s\S]*\n[^:*#])", candidate.code)
            if match:
                replace(match)

        if len(candidate.indentation) < comment.level and "\n" in candidate.code:
            match = re.match(r"([\s\S]+?\n)([:*#]{%d})( *)" % comment.level, candidate.code)
            if match:
                replace(match)

    def _adjust_signature(self, candidate: _Candidate) -> None:
        patterns = self.patterns
        for pattern in (
            _QUOTES_RE,
            patterns.signature_prefix,
            patterns.popular_inline_tags,
            patterns.signature_prefix,
            patterns.popular_inline_tags,
            _SPACED_QUOTES_RE,
            patterns.unsigned_class_tail,
            _UNSIGNED_COMMENT_RE,
            patterns.signature_prefix,
        ):
            match = pattern.search(candidate.code)
            if match and match.group(0):
                part = match.group(0)
                candidate.signature_dirty_code = part + candidate.signature_dirty_code
                candidate.end_index -= len(part)
                candidate.code = candidate.code[: match.start()]

        candidate.signature_code = candidate.signature_dirty_code
        for start_re, end_re in patterns.small_wrappers:
            start_match = start_re.match(candidate.code)
            end_match = end_re.search(candidate.signature_code)
            if start_match and end_match:
                candidate.in_small_font = True
                candidate.code = candidate.code[start_match.end() :]
                candidate.start_index += start_match.end()
                candidate.signature_code = candidate.signature_code[: end_match.start()]
                break

    def _adjust_reply_indentation(self, candidate: _Candidate, comment: RenderedComment, markup: str) -> None:
        reply_indentation = candidate.indentation
        if not comment.is_opening_section:
            # A last line with nested indentation means replies already live inside this comment.
            match = _REPLY_LINE_RE.search(candidate.code + candidate.signature_dirty_code)
            if match:
                reply_indentation = match.group(1)
                if len(reply_indentation) < len(candidate.original_indentation):
                    prefix = candidate.original_indentation[len(reply_indentation) :] + candidate.indentation_spacing
                    if markup[candidate.start_index - len(prefix) : candidate.start_index] == prefix:
                        candidate.code = prefix + candidate.code
                        candidate.original_indentation = candidate.original_indentation[: len(reply_indentation)]
                        candidate.indentation = candidate.original_indentation
                        candidate.start_index -= len(prefix)
        candidate.reply_indentation = reply_indentation + self.patterns.default_indentation_char

    def _score(
        self,
        candidate: _Candidate,
        comment: RenderedComment,
        candidate_count: int,
        signatures: Sequence[Signature],
        previous: Sequence[RenderedComment],
    ) -> None:
        config = self.config
        signature = candidate.signature
        does_index_match = signature.sequence_id == comment.sequence_id

        does_previous_match = False
        is_previous_equal: bool | None = None
        if previous:
            for i, previous_comment in enumerate(previous):
                index = signature.sequence_id - 1 - i
                if index < 0:
                    break
                previous_signature = signatures[index]
                # One matching previous comment is enough when the second one is unavailable.
                does_previous_match = (
                    previous_signature.timestamp == previous_comment.timestamp
                    and previous_signature.author == previous_comment.author
                )
                if is_previous_equal is not False:
                    is_previous_equal = (
                        signature.timestamp == previous_signature.timestamp
                        and signature.author == previous_signature.author
                    )
                if not does_previous_match:
                    break
        else:
            does_previous_match = signature.sequence_id == 0

        headline_score: float
        if comment.follows_heading:
            if candidate.heading is None:
                headline_score = config.missing_heading_score
            else:
                headline_score = float(
                    normalize_code(remove_wiki_markup(candidate.heading.headline_code))
                    == normalize_code(comment.section_headline or "")
                )
        else:
            headline_score = float(candidate.heading is None)

        word_overlap = calculate_word_overlap(comment.text, remove_wiki_markup(candidate.code))
        is_first = comment.sequence_id == 0
        has_best_evidence = (
            candidate_count == 1
            or word_overlap > config.evidence_word_overlap_min
            or (is_first and does_previous_match and headline_score > 0)
            or (not is_first and does_previous_match and not is_previous_equal)
        )

        candidate.signals = {
            "best_evidence": float(has_best_evidence),
            "word_overlap": word_overlap,
            "headline": headline_score,
            "previous_comments": float(does_previous_match),
            "index": float(does_index_match),
        }
        candidate.score = (
            float(has_best_evidence) * config.best_evidence_weight
            + word_overlap * config.word_overlap_weight
            + headline_score * config.headline_weight
            + float(does_previous_match) * config.previous_comments_weight
            + float(does_index_match) * config.sequence_id_weight
        )

    def _to_located(self, candidate: _Candidate, comment: RenderedComment) -> LocatedComment:
        signature = candidate.signature.model_copy(
            update={"dirty_source_code": candidate.signature_dirty_code, "start_index": candidate.end_index}
        )
        return LocatedComment(
            signature=signature,
            code=candidate.code,
            start_index=candidate.start_index,
            end_index=candidate.end_index,
            signature_end_index=candidate.signature.end_index,
            line_start_index=candidate.line_start_index,
            original_indentation_chars=candidate.original_indentation,
            indentation_chars=candidate.indentation,
            reply_indentation_chars=candidate.reply_indentation,
            indentation_spacing=candidate.indentation_spacing,
            signature_code=candidate.signature_code,
            in_small_font=candidate.in_small_font,
            heading_match=candidate.heading,
            level=comment.level,
            is_opening_section=comment.is_opening_section,
            is_table_comment=comment.is_table_comment,
            score=candidate.score,
        )
