"""Matching rendered comments across two revisions of a page."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from talkmatch.config import MatcherConfig
from talkmatch.models import CommentMatch, RenderedComment
from talkmatch.wikitext import calculate_word_overlap

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchCandidate:
    """A scored pairing of a comment from one revision with a comment from the other."""

    other: RenderedComment
    current: RenderedComment
    score: float


def _to_milliseconds(date: datetime) -> datetime:
    return date.replace(microsecond=date.microsecond // 1000 * 1000)


def _same_instant(first: datetime | None, second: datetime | None) -> bool:
    if first is None or second is None:
        return False
    return _to_milliseconds(first) == _to_milliseconds(second)


class _CommentList:
    """Lookup of comments of one revision by sequence id, for resolving parents."""

    def __init__(self, comments: Sequence[RenderedComment]) -> None:
        self.by_sequence_id = {comment.sequence_id: comment for comment in comments}

    def parent_key(self, comment: RenderedComment) -> Any:
        if comment.parent_sequence_id is None:
            return None
        parent = self.by_sequence_id.get(comment.parent_sequence_id)
        if parent is None:
            return ("missing", comment.parent_sequence_id)
        if parent.anchor:
            return parent.anchor
        return (parent.author, parent.date and _to_milliseconds(parent.date))


class CrossRevisionMatcher:
    """Pair comments of the current revision with comments of another revision.

    The outer loop runs over the other revision's comments so that when one of them has several
    plausible current counterparts, the best one gets it.
    """

    def __init__(self, config: MatcherConfig | None = None) -> None:
        self.config = config or MatcherConfig()

    def match(
        self,
        current_comments: Sequence[RenderedComment],
        other_comments: Sequence[RenderedComment],
    ) -> list[CommentMatch]:
        """Return one fresh :class:`CommentMatch` per current comment, in the same order."""
        records = [CommentMatch(comment=comment) for comment in current_comments]
        current_list = _CommentList(current_comments)
        other_list = _CommentList(other_comments)
        is_total_count_equal = len(current_comments) == len(other_comments)

        for other in other_comments:
            filtered = [
                record
                for record in records
                if record.comment.author == other.author and _same_instant(record.comment.date, other.date)
            ]
            if len(filtered) == 1:
                record = filtered[0]
                if record.match is None:
                    record.match = other
                    record.match_score = self.score(
                        other, record.comment, other_list, current_list, is_total_count_equal
                    )
                else:
                    # Two comments of the other revision compete for the same current comment.
                    ranked = sorted(
                        (
                            (self.score(candidate, record.comment, other_list, current_list, is_total_count_equal), i)
                            for i, candidate in enumerate((record.match, other))
                        ),
                        key=lambda item: (-item[0], item[1]),
                    )
                    ranked = [item for item in ranked if item[0] > self.config.acceptance_threshold]
                    if ranked:
                        score, winner = ranked[0]
                        record.match = (record.match, other)[winner]
                        record.match_score = score
            elif len(filtered) > 1:
                found = False
                for candidate, record in self._rank(other, filtered, other_list, current_list, is_total_count_equal):
                    if not found and (record.match_score is None or record.match_score < candidate.score):
                        record.match = other
                        record.match_score = candidate.score
                        record.has_poor_match = False
                        found = True
                    elif record.match is None:
                        record.has_poor_match = True

        logger.debug(
            "Matched %d of %d current comments against %d other comments",
            sum(1 for record in records if record.match is not None),
            len(records),
            len(other_comments),
        )
        return records

    def _rank(
        self,
        other: RenderedComment,
        records: list[CommentMatch],
        other_list: _CommentList,
        current_list: _CommentList,
        is_total_count_equal: bool,
    ) -> list[tuple[MatchCandidate, CommentMatch]]:
        scored = [
            (
                MatchCandidate(
                    other=other,
                    current=record.comment,
                    score=self.score(record.comment, other, current_list, other_list, is_total_count_equal),
                ),
                record,
            )
            for record in records
        ]
        accepted = [item for item in scored if item[0].score > self.config.acceptance_threshold]
        accepted.sort(key=lambda item: -item[0].score)
        return accepted

    def score(
        self,
        candidate: RenderedComment,
        target: RenderedComment,
        candidate_list: _CommentList | None = None,
        target_list: _CommentList | None = None,
        is_total_count_equal: bool = False,
    ) -> float:
        """Similarity of ``candidate`` to ``target``; each comment's parent is resolved in its own list."""
        config = self.config
        candidate_parent = (candidate_list or _CommentList([])).parent_key(candidate)
        target_parent = (target_list or _CommentList([])).parent_key(target)
        if candidate_parent is None and target_parent is None:
            parent_score = config.parentless_weight
        elif candidate_parent is not None and candidate_parent == target_parent:
            parent_score = config.parent_weight
        else:
            parent_score = 0.0

        headline_score = config.headline_weight if candidate.section_headline == target.section_headline else 0.0

        longest = max(len(candidate.element_htmls), len(target.element_htmls))
        matched_parts = sum(
            1 for first, second in zip(candidate.element_htmls, target.element_htmls) if first == second
        )
        parts_proportion = matched_parts / longest if longest else 0.0
        overlap = 1.0 if parts_proportion == 1 else calculate_word_overlap(candidate.text, target.text)

        index_score = (
            config.index_weight if is_total_count_equal and candidate.sequence_id == target.sequence_id else 0.0
        )
        return parent_score + headline_score + parts_proportion + overlap + index_score
