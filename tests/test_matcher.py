from datetime import UTC, datetime

from talkmatch.changes import summarize_matches
from talkmatch.matcher import CrossRevisionMatcher
from talkmatch.models import ChangeSet, RenderedComment


def _comment(sequence_id: int, author: str, hour: int, text: str, **kwargs) -> RenderedComment:
    kwargs.setdefault("section_headline", "Topic")
    kwargs.setdefault("element_htmls", [f"<p>{text}</p>"])
    return RenderedComment(
        sequence_id=sequence_id,
        author=author,
        timestamp=f"{hour:02d}:00, 1 January 2024 (UTC)",
        date=datetime(2024, 1, 1, hour, 0, tzinfo=UTC),
        text=text,
        **kwargs,
    )


def _detect_changes(old: list[RenderedComment], new: list[RenderedComment]) -> ChangeSet:
    return summarize_matches(CrossRevisionMatcher().match(new, old), old)


def test_identical_renderings_match_one_to_one() -> None:
    old = [
        _comment(0, "Alice", 10, "Opening question here"),
        _comment(1, "Bob", 11, "An answer to it", parent_sequence_id=0, level=1),
    ]
    new = [comment.model_copy() for comment in old]

    records = CrossRevisionMatcher().match(new, old)

    assert [record.match for record in records] == old
    assert all(record.match_score is not None and record.match_score > 1.66 for record in records)
    assert not any(record.has_poor_match for record in records)


def test_edited_comment_is_matched_and_reported_changed() -> None:
    old = [
        _comment(0, "Alice", 10, "Original wording of the question"),
        _comment(1, "Bob", 11, "An answer", parent_sequence_id=0, level=1),
    ]
    edited = _comment(0, "Alice", 10, "Reworded version of the question")
    new = [edited, old[1]]

    records = CrossRevisionMatcher().match(new, old)
    assert records[0].match is old[0]

    changes = _detect_changes(old, new)
    assert [change.comment for change in changes.changed] == [edited]
    assert changes.changed[0].previous == old[0]
    assert changes.new == []
    assert changes.deleted == []
    assert changes.unchanged_count == 1


def test_single_candidate_keeps_the_better_of_two_competitors() -> None:
    first_old = _comment(0, "Alice", 10, "apples bananas", element_htmls=[])
    second_old = _comment(1, "Alice", 10, "cherries grapes", element_htmls=[])
    current = _comment(0, "Alice", 10, "cherries grapes", element_htmls=[])

    records = CrossRevisionMatcher().match([current], [first_old, second_old])

    assert records[0].match is second_old
    assert records[0].match_score == 2.75


def test_ambiguous_candidates_flag_poor_match() -> None:
    old = [_comment(0, "Alice", 10, "Hello world again")]
    new = [
        _comment(0, "Alice", 10, "Hello world again"),
        _comment(1, "Alice", 10, "Hello world again"),
    ]

    records = CrossRevisionMatcher().match(new, old)

    assert records[0].match is old[0]
    assert records[1].match is None
    assert records[1].has_poor_match

    changes = _detect_changes(old, new)
    assert [change.comment for change in changes.uncertain] == [new[1]]
    assert changes.new == []


def test_parent_agreement_breaks_ties() -> None:
    old = [
        _comment(0, "Alice", 10, "First thread", anchor="a1"),
        _comment(1, "Carol", 12, "Second thread", anchor="c1"),
        _comment(2, "Bob", 11, "Same words", parent_sequence_id=0, level=1),
    ]
    new = [
        _comment(0, "Alice", 10, "First thread", anchor="a1"),
        _comment(1, "Bob", 11, "Same words", parent_sequence_id=0, level=1),
        _comment(2, "Carol", 12, "Second thread", anchor="c1"),
        _comment(3, "Bob", 11, "Same words", parent_sequence_id=2, level=1),
    ]

    records = CrossRevisionMatcher().match(new, old)

    assert records[1].match is old[2]
    assert records[3].match is None
    assert records[3].has_poor_match


def test_comments_without_counterpart_are_new_or_deleted() -> None:
    old = [_comment(0, "Alice", 10, "Old remark")]
    new = [_comment(0, "Bob", 11, "Fresh remark")]

    changes = _detect_changes(old, new)

    assert [change.comment for change in changes.new] == new
    assert changes.deleted == old
    assert changes.has_changes


def test_fresh_records_every_pass() -> None:
    old = [_comment(0, "Alice", 10, "Remark")]
    new = [_comment(0, "Alice", 10, "Remark")]
    matcher = CrossRevisionMatcher()

    first = matcher.match(new, old)
    second = matcher.match(new, [])

    assert first[0].match is old[0]
    assert second[0].match is None


def test_new_comment_in_newer_revision_stays_unmatched() -> None:
    def at(sequence_id: int, author: str, minute: int, text: str) -> RenderedComment:
        return RenderedComment(
            sequence_id=sequence_id,
            author=author,
            timestamp=f"10:{minute:02d}, 1 January 2024 (UTC)",
            date=datetime(2024, 1, 1, 10, minute, tzinfo=UTC),
            text=text,
            element_htmls=[f"<p>{text}</p>"],
        )

    old = [at(0, "Alice", 0, "First point"), at(1, "Bob", 5, "Second point")]
    new = [at(0, "Alice", 0, "First point"), at(1, "Bob", 5, "Second point"), at(2, "Carol", 10, "Third point")]

    records = CrossRevisionMatcher().match(new, old)

    assert records[0].match is old[0]
    assert records[1].match is old[1]
    assert all(record.match_score > 1.66 for record in records[:2])
    assert records[2].match is None
    assert not records[2].has_poor_match
    assert len(_detect_changes(old, new).new) == 1
