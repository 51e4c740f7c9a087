"""Change detection between two renderings of a page."""

from __future__ import annotations

from collections.abc import Sequence

from talkmatch.models import ChangeSet, CommentChange, CommentMatch, RenderedComment


def has_comment_changed(older: RenderedComment, newer: RenderedComment) -> bool:
    return older.element_htmls != newer.element_htmls or older.text != newer.text


def summarize_matches(records: Sequence[CommentMatch], old_comments: Sequence[RenderedComment]) -> ChangeSet:
    changes = ChangeSet()
    matched_ids: set[int] = set()
    for record in records:
        if record.match is None:
            change = CommentChange(comment=record.comment)
            if record.has_poor_match:
                changes.uncertain.append(change)
            else:
                changes.new.append(change)
            continue
        matched_ids.add(id(record.match))
        if has_comment_changed(record.match, record.comment):
            changes.changed.append(
                CommentChange(comment=record.comment, previous=record.match, match_score=record.match_score)
            )
        else:
            changes.unchanged_count += 1
    changes.deleted = [comment for comment in old_comments if id(comment) not in matched_ids]
    return changes

