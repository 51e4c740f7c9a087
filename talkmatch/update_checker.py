"""Serialized change-detection cycles."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence

from talkmatch.changes import summarize_matches
from talkmatch.matcher import CrossRevisionMatcher
from talkmatch.models import ChangeSet, RenderedComment

logger = logging.getLogger(__name__)

NewerCommentsFetcher = Callable[[], Sequence[RenderedComment]]


class UpdateChecker:
    """Run fetch, match and diff cycles one at a time.

    A cycle started while another is running waits for it. A cycle whose snapshot was invalidated
    while it was in flight returns ``None`` instead of its changes.
    """

    def __init__(self, matcher: CrossRevisionMatcher | None = None) -> None:
        self._matcher = matcher or CrossRevisionMatcher()
        self._cycle_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._generation = 0
        self.last_changes: ChangeSet | None = None

    @property
    def generation(self) -> int:
        with self._state_lock:
            return self._generation

    def invalidate(self) -> None:
        """Mark the current snapshot as superseded, e.g. after the page was re-rendered."""
        with self._state_lock:
            self._generation += 1

    def run_cycle(
        self,
        current_comments: Sequence[RenderedComment],
        fetch_newer: NewerCommentsFetcher,
    ) -> ChangeSet | None:
        with self._cycle_lock:
            generation = self.generation
            newer_comments = list(fetch_newer())
            records = self._matcher.match(newer_comments, current_comments)
            changes = summarize_matches(records, current_comments)
            if generation != self.generation:
                logger.info("Discarding changes computed against a superseded snapshot")
                return None
            self.last_changes = changes
            logger.info(
                "Update check found %d new, %d changed and %d deleted comments",
                len(changes.new),
                len(changes.changed),
                len(changes.deleted),
            )
            return changes
