"""Main orchestration for talkmatch."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from talkmatch.changes import summarize_matches
from talkmatch.config import TalkMatchConfig, load_effective_config
from talkmatch.connectors.base import MarkupProvider, PageRef
from talkmatch.errors import ProviderError
from talkmatch.hooks import HookManager, HookName
from talkmatch.locator import CommentLocator
from talkmatch.matcher import CrossRevisionMatcher
from talkmatch.models import ChangeSet, CommentMatch, LocatedComment, MutationAction, RenderedComment, Signature
from talkmatch.mutator import CodeMutator
from talkmatch.scanner import SignatureScanner
from talkmatch.site import SitePatterns
from talkmatch.update_checker import NewerCommentsFetcher, UpdateChecker

logger = logging.getLogger(__name__)


class TalkPageEngine:
    def __init__(
        self,
        config: TalkMatchConfig,
        hooks: HookManager | None = None,
        provider: MarkupProvider | None = None,
    ) -> None:
        self.config = config
        self.hooks = hooks or HookManager()
        self.provider = provider
        self.patterns = SitePatterns.from_config(config.site)
        self.scanner = SignatureScanner(self.patterns)
        self.locator = CommentLocator(self.patterns, config.locator, scanner=self.scanner)
        self.mutator = CodeMutator(self.patterns, config.mutator, scanner=self.scanner)
        self.matcher = CrossRevisionMatcher(config.matcher)
        self.update_checker = UpdateChecker(self.matcher)

    @classmethod
    def from_project(
        cls,
        project_path: str | Path,
        org_defaults: dict | None = None,
        system_defaults: dict | None = None,
        runtime_override: dict | None = None,
        hooks: HookManager | None = None,
        provider: MarkupProvider | None = None,
    ) -> TalkPageEngine:
        config = load_effective_config(
            project_path=project_path,
            org_defaults=org_defaults,
            system_defaults=system_defaults,
            runtime_override=runtime_override,
        )
        return cls(config=config, hooks=hooks, provider=provider)

    def _fail(self, exc: Exception, context: dict[str, Any]) -> None:
        logger.debug("%s failed: %s", context.get("operation"), exc)
        self.hooks.emit_error(exc, context)

    def scan(self, markup: str) -> list[Signature]:
        context = {"operation": "scan", "markup_length": len(markup)}
        self.hooks.emit(HookName.BEFORE_SCAN, context, {})
        try:
            signatures = self.scanner.scan(markup)
        except Exception as exc:
            self._fail(exc, context)
            raise
        self.hooks.emit(HookName.AFTER_SCAN, context, {"signatures": len(signatures)})
        return signatures

    def locate(
        self,
        comment: RenderedComment,
        markup: str | None,
        prior_comments: Sequence[RenderedComment] = (),
    ) -> LocatedComment:
        context = {"operation": "locate", "sequence_id": comment.sequence_id, "author": comment.author}
        self.hooks.emit(HookName.BEFORE_LOCATE, context, {})
        try:
            located = self.locator.locate(comment, markup, prior_comments)
        except Exception as exc:
            self._fail(exc, context)
            raise
        self.hooks.emit(
            HookName.AFTER_LOCATE,
            context,
            {"score": located.score, "start_index": located.start_index, "end_index": located.end_index},
        )
        logger.debug(
            "Located comment %d at %d-%d with score %.4f",
            comment.sequence_id,
            located.start_index,
            located.end_index,
            located.score,
        )
        return located

    def locate_in_rendering(
        self,
        comments: Sequence[RenderedComment],
        sequence_id: int,
        markup: str | None,
    ) -> LocatedComment:
        """Locate the comment with ``sequence_id`` using the comments preceding it as context."""
        position = next((i for i, comment in enumerate(comments) if comment.sequence_id == sequence_id), None)
        if position is None:
            raise ValueError(f"No rendered comment with sequence id {sequence_id}")
        return self.locate(comments[position], markup, comments[:position])

    def fetch_markup(self, ref: PageRef) -> str:
        if self.provider is None:
            raise ProviderError("No markup provider configured")
        context = {"operation": "fetch", "title": ref.title}
        try:
            return self.provider.get_markup(ref)
        except Exception as exc:
            self._fail(exc, context)
            raise

    def locate_on_page(
        self,
        ref: PageRef,
        comments: Sequence[RenderedComment],
        sequence_id: int,
    ) -> tuple[LocatedComment, str]:
        """Fetch fresh markup and locate a comment in it; the markup is returned for mutation."""
        markup = self.fetch_markup(ref)
        return self.locate_in_rendering(comments, sequence_id, markup), markup

    def mutate(
        self,
        located: LocatedComment,
        markup: str,
        action: MutationAction | str,
        new_code: str | None = None,
    ) -> str:
        action = MutationAction(action)
        return self._run_mutation(
            located, markup, action, lambda: self.mutator.mutate(located, markup, action, new_code)
        )

    def _run_mutation(self, located: LocatedComment, markup: str, action: MutationAction, operation: Callable[[], str]) -> str:
        context = {"operation": "mutate", "action": action.value, "sequence_id": located.signature.sequence_id}
        self.hooks.emit(HookName.BEFORE_MUTATE, context, {})
        try:
            result = operation()
        except Exception as exc:
            self._fail(exc, context)
            raise
        self.hooks.emit(HookName.AFTER_MUTATE, context, {"length_delta": len(result) - len(markup)})
        logger.info("Applied %s to comment by %s", action.value, located.signature.author)
        return result

    def reply(self, located: LocatedComment, markup: str, text: str, signature: str = " ~~~~") -> str:
        return self._run_mutation(
            located, markup, MutationAction.REPLY, lambda: self.mutator.reply(located, markup, text, signature)
        )

    def edit(self, located: LocatedComment, markup: str, text: str) -> str:
        return self._run_mutation(located, markup, MutationAction.EDIT, lambda: self.mutator.edit(located, markup, text))

    def delete(self, located: LocatedComment, markup: str) -> str:
        return self._run_mutation(located, markup, MutationAction.DELETE, lambda: self.mutator.delete(located, markup))

    def match(
        self,
        current_comments: Sequence[RenderedComment],
        other_comments: Sequence[RenderedComment],
    ) -> list[CommentMatch]:
        context = {"operation": "match", "current": len(current_comments), "other": len(other_comments)}
        self.hooks.emit(HookName.BEFORE_MATCH, context, {})
        try:
            records = self.matcher.match(current_comments, other_comments)
        except Exception as exc:
            self._fail(exc, context)
            raise
        self.hooks.emit(
            HookName.AFTER_MATCH,
            context,
            {"matched": sum(1 for record in records if record.match is not None)},
        )
        return records

    def detect_changes(
        self,
        old_comments: Sequence[RenderedComment],
        new_comments: Sequence[RenderedComment],
    ) -> ChangeSet:
        records = self.match(new_comments, old_comments)
        changes = summarize_matches(records, old_comments)
        logger.info(
            "Detected %d new, %d changed, %d deleted and %d uncertain comments",
            len(changes.new),
            len(changes.changed),
            len(changes.deleted),
            len(changes.uncertain),
        )
        return changes

    def check_for_updates(
        self,
        current_comments: Sequence[RenderedComment],
        fetch_newer: NewerCommentsFetcher,
    ) -> ChangeSet | None:
        """Run one update cycle; ``None`` means the page was re-rendered while the cycle ran."""
        context = {"operation": "check_for_updates", "current": len(current_comments)}
        try:
            return self.update_checker.run_cycle(current_comments, fetch_newer)
        except Exception as exc:
            self._fail(exc, context)
            raise

    def invalidate_updates(self) -> None:
        self.update_checker.invalidate()

