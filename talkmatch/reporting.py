"""Report generation for change detection runs."""

from __future__ import annotations

import json
from pathlib import Path

from talkmatch.models import ChangeSet, CommentChange, RenderedComment

_EXCERPT_LENGTH = 80


def _excerpt(text: str) -> str:
    flat = " ".join(text.split())
    if len(flat) <= _EXCERPT_LENGTH:
        return flat
    return flat[: _EXCERPT_LENGTH - 1].rstrip() + "…"


def _display_comment(comment: RenderedComment) -> str:
    when = comment.timestamp or "undated"
    line = f"#{comment.sequence_id} {comment.author} ({when})"
    if comment.section_headline:
        line += f" in \"{comment.section_headline}\""
    excerpt = _excerpt(comment.text)
    if excerpt:
        line += f": {excerpt}"
    return line


def _display_change(change: CommentChange) -> str:
    line = _display_comment(change.comment)
    if change.previous is not None and change.previous.sequence_id != change.comment.sequence_id:
        line += f" (was #{change.previous.sequence_id})"
    if change.match_score is not None:
        line += f" score={change.match_score:.2f}"
    return line


def render_markdown_report(changes: ChangeSet) -> str:
    lines: list[str] = []
    lines.append("# Talk Page Changes")
    lines.append("")
    lines.append(f"- New: {len(changes.new)}")
    lines.append(f"- Changed: {len(changes.changed)}")
    lines.append(f"- Deleted: {len(changes.deleted)}")
    lines.append(f"- Uncertain: {len(changes.uncertain)}")
    lines.append(f"- Unchanged: {changes.unchanged_count}")
    lines.append("")

    sections: list[tuple[str, list[str]]] = [
        ("New comments", [_display_change(change) for change in changes.new]),
        ("Changed comments", [_display_change(change) for change in changes.changed]),
        ("Deleted comments", [_display_comment(comment) for comment in changes.deleted]),
        ("Uncertain comments", [_display_change(change) for change in changes.uncertain]),
    ]
    for title, entries in sections:
        if not entries:
            continue
        lines.append(f"## {title}")
        lines.append("")
        lines.extend(f"- {entry}" for entry in entries)
        lines.append("")

    if not changes.has_changes and not changes.uncertain:
        lines.append("No changes detected.")
        lines.append("")
    return "\n".join(lines)


def write_report_bundle(changes: ChangeSet, output_dir: str | Path) -> None:
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    (out / "changes.json").write_text(changes.model_dump_json(indent=2))
    summary = {
        "new": len(changes.new),
        "changed": len(changes.changed),
        "deleted": len(changes.deleted),
        "uncertain": len(changes.uncertain),
        "unchanged": changes.unchanged_count,
    }
    (out / "summary.json").write_text(json.dumps(summary, indent=2))
    (out / "changes.md").write_text(render_markdown_report(changes))
