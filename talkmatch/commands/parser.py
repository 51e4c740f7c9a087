"""CLI parser construction."""

from __future__ import annotations

import argparse

from talkmatch.commands.common import add_comment_target_flags, add_common_config_flags, add_provider_flags


def _add_text_flags(cmd: argparse.ArgumentParser) -> None:
    group = cmd.add_mutually_exclusive_group(required=True)
    group.add_argument("--text", help="Comment text")
    group.add_argument("--text-file", help="Path to a file holding the comment text")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Talk page comment locator and editor")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ERROR)")

    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="List the signatures found in a markup file as JSON")
    scan.add_argument("--markup", required=True, help="Path to a markup file")
    scan.add_argument("--output", help="Output path (default: stdout)")
    add_common_config_flags(scan)

    locate = sub.add_parser("locate", help="Find the source code of a rendered comment")
    add_comment_target_flags(locate)
    locate.add_argument("--output", help="Output path (default: stdout)")
    add_common_config_flags(locate)

    reply = sub.add_parser("reply", help="Insert a reply to a rendered comment")
    add_comment_target_flags(reply)
    _add_text_flags(reply)
    reply.add_argument("--signature", default=" ~~~~", help="Signature code appended to the reply")
    reply.add_argument("--output", help="Output path for the new markup (default: stdout)")
    add_common_config_flags(reply)

    edit = sub.add_parser("edit", help="Replace the text of a rendered comment")
    add_comment_target_flags(edit)
    _add_text_flags(edit)
    edit.add_argument("--output", help="Output path for the new markup (default: stdout)")
    add_common_config_flags(edit)

    delete = sub.add_parser("delete", help="Remove a rendered comment without replies")
    add_comment_target_flags(delete)
    delete.add_argument("--output", help="Output path for the new markup (default: stdout)")
    add_common_config_flags(delete)

    diff = sub.add_parser("diff", help="Compare two rendered comment snapshots")
    diff.add_argument("--old", required=True, help="Path to JSON array of comments of the older rendering")
    diff.add_argument("--new", required=True, help="Path to JSON array of comments of the newer rendering")
    diff.add_argument("--output-dir", default="./talkmatch-out", help="Output directory")
    add_common_config_flags(diff)

    fetch = sub.add_parser("fetch", help="Fetch page markup from a MediaWiki API")
    add_provider_flags(fetch, required=True)
    fetch.add_argument("--output", help="Output path (default: stdout)")
    add_common_config_flags(fetch)

    return parser
