import json
from pathlib import Path

import pytest

from talkmatch import cli
from talkmatch.connectors.base import PageRef
from talkmatch.services.command_runtime import CommandRuntime

SIGNATURE = "[[User:Alice|Alice]] ([[User talk:Alice|talk]]) 10:00, 1 January 2024 (UTC)"
MARKUP = f"== Topic ==\nHello there friends. {SIGNATURE}\n"
COMMENTS = [
    {
        "sequence_id": 0,
        "author": "Alice",
        "timestamp": "10:00, 1 January 2024 (UTC)",
        "date": "2024-01-01T10:00:00Z",
        "text": "Hello there friends.",
        "element_htmls": ["<p>Hello there friends.</p>"],
        "follows_heading": True,
        "section_headline": "Topic",
    }
]


class _FakeProvider:
    def __init__(self, endpoint: str, timeout_seconds: float = 10.0, user_agent: str = "talkmatch") -> None:
        self.endpoint = endpoint
        self.requests: list[PageRef] = []

    def get_markup(self, ref: PageRef) -> str:
        self.requests.append(ref)
        return MARKUP


def _write_inputs(tmp_path: Path) -> tuple[Path, Path]:
    markup_path = tmp_path / "page.wiki"
    comments_path = tmp_path / "comments.json"
    markup_path.write_text(MARKUP)
    comments_path.write_text(json.dumps(COMMENTS))
    return markup_path, comments_path


def test_cli_parser_supports_commands() -> None:
    parser = cli.build_parser()
    parsed = parser.parse_args(["scan", "--markup", "page.wiki"])
    assert parsed.command == "scan"
    assert parsed.project_path == "."

    parsed_reply = parser.parse_args(
        ["reply", "--markup", "page.wiki", "--comments", "c.json", "--sequence-id", "0", "--text", "Hi"]
    )
    assert parsed_reply.signature == " ~~~~"


def test_scan_command_writes_signatures(tmp_path: Path) -> None:
    markup_path, _ = _write_inputs(tmp_path)
    output = tmp_path / "signatures.json"

    exit_code = cli.main(["scan", "--markup", str(markup_path), "--output", str(output), "--project-path", str(tmp_path)])

    assert exit_code == 0
    signatures = json.loads(output.read_text())
    assert [signature["author"] for signature in signatures] == ["Alice"]


def test_reply_command_writes_new_markup(tmp_path: Path) -> None:
    markup_path, comments_path = _write_inputs(tmp_path)
    output = tmp_path / "new.wiki"

    exit_code = cli.main(
        [
            "reply",
            "--markup",
            str(markup_path),
            "--comments",
            str(comments_path),
            "--sequence-id",
            "0",
            "--text",
            "Thanks!",
            "--output",
            str(output),
            "--project-path",
            str(tmp_path),
        ]
    )

    assert exit_code == 0
    assert output.read_text() == MARKUP + ": Thanks! ~~~~\n"


def test_locate_command_prints_source_range(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    markup_path, comments_path = _write_inputs(tmp_path)

    exit_code = cli.main(
        [
            "locate",
            "--markup",
            str(markup_path),
            "--comments",
            str(comments_path),
            "--sequence-id",
            "0",
            "--project-path",
            str(tmp_path),
        ]
    )

    assert exit_code == 0
    located = json.loads(capsys.readouterr().out)
    assert located["code"] == "Hello there friends."
    assert MARKUP[located["start_index"] : located["end_index"]] == "Hello there friends."


def test_locate_failure_exits_with_code_2(tmp_path: Path) -> None:
    markup_path, comments_path = _write_inputs(tmp_path)
    comments_path.write_text(json.dumps([dict(COMMENTS[0], author="Mallory")]))

    exit_code = cli.main(
        [
            "locate",
            "--markup",
            str(markup_path),
            "--comments",
            str(comments_path),
            "--sequence-id",
            "0",
            "--project-path",
            str(tmp_path),
        ]
    )

    assert exit_code == 2


def test_fetch_command_uses_runtime_provider(tmp_path: Path) -> None:
    output = tmp_path / "fetched.wiki"

    exit_code = cli.main(
        [
            "fetch",
            "--endpoint",
            "https://wiki.example/w/api.php",
            "--title",
            "Talk:Example",
            "--output",
            str(output),
            "--project-path",
            str(tmp_path),
        ],
        runtime=CommandRuntime(provider_cls=_FakeProvider),
    )

    assert exit_code == 0
    assert output.read_text() == MARKUP


def test_diff_command_writes_reports(tmp_path: Path) -> None:
    old_path = tmp_path / "old.json"
    new_path = tmp_path / "new.json"
    out_dir = tmp_path / "out"
    old_path.write_text(json.dumps(COMMENTS))
    reply = {
        "sequence_id": 1,
        "author": "Bob",
        "timestamp": "11:00, 1 January 2024 (UTC)",
        "date": "2024-01-01T11:00:00Z",
        "text": "A reply",
        "level": 1,
        "parent_sequence_id": 0,
        "section_headline": "Topic",
    }
    new_path.write_text(json.dumps(COMMENTS + [reply]))

    exit_code = cli.main(
        ["diff", "--old", str(old_path), "--new", str(new_path), "--output-dir", str(out_dir), "--project-path", str(tmp_path)]
    )

    assert exit_code == 0
    payload = json.loads((out_dir / "changes.json").read_text())
    assert [change["comment"]["author"] for change in payload["new"]] == ["Bob"]
    assert (out_dir / "changes.md").exists()
