from datetime import UTC, datetime

import pytest

from talkmatch.config import MutatorConfig, SiteConfig
from talkmatch.errors import (
    CLOSED,
    DELETE_REPLIES_IN_SECTION,
    DELETE_REPLIES_TO_COMMENT,
    FIND_PLACE,
    ParseError,
)
from talkmatch.locator import CommentLocator
from talkmatch.models import LocatedComment, MutationAction, RenderedComment
from talkmatch.mutator import CodeMutator
from talkmatch.site import SitePatterns

PATTERNS = SitePatterns(SiteConfig())


def _sig(name: str, time: str) -> str:
    return f"[[User:{name}|{name}]] ([[User talk:{name}|talk]]) {time}, 1 January 2024 (UTC)"


def _comment(sequence_id: int, author: str, time: str, text: str, **kwargs) -> RenderedComment:
    hour, minute = (int(part) for part in time.split(":"))
    return RenderedComment(
        sequence_id=sequence_id,
        author=author,
        timestamp=f"{time}, 1 January 2024 (UTC)",
        date=datetime(2024, 1, 1, hour, minute, tzinfo=UTC),
        text=text,
        **kwargs,
    )


def _locate(comment: RenderedComment, markup: str, prior: list[RenderedComment] | None = None) -> LocatedComment:
    return CommentLocator(PATTERNS).locate(comment, markup, prior or [])


THREAD = (
    f":A text. {_sig('Alice', '10:00')}\n"
    f"::B text. {_sig('Bob', '11:00')}\n"
    f":C text. {_sig('Carol', '12:00')}\n"
)
A = _comment(0, "Alice", "10:00", "A text.", level=1)
B = _comment(1, "Bob", "11:00", "B text.", level=2, parent_sequence_id=0)
C = _comment(2, "Carol", "12:00", "C text.", level=1)


def test_reply_goes_after_existing_replies() -> None:
    located = _locate(A, THREAD)
    mutator = CodeMutator(PATTERNS)

    placement = mutator.find_reply_place(located, THREAD)
    assert placement.index == THREAD.index(":C text.")
    assert placement.reply_indentation_chars == "::"

    result = mutator.reply(located, THREAD, "My answer.")
    assert result == THREAD.replace(":C text.", ":: My answer. ~~~~\n:C text.")


def test_mutate_reply_inserts_raw_code() -> None:
    located = _locate(A, THREAD)
    result = CodeMutator(PATTERNS).mutate(located, THREAD, MutationAction.REPLY, "::Raw reply\n")
    assert result == THREAD.replace(":C text.", "::Raw reply\n:C text.")


def test_mutate_edit_requires_code() -> None:
    located = _locate(A, THREAD)
    with pytest.raises(ValueError):
        CodeMutator(PATTERNS).mutate(located, THREAD, "edit")


def test_delete_refuses_comment_with_replies() -> None:
    located = _locate(A, THREAD)
    with pytest.raises(ParseError) as excinfo:
        CodeMutator(PATTERNS).delete(located, THREAD)
    assert excinfo.value.code == DELETE_REPLIES_TO_COMMENT


def test_delete_comment_without_replies() -> None:
    markup = THREAD.replace(f"::B text. {_sig('Bob', '11:00')}\n", "")
    carol = C.model_copy(update={"sequence_id": 1})
    located = _locate(A, markup)

    result = CodeMutator(PATTERNS).delete(located, markup)

    assert result == f":C text. {_sig('Carol', '12:00')}\n"
    assert _locate(carol, result).code == "C text."


def test_edit_keeps_signature_and_indentation() -> None:
    located = _locate(B, THREAD, [A])

    result = CodeMutator(PATTERNS).edit(located, THREAD, "Changed my mind.")

    assert f":: Changed my mind. {_sig('Bob', '11:00')}\n" in result
    assert "B text." not in result
    assert result.startswith(":A text.")
    assert result.endswith(f":C text. {_sig('Carol', '12:00')}\n")


def test_edit_opening_comment_keeps_heading() -> None:
    markup = f"== Topic ==\nHello there friends. {_sig('Alice', '10:00')}\n"
    comment = _comment(0, "Alice", "10:00", "Hello there friends.", follows_heading=True, section_headline="Topic")
    located = _locate(comment, markup)

    result = CodeMutator(PATTERNS).edit(located, markup, "Goodbye.")

    assert result == f"== Topic ==\nGoodbye. {_sig('Alice', '10:00')}\n"


def test_reply_inside_closed_discussion_fails() -> None:
    markup = (
        "{{Archive top|result=done}}\n"
        f"Hello there. {_sig('Alice', '10:00')}\n"
        "{{Archive bottom}}\n"
    )
    located = _locate(_comment(0, "Alice", "10:00", "Hello there."), markup)

    with pytest.raises(ParseError) as excinfo:
        CodeMutator(PATTERNS).find_reply_place(located, markup)
    assert excinfo.value.code == CLOSED


def test_reply_before_outdent_template_fails() -> None:
    markup = (
        f"Hello there. {_sig('Alice', '10:00')}\n"
        f"{{{{Outdent|1}}}} Later. {_sig('Bob', '11:00')}\n"
    )
    located = _locate(_comment(0, "Alice", "10:00", "Hello there."), markup)

    with pytest.raises(ParseError) as excinfo:
        CodeMutator(PATTERNS).find_reply_place(located, markup)
    assert excinfo.value.code == FIND_PLACE


def test_deep_reply_is_outdented() -> None:
    markup = (
        f"Start. {_sig('Alice', '10:00')}\n"
        f":::Deep reply. {_sig('Bob', '11:00')}\n"
        f":Next one. {_sig('Carol', '12:00')}\n"
    )
    alice = _comment(0, "Alice", "10:00", "Start.")
    bob = _comment(1, "Bob", "11:00", "Deep reply.", level=3, parent_sequence_id=0)
    located = _locate(bob, markup, [alice])
    mutator = CodeMutator(PATTERNS, MutatorConfig(outdent_level=4))

    placement = mutator.find_reply_place(located, markup)
    assert placement.is_reply_outdented
    assert placement.reply_indentation_chars == "::"

    result = mutator.reply(located, markup, "Outdented reply.")
    assert result == markup.replace(":Next one.", ":: {{Outdent|1}} Outdented reply. ~~~~\n:Next one.")


def test_delete_opening_comment_removes_section() -> None:
    second = f"== Other ==\nAnother topic. {_sig('Bob', '11:00')}\n"
    markup = f"== Topic ==\nHello there friends. {_sig('Alice', '10:00')}\n\n" + second
    comment = _comment(0, "Alice", "10:00", "Hello there friends.", follows_heading=True, section_headline="Topic")
    located = _locate(comment, markup)

    assert CodeMutator(PATTERNS).delete(located, markup) == second


def test_delete_opening_comment_with_replies_in_section_fails() -> None:
    markup = (
        "== Topic ==\n"
        f"Hello there friends. {_sig('Alice', '10:00')}\n"
        f":Reply. {_sig('Bob', '11:00')}\n"
    )
    comment = _comment(0, "Alice", "10:00", "Hello there friends.", follows_heading=True, section_headline="Topic")
    located = _locate(comment, markup)

    with pytest.raises(ParseError) as excinfo:
        CodeMutator(PATTERNS).delete(located, markup)
    assert excinfo.value.code == DELETE_REPLIES_IN_SECTION


def test_build_comment_code() -> None:
    mutator = CodeMutator(PATTERNS)

    assert mutator.build_comment_code("New topic text", "") == "New topic text ~~~~\n"
    assert mutator.build_comment_code("Thanks ~~~~", ":") == ": Thanks ~~~~\n"
    assert mutator.build_comment_code("First line\nSecond line", "::") == ":: First line<br> Second line ~~~~\n"
    assert mutator.build_comment_code("Intro\n* point", ":") == ": Intro\n:* point ~~~~\n"


def test_reply_to_last_comment_without_trailing_newline() -> None:
    markup = f"== Topic ==\nHello there. {_sig('Alice', '10:00')}"
    opening = _comment(0, "Alice", "10:00", "Hello there.", follows_heading=True, section_headline="Topic")
    located = _locate(opening, markup)
    mutator = CodeMutator(PATTERNS)

    result = mutator.reply(located, markup, "My answer.")
    assert result == markup + "\n: My answer. ~~~~\n"

    raw = mutator.mutate(located, markup, MutationAction.REPLY, ":Raw reply\n")
    assert raw == markup + "\n:Raw reply\n"


def test_chunk_runs_to_end_of_markup_without_heading() -> None:
    mutator = CodeMutator(PATTERNS)
    start = THREAD.index("::B text.")

    assert mutator.chunk_code_after(THREAD, start) == THREAD[start:]
