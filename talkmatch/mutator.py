"""Reply placement and markup modification for located comments."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from talkmatch.config import MutatorConfig
from talkmatch.errors import (
    CLOSED,
    DELETE_REPLIES_IN_SECTION,
    DELETE_REPLIES_TO_COMMENT,
    FIND_PLACE,
    ParseError,
)
from talkmatch.models import LocatedComment, MutationAction
from talkmatch.scanner import SignatureScanner
from talkmatch.site import SitePatterns
from talkmatch.wikitext import find_templates, mask_distracting_code

logger = logging.getLogger(__name__)

_NEXT_HEADING_RE = re.compile(r"\n+(=+).*\1[ \t\x01\x02]*\n|\Z")
_HEADING_LINE_RE = re.compile(r"^(=+)(.*)\1[ \t]*$", re.MULTILINE)
_TABLE_PART = r"[\s\S]*?(?:(?:\s*\n\|\})+|</table>).*\n"
_TILDES_RE = re.compile(r"\s*~{3,}\Z")


@dataclass(frozen=True)
class ReplyPlacement:
    """Where a reply goes and how it is indented."""

    index: int
    reply_indentation_chars: str
    indentation_after: str
    is_next_line: bool
    is_reply_outdented: bool = False


@dataclass(frozen=True)
class MaskedCode:
    code: str
    closed_spans: tuple[tuple[int, int], ...]


def _indentation_markers(indentation_length: int, total_length: int) -> str:
    return "\x01" * indentation_length + " " * (total_length - indentation_length - 1) + "\x02"


def _with_line_end(markup: str) -> str:
    return markup if markup.endswith("\n") else markup + "\n"


class CodeMutator:
    """Compute new markup for replies, edits and deletions.

    Every operation returns a new string; the markup passed in is never modified and nothing is
    returned when an operation fails.
    """

    def __init__(
        self,
        patterns: SitePatterns,
        config: MutatorConfig | None = None,
        scanner: SignatureScanner | None = None,
    ) -> None:
        self.patterns = patterns
        self.config = config or MutatorConfig()
        self.scanner = scanner or SignatureScanner(patterns)

    def mask_closed_discussions(self, markup: str) -> MaskedCode:
        """Mask distracting code and closed discussions, keeping the length of ``markup``.

        Closed discussions turn into ``\\x01`` markers (one per indentation character of their
        content) followed by spaces and a closing ``\\x02``.
        """
        code = mask_distracting_code(markup)
        spans: list[tuple[int, int]] = []
        patterns = self.patterns

        if patterns.closed_pair is not None:

            def replace_pair(match: re.Match[str]) -> str:
                spans.append(match.span())
                return _indentation_markers(len(match.group("indentation")), len(match.group(0)))

            code = patterns.closed_pair.sub(replace_pair, code)

        if patterns.closed_single is not None:
            position = 0
            while True:
                match = patterns.closed_single.search(code, position)
                if match is None:
                    break
                start = match.start()
                templates = find_templates(code[start:])
                length = templates[0][1] if templates and templates[0][0] == 0 else len(match.group(0))
                code = (
                    code[:start]
                    + _indentation_markers(len(match.group("indentation")), length)
                    + code[start + length :]
                )
                spans.append((start, start + length))
                position = start + 1

        return MaskedCode(code=code, closed_spans=tuple(sorted(spans)))

    def chunk_code_after(self, markup: str, index: int, masked: MaskedCode | None = None) -> str:
        """Masked code from ``index`` up to the next heading, minus endings kept in the section."""
        masked = masked or self.mask_closed_discussions(markup)
        heading_match = _NEXT_HEADING_RE.search(masked.code, index)
        if heading_match is None:
            chunk_end = len(markup)
        else:
            chunk_end = heading_match.start() + 1
        chunk = markup[index:chunk_end]
        for pattern in self.patterns.keep_in_section_ending:
            ending = pattern.search(chunk)
            if ending:
                chunk_end -= len(ending.group(0)) - 1
        return masked.code[index:chunk_end]

    def find_reply_place(self, located: LocatedComment, markup: str) -> ReplyPlacement:
        markup = _with_line_end(markup)
        masked = self.mask_closed_discussions(markup)
        current_index = located.end_index
        chunk = self.chunk_code_after(markup, current_index, masked)
        if re.match(r" +\x02", chunk):
            raise ParseError(CLOSED)

        reply_indentation = located.reply_indentation_chars
        code_between, indentation_after, is_next_line = self._match_proper_place(located, chunk)

        is_outdented = False
        outdent_level = self.config.outdent_level
        if (
            self.patterns.outdent is not None
            and outdent_level
            and len(reply_indentation) >= outdent_level
            and len(located.indentation_chars) > len(indentation_after)
            and is_next_line
        ):
            is_outdented = True
            reply_indentation = (
                reply_indentation[: max(len(indentation_after), 1)] + self.patterns.default_indentation_char
            )

        # Follow the indentation characters of a preceding reply if they differ.
        mode = self.patterns.site.indentation_char_mode
        many_chars = "" if len(reply_indentation) == 1 and mode == "unify" else "[:*#]{2,}|"
        first_char = "[#*:]" if mode == "mimic" else "#"
        changed = re.search(r"\n(" + many_chars + first_char + r"[:*#]*).*\n\Z", code_between)
        if changed:
            reply_indentation = changed.group(1)[: len(reply_indentation)]
            if reply_indentation.endswith(":"):
                reply_indentation = reply_indentation[:-1] + self.patterns.default_indentation_char

        index = current_index + len(code_between)
        if any(start < index < end for start, end in masked.closed_spans):
            raise ParseError(CLOSED)

        logger.debug("Reply to signature %d goes to offset %d", located.signature.sequence_id, index)
        return ReplyPlacement(
            index=index,
            reply_indentation_chars=reply_indentation,
            indentation_after=indentation_after,
            is_next_line=is_next_line,
            is_reply_outdented=is_outdented,
        )

    def _match_proper_place(self, located: LocatedComment, chunk: str) -> tuple[str, str, bool]:
        patterns = self.patterns
        alternatives = [re.escape(located.signature_code)]
        if patterns.timestamp_source:
            alternatives.append(patterns.timestamp_source + ".*")
        if patterns.unsigned_source:
            alternatives.append(patterns.unsigned_source + ".*")
        # \x01 comes from masked closed discussions and HTML comments.
        alternatives.append(r"(?:^|\n)\x01.+")
        any_signature = (
            r"^(?P<between>"
            + (_TABLE_PART if located.is_table_comment else "")
            + r"[\s\S]*?(?:"
            + "|".join(alternatives)
            + r")\n)\n*"
        )
        max_length = len(located.reply_indentation_chars) - 1
        # An empty line is not a thread end; "#" at the line start can only open a numbered list.
        end_of_thread = (
            r"(?P<after>(?![:*#\x01\n])"
            + (r"|[:*#\x01]{1,%d}(?![:*\x01])" % max_length if max_length > 0 else "")
            + ")"
        )

        match = re.match(any_signature + end_of_thread, chunk)
        code_between = match.group("between") if match else chunk
        indentation_after = match.group("after") if match else ""
        is_next_line = code_between.count("\n") == 1

        if patterns.outdent is not None:
            outdent = patterns.outdent.match(chunk[len(code_between) :])
            if outdent is not None:
                if is_next_line:
                    raise ParseError(FIND_PLACE, "an outdent template follows the comment")
                if len(outdent.group("indentation")) <= len(located.reply_indentation_chars):
                    # Put the reply right after the next signed line, before the outdent.
                    fallback = re.match(any_signature, chunk)
                    if fallback:
                        code_between = fallback.group("between")

        return code_between, indentation_after, is_next_line

    def mutate(
        self,
        located: LocatedComment,
        markup: str,
        action: MutationAction | str,
        new_code: str | None = None,
    ) -> str:
        """Return ``markup`` with ``action`` applied to the located comment.

        For replies ``new_code`` is the complete reply code inserted as is; for edits it replaces
        the comment from the start of its line to the end of its signature.
        """
        action = MutationAction(action)
        if action is MutationAction.DELETE:
            return self.delete(located, markup)
        if new_code is None:
            raise ValueError(f"{action.value} requires new code")
        if action is MutationAction.REPLY:
            markup = _with_line_end(markup)
            placement = self.find_reply_place(located, markup)
            return markup[: placement.index] + new_code + markup[placement.index :]
        return markup[: located.line_start_index] + new_code + markup[located.signature_end_index :]

    def reply(self, located: LocatedComment, markup: str, text: str, signature: str = " ~~~~") -> str:
        markup = _with_line_end(markup)
        placement = self.find_reply_place(located, markup)
        outdent_difference = located.level - len(placement.reply_indentation_chars) if placement.is_reply_outdented else 0
        code = self.build_comment_code(
            text,
            placement.reply_indentation_chars,
            signature=signature,
            outdent_difference=outdent_difference,
        )
        return markup[: placement.index] + code + markup[placement.index :]

    def edit(self, located: LocatedComment, markup: str, text: str) -> str:
        code = self.build_comment_code(
            text,
            located.indentation_chars,
            signature=located.signature_code if located.in_small_font else located.signature.dirty_source_code,
            small=located.in_small_font,
            trailing_newline=False,
        )
        if located.is_opening_section and located.heading_match is not None:
            leading_newlines = located.code[: len(located.code) - len(located.code.lstrip("\n"))]
            code = located.heading_match.code + leading_newlines + code
        return self.mutate(located, markup, MutationAction.EDIT, code)

    def delete(self, located: LocatedComment, markup: str) -> str:
        if located.is_opening_section and located.heading_match is not None:
            start, end = self.section_bounds(markup, located.heading_match.start_index, located.heading_match.level)
            signature_count = len(self.scanner.scan(markup[start:end]))
            if signature_count > 1:
                raise ParseError(DELETE_REPLIES_IN_SECTION, f"{signature_count} signatures in the section")
            return markup[:start] + markup[end:]

        replies = re.match(r".+\n+[:*#]{%d,}" % (len(located.indentation_chars) + 1), markup[located.end_index :])
        if replies:
            raise ParseError(DELETE_REPLIES_TO_COMMENT)
        return markup[: located.line_start_index] + markup[located.signature_end_index + 1 :]

    def section_bounds(self, markup: str, heading_start: int, level: int) -> tuple[int, int]:
        """Span of the section whose heading starts at ``heading_start``.

        The section ends at the next heading of the same or a higher level; endings that should stay
        in the section (such as trailing HTML comments) are left out of the span.
        """
        masked = mask_distracting_code(markup)
        heading_end = masked.find("\n", heading_start)
        end = len(markup)
        if heading_end != -1:
            for match in _HEADING_LINE_RE.finditer(masked, heading_end + 1):
                if len(match.group(1)) <= level:
                    end = match.start()
                    break
        content = markup[heading_start:end]
        for pattern in self.patterns.keep_in_section_ending:
            ending = pattern.search(content)
            if ending and ending.group(0).strip():
                end -= len(ending.group(0)) - 1
                content = markup[heading_start:end]
        return heading_start, end

    def build_comment_code(
        self,
        text: str,
        indentation: str,
        *,
        signature: str = " ~~~~",
        outdent_difference: int = 0,
        small: bool = False,
        trailing_newline: bool = True,
    ) -> str:
        """Turn plain comment text into markup ready to be inserted.

        Lines of an indented comment are joined with ``<br>``; lines starting with list markup are
        moved to their own lines with the indentation repeated.
        """
        site = self.patterns.site
        text = _TILDES_RE.sub("", text.strip())
        rest_indentation = indentation.replace("*", ":")

        if indentation:
            lines = [line.strip() for line in text.split("\n") if line.strip()]
            code = ""
            for line in lines:
                if not code:
                    code = line
                elif re.match(r"[:*#;]", line):
                    code += "\n" + rest_indentation + line
                else:
                    code += "<br> " + line
            text = code

        if not text or text.endswith((" ", "\n")):
            signature = signature.lstrip()
        if small:
            before = "\n" + rest_indentation if re.match(r"[:*#; ]", text) else ""
            text = f"<small>{before}{text}{signature}</small>"
        else:
            text += signature

        if outdent_difference and self.patterns.outdent_template_name:
            separator = "\n" if re.match(r"[:*#]+", text) else " "
            text = "{{" + self.patterns.outdent_template_name + f"|{outdent_difference}}}}}" + separator + text

        if trailing_newline:
            text += "\n"

        if indentation:
            if re.match(r"[*#;\x03]", text):
                indentation = rest_indentation
            spacing = " " if site.space_after_indentation_chars and not re.match(r"[:*#;]", text) else ""
            text = indentation + spacing + text
        return text
