"""Core Pydantic domain models for talkmatch."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

UNDATED_AUTHOR = "<undated>"


class MutationAction(str, Enum):
    REPLY = "reply"
    EDIT = "edit"
    DELETE = "delete"


class Signature(BaseModel):
    """A signature found in raw markup.

    ``start_index``/``end_index`` delimit ``dirty_source_code`` in the markup the signature was
    scanned from; ``comment_start_index`` is only a first guess of where the comment begins.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    author: str
    timestamp: str | None = None
    date: datetime | None = None
    dirty_source_code: str
    start_index: int
    end_index: int
    comment_start_index: int = 0
    sequence_id: int = 0

    @property
    def is_undated(self) -> bool:
        return self.author == UNDATED_AUTHOR


class RenderedComment(BaseModel):
    """A comment as produced by one rendering pass of a page."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    sequence_id: int
    author: str
    timestamp: str | None = None
    date: datetime | None = None
    anchor: str | None = None
    text: str = ""
    element_htmls: list[str] = Field(default_factory=list)
    level: int = 0
    parent_sequence_id: int | None = None
    section_headline: str | None = None
    follows_heading: bool = False
    has_foreign_timestamps: bool = False
    is_table_comment: bool = False

    @property
    def is_opening_section(self) -> bool:
        return self.follows_heading


class HeadingMatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    code: str
    start_index: int
    level: int
    headline_code: str


class LocatedComment(BaseModel):
    """The span of markup judged to hold a rendered comment.

    ``markup[start_index:end_index] == code`` and
    ``markup[end_index:signature_end_index] == signature.dirty_source_code`` hold for the markup the
    comment was located in.
    """

    model_config = ConfigDict(extra="forbid")

    signature: Signature
    code: str
    start_index: int
    end_index: int
    signature_end_index: int
    line_start_index: int
    original_indentation_chars: str = ""
    indentation_chars: str = ""
    reply_indentation_chars: str = ""
    indentation_spacing: str = ""
    signature_code: str = ""
    in_small_font: bool = False
    heading_match: HeadingMatch | None = None
    level: int = 0
    is_opening_section: bool = False
    is_table_comment: bool = False
    score: float = 0.0

    @property
    def signature_dirty_code(self) -> str:
        return self.signature.dirty_source_code


class CommentMatch(BaseModel):
    """Match annotations of one current comment, valid for a single matching pass."""

    model_config = ConfigDict(extra="forbid")

    comment: RenderedComment
    match: RenderedComment | None = None
    match_score: float | None = None
    has_poor_match: bool = False


class CommentChange(BaseModel):
    model_config = ConfigDict(extra="forbid")

    comment: RenderedComment
    previous: RenderedComment | None = None
    match_score: float | None = None


class ChangeSet(BaseModel):
    model_config = ConfigDict(extra="forbid")

    new: list[CommentChange] = Field(default_factory=list)
    changed: list[CommentChange] = Field(default_factory=list)
    deleted: list[RenderedComment] = Field(default_factory=list)
    uncertain: list[CommentChange] = Field(default_factory=list)
    unchanged_count: int = 0

    @property
    def has_changes(self) -> bool:
        return bool(self.new or self.changed or self.deleted)
