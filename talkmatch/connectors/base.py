"""Markup provider interfaces."""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel, ConfigDict


class PageRef(BaseModel):
    """A page, optionally narrowed to one section or pinned to a revision."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    title: str
    section: int | None = None
    revision_id: int | None = None


class MarkupProvider(Protocol):
    def get_markup(self, ref: PageRef) -> str: ...
