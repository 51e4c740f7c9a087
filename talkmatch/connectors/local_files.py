"""Markup provider reading ``.wiki`` files from a directory."""

from __future__ import annotations

import logging
from pathlib import Path

from talkmatch.connectors.base import PageRef
from talkmatch.errors import ProviderError

logger = logging.getLogger(__name__)


class LocalFileMarkupProvider:
    def __init__(self, root: str | Path, suffix: str = ".wiki") -> None:
        self.root = Path(root)
        self.suffix = suffix

    def path_for(self, ref: PageRef) -> Path:
        name = ref.title.replace(" ", "_").replace("/", "%2F")
        return self.root / f"{name}{self.suffix}"

    def get_markup(self, ref: PageRef) -> str:
        if ref.section is not None or ref.revision_id is not None:
            raise ProviderError(f"Local files hold whole current pages only: {ref.title}")
        path = self.path_for(ref)
        try:
            markup = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ProviderError(f"Cannot read markup of {ref.title} from {path}: {exc}") from exc
        logger.debug("Read %d characters of markup from %s", len(markup), path)
        return markup
