"""Markup providers."""

from .base import MarkupProvider, PageRef
from .local_files import LocalFileMarkupProvider
from .mediawiki_api import MediaWikiMarkupProvider

__all__ = ["MarkupProvider", "PageRef", "LocalFileMarkupProvider", "MediaWikiMarkupProvider"]
