"""Markup provider backed by the MediaWiki action API."""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

from talkmatch import __version__
from talkmatch.connectors.base import PageRef
from talkmatch.errors import ProviderError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = f"talkmatch/{__version__}"


class MediaWikiMarkupProvider:
    def __init__(
        self,
        endpoint: str,
        timeout_seconds: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._endpoint = endpoint.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._user_agent = user_agent

    def build_url(self, ref: PageRef) -> str:
        params: dict[str, Any] = {
            "action": "query",
            "prop": "revisions",
            "rvprop": "content|ids",
            "rvslots": "main",
            "format": "json",
            "formatversion": "2",
        }
        if ref.revision_id is not None:
            params["revids"] = ref.revision_id
        else:
            params["titles"] = ref.title
        if ref.section is not None:
            params["rvsection"] = ref.section
        return f"{self._endpoint}?{urllib.parse.urlencode(params)}"

    def get_markup(self, ref: PageRef) -> str:
        url = self.build_url(ref)
        request = urllib.request.Request(url, headers={"User-Agent": self._user_agent}, method="GET")
        logger.debug("Fetching markup: %s", url)
        try:
            with urllib.request.urlopen(request, timeout=self._timeout_seconds) as response:
                body = json.loads(response.read().decode("utf-8"))
        except urllib.error.URLError as exc:
            raise ProviderError(f"Request for {ref.title} failed: {exc}") from exc
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ProviderError(f"Malformed API response for {ref.title}: {exc}") from exc
        return self._extract_markup(body, ref)

    @staticmethod
    def _extract_markup(body: dict[str, Any], ref: PageRef) -> str:
        if "error" in body:
            error = body["error"]
            raise ProviderError(f"API error for {ref.title}: {error.get('code')}: {error.get('info')}")
        pages = body.get("query", {}).get("pages", [])
        if not pages:
            raise ProviderError(f"No page in API response for {ref.title}")
        page = pages[0]
        if page.get("missing") or page.get("invalid"):
            raise ProviderError(f"Page does not exist: {ref.title}")
        try:
            return page["revisions"][0]["slots"]["main"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError(f"No revision content in API response for {ref.title}") from exc
