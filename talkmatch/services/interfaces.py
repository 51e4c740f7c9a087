"""Service interfaces used by command/runtime orchestration."""

from __future__ import annotations

from typing import Protocol

from talkmatch.connectors.base import MarkupProvider


class MarkupProviderFactory(Protocol):
    def __call__(
        self,
        endpoint: str,
        timeout_seconds: float = 10.0,
        user_agent: str = ...,
    ) -> MarkupProvider: ...
