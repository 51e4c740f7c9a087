"""Typed command runtime dependency container."""

from __future__ import annotations

from dataclasses import dataclass

from talkmatch.services.interfaces import MarkupProviderFactory


@dataclass(frozen=True)
class CommandRuntime:
    provider_cls: MarkupProviderFactory
