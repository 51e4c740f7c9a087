"""Hook registry for engine lifecycle events."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from enum import Enum
from typing import Any


class HookName(str, Enum):
    BEFORE_SCAN = "before_scan"
    AFTER_SCAN = "after_scan"
    BEFORE_LOCATE = "before_locate"
    AFTER_LOCATE = "after_locate"
    BEFORE_MUTATE = "before_mutate"
    AFTER_MUTATE = "after_mutate"
    BEFORE_MATCH = "before_match"
    AFTER_MATCH = "after_match"
    ON_ERROR = "on_error"


HookCallback = Callable[[dict[str, Any], dict[str, Any]], dict[str, Any] | None]


class HookManager:
    """In-process hook manager; callbacks run in registration order."""

    def __init__(self) -> None:
        self._callbacks: dict[HookName, list[HookCallback]] = defaultdict(list)

    def register(self, name: HookName, callback: HookCallback) -> None:
        self._callbacks[name].append(callback)

    def emit(self, name: HookName, context: dict[str, Any], envelope: dict[str, Any]) -> dict[str, Any]:
        """Run the callbacks of ``name``; dicts they return are merged into the envelope."""
        result = dict(envelope)
        for callback in self._callbacks[name]:
            try:
                patch = callback(context, dict(result))
            except Exception as exc:
                if name is HookName.ON_ERROR:
                    raise
                self.emit_error(exc, context)
                continue
            if patch:
                result.update(patch)
        return result

    def emit_error(self, exc: Exception, context: dict[str, Any]) -> None:
        for callback in self._callbacks[HookName.ON_ERROR]:
            callback({"exception": exc, **context}, {})
