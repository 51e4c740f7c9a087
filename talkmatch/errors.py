"""Error types raised by the locating, mutating and fetching layers."""

from __future__ import annotations

NO_CODE = "noCode"
LOCATE_COMMENT = "locateComment"
CLOSED = "closed"
FIND_PLACE = "findPlace"
DELETE_REPLIES_IN_SECTION = "delete-repliesInSection"
DELETE_REPLIES_TO_COMMENT = "delete-repliesToComment"

PARSE_ERROR_CODES = frozenset(
    {
        NO_CODE,
        LOCATE_COMMENT,
        CLOSED,
        FIND_PLACE,
        DELETE_REPLIES_IN_SECTION,
        DELETE_REPLIES_TO_COMMENT,
    }
)


class ParseError(Exception):
    """A comment could not be located in, or safely changed within, the markup."""

    def __init__(self, code: str, message: str | None = None) -> None:
        if code not in PARSE_ERROR_CODES:
            raise ValueError(f"Unknown parse error code: {code}")
        self.code = code
        self.message = message
        text = f"parse/{code}"
        if message:
            text += f": {message}"
        super().__init__(text)


class ProviderError(RuntimeError):
    """Markup could not be fetched from a provider."""
