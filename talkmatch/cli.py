"""CLI entrypoint for locating and editing talk page comments."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Callable

from talkmatch.commands import diff, fetch, locate, mutate, scan
from talkmatch.commands.parser import build_parser
from talkmatch.connectors.mediawiki_api import MediaWikiMarkupProvider
from talkmatch.errors import ParseError, ProviderError
from talkmatch.logging_utils import configure_logging
from talkmatch.services.command_runtime import CommandRuntime

logger = logging.getLogger(__name__)

CommandHandler = Callable[..., int]

COMMAND_HANDLERS: dict[str, CommandHandler] = {
    "scan": scan.run,
    "locate": locate.run,
    "reply": mutate.run,
    "edit": mutate.run,
    "delete": mutate.run,
    "diff": diff.run,
    "fetch": fetch.run,
}


def default_runtime() -> CommandRuntime:
    return CommandRuntime(provider_cls=MediaWikiMarkupProvider)


def main(argv: list[str] | None = None, *, runtime: CommandRuntime | None = None) -> int:
    parser = build_parser()
    args: argparse.Namespace = parser.parse_args(argv)
    configure_logging(args.log_level)

    handler = COMMAND_HANDLERS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1
    try:
        return handler(args, runtime=runtime or default_runtime())
    except (ParseError, ProviderError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
