"""Markup fetch command."""

from __future__ import annotations

import argparse
import logging

from talkmatch.commands.common import (
    CommandRuntime,
    build_engine,
    build_provider,
    load_config,
    page_ref_from_args,
    write_output,
)

logger = logging.getLogger(__name__)


def run(args: argparse.Namespace, *, runtime: CommandRuntime) -> int:
    engine = build_engine(load_config(args), provider=build_provider(args, runtime=runtime))
    markup = engine.fetch_markup(page_ref_from_args(args))
    write_output(markup, args.output)
    logger.info("Fetched %s characters of markup for %s", len(markup), args.title)
    return 0
