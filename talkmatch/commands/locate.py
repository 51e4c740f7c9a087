"""Comment locate command."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from talkmatch.commands.common import (
    CommandRuntime,
    build_target_engine,
    load_json_comments,
    load_target_markup,
    write_output,
)

logger = logging.getLogger(__name__)


def run(args: argparse.Namespace, *, runtime: CommandRuntime) -> int:
    comments = load_json_comments(Path(args.comments))
    engine = build_target_engine(args, runtime=runtime)
    markup = load_target_markup(args, engine)
    located = engine.locate_in_rendering(comments, args.sequence_id, markup)
    write_output(located.model_dump_json(indent=2), args.output)
    logger.info(
        "Located comment %s at %s-%s (score=%.4f)",
        args.sequence_id,
        located.start_index,
        located.end_index,
        located.score,
    )
    return 0
