"""Reply, edit and delete commands."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from talkmatch.commands.common import (
    CommandRuntime,
    build_target_engine,
    load_json_comments,
    load_target_markup,
    read_text_arg,
    write_output,
)
from talkmatch.models import MutationAction

logger = logging.getLogger(__name__)


def run(args: argparse.Namespace, *, runtime: CommandRuntime) -> int:
    action = MutationAction(args.command)
    comments = load_json_comments(Path(args.comments))
    engine = build_target_engine(args, runtime=runtime)
    markup = load_target_markup(args, engine)
    located = engine.locate_in_rendering(comments, args.sequence_id, markup)

    if action is MutationAction.REPLY:
        new_markup = engine.reply(located, markup, read_text_arg(args), signature=args.signature)
    elif action is MutationAction.EDIT:
        new_markup = engine.edit(located, markup, read_text_arg(args))
    else:
        new_markup = engine.delete(located, markup)

    write_output(new_markup, args.output)
    logger.info(
        "%s complete: comment=%s length_delta=%s",
        action.value.capitalize(),
        args.sequence_id,
        len(new_markup) - len(markup),
    )
    return 0
