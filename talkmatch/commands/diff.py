"""Change detection command over two rendered comment snapshots."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from talkmatch.commands.common import CommandRuntime, build_engine, load_config, load_json_comments
from talkmatch.reporting import write_report_bundle

logger = logging.getLogger(__name__)


def run(args: argparse.Namespace, *, runtime: CommandRuntime) -> int:
    _ = runtime
    old_comments = load_json_comments(Path(args.old))
    new_comments = load_json_comments(Path(args.new))
    engine = build_engine(load_config(args))
    changes = engine.detect_changes(old_comments, new_comments)
    write_report_bundle(changes, args.output_dir)
    logger.info("Diff complete: output_dir=%s has_changes=%s", args.output_dir, changes.has_changes)
    return 0
