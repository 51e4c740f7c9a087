"""Signature scan command."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from talkmatch.commands.common import CommandRuntime, build_engine, load_config, write_output

logger = logging.getLogger(__name__)


def run(args: argparse.Namespace, *, runtime: CommandRuntime) -> int:
    _ = runtime
    markup = Path(args.markup).read_text()
    engine = build_engine(load_config(args))
    signatures = engine.scan(markup)
    payload = [signature.model_dump(mode="json") for signature in signatures]
    write_output(json.dumps(payload, indent=2), args.output)
    logger.info("Scan complete: signatures=%s", len(signatures))
    return 0
