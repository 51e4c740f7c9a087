"""Shared helpers for CLI command modules."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import yaml

from talkmatch.config import TalkMatchConfig, load_effective_config
from talkmatch.connectors.base import MarkupProvider, PageRef
from talkmatch.models import RenderedComment
from talkmatch.pipeline import TalkPageEngine
from talkmatch.services.command_runtime import CommandRuntime

logger = logging.getLogger(__name__)


def load_json_comments(path: Path) -> list[RenderedComment]:
    raw = json.loads(path.read_text())
    if not isinstance(raw, list):
        raise ValueError("Input must be a JSON array of rendered comments")
    return [RenderedComment.model_validate(item) for item in raw]


def load_yaml_dict(path: str | None) -> dict | None:
    if not path:
        return None
    data = yaml.safe_load(Path(path).read_text())
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ValueError(f"YAML at {path} must decode to a mapping")
    return data


def load_config(args: argparse.Namespace) -> TalkMatchConfig:
    return load_effective_config(
        project_path=args.project_path,
        org_defaults=load_yaml_dict(args.org_config),
        system_defaults=load_yaml_dict(args.system_config),
        runtime_override=load_yaml_dict(args.runtime_override),
    )


def build_engine(config: TalkMatchConfig, provider: MarkupProvider | None = None) -> TalkPageEngine:
    return TalkPageEngine(config=config, provider=provider)


def build_provider(args: argparse.Namespace, *, runtime: CommandRuntime) -> MarkupProvider:
    return runtime.provider_cls(
        endpoint=args.endpoint,
        timeout_seconds=args.timeout_seconds,
        user_agent=args.user_agent,
    )


def page_ref_from_args(args: argparse.Namespace) -> PageRef:
    return PageRef(title=args.title, section=args.section, revision_id=args.revision_id)


def read_text_arg(args: argparse.Namespace) -> str:
    if getattr(args, "text_file", None):
        return Path(args.text_file).read_text()
    if getattr(args, "text", None) is None:
        raise ValueError("Either --text or --text-file is required")
    return args.text


def write_output(text: str, output: str | None) -> None:
    if not output:
        sys.stdout.write(text)
        if not text.endswith("\n"):
            sys.stdout.write("\n")
        return
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    logger.info("Wrote %s", path)


def add_common_config_flags(cmd: argparse.ArgumentParser) -> None:
    cmd.add_argument("--project-path", default=".", help="Project root holding an optional .talkmatch.yaml")
    cmd.add_argument("--org-config", help="Optional org defaults YAML")
    cmd.add_argument("--system-config", help="Optional system defaults YAML")
    cmd.add_argument("--runtime-override", help="Optional runtime override YAML")


def add_provider_flags(cmd: argparse.ArgumentParser, *, required: bool) -> None:
    cmd.add_argument("--endpoint", required=required, help="MediaWiki API endpoint, e.g. https://en.wikipedia.org/w/api.php")
    cmd.add_argument("--title", required=required, help="Page title")
    cmd.add_argument("--section", type=int, help="Optional section number")
    cmd.add_argument("--revision-id", type=int, help="Optional revision id (instead of the latest revision)")
    cmd.add_argument("--timeout-seconds", type=float, default=10.0, help="HTTP timeout for API requests")
    cmd.add_argument("--user-agent", default="talkmatch", help="User-Agent header sent to the API")


def add_comment_target_flags(cmd: argparse.ArgumentParser) -> None:
    cmd.add_argument("--markup", help="Path to a markup file (omit to fetch with --endpoint/--title)")
    cmd.add_argument("--comments", required=True, help="Path to JSON array of rendered comments")
    cmd.add_argument("--sequence-id", type=int, required=True, help="Sequence id of the target comment")
    add_provider_flags(cmd, required=False)


def load_target_markup(args: argparse.Namespace, engine: TalkPageEngine) -> str:
    if args.markup:
        return Path(args.markup).read_text()
    if not args.endpoint or not args.title:
        raise ValueError("Either --markup or both --endpoint and --title are required")
    return engine.fetch_markup(page_ref_from_args(args))


def build_target_engine(args: argparse.Namespace, *, runtime: CommandRuntime) -> TalkPageEngine:
    provider = None if args.markup else build_provider(args, runtime=runtime)
    return build_engine(load_config(args), provider=provider)
