"""Configuration models and loading for talkmatch."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field

_ENGLISH_MONTHS = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]


class SiteConfig(BaseModel):
    """Wiki-specific markup conventions. Defaults follow the English Wikipedia."""

    model_config = ConfigDict(extra="forbid")

    default_indentation_char: str = ":"
    space_after_indentation_chars: bool = True
    indentation_char_mode: Literal["mimic", "unify"] = "mimic"

    # Named groups hour, minute, day, month and year are used to build the date.
    timestamp_pattern: str | None = (
        r"(?P<hour>\d{2}):(?P<minute>\d{2}), (?P<day>\d{1,2}) "
        r"(?P<month>" + "|".join(_ENGLISH_MONTHS) + r") (?P<year>\d{4})"
    )
    timezone_pattern: str | None = r"\((?:UTC|[A-Z]{1,5}|[+-]\d{0,4})\)"
    utc_offset_minutes: int = 0
    month_names: list[str] = Field(default_factory=lambda: list(_ENGLISH_MONTHS))

    user_namespaces: list[str] = Field(default_factory=lambda: ["User", "User talk", "U", "UT"])
    contribs_pages: list[str] = Field(default_factory=lambda: ["Special:Contributions"])
    file_namespaces: list[str] = Field(default_factory=lambda: ["File", "Image"])

    unsigned_templates: list[str] = Field(default_factory=lambda: ["unsigned", "unsignedIP", "unsigned2", "unsignedIP2"])
    unsigned_class: str = "autosigned"
    closed_discussion_beginnings: list[str] = Field(
        default_factory=lambda: ["Archive top", "Hidden archive top", "Discussion top", "Closed rfc top"]
    )
    closed_discussion_endings: list[str] = Field(
        default_factory=lambda: ["Archive bottom", "Hidden archive bottom", "Discussion bottom", "Closed rfc bottom"]
    )
    outdent_templates: list[str] = Field(default_factory=lambda: ["Outdent", "Od"])
    clear_templates: list[str] = Field(default_factory=lambda: ["Clear", "Clr", "-"])
    reflist_talk_templates: list[str] = Field(default_factory=lambda: ["Reflist-talk", "Reflist talk"])
    small_div_templates: list[str] = Field(default_factory=list)
    quote_beginning_templates: list[str] = Field(default_factory=list)
    quote_ending_templates: list[str] = Field(default_factory=list)

    # Regexps should begin with "^" and consume the trailing newline.
    bad_comment_beginnings: list[str] = Field(default_factory=list)
    # Regexps should begin with "\n" and be anchored at the end with "\Z".
    keep_in_section_ending: list[str] = Field(
        default_factory=lambda: [
            r"\n{2,}(?:<!--[\s\S]*?-->\s*)+\Z",
            r"(?i)\n+(?:<!--[\s\S]*?-->\s*)*</?(?:section|onlyinclude)(?: [\w ]+(?:=[^<>]+?)?)? */?>\s*(?:<!--[\s\S]*?-->\s*)*\Z",
            r"(?i)\n+<noinclude>([\s\S]*?)</noinclude>\s*\Z",
        ]
    )
    # Matched against the end of comment code; the end anchor is appended automatically.
    signature_prefix_pattern: str = (
        r"(?:\s[-–−—―]+\xa0?[A-Z][A-Za-z\-_]*)?(?:\s+>+)?"
        r"(?:[·•\-‑–−—―─~⁓/→⇒\s‍‎‏⁠]|&\w+;|&#\d+;)*(?:\s+\()?"
    )
    signature_ending_pattern: str | None = None
    signature_scan_exclusions: list[str] = Field(default_factory=list)
    popular_inline_elements: list[str] = Field(
        default_factory=lambda: [
            "a",
            "abbr",
            "b",
            "big",
            "cite",
            "code",
            "del",
            "em",
            "font",
            "i",
            "ins",
            "kbd",
            "mark",
            "q",
            "s",
            "samp",
            "small",
            "span",
            "strike",
            "strong",
            "sub",
            "sup",
            "tt",
            "u",
            "var",
        ]
    )


class LocatorConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    acceptance_threshold: float = 2.5
    best_evidence_weight: float = 2.0
    word_overlap_weight: float = 1.0
    headline_weight: float = 1.0
    previous_comments_weight: float = 0.5
    sequence_id_weight: float = 0.0001
    evidence_word_overlap_min: float = 0.5
    missing_heading_score: float = -0.4999
    previous_comments_checked: int = 2


class MatcherConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    acceptance_threshold: float = 1.66
    parent_weight: float = 1.0
    parentless_weight: float = 0.75
    headline_weight: float = 1.0
    index_weight: float = 0.25


class MutatorConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    outdent_level: int | None = None


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: str = "INFO"


class TalkMatchConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    site: SiteConfig = Field(default_factory=SiteConfig)
    locator: LocatorConfig = Field(default_factory=LocatorConfig)
    matcher: MatcherConfig = Field(default_factory=MatcherConfig)
    mutator: MutatorConfig = Field(default_factory=MutatorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text())
    return data or {}


def load_effective_config(
    project_path: str | Path,
    org_defaults: dict[str, Any] | None = None,
    system_defaults: dict[str, Any] | None = None,
    runtime_override: dict[str, Any] | None = None,
) -> TalkMatchConfig:
    """Load config with precedence runtime > project .talkmatch.yaml > org > system."""
    project = Path(project_path)
    project_config = _load_yaml(project / ".talkmatch.yaml")

    merged: dict[str, Any] = {}
    for layer in (system_defaults, org_defaults, project_config, runtime_override):
        if layer:
            merged = _deep_merge(merged, layer)

    return TalkMatchConfig.model_validate(merged)
