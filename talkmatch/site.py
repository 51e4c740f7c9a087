"""Regular expressions derived from the site configuration."""

from __future__ import annotations

import re
from datetime import datetime

from talkmatch.config import SiteConfig
from talkmatch.wikitext import generate_page_name_pattern, parse_timestamp

# 255 (maximum signature length) minus len("[[u:a") plus one for the space before the timestamp.
SIGNATURE_SCAN_LIMIT = 251


def _names_pattern(names: list[str]) -> str:
    return "|".join(generate_page_name_pattern(name) for name in names if name)


def _namespaced_pattern(name: str) -> str:
    return "[ _]*:[ _]*".join(generate_page_name_pattern(part) for part in name.split(":"))


def _strip_group_names(pattern: str) -> str:
    return re.sub(r"\(\?P<\w+>", "(?:", pattern)


class SitePatterns:
    """Compiled site-derived patterns shared by the scanner, locator and mutator."""

    def __init__(self, site: SiteConfig) -> None:
        self.site = site
        self.default_indentation_char = site.default_indentation_char

        self.timestamp_source: str | None = None
        self.timestamp: re.Pattern[str] | None = None
        self.timestamp_no_timezone: re.Pattern[str] | None = None
        if site.timestamp_pattern:
            source = _strip_group_names(site.timestamp_pattern)
            if site.timezone_pattern:
                source += " +" + site.timezone_pattern
            self.timestamp_source = source
            self.timestamp = re.compile(source)
            self.timestamp_no_timezone = re.compile(site.timestamp_pattern)
        self.timezone = re.compile(site.timezone_pattern) if site.timezone_pattern else None

        contribs = "|".join(_namespaced_pattern(page) for page in site.contribs_pages)
        self.author_link_source = (
            r"\[\[[ _]*:?(?:\w*:){0,2}(?:(?:" + _names_pattern(site.user_namespaces) + r")[ _]*:[ _]*|"
            r"(?:" + contribs + r")/[ _]*)(?P<author>[^|\]/]+)(?P<slash>/)?"
        )
        self.author_link = re.compile(self.author_link_source, re.IGNORECASE)

        self.unsigned_source: str | None = None
        self.unsigned: re.Pattern[str] | None = None
        if site.unsigned_templates:
            names = _names_pattern(site.unsigned_templates)
            self.unsigned_source = r"\{\{ *(?:" + names + r") *\|[^}]*\}\}"
            self.unsigned = re.compile(
                r"(?P<template>\{\{ *(?:" + names + r") *\| *(?P<first>[^}|]+?) *"
                r"(?:\| *(?P<second>[^}]+?) *)?\}\}).*(?:\n|\Z)"
            )

        quote_beginnings = ["<blockquote(?: [^>]*)?>", "<q(?: [^>]*)?>"] + [
            r"\{\{ *" + generate_page_name_pattern(name) + r"[^}]*\}\}" for name in site.quote_beginning_templates
        ]
        quote_endings = ["</blockquote>", "</q>"] + [
            r"\{\{ *" + generate_page_name_pattern(name) + r" *\}\}" for name in site.quote_ending_templates
        ]
        self.quote = re.compile(
            "(" + "|".join(quote_beginnings) + r")([\s\S]*?)(" + "|".join(quote_endings) + ")",
            re.IGNORECASE,
        )
        self.scan_exclusions = [re.compile(pattern, re.MULTILINE) for pattern in site.signature_scan_exclusions]

        self.closed_pair: re.Pattern[str] | None = None
        self.closed_single: re.Pattern[str] | None = None
        self.closed_ending_line: re.Pattern[str] | None = None
        beginnings = _names_pattern(site.closed_discussion_beginnings)
        endings = _names_pattern(site.closed_discussion_endings)
        if beginnings:
            if endings:
                self.closed_pair = re.compile(
                    r"\{\{ *(?:" + beginnings + r") *(?=[|}])[^}]*\}\}\s*(?P<indentation>[:*#]*)[\s\S]*?"
                    r"\{\{ *(?:" + endings + r") *(?=[|}])[^}]*\}\}"
                )
            self.closed_single = re.compile(r"\{\{ *(?:" + beginnings + r") *\|[^}]{0,50}?=\s*(?P<indentation>[:*#]*)")
        if endings:
            self.closed_ending_line = re.compile(r"\{\{ *(?:" + endings + r") *(?=[|}])[^}]*\}\}[ \t]*\n+")

        self.outdent_template_name = site.outdent_templates[0] if site.outdent_templates else None
        self.outdent: re.Pattern[str] | None = None
        if site.outdent_templates:
            self.outdent = re.compile(
                r"^\s*(?P<indentation>[:*#]*)[ \t]*\{\{ *(?:" + _names_pattern(site.outdent_templates) + r") *(?:\||\}\})"
            )

        clear = _names_pattern(site.clear_templates)
        reflist_talk = _names_pattern(site.reflist_talk_templates)
        file_namespaces = _names_pattern(site.file_namespaces)

        self.bad_comment_beginnings = [re.compile(r"^\[\[(?:" + file_namespaces + r"):.+\n+(?=[*:#])", re.IGNORECASE)]
        self.bad_comment_beginnings += [re.compile(pattern) for pattern in site.bad_comment_beginnings]
        if clear:
            self.bad_comment_beginnings.append(re.compile(r"^\{\{ *(?:" + clear + r") *\}\} *\n+", re.IGNORECASE))

        self.keep_in_section_ending = [re.compile(pattern) for pattern in site.keep_in_section_ending]
        if clear:
            self.keep_in_section_ending.append(re.compile(r"\n+\{\{ *(?:" + clear + r") *\}\}\s*\Z"))
        if reflist_talk:
            self.keep_in_section_ending.append(re.compile(r"\n+\{\{ *(?:" + reflist_talk + r") *\}\}.*\s*\Z"))

        self.signature_prefix = re.compile(site.signature_prefix_pattern + r"\Z")
        self.signature_ending = (
            re.compile(site.signature_ending_pattern.rstrip("$") + "$", re.MULTILINE)
            if site.signature_ending_pattern
            else None
        )
        self.popular_inline_tags = re.compile(
            r"(<(?:" + "|".join(site.popular_inline_elements) + r")(?: [\w ]+?=[^<>]+?)?> *)+\Z",
            re.IGNORECASE,
        )
        self.unsigned_class_tail = re.compile(r'<small class="' + re.escape(site.unsigned_class) + r'">.*\Z')

        self.small_wrappers: list[tuple[re.Pattern[str], re.Pattern[str]]] = [
            (re.compile(r"^<small>"), re.compile(r"</small>[ \xa0\t]*\Z")),
        ]
        if site.small_div_templates:
            self.small_wrappers.append(
                (
                    re.compile(
                        r"^(?:\{\{(?:" + "|".join(site.small_div_templates) + r")\|(?: *1 *= *|(?![^{]*=)))",
                        re.IGNORECASE,
                    ),
                    re.compile(r"\}\}[ \xa0\t]*\Z"),
                )
            )

    @classmethod
    def from_config(cls, site: SiteConfig) -> SitePatterns:
        return cls(site)

    def parse_date(self, timestamp: str | None) -> datetime | None:
        if not timestamp:
            return None
        return parse_timestamp(timestamp, self.site)
