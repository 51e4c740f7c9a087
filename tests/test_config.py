from pathlib import Path

import pytest
from pydantic import ValidationError

from talkmatch.config import TalkMatchConfig, load_effective_config


def test_config_precedence(tmp_path: Path) -> None:
    project = tmp_path / "project"
    project.mkdir()

    (project / ".talkmatch.yaml").write_text(
        """
locator:
  acceptance_threshold: 3.0
site:
  default_indentation_char: "*"
"""
    )

    system = {
        "locator": {"acceptance_threshold": 1.0},
        "matcher": {"acceptance_threshold": 1.0},
        "site": {"default_indentation_char": "#"},
    }
    org = {
        "matcher": {"acceptance_threshold": 1.5},
        "mutator": {"outdent_level": 8},
    }
    runtime = {
        "mutator": {"outdent_level": 12},
    }

    cfg = load_effective_config(project, org_defaults=org, system_defaults=system, runtime_override=runtime)

    assert cfg.locator.acceptance_threshold == 3.0
    assert cfg.matcher.acceptance_threshold == 1.5
    assert cfg.mutator.outdent_level == 12
    assert cfg.site.default_indentation_char == "*"
    assert cfg.site.user_namespaces == ["User", "User talk", "U", "UT"]


def test_config_defaults_without_project_file(tmp_path: Path) -> None:
    cfg = load_effective_config(tmp_path)

    assert cfg == TalkMatchConfig()
    assert cfg.locator.acceptance_threshold == 2.5
    assert cfg.matcher.acceptance_threshold == 1.66
    assert cfg.mutator.outdent_level is None


def test_config_rejects_unknown_keys(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        load_effective_config(tmp_path, runtime_override={"locator": {"threshold": 2}})
