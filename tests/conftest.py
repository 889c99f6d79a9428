"""
Pytest configuration and fixtures for skillscope tests.

This conftest.py provides:
- Helpers that write skill corpora (SKILL.md + rules/*.md) into tmp_path
- Builders for in-memory Skill / Rule objects
- The two-skill corpus used by the reference disclosure scenario
- Metric isolation between tests
"""

from dataclasses import replace
from pathlib import Path
from typing import Optional

import pytest
import yaml

from skillscope.observability import metrics
from skillscope.skills.models import Priority, Rule, Skill
from skillscope.skills.text import normalize_terms


# =============================================================================
# Corpus writers
# =============================================================================

def write_markdown(path: Path, meta: Optional[dict], body: str = "") -> Path:
    """Write a markdown file with YAML frontmatter (or none if meta is None)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if meta is None:
        path.write_text(body, encoding="utf-8")
    else:
        front = yaml.safe_dump(meta, sort_keys=False).strip()
        path.write_text(f"---\n{front}\n---\n\n{body}\n", encoding="utf-8")
    return path


def write_skill(
    root: Path,
    skill_id: str,
    description: str = "Test skill.",
    triggers: Optional[list] = None,
    rules: Optional[dict] = None,
    dir_name: Optional[str] = None,
    **extra,
) -> Path:
    """Write a skill folder.

    ``rules`` maps rule file stem to a dict of frontmatter fields; the
    optional ``body`` key becomes the markdown body.
    """
    skill_dir = root / (dir_name or skill_id)
    meta = {"name": skill_id, "description": description}
    if triggers is not None:
        meta["triggers"] = triggers
    meta.update(extra)
    write_markdown(skill_dir / "SKILL.md", meta, f"# {skill_id}\n")

    for stem, rule_meta in (rules or {}).items():
        rule_meta = dict(rule_meta)
        body = rule_meta.pop("body", f"Guidance for {stem}.")
        write_markdown(skill_dir / "rules" / f"{stem}.md", rule_meta, body)
    return skill_dir


# =============================================================================
# In-memory builders
# =============================================================================

def make_rule(
    rule_id: str,
    priority: str = "MEDIUM",
    size: int = 10,
    skill_id: str = "skill",
    category: str = "",
    tags: tuple = (),
    body: Optional[str] = None,
) -> Rule:
    return Rule(
        id=rule_id,
        skill_id=skill_id,
        priority=Priority.parse(priority),
        size_estimate=size,
        body=body if body is not None else f"body of {rule_id}",
        category=category,
        tags=normalize_terms(tags),
    )


def make_skill(
    skill_id: str,
    triggers: tuple = (),
    rules: tuple = (),
    enabled: bool = True,
    description: str = "",
) -> Skill:
    return Skill(
        id=skill_id,
        description=description,
        trigger_terms=normalize_terms(triggers),
        rules=tuple(replace(r, skill_id=skill_id) for r in rules),
        enabled=enabled,
    )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def reset_metrics():
    """Isolate metric counters between tests."""
    metrics.reset_all()
    yield
    metrics.reset_all()


@pytest.fixture
def corpus_dir(tmp_path):
    """Empty corpus directory."""
    path = tmp_path / "corpus"
    path.mkdir()
    return path


@pytest.fixture
def scenario_corpus(corpus_dir):
    """Reference corpus: S1 (react, vite) with R1/R2 and S2 (git) with R3."""
    write_skill(
        corpus_dir, "S1",
        description="React build tooling guidance.",
        triggers=["react", "vite"],
        rules={
            "R1": {"priority": "CRITICAL", "size": 100, "body": "Rule one."},
            "R2": {"priority": "LOW", "size": 50, "body": "Rule two."},
        },
    )
    write_skill(
        corpus_dir, "S2",
        description="Git workflow guidance.",
        triggers=["git"],
        rules={
            "R3": {"priority": "HIGH", "size": 80, "body": "Rule three."},
        },
    )
    return corpus_dir
