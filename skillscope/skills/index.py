"""Immutable corpus index and the handle that swaps snapshots on reload.

A CorpusIndex is built once and only read afterwards. Reloading never
mutates an index: it builds a new one and swaps the handle's reference, so
in-flight pipelines and open sessions keep the snapshot they started with.
"""

import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

from .errors import CorpusLoadError, SkillscopeError, UnknownRuleError, UnknownSkillError
from .models import LoadDiagnostic, Rule, Skill

logger = logging.getLogger(__name__)


class CorpusIndex:
    """Read-only lookup structure over a set of skills and their rules."""

    def __init__(
        self,
        skills: Iterable[Skill],
        diagnostics: Iterable[LoadDiagnostic] = (),
        source: Optional[Path] = None,
    ):
        """Build the index.

        Args:
            skills: Loaded skills. Duplicate skill ids and duplicate or
                zero-size rules are dropped with a diagnostic.
            diagnostics: Findings already collected by the loader
            source: Directory the corpus came from (informational)

        Raises:
            CorpusLoadError: If no skill remains
        """
        found: list[LoadDiagnostic] = []
        self._skills: dict[str, Skill] = {}
        self._rules: dict[tuple[str, str], Rule] = {}

        for skill in skills:
            if skill.id in self._skills:
                found.append(LoadDiagnostic(
                    level="warning", code="duplicate_skill",
                    message=f"Skill id '{skill.id}' appears more than once",
                    skill_id=skill.id,
                ))
                continue

            kept: list[Rule] = []
            for rule in skill.rules:
                if rule.skill_id != skill.id:
                    rule = replace(rule, skill_id=skill.id)
                if rule.key in self._rules:
                    found.append(LoadDiagnostic(
                        level="warning", code="duplicate_rule",
                        message=f"Rule id '{rule.id}' appears more than once in skill '{skill.id}'",
                        skill_id=skill.id, rule_id=rule.id,
                    ))
                    continue
                if rule.size_estimate < 1:
                    found.append(LoadDiagnostic(
                        level="error", code="invalid_size",
                        message=f"Rule '{skill.id}/{rule.id}' has size {rule.size_estimate}",
                        skill_id=skill.id, rule_id=rule.id,
                    ))
                    continue
                self._rules[rule.key] = rule
                kept.append(rule)

            if len(kept) != len(skill.rules) or any(a is not b for a, b in zip(kept, skill.rules)):
                skill = replace(skill, rules=tuple(kept))
            self._skills[skill.id] = skill

        for diagnostic in found:
            logger.warning(f"[{diagnostic.code}] {diagnostic.message}")

        self.diagnostics: tuple = tuple(diagnostics) + tuple(found)
        self.source = source
        self.loaded_at = datetime.now(timezone.utc)

        if not self._skills:
            raise CorpusLoadError("Empty corpus: no valid skills were loaded", self.diagnostics)

    def __len__(self) -> int:
        return len(self._skills)

    def __contains__(self, skill_id: object) -> bool:
        return skill_id in self._skills

    def __iter__(self) -> Iterator[Skill]:
        return iter(self.list_skills())

    @property
    def rule_count(self) -> int:
        return len(self._rules)

    @property
    def warnings(self) -> tuple:
        return tuple(d for d in self.diagnostics if d.level == "warning")

    @property
    def errors(self) -> tuple:
        return tuple(d for d in self.diagnostics if d.level == "error")

    def list_skills(self) -> list[Skill]:
        """All skills, sorted by id."""
        return [self._skills[k] for k in sorted(self._skills)]

    def find_skill(self, skill_id: str) -> Optional[Skill]:
        return self._skills.get(skill_id)

    def get_skill(self, skill_id: str) -> Skill:
        """Get a skill by id.

        Raises:
            UnknownSkillError: If no such skill exists
        """
        skill = self._skills.get(skill_id)
        if skill is None:
            raise UnknownSkillError(skill_id)
        return skill

    def get_rule(self, skill_id: str, rule_id: str) -> Rule:
        """Get a rule by skill id and rule id.

        Raises:
            UnknownSkillError: If the skill does not exist
            UnknownRuleError: If the skill has no such rule
        """
        if skill_id not in self._skills:
            raise UnknownSkillError(skill_id)
        rule = self._rules.get((skill_id, rule_id))
        if rule is None:
            raise UnknownRuleError(skill_id, rule_id)
        return rule


class CorpusHandle:
    """Holds the current CorpusIndex snapshot.

    Readers take ``handle.current`` once per pipeline run and use that
    snapshot throughout. ``reload()`` builds a replacement with the
    configured loader and swaps it in; if loading fails the previous
    snapshot stays active.
    """

    def __init__(self, index: CorpusIndex, loader: Optional[Callable[[], CorpusIndex]] = None):
        self._index = index
        self._loader = loader
        self._lock = threading.Lock()

    @property
    def current(self) -> CorpusIndex:
        return self._index

    def swap(self, index: CorpusIndex) -> CorpusIndex:
        """Install a new snapshot and return the previous one."""
        with self._lock:
            previous, self._index = self._index, index
        return previous

    def reload(self) -> CorpusIndex:
        """Rebuild the snapshot from the loader and swap it in.

        Raises:
            SkillscopeError: If the handle has no loader
            CorpusLoadError: If the new corpus is empty (previous snapshot kept)
        """
        if self._loader is None:
            raise SkillscopeError("Corpus handle has no loader; reload is not supported")
        with self._lock:
            index = self._loader()
            self._index = index
        logger.info(f"Corpus reloaded: {len(index)} skills, {index.rule_count} rules")
        return index
