"""Trigger matching: which skills apply to a task.

Replaces the registry's first-trigger-wins substring check with a scored,
deterministic ranking:

    score = sum over distinct trigger terms found in the task keywords
            (2 for a multi-word phrase found contiguously, 1 for a single token)

Skills scoring 0 are not activated. Ties are broken by skill id so the
output is stable across runs.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from .index import CorpusIndex
from .models import Task
from .text import TermScore, score_terms

logger = logging.getLogger(__name__)

# (terms, keywords) -> TermScore. A host may plug in a different scorer as
# long as it is deterministic for fixed inputs.
Scorer = Callable[[Iterable[str], Sequence[str]], TermScore]


@dataclass(frozen=True)
class SkillMatch:
    """An activated skill and why it was activated."""

    skill_id: str
    score: int
    matched_terms: tuple = ()

    def to_dict(self) -> dict:
        return {
            "skill_id": self.skill_id,
            "score": self.score,
            "matched_terms": list(self.matched_terms),
        }


class TriggerMatcher:
    """Scores every enabled skill of an index against a task."""

    def __init__(self, scorer: Scorer = score_terms):
        self._scorer = scorer

    def match(self, index: CorpusIndex, task: Task) -> list[SkillMatch]:
        """Return activated skills, highest score first.

        Args:
            index: Corpus snapshot to match against
            task: Normalized task

        Returns:
            List of SkillMatch ordered by (score desc, skill_id asc);
            empty when the task has no keywords or nothing matches
        """
        if task.is_empty:
            return []

        matches = []
        for skill in index.list_skills():
            if not skill.enabled:
                continue
            result = self._scorer(skill.trigger_terms, task.derived_keywords)
            if result.score <= 0:
                continue
            logger.debug(f"Skill {skill.id} scored {result.score} via {list(result.matched)}")
            matches.append(SkillMatch(
                skill_id=skill.id,
                score=result.score,
                matched_terms=tuple(result.matched),
            ))

        matches.sort(key=lambda m: (-m.score, m.skill_id))
        return matches
