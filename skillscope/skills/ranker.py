"""Rule ranking within an activated skill.

Rules are put in a strict total order:

    1. priority      CRITICAL > HIGH > MEDIUM > LOW
    2. relevance     tags + category tokens scored against the task, desc
    3. rule id       ascending

The order never depends on the order rules were declared or read from disk.
"""

from dataclasses import dataclass
from typing import Optional

from .matcher import Scorer
from .models import Rule, Skill, Task
from .text import normalize_text, score_terms


@dataclass(frozen=True)
class RankedRule:
    """A rule with the relevance score used to rank it."""

    rule: Rule
    relevance: int = 0

    @property
    def sort_key(self) -> tuple:
        return (self.rule.priority.rank, -self.relevance, self.rule.id)


def rule_terms(rule: Rule, stopwords: Optional[frozenset] = None) -> frozenset:
    """Relevance terms of a rule: its tags plus each token of its category.

    Category tokens are normalized with the same stopwords as the task, so a
    word dropped from the task can never score through a category.
    """
    return rule.tags | frozenset(normalize_text(rule.category, stopwords))


class RuleRanker:
    """Orders a skill's rules for disclosure."""

    def __init__(self, scorer: Scorer = score_terms, stopwords: Optional[frozenset] = None):
        self._scorer = scorer
        self.stopwords = stopwords

    def relevance(self, rule: Rule, task: Task) -> int:
        return self._scorer(rule_terms(rule, self.stopwords), task.derived_keywords).score

    def rank(self, skill: Skill, task: Task) -> list[RankedRule]:
        """Return the skill's rules in disclosure order."""
        ranked = [RankedRule(rule=rule, relevance=self.relevance(rule, task)) for rule in skill.rules]
        ranked.sort(key=lambda r: r.sort_key)
        return ranked
