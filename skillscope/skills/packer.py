"""Budget packing: turning ranked rules into a bounded disclosure.

Packing is depth-first by skill. Activated skills are visited in matcher
order and each skill's ranked rules are consumed before the next skill is
considered. A rule larger than the remaining budget is skipped, never
truncated, and the next rule is tried, so a later smaller rule can still
fill the gap.
"""

import logging
from dataclasses import dataclass
from typing import Collection, Optional, Sequence

from .errors import InvalidArgumentError
from .index import CorpusIndex
from .matcher import SkillMatch
from .models import Priority, Rule, Task
from .ranker import RuleRanker

logger = logging.getLogger(__name__)


def validate_budget(budget, name: str = "budget", allow_zero: bool = False) -> int:
    """Check that a budget is an integer above zero (or zero if allowed).

    Raises:
        InvalidArgumentError: If the value is not a valid budget
    """
    if isinstance(budget, bool) or not isinstance(budget, int):
        raise InvalidArgumentError(f"{name} must be an integer, got {budget!r}")
    if budget < 0 or (budget == 0 and not allow_zero):
        raise InvalidArgumentError(f"{name} must be positive, got {budget}")
    return budget


@dataclass(frozen=True)
class DisclosureItem:
    """One disclosed rule, as delivered to the caller."""

    skill_id: str
    rule_id: str
    body: str
    priority: Priority
    category: str = ""
    size: int = 1
    title: str = ""

    @classmethod
    def from_rule(cls, rule: Rule) -> "DisclosureItem":
        return cls(
            skill_id=rule.skill_id,
            rule_id=rule.id,
            body=rule.body,
            priority=rule.priority,
            category=rule.category,
            size=rule.size_estimate,
            title=rule.title,
        )

    @property
    def key(self) -> tuple[str, str]:
        return (self.skill_id, self.rule_id)

    def to_dict(self, include_body: bool = True) -> dict:
        d = {
            "skill_id": self.skill_id,
            "rule_id": self.rule_id,
            "priority": self.priority.value,
            "category": self.category,
            "size": self.size,
            "title": self.title,
        }
        if include_body:
            d["body"] = self.body
        return d


@dataclass(frozen=True)
class PackResult:
    """Outcome of one packing pass."""

    items: tuple
    used_budget: int
    remaining_budget: int
    eligible: int
    truncated_to_empty: bool = False

    @property
    def exhausted(self) -> bool:
        """True when every eligible rule has now been delivered."""
        return len(self.items) == self.eligible


class BudgetPacker:
    """Selects ranked rules into a budget."""

    def __init__(self, ranker: Optional[RuleRanker] = None):
        self.ranker = ranker or RuleRanker()

    def plan(self, index: CorpusIndex, matches: Sequence[SkillMatch], task: Task) -> list[Rule]:
        """Full disclosure order: each activated skill's ranked rules, in match order."""
        ordered: list[Rule] = []
        for match in matches:
            skill = index.get_skill(match.skill_id)
            ordered.extend(ranked.rule for ranked in self.ranker.rank(skill, task))
        return ordered

    def pack(
        self,
        ordered: Sequence[Rule],
        budget: int,
        delivered: Collection[tuple[str, str]] = (),
    ) -> PackResult:
        """Greedily pack rules in order without exceeding the budget.

        Args:
            ordered: Rules in disclosure order (see plan())
            budget: Cost units available for this pass (>= 0)
            delivered: Keys of rules already delivered; these are skipped

        Returns:
            PackResult. ``truncated_to_empty`` is set when undelivered rules
            exist but none of them fits the budget.
        """
        validate_budget(budget, allow_zero=True)

        remaining = budget
        items = []
        eligible = 0
        for rule in ordered:
            if rule.key in delivered:
                continue
            eligible += 1
            if rule.size_estimate > remaining:
                logger.debug(f"Skipping {rule.skill_id}/{rule.id}: size {rule.size_estimate} > remaining {remaining}")
                continue
            items.append(DisclosureItem.from_rule(rule))
            remaining -= rule.size_estimate

        return PackResult(
            items=tuple(items),
            used_budget=budget - remaining,
            remaining_budget=remaining,
            eligible=eligible,
            truncated_to_empty=eligible > 0 and not items,
        )

    def disclose(
        self,
        index: CorpusIndex,
        matches: Sequence[SkillMatch],
        task: Task,
        budget: int,
    ) -> PackResult:
        """Stateless one-shot: plan and pack in a single call."""
        return self.pack(self.plan(index, matches, task), budget)
