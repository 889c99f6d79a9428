"""Skill selection and progressive disclosure.

This package loads a skills corpus (folders of SKILL.md descriptors and
rules/*.md files with YAML frontmatter) into an immutable index and selects
rules from it for a task under a size budget.

Usage:
    from skillscope.skills import CorpusLoader, TriggerMatcher, BudgetPacker, Task

    index = CorpusLoader(Path("skills")).load()
    task = Task.from_description("optimize my react build")

    matches = TriggerMatcher().match(index, task)
    result = BudgetPacker().disclose(index, matches, task, budget=2000)
    for item in result.items:
        print(item.skill_id, item.rule_id, item.size)

For stateful "load more" behaviour use DisclosureSession / SessionStore, or
the DisclosureEngine facade in skillscope.engine.
"""

from .errors import (
    CorpusLoadError,
    InvalidArgumentError,
    InvalidSessionError,
    SessionStateError,
    SkillscopeError,
    UnknownRuleError,
    UnknownSkillError,
)
from .index import CorpusHandle, CorpusIndex
from .loader import CorpusLoader, load_corpus
from .matcher import SkillMatch, TriggerMatcher
from .models import CategorySpec, LoadDiagnostic, Priority, Rule, SessionState, Skill, Task
from .packer import BudgetPacker, DisclosureItem, PackResult
from .ranker import RankedRule, RuleRanker
from .session import Disclosure, DisclosureSession, SessionStore

__all__ = [
    "BudgetPacker",
    "CategorySpec",
    "CorpusHandle",
    "CorpusIndex",
    "CorpusLoadError",
    "CorpusLoader",
    "Disclosure",
    "DisclosureItem",
    "DisclosureSession",
    "InvalidArgumentError",
    "InvalidSessionError",
    "LoadDiagnostic",
    "PackResult",
    "Priority",
    "RankedRule",
    "Rule",
    "RuleRanker",
    "SessionState",
    "SessionStateError",
    "SessionStore",
    "Skill",
    "SkillMatch",
    "SkillscopeError",
    "Task",
    "TriggerMatcher",
    "UnknownRuleError",
    "UnknownSkillError",
    "load_corpus",
]
