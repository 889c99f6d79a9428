"""Unit tests for budget packing.

Tests cover:
  BP1: budget validation
  BP2: greedy depth-first packing, skip-not-truncate
  BP3: truncated_to_empty and exhaustion
  BP4: planning across activated skills
"""

import pytest

from skillscope.skills.errors import InvalidArgumentError
from skillscope.skills.index import CorpusIndex
from skillscope.skills.matcher import SkillMatch
from skillscope.skills.models import Priority, Task
from skillscope.skills.packer import BudgetPacker, DisclosureItem, validate_budget

from conftest import make_rule, make_skill


def _ids(result):
    return [item.rule_id for item in result.items]


# =============================================================================
# BP1: Budget validation
# =============================================================================

class TestValidateBudget:
    def test_positive(self):
        assert validate_budget(5) == 5

    @pytest.mark.parametrize("value", [0, -1])
    def test_non_positive_rejected(self, value):
        with pytest.raises(InvalidArgumentError):
            validate_budget(value)

    def test_zero_allowed_when_requested(self):
        assert validate_budget(0, allow_zero=True) == 0

    @pytest.mark.parametrize("value", [True, 1.5, "10", None])
    def test_non_integer_rejected(self, value):
        with pytest.raises(InvalidArgumentError):
            validate_budget(value)

    def test_error_is_value_error(self):
        with pytest.raises(ValueError, match="additional_budget"):
            validate_budget(-3, name="additional_budget")


# =============================================================================
# BP2: Packing
# =============================================================================

class TestPack:
    RULES = [
        make_rule("r1", "CRITICAL", size=60, skill_id="s"),
        make_rule("r2", "HIGH", size=50, skill_id="s"),
        make_rule("r3", "LOW", size=30, skill_id="s"),
    ]

    def test_fits_everything(self):
        result = BudgetPacker().pack(self.RULES, 200)
        assert _ids(result) == ["r1", "r2", "r3"]
        assert result.used_budget == 140
        assert result.remaining_budget == 60

    def test_skips_oversized_and_continues(self):
        result = BudgetPacker().pack(self.RULES, 95)
        assert _ids(result) == ["r1", "r3"]
        assert result.used_budget == 90
        assert result.remaining_budget == 5

    def test_never_exceeds_budget(self):
        for budget in range(0, 150, 7):
            result = BudgetPacker().pack(self.RULES, budget)
            assert result.used_budget <= budget
            assert sum(item.size for item in result.items) == result.used_budget

    def test_exact_fit(self):
        assert _ids(BudgetPacker().pack(self.RULES, 60)) == ["r1"]

    def test_delivered_rules_skipped(self):
        result = BudgetPacker().pack(self.RULES, 200, delivered={("s", "r1")})
        assert _ids(result) == ["r2", "r3"]
        assert result.eligible == 2

    def test_items_carry_rule_data(self):
        rule = make_rule("r", "HIGH", size=7, skill_id="s", category="Perf", body="Do it.")
        item = BudgetPacker().pack([rule], 10).items[0]
        assert item == DisclosureItem(
            skill_id="s", rule_id="r", body="Do it.", priority=Priority.HIGH, category="Perf", size=7,
        )

    def test_item_to_dict_without_body(self):
        item = DisclosureItem.from_rule(make_rule("r", "LOW", size=3, skill_id="s"))
        d = item.to_dict(include_body=False)
        assert "body" not in d
        assert d["priority"] == "LOW"
        assert item.to_dict()["body"] == "body of r"


# =============================================================================
# BP3: Truncation and exhaustion
# =============================================================================

class TestTruncation:
    def test_truncated_to_empty(self):
        rules = [make_rule("big", size=100)]
        result = BudgetPacker().pack(rules, 10)

        assert result.items == ()
        assert result.truncated_to_empty is True
        assert result.exhausted is False
        assert result.remaining_budget == 10

    def test_nothing_eligible_is_not_truncation(self):
        result = BudgetPacker().pack([], 10)
        assert result.truncated_to_empty is False
        assert result.exhausted is True

    def test_zero_budget(self):
        result = BudgetPacker().pack([make_rule("r", size=1)], 0)
        assert result.truncated_to_empty is True

    def test_partial_is_not_exhausted(self):
        rules = [make_rule("a", size=5), make_rule("b", size=50)]
        result = BudgetPacker().pack(rules, 10)
        assert _ids(result) == ["a"]
        assert result.exhausted is False
        assert result.truncated_to_empty is False


# =============================================================================
# BP4: Planning
# =============================================================================

class TestPlan:
    @pytest.fixture
    def index(self):
        return CorpusIndex([
            make_skill("first", rules=(make_rule("f-low", "LOW", size=5), make_rule("f-crit", "CRITICAL", size=50))),
            make_skill("second", rules=(make_rule("s-crit", "CRITICAL", size=5),)),
        ])

    def test_depth_first_by_skill(self, index):
        matches = [SkillMatch("first", 3), SkillMatch("second", 1)]
        plan = BudgetPacker().plan(index, matches, Task.from_description("x"))
        assert [r.id for r in plan] == ["f-crit", "f-low", "s-crit"]

    def test_lower_skill_critical_not_promoted(self, index):
        matches = [SkillMatch("first", 3), SkillMatch("second", 1)]
        result = BudgetPacker().disclose(index, matches, Task.from_description("x"), 60)
        assert _ids(result) == ["f-crit", "f-low", "s-crit"]

        result = BudgetPacker().disclose(index, matches, Task.from_description("x"), 55)
        assert _ids(result) == ["f-crit", "f-low"]

    def test_no_matches(self, index):
        result = BudgetPacker().disclose(index, [], Task.from_description("x"), 100)
        assert result.items == ()
        assert result.truncated_to_empty is False
