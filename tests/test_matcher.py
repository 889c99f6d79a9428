"""Unit tests for trigger matching.

Tests cover:
  TM1: activation by single-token and phrase triggers
  TM2: ordering by score, ties by skill id
  TM3: non-activation (no overlap, empty task, disabled skills)
  TM4: pluggable scorer
"""

import pytest

from skillscope.skills.index import CorpusIndex
from skillscope.skills.matcher import SkillMatch, TriggerMatcher
from skillscope.skills.models import Task
from skillscope.skills.text import TermScore

from conftest import make_rule, make_skill


def _task(text):
    return Task.from_description(text)


@pytest.fixture
def index():
    return CorpusIndex([
        make_skill("react-perf", triggers=("react", "server components", "bundle"), rules=(make_rule("r1"),)),
        make_skill("vite", triggers=("vite", "bundle"), rules=(make_rule("v1"),)),
        make_skill("git", triggers=("git", "rebase"), rules=(make_rule("g1"),)),
        make_skill("legacy", triggers=("react",), rules=(make_rule("l1"),), enabled=False),
    ])


@pytest.fixture
def matcher():
    return TriggerMatcher()


# =============================================================================
# TM1: Activation
# =============================================================================

class TestActivation:
    def test_single_token(self, index, matcher):
        matches = matcher.match(index, _task("optimize my react build"))
        assert matches == [SkillMatch("react-perf", 1, ("react",))]

    def test_inflected_task_words_match(self, index, matcher):
        matches = matcher.match(index, _task("Rebasing feature branches"))
        assert [m.skill_id for m in matches] == ["git"]

    @pytest.mark.parametrize("trigger, text", [
        ("embed", "embedding images"),
        ("run", "running the build"),
        ("status", "fix the statuses"),
        ("alias", "configure aliases"),
    ])
    def test_trigger_matches_inflected_task(self, trigger, text):
        index = CorpusIndex([make_skill("s", triggers=(trigger,), rules=(make_rule("r"),))])
        matches = TriggerMatcher().match(index, _task(text))
        assert [(m.skill_id, m.score) for m in matches] == [("s", 1)]

    def test_phrase_scores_two(self, index, matcher):
        matches = matcher.match(index, _task("refactor server components"))
        assert matches == [SkillMatch("react-perf", 2, ("server component",))]

    def test_scattered_phrase_words_do_not_activate(self, index, matcher):
        assert matcher.match(index, _task("server side rendering of components")) == []

    def test_to_dict(self):
        match = SkillMatch("git", 2, ("git", "rebas"))
        assert match.to_dict() == {"skill_id": "git", "score": 2, "matched_terms": ["git", "rebas"]}


# =============================================================================
# TM2: Ordering
# =============================================================================

class TestOrdering:
    def test_higher_score_first(self, index, matcher):
        matches = matcher.match(index, _task("react server components bundle with vite"))
        assert [(m.skill_id, m.score) for m in matches] == [("react-perf", 4), ("vite", 2)]

    def test_ties_broken_by_id(self, index, matcher):
        matches = matcher.match(index, _task("shrink the bundle"))
        assert [(m.skill_id, m.score) for m in matches] == [("react-perf", 1), ("vite", 1)]

    def test_deterministic(self, index, matcher):
        task = _task("git rebase of the react bundle")
        assert matcher.match(index, task) == matcher.match(index, task)


# =============================================================================
# TM3: Non-activation
# =============================================================================

class TestNoActivation:
    def test_no_overlap(self, index, matcher):
        assert matcher.match(index, _task("write a haiku about autumn")) == []

    def test_empty_task(self, index, matcher):
        assert matcher.match(index, _task("")) == []

    def test_stopword_only_task(self, index, matcher):
        assert matcher.match(index, _task("what should I do")) == []

    def test_disabled_skill_never_activates(self, index, matcher):
        ids = [m.skill_id for m in matcher.match(index, _task("react"))]
        assert "legacy" not in ids
        assert ids == ["react-perf"]


# =============================================================================
# TM4: Pluggable scorer
# =============================================================================

class TestCustomScorer:
    def test_scorer_is_used(self, index):
        def constant(terms, keywords):
            return TermScore(score=5 if "git" in terms else 0)

        matches = TriggerMatcher(scorer=constant).match(index, _task("anything at all"))
        assert [(m.skill_id, m.score) for m in matches] == [("git", 5)]
