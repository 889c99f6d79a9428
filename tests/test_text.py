"""Unit tests for keyword normalization and term scoring.

Tests cover:
  TX1: tokenize() lowercases and splits on non-alphanumerics
  TX2: stem() folds common inflections to one form
  TX3: normalize_text() drops stopwords and keeps order
  TX4: normalize_term() / normalize_terms() canonical term strings
  TX5: contains_phrase() contiguity
  TX6: score_terms() weights (1 per token, 2 per contiguous phrase)
"""

import pytest

from skillscope.skills.text import (
    DEFAULT_STOPWORDS,
    contains_phrase,
    normalize_term,
    normalize_terms,
    normalize_text,
    score_terms,
    stem,
    tokenize,
)


# =============================================================================
# TX1: tokenize
# =============================================================================

class TestTokenize:
    def test_lowercases_and_splits(self):
        assert tokenize("Optimize my React-Build!") == ["optimize", "my", "react", "build"]

    def test_splits_dotted_names(self):
        assert tokenize("Next.js app") == ["next", "js", "app"]

    def test_empty_and_none(self):
        assert tokenize("") == []
        assert tokenize(None) == []


# =============================================================================
# TX2: stem
# =============================================================================

class TestStem:
    @pytest.mark.parametrize("words", [
        ("optimize", "optimizing", "optimized", "optimizes"),
        ("cache", "caches", "caching", "cached"),
        ("component", "components"),
        ("query", "queries"),
        ("test", "tests", "testing"),
    ])
    def test_inflections_collapse(self, words):
        assert len({stem(w) for w in words}) == 1

    @pytest.mark.parametrize("words", [
        ("embed", "embeds", "embedded", "embedding"),
        ("run", "runs", "running"),
        ("stop", "stops", "stopped", "stopping"),
        ("fix", "fixes", "fixed", "fixing"),
        ("add", "adds", "added", "adding"),
        ("code", "codes", "coded", "coding"),
        ("status", "statuses"),
        ("alias", "aliases"),
    ])
    def test_doubled_consonants_and_s_endings_collapse(self, words):
        assert len({stem(w) for w in words}) == 1

    @pytest.mark.parametrize("word, expected", [
        ("running", "run"),
        ("embedding", "embed"),
        ("installing", "install"),
        ("status", "status"),
        ("canvas", "canvas"),
        ("analysis", "analysis"),
    ])
    def test_word_endings_kept(self, word, expected):
        assert stem(word) == expected

    def test_short_tokens_unchanged(self):
        assert stem("css") == "css"
        assert stem("git") == "git"
        assert stem("js") == "js"

    def test_tokens_with_digits_unchanged(self):
        assert stem("es2015") == "es2015"

    def test_double_s_kept(self):
        assert stem("class") == "class"


# =============================================================================
# TX3: normalize_text
# =============================================================================

class TestNormalizeText:
    def test_drops_stopwords_keeps_order(self):
        assert normalize_text("optimize my react build") == ["optimiz", "react", "build"]

    def test_only_stopwords_is_empty(self):
        assert normalize_text("what is the") == []

    def test_custom_stopwords(self):
        stop = DEFAULT_STOPWORDS | {"react"}
        assert normalize_text("react build", stop) == ["build"]


# =============================================================================
# TX4: normalize_term / normalize_terms
# =============================================================================

class TestNormalizeTerms:
    def test_phrase_joined_by_space(self):
        assert normalize_term("Server Components") == "server component"

    def test_stopword_only_term_is_empty(self):
        assert normalize_term("the") == ""

    def test_terms_deduplicated_and_empties_dropped(self):
        terms = normalize_terms(["React", "react", "the", "Data Fetching"])
        assert terms == frozenset({"react", "data fetch"})

    def test_non_strings_ignored(self):
        assert normalize_terms(["git", 3, None]) == frozenset({"git"})


# =============================================================================
# TX5: contains_phrase
# =============================================================================

class TestContainsPhrase:
    def test_contiguous(self):
        assert contains_phrase(["a", "b", "c"], ["b", "c"])

    def test_non_contiguous(self):
        assert not contains_phrase(["a", "b", "c"], ["a", "c"])

    def test_longer_than_keywords(self):
        assert not contains_phrase(["a"], ["a", "b"])

    def test_empty_phrase(self):
        assert not contains_phrase(["a"], [])


# =============================================================================
# TX6: score_terms
# =============================================================================

class TestScoreTerms:
    def test_single_token_scores_one(self):
        result = score_terms({"react"}, normalize_text("optimize my react build"))
        assert result.score == 1
        assert result.matched == ("react",)

    def test_phrase_scores_two(self):
        keywords = normalize_text("refactor these server components")
        result = score_terms({"server component"}, keywords)
        assert result.score == 2

    def test_scattered_phrase_does_not_match(self):
        keywords = normalize_text("server side rendering of components")
        assert score_terms({"server component"}, keywords).score == 0

    def test_weights_add_up(self):
        keywords = normalize_text("react server components with vite")
        terms = normalize_terms(["react", "vite", "server components", "git"])
        result = score_terms(terms, keywords)
        assert result.score == 1 + 1 + 2
        assert result.matched == ("react", "server component", "vit")

    def test_each_term_counts_once(self):
        keywords = normalize_text("react react react")
        assert score_terms({"react"}, keywords).score == 1

    def test_empty_keywords(self):
        assert score_terms({"react"}, []).score == 0
