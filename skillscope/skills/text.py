"""Keyword normalization and term scoring.

The same normalization is applied to task descriptions, trigger terms, rule
tags and category labels, so a term and a task match iff their normalized
token sequences line up. Normalization is:

  1. lowercase
  2. split on non-alphanumerics
  3. drop stopwords
  4. light suffix stemming ("caching" / "caches" / "cache" -> "cach")

Terms are stored as their normalized tokens joined by single spaces, e.g.
``"Server Components"`` -> ``"server component"``.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

_TOKEN_RE = re.compile(r"[a-z0-9]+")

DEFAULT_STOPWORDS = frozenset({
    "a", "about", "after", "all", "also", "an", "and", "any", "are", "as",
    "at", "be", "been", "before", "being", "but", "by", "can", "could", "do",
    "does", "doing", "for", "from", "get", "had", "has", "have", "help",
    "how", "i", "if", "in", "into", "is", "it", "its", "just", "let", "like",
    "make", "me", "my", "need", "of", "on", "or", "our", "please", "should",
    "so", "some", "that", "the", "their", "them", "then", "there", "these",
    "this", "those", "to", "up", "us", "use", "using", "want", "was", "we",
    "were", "what", "when", "where", "which", "while", "who", "why", "will",
    "with", "would", "you", "your",
})


def tokenize(text: str) -> list[str]:
    """Lowercase and split on non-alphanumerics."""
    return _TOKEN_RE.findall((text or "").lower())


_VOWELS = "aeiou"

# A lone trailing "s" after these is part of the word ("status", "alias")
_KEEP_S = ("ss", "us", "is", "as")

# Doubled letters left alone when a verb ending is stripped ("install", "agree")
_KEEP_DOUBLE = _VOWELS + "lsz"


def _short_stem(base: str) -> bool:
    """True for a three-letter stem that stands on its own: "fix", "cod", "add"."""
    if len(base) != 3:
        return False
    if base[1] == base[2] and base[2] not in _VOWELS:
        return True
    return base[0] not in _VOWELS and base[1] in _VOWELS + "y" and base[2] not in _VOWELS + "y"


def stem(token: str) -> str:
    """Strip common English inflection suffixes.

    Deliberately conservative: tokens of three characters or fewer and tokens
    containing digits are returned unchanged. "-ing" / "-ed" are only
    stripped when at least four letters remain, or a short stem such as
    "fix" or "add" does; a doubled final consonant left behind is collapsed,
    so "running" / "run" and "embedding" / "embedded" / "embed" agree.
    """
    if len(token) <= 3 or not token.isalpha():
        return token

    # plural
    if token.endswith("ies") and len(token) > 4:
        token = token[:-3] + "y"
    elif token.endswith("es") and len(token) - 2 >= 3:
        token = token[:-2]
    elif token.endswith("s") and not token.endswith(_KEEP_S) and len(token) - 1 >= 3:
        token = token[:-1]

    for suffix in ("ing", "ed"):
        if token.endswith(suffix):
            base = token[:-len(suffix)]
            if len(base) >= 4 or _short_stem(base):
                token = base
                if len(token) > 3 and token[-1] == token[-2] and token[-1] not in _KEEP_DOUBLE:
                    token = token[:-1]
            break

    if token.endswith("e") and len(token) > 3:
        token = token[:-1]
    return token


def normalize_text(text: str, stopwords: Optional[frozenset] = None) -> list[str]:
    """Normalize free text into an ordered list of keyword tokens."""
    stop = DEFAULT_STOPWORDS if stopwords is None else stopwords
    return [stem(tok) for tok in tokenize(text) if tok not in stop]


def normalize_term(term: str, stopwords: Optional[frozenset] = None) -> str:
    """Normalize a keyword or phrase into its canonical term string.

    Returns an empty string when nothing survives normalization
    (e.g. the term consisted only of stopwords).
    """
    return " ".join(normalize_text(term, stopwords))


def normalize_terms(terms: Iterable[str], stopwords: Optional[frozenset] = None) -> frozenset:
    """Normalize a collection of terms, dropping empties and duplicates."""
    result = set()
    for term in terms:
        if not isinstance(term, str):
            continue
        normalized = normalize_term(term, stopwords)
        if normalized:
            result.add(normalized)
    return frozenset(result)


def contains_phrase(keywords: Sequence[str], phrase: Sequence[str]) -> bool:
    """True if ``phrase`` occurs contiguously in ``keywords``."""
    n = len(phrase)
    if n == 0 or n > len(keywords):
        return False
    first = phrase[0]
    for i in range(len(keywords) - n + 1):
        if keywords[i] == first and tuple(keywords[i:i + n]) == tuple(phrase):
            return True
    return False


# Weights
SINGLE_TOKEN_WEIGHT = 1
PHRASE_WEIGHT = 2


@dataclass(frozen=True)
class TermScore:
    """Relevance of a term set against a keyword sequence."""

    score: int
    matched: tuple = ()


def score_terms(terms: Iterable[str], keywords: Sequence[str]) -> TermScore:
    """Score normalized terms against a normalized keyword sequence.

    Each distinct term counts at most once: a single-token term present in
    the keywords scores 1, a multi-word term appearing contiguously scores 2.
    """
    if not keywords:
        return TermScore(score=0)

    keyword_set = set(keywords)
    score = 0
    matched = []
    for term in sorted(set(terms)):
        parts = term.split(" ")
        if len(parts) == 1:
            if parts[0] in keyword_set:
                score += SINGLE_TOKEN_WEIGHT
                matched.append(term)
        elif contains_phrase(keywords, parts):
            score += PHRASE_WEIGHT
            matched.append(term)
    return TermScore(score=score, matched=tuple(matched))
