"""Data model for skills, rules and tasks.

All corpus entities are frozen dataclasses: they are built once by the loader
and never mutated afterwards, so a loaded index can be shared freely between
concurrent pipelines.
"""

import uuid
from dataclasses import dataclass, field, asdict
from enum import Enum
from pathlib import Path
from typing import Optional

from .text import normalize_text


class Priority(str, Enum):
    """Rule priority. Total order, CRITICAL highest."""
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        """Sort rank: 0 for CRITICAL, 3 for LOW."""
        return _PRIORITY_RANK[self]

    @classmethod
    def parse(cls, value) -> "Priority":
        """Parse a priority label such as ``"critical"`` or ``"HIGH"``.

        Corpus files sometimes write compound labels like ``MEDIUM-HIGH``;
        those resolve to the higher of the two.

        Raises:
            ValueError: If the value is not a recognised priority
        """
        if isinstance(value, Priority):
            return value
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"Invalid priority: {value!r}")

        label = value.strip().upper().replace("_", "-").replace(" ", "-")
        parts = [p for p in label.split("-") if p]
        try:
            candidates = [cls(p) for p in parts]
        except ValueError:
            raise ValueError(f"Invalid priority: {value!r}") from None
        if not candidates:
            raise ValueError(f"Invalid priority: {value!r}")
        return min(candidates, key=lambda p: p.rank)


_PRIORITY_RANK = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}


class SessionState(str, Enum):
    """Lifecycle of a disclosure session."""
    FRESH = "Fresh"
    PARTIAL = "Partial"
    COMPLETE = "Complete"


@dataclass(frozen=True)
class CategorySpec:
    """Entry of a skill's declared category table."""

    name: str
    priority: Priority
    prefix: str = ""


@dataclass(frozen=True)
class Rule:
    """One independently loadable unit of guidance."""

    id: str
    skill_id: str
    priority: Priority
    size_estimate: int
    body: str = ""
    category: str = ""
    tags: frozenset = frozenset()
    title: str = ""

    @property
    def key(self) -> tuple[str, str]:
        return (self.skill_id, self.id)


@dataclass(frozen=True)
class Skill:
    """A named bundle of rules with trigger metadata."""

    id: str
    description: str
    trigger_terms: frozenset
    rules: tuple = ()
    categories: tuple = ()
    enabled: bool = True
    path: Optional[Path] = None

    def get_category(self, name: str) -> Optional[CategorySpec]:
        """Look up a declared category by name (case-insensitive)."""
        wanted = name.strip().lower()
        for spec in self.categories:
            if spec.name.lower() == wanted:
                return spec
        return None


@dataclass(frozen=True)
class LoadDiagnostic:
    """A data-quality finding collected while loading the corpus."""

    level: str  # "warning" or "error"
    code: str
    message: str
    path: str = ""
    skill_id: str = ""
    rule_id: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Task:
    """A task description and its derived keyword sequence.

    ``derived_keywords`` keeps the token order of the description so that
    multi-word trigger phrases can be matched contiguously.
    """

    description: str
    derived_keywords: tuple = ()
    task_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def from_description(
        cls,
        description: str,
        stopwords: Optional[frozenset] = None,
        task_id: Optional[str] = None,
    ) -> "Task":
        keywords = tuple(normalize_text(description or "", stopwords))
        if task_id:
            return cls(description=description or "", derived_keywords=keywords, task_id=task_id)
        return cls(description=description or "", derived_keywords=keywords)

    @property
    def keyword_set(self) -> frozenset:
        return frozenset(self.derived_keywords)

    @property
    def is_empty(self) -> bool:
        return not self.derived_keywords
