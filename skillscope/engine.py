"""Disclosure engine facade.

Wires the corpus handle, matcher, ranker, packer and session store into the
three public operations:

    match(task_description)                     -> [SkillMatch]
    disclose(task_description, budget)          -> Disclosure (opens a session)
    disclose_more(session_id, additional_budget) -> Disclosure

Each pipeline run reads ``handle.current`` once, so a concurrent reload
never mixes two corpus snapshots within one call, and sessions keep the
snapshot they were opened against.
"""

import logging
import time
from pathlib import Path
from typing import Callable, Optional, Union

from .config import Settings, settings as default_settings
from .observability import get_logger, metrics
from .skills.errors import InvalidArgumentError
from .skills.index import CorpusHandle, CorpusIndex
from .skills.loader import CorpusLoader
from .skills.matcher import SkillMatch, TriggerMatcher
from .skills.models import Rule, Skill, Task
from .skills.packer import BudgetPacker, validate_budget
from .skills.ranker import RuleRanker
from .skills.session import Disclosure, DisclosureSession, SessionStore

logger = logging.getLogger(__name__)


class DisclosureEngine:
    """Skill selection and progressive disclosure over one corpus."""

    def __init__(
        self,
        corpus: Union[CorpusIndex, CorpusHandle],
        stopwords: Optional[frozenset] = None,
        session_ttl_seconds: float = 3600.0,
        max_sessions: int = 1000,
        matcher: Optional[TriggerMatcher] = None,
        ranker: Optional[RuleRanker] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the engine.

        Args:
            corpus: A loaded index, or a handle when reload is needed
            stopwords: Stopwords for task and rule-category normalization (defaults built in)
            session_ttl_seconds: Idle time after which a session expires
            max_sessions: Open-session cap (least recently used evicted)
            matcher: Trigger matcher (default keyword scorer)
            ranker: Rule ranker (default keyword scorer)
            clock: Monotonic clock, injectable for tests
        """
        self.handle = corpus if isinstance(corpus, CorpusHandle) else CorpusHandle(corpus)
        self.stopwords = stopwords
        self.matcher = matcher or TriggerMatcher()
        self.packer = BudgetPacker(ranker or RuleRanker(stopwords=stopwords))
        self.sessions = SessionStore(
            ttl_seconds=session_ttl_seconds,
            max_sessions=max_sessions,
            clock=clock,
        )
        self._clock = clock
        self._log = get_logger("engine")

    @classmethod
    def from_directory(
        cls,
        corpus_dir: Path,
        size_unit: str = "tokens",
        stopwords: Optional[frozenset] = None,
        **kwargs,
    ) -> "DisclosureEngine":
        """Load a corpus directory and build a reloadable engine.

        Raises:
            CorpusLoadError: If the corpus is empty or unreadable
        """
        loader = CorpusLoader(Path(corpus_dir), size_unit=size_unit, stopwords=stopwords)
        handle = CorpusHandle(loader.load(), loader=loader.load)
        return cls(handle, stopwords=stopwords, **kwargs)

    @classmethod
    def from_settings(
        cls,
        config: Optional[Settings] = None,
        corpus_dir: Optional[Path] = None,
    ) -> "DisclosureEngine":
        """Build an engine from application settings."""
        config = config or default_settings
        return cls.from_directory(
            Path(corpus_dir) if corpus_dir else config.resolve_corpus_dir(),
            size_unit=config.size_unit,
            stopwords=config.stopwords,
            session_ttl_seconds=config.session_ttl_seconds,
            max_sessions=config.max_sessions,
        )

    # ------------------------------------------------------------------
    # Corpus
    # ------------------------------------------------------------------

    @property
    def index(self) -> CorpusIndex:
        return self.handle.current

    @property
    def diagnostics(self) -> tuple:
        return self.index.diagnostics

    def reload(self) -> CorpusIndex:
        """Reload the corpus and swap the snapshot. Open sessions are unaffected."""
        return self.handle.reload()

    def list_skills(self) -> list[Skill]:
        return self.index.list_skills()

    def get_skill(self, skill_id: str) -> Skill:
        return self.index.get_skill(skill_id)

    def get_rule(self, skill_id: str, rule_id: str) -> Rule:
        return self.index.get_rule(skill_id, rule_id)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def task(self, task_description: str) -> Task:
        """Normalize a task description.

        Raises:
            InvalidArgumentError: If the description is not a string
        """
        if not isinstance(task_description, str):
            raise InvalidArgumentError(
                f"task_description must be a string, got {type(task_description).__name__}"
            )
        return Task.from_description(task_description, self.stopwords)

    def match(self, task_description: str) -> list[SkillMatch]:
        """Score skills against a task. Empty list means no skill applies."""
        return self.matcher.match(self.index, self.task(task_description))

    def disclose(
        self,
        task_description: str,
        budget: int,
        require_description: bool = False,
    ) -> Disclosure:
        """Open a session and deliver the first slice of relevant rules.

        A blank description yields a COMPLETE disclosure with no items
        (before the budget is looked at) unless ``require_description`` is
        set, in which case it is an invalid argument.

        Raises:
            InvalidArgumentError: Non-positive budget, or blank description
                with require_description=True
        """
        start = time.perf_counter()
        task = self.task(task_description)
        index = self.index

        if not task_description.strip():
            if require_description:
                raise InvalidArgumentError("task_description must not be empty")
            session = self.sessions.add(DisclosureSession(task, index, (), self.packer, clock=self._clock))
            metrics.increment("no_match_total")
            return session.close_empty()

        validate_budget(budget)

        matches = self.matcher.match(index, task)
        if matches:
            for match in matches:
                metrics.increment("skill_activation_total", labels={"skill": match.skill_id})
        else:
            metrics.increment("no_match_total")
            logger.info(f"No skill applies to task {task.task_id}")

        session = self.sessions.add(DisclosureSession(task, index, matches, self.packer, clock=self._clock))
        result = session.disclose(budget)

        duration = time.perf_counter() - start
        metrics.observe("disclose_duration_seconds", duration)
        get_logger("engine", session_id=session.session_id).info(
            "disclose_complete",
            activated=[m.skill_id for m in matches],
            items=len(result.items),
            state=result.state.value,
            truncated_to_empty=result.truncated_to_empty,
            duration_ms=round(duration * 1000, 3),
        )
        return result

    def disclose_more(self, session_id: str, additional_budget: int) -> Disclosure:
        """Continue an open session.

        Raises:
            InvalidSessionError: If the session is unknown, ended or expired
            InvalidArgumentError: If additional_budget is not positive
        """
        session = self.sessions.get(session_id)
        return session.disclose_more(additional_budget)

    def get_session(self, session_id: str) -> DisclosureSession:
        return self.sessions.get(session_id)

    def end_session(self, session_id: str) -> None:
        """Destroy a session once the host is done with the task."""
        self.sessions.end(session_id)
        self._log.debug("session_ended", ended_session=session_id)
