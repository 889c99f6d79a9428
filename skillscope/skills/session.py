"""Disclosure sessions for incremental ("load more") retrieval.

A session is created per task and pins the corpus snapshot, the activated
skills and the full disclosure order at creation time. Each call packs the
next slice of that order into the available budget and records what was
delivered, so a rule is never delivered twice.

    FRESH --disclose(budget)--> PARTIAL | COMPLETE
    PARTIAL --disclose_more(extra)--> PARTIAL | COMPLETE
    COMPLETE --disclose_more(extra)--> COMPLETE (no items)

Budget not used by one call carries over: disclose_more(extra) packs into
``remaining_budget + extra``.

Sessions are held by a SessionStore keyed by session id. A refined task
description is a new session; sessions are never re-targeted in place.
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from ..observability import get_logger, metrics
from .errors import InvalidArgumentError, InvalidSessionError, SessionStateError
from .index import CorpusIndex
from .matcher import SkillMatch
from .models import Rule, SessionState, Task
from .packer import BudgetPacker, PackResult, validate_budget

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Disclosure:
    """Result of a disclose or disclose_more call."""

    session_id: str
    items: tuple
    state: SessionState
    truncated_to_empty: bool = False
    activated: tuple = ()
    used_budget: int = 0
    remaining_budget: int = 0

    @property
    def total_size(self) -> int:
        return sum(item.size for item in self.items)

    def to_dict(self, include_body: bool = True) -> dict:
        return {
            "session_id": self.session_id,
            "items": [item.to_dict(include_body=include_body) for item in self.items],
            "state": self.state.value,
            "truncated_to_empty": self.truncated_to_empty,
            "activated": [m.to_dict() for m in self.activated],
            "used_budget": self.used_budget,
            "remaining_budget": self.remaining_budget,
        }


class DisclosureSession:
    """Per-task disclosure state.

    All state changes happen under the session's lock, so concurrent
    disclose_more calls on the same session are serialized.
    """

    def __init__(
        self,
        task: Task,
        index: CorpusIndex,
        matches: Sequence[SkillMatch],
        packer: Optional[BudgetPacker] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.task = task
        self.index = index
        self.activated = tuple(matches)
        self._packer = packer or BudgetPacker()
        self._plan: tuple[Rule, ...] = tuple(self._packer.plan(index, self.activated, task))
        self._delivered: dict[tuple[str, str], None] = {}
        self._lock = threading.Lock()
        self._log = get_logger("session", session_id=task.task_id)

        self.state = SessionState.FRESH
        self.remaining_budget = 0
        self.created_at = clock()
        self.last_used = self.created_at

    @property
    def session_id(self) -> str:
        return self.task.task_id

    @property
    def delivered(self) -> tuple:
        """Delivered rule keys ``(skill_id, rule_id)`` in delivery order."""
        with self._lock:
            return tuple(self._delivered)

    @property
    def pending(self) -> int:
        """Number of planned rules not yet delivered."""
        with self._lock:
            return sum(1 for rule in self._plan if rule.key not in self._delivered)

    def disclose(self, budget: int) -> Disclosure:
        """Initial disclosure. Allowed once, from FRESH.

        Raises:
            InvalidArgumentError: If budget is not a positive integer
            SessionStateError: If the session has already disclosed
        """
        validate_budget(budget)
        with self._lock:
            if self.state is not SessionState.FRESH:
                raise SessionStateError(
                    f"Session {self.session_id} already disclosed; use disclose_more()"
                )
            return self._advance(budget)

    def close_empty(self) -> Disclosure:
        """Complete a session that has nothing to disclose (blank task)."""
        with self._lock:
            if self._plan:
                raise SessionStateError(f"Session {self.session_id} has rules to disclose")
            self.state = SessionState.COMPLETE
            return Disclosure(session_id=self.session_id, items=(), state=SessionState.COMPLETE)

    def disclose_more(self, additional_budget: int) -> Disclosure:
        """Continue the disclosure with extra budget.

        Budget left unused by earlier calls carries over, so the increment is
        packed into ``remaining_budget + additional_budget``. Its total size
        can therefore exceed additional_budget by up to the carried-over
        amount; the cumulative size delivered never exceeds the sum of all
        budgets granted to the session.

        Returns an empty increment in state COMPLETE once everything has
        been delivered.

        Raises:
            InvalidArgumentError: If additional_budget is not a positive integer
            SessionStateError: If disclose() has not been called yet
        """
        validate_budget(additional_budget, name="additional_budget")
        with self._lock:
            if self.state is SessionState.FRESH:
                raise SessionStateError(
                    f"Session {self.session_id} has not disclosed yet; call disclose() first"
                )
            if self.state is SessionState.COMPLETE:
                return Disclosure(
                    session_id=self.session_id,
                    items=(),
                    state=SessionState.COMPLETE,
                    activated=self.activated,
                    remaining_budget=self.remaining_budget,
                )
            return self._advance(self.remaining_budget + additional_budget)

    def _advance(self, available: int) -> Disclosure:
        result: PackResult = self._packer.pack(self._plan, available, self._delivered)

        for item in result.items:
            self._delivered[item.key] = None

        self.remaining_budget = result.remaining_budget
        self.state = SessionState.COMPLETE if result.exhausted else SessionState.PARTIAL

        if result.items:
            metrics.increment("rules_disclosed_total", value=len(result.items))
        if result.truncated_to_empty:
            metrics.increment("disclosure_truncated_total")

        self._log.info(
            "disclosure_step",
            items=len(result.items),
            used_budget=result.used_budget,
            remaining_budget=result.remaining_budget,
            state=self.state.value,
            truncated_to_empty=result.truncated_to_empty,
        )

        return Disclosure(
            session_id=self.session_id,
            items=result.items,
            state=self.state,
            truncated_to_empty=result.truncated_to_empty,
            activated=self.activated,
            used_budget=result.used_budget,
            remaining_budget=result.remaining_budget,
        )


class SessionStore:
    """Thread-safe registry of open sessions with idle expiry.

    Sessions idle for longer than ``ttl_seconds`` expire. When the store is
    full, the least recently used session is evicted.
    """

    def __init__(
        self,
        ttl_seconds: float = 3600.0,
        max_sessions: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        if isinstance(max_sessions, bool) or not isinstance(max_sessions, int) or max_sessions < 1:
            raise InvalidArgumentError(f"max_sessions must be a positive integer, got {max_sessions!r}")
        if ttl_seconds <= 0:
            raise InvalidArgumentError(f"ttl_seconds must be positive, got {ttl_seconds!r}")
        self.ttl_seconds = ttl_seconds
        self.max_sessions = max_sessions
        self._clock = clock
        self._sessions: "OrderedDict[str, DisclosureSession]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def _is_expired(self, session: DisclosureSession, now: float) -> bool:
        return now - session.last_used > self.ttl_seconds

    def _purge_locked(self, now: float) -> int:
        expired = [sid for sid, s in self._sessions.items() if self._is_expired(s, now)]
        for sid in expired:
            del self._sessions[sid]
            logger.debug(f"Session {sid} expired")
        return len(expired)

    def purge_expired(self) -> int:
        """Drop all expired sessions. Returns how many were removed."""
        with self._lock:
            return self._purge_locked(self._clock())

    def add(self, session: DisclosureSession) -> DisclosureSession:
        now = self._clock()
        with self._lock:
            self._purge_locked(now)
            while len(self._sessions) >= self.max_sessions:
                evicted, _ = self._sessions.popitem(last=False)
                logger.info(f"Session store full, evicted least recently used session {evicted}")
            session.last_used = now
            self._sessions[session.session_id] = session
        metrics.increment("session_created_total")
        return session

    def get(self, session_id: str) -> DisclosureSession:
        """Look up an open session and mark it used.

        Raises:
            InvalidSessionError: If the id is unknown or the session expired
        """
        now = self._clock()
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                metrics.increment("session_invalid_total", labels={"reason": "unknown"})
                raise InvalidSessionError(session_id, "unknown or ended")
            if self._is_expired(session, now):
                del self._sessions[session_id]
                metrics.increment("session_invalid_total", labels={"reason": "expired"})
                raise InvalidSessionError(session_id, "expired")
            self._sessions.move_to_end(session_id)
            session.last_used = now
            return session

    def end(self, session_id: str) -> None:
        """Destroy a session.

        Raises:
            InvalidSessionError: If the id is unknown
        """
        with self._lock:
            if self._sessions.pop(session_id, None) is None:
                metrics.increment("session_invalid_total", labels={"reason": "unknown"})
                raise InvalidSessionError(session_id, "unknown or ended")
