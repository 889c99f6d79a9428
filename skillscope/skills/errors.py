"""Error taxonomy for the skills engine.

Load-time data-quality problems are NOT exceptions: they are collected as
LoadDiagnostic entries on the corpus index. Only the conditions below are
raised to callers.
"""


class SkillscopeError(Exception):
    """Base class for all engine errors."""


class CorpusLoadError(SkillscopeError):
    """The corpus could not be loaded (no valid skills, unreadable root)."""

    def __init__(self, message: str, diagnostics: tuple = ()):
        super().__init__(message)
        self.diagnostics = diagnostics


class InvalidArgumentError(SkillscopeError, ValueError):
    """A request argument is malformed (non-positive budget, empty task)."""


class InvalidSessionError(SkillscopeError, LookupError):
    """A session id is unknown, ended or expired."""

    def __init__(self, session_id: str, reason: str = "unknown"):
        super().__init__(f"Invalid session '{session_id}': {reason}")
        self.session_id = session_id
        self.reason = reason


class SessionStateError(SkillscopeError):
    """An operation is not allowed in the session's current state."""


class UnknownSkillError(SkillscopeError, KeyError):
    """No skill with the given id exists in the index."""

    def __init__(self, skill_id: str):
        super().__init__(skill_id)
        self.skill_id = skill_id

    def __str__(self) -> str:
        return f"Skill not found: {self.skill_id}"


class UnknownRuleError(SkillscopeError, KeyError):
    """No rule with the given id exists in the skill."""

    def __init__(self, skill_id: str, rule_id: str):
        super().__init__(f"{skill_id}/{rule_id}")
        self.skill_id = skill_id
        self.rule_id = rule_id

    def __str__(self) -> str:
        return f"Rule not found: {self.skill_id}/{self.rule_id}"
