"""HTTP API for the disclosure engine.

Endpoints:
    GET    /health
    GET    /metrics                          Prometheus text format
    GET    /api/skills
    GET    /api/skills/{skill_id}
    GET    /api/skills/{skill_id}/rules/{rule_id}
    GET    /api/diagnostics
    POST   /api/match
    POST   /api/disclose
    POST   /api/sessions/{session_id}/more
    DELETE /api/sessions/{session_id}
    POST   /api/reload

Run with ``skillscope serve`` or ``uvicorn skillscope.api:app``.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from .config import settings
from .engine import DisclosureEngine
from .observability import metrics
from .skills.errors import (
    CorpusLoadError,
    InvalidArgumentError,
    InvalidSessionError,
    SkillscopeError,
    UnknownRuleError,
    UnknownSkillError,
)
from .skills.models import Skill

logger = logging.getLogger(__name__)


class MatchRequest(BaseModel):
    """Request model for skill matching."""
    task: str


class DiscloseRequest(BaseModel):
    """Request model for opening a disclosure session."""
    task: str
    budget: Optional[int] = None
    require_description: bool = False
    include_body: bool = True


class DiscloseMoreRequest(BaseModel):
    """Request model for continuing a disclosure session."""
    additional_budget: int
    include_body: bool = True


def skill_summary(skill: Skill) -> dict:
    """Serializable overview of a skill (no rule bodies)."""
    return {
        "id": skill.id,
        "description": skill.description,
        "enabled": skill.enabled,
        "trigger_terms": sorted(skill.trigger_terms),
        "rule_count": len(skill.rules),
        "categories": [
            {"name": c.name, "priority": c.priority.value, "prefix": c.prefix}
            for c in skill.categories
        ],
    }


def create_app(engine: Optional[DisclosureEngine] = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        engine: Engine to serve. When omitted, one is built from settings
            at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "engine", None) is None:
            app.state.engine = DisclosureEngine.from_settings()
        yield

    app = FastAPI(
        title="skillscope",
        description="Skill selection and progressive disclosure",
        lifespan=lifespan,
    )
    app.state.engine = engine

    def _engine(request: Request) -> DisclosureEngine:
        current = request.app.state.engine
        if current is None:
            raise HTTPException(status_code=503, detail="Engine not initialized")
        return current

    @app.get("/health")
    async def health(request: Request):
        """Liveness plus a corpus summary."""
        index = _engine(request).index
        return {
            "status": "ok",
            "skills": len(index),
            "rules": index.rule_count,
            "loaded_at": index.loaded_at.isoformat(),
        }

    @app.get("/metrics", response_class=PlainTextResponse)
    async def api_metrics():
        """Metrics in Prometheus text format."""
        return metrics.to_prometheus()

    @app.get("/api/skills")
    async def api_list_skills(request: Request):
        """List all skills in the current corpus snapshot."""
        return {"skills": [skill_summary(s) for s in _engine(request).list_skills()]}

    @app.get("/api/skills/{skill_id}")
    async def api_get_skill(skill_id: str, request: Request):
        """Get a skill with its rule metadata."""
        try:
            skill = _engine(request).get_skill(skill_id)
        except UnknownSkillError as e:
            raise HTTPException(status_code=404, detail=str(e))
        summary = skill_summary(skill)
        summary["rules"] = [
            {
                "id": r.id,
                "title": r.title,
                "priority": r.priority.value,
                "category": r.category,
                "tags": sorted(r.tags),
                "size": r.size_estimate,
            }
            for r in skill.rules
        ]
        return summary

    @app.get("/api/skills/{skill_id}/rules/{rule_id}")
    async def api_get_rule(skill_id: str, rule_id: str, request: Request):
        """Get one rule including its body."""
        try:
            rule = _engine(request).get_rule(skill_id, rule_id)
        except (UnknownSkillError, UnknownRuleError) as e:
            raise HTTPException(status_code=404, detail=str(e))
        return {
            "skill_id": rule.skill_id,
            "id": rule.id,
            "title": rule.title,
            "priority": rule.priority.value,
            "category": rule.category,
            "tags": sorted(rule.tags),
            "size": rule.size_estimate,
            "body": rule.body,
        }

    @app.get("/api/diagnostics")
    async def api_diagnostics(request: Request):
        """Load-time data-quality findings of the current snapshot."""
        return {"diagnostics": [d.to_dict() for d in _engine(request).diagnostics]}

    @app.post("/api/match")
    async def api_match(body: MatchRequest, request: Request):
        """Score skills against a task description."""
        try:
            matches = _engine(request).match(body.task)
        except InvalidArgumentError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"matches": [m.to_dict() for m in matches]}

    @app.post("/api/disclose")
    async def api_disclose(body: DiscloseRequest, request: Request):
        """Open a session and return the first disclosure."""
        budget = body.budget if body.budget is not None else settings.default_budget
        try:
            result = _engine(request).disclose(
                body.task,
                budget,
                require_description=body.require_description,
            )
        except InvalidArgumentError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return result.to_dict(include_body=body.include_body)

    @app.post("/api/sessions/{session_id}/more")
    async def api_disclose_more(session_id: str, body: DiscloseMoreRequest, request: Request):
        """Continue a session with additional budget."""
        try:
            result = _engine(request).disclose_more(session_id, body.additional_budget)
        except InvalidSessionError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except InvalidArgumentError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return result.to_dict(include_body=body.include_body)

    @app.delete("/api/sessions/{session_id}")
    async def api_end_session(session_id: str, request: Request):
        """End a session."""
        try:
            _engine(request).end_session(session_id)
        except InvalidSessionError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return {"success": True}

    @app.post("/api/reload")
    async def api_reload(request: Request):
        """Reload the corpus from disk. On failure the current snapshot stays."""
        try:
            index = _engine(request).reload()
        except CorpusLoadError as e:
            logger.error(f"Corpus reload failed: {e}")
            raise HTTPException(status_code=503, detail=str(e))
        except SkillscopeError as e:
            raise HTTPException(status_code=409, detail=str(e))
        return {"success": True, "skills": len(index), "rules": index.rule_count}

    return app


app = create_app()
