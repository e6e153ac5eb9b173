"""FastAPI application wiring for the planning service.

Beginner terms used in this file:
- FastAPI app: the main web application object.
- response_model: Pydantic model used to validate/shape API responses.
- app.state: a place to store shared runtime objects (config, coordinator).
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException

from .app.config import OrchestraConfig, Settings, get_settings, load_config_or_default
from .app.errors import ExtractionError, GenerationError, PlanningError
from .app.events import LoggingEventSink, PlanContext
from .app.llm import TextGenerator, build_text_generator
from .app.models import CreatePlanRequest, Plan
from .app.planner import PlanCoordinator

logger = logging.getLogger(__name__)

# Failures caused by the upstream model rather than by the request.
UPSTREAM_ERRORS = (ExtractionError, GenerationError)


def create_app(
    *,
    config: OrchestraConfig | None = None,
    text_generator: TextGenerator | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Application factory; tests pass config and generator overrides."""
    settings = settings or get_settings()
    config = config or load_config_or_default(settings.config_path)
    text_generator = text_generator or build_text_generator(settings)

    app = FastAPI(title=settings.app_name, version="0.1.0")
    app.state.config = config
    app.state.coordinator = PlanCoordinator(
        config=config,
        text_generate=text_generator.generate,
        sink_factory=LoggingEventSink,
    )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/tools")
    def list_tools() -> dict[str, list[str]]:
        return {"tools": list(app.state.config.whitelist_tools)}

    @app.post("/plans", response_model=Plan)
    def create_plan(payload: CreatePlanRequest) -> Plan:
        context = PlanContext.new()
        logger.info("plan_request event=start trace_id=%s", context.trace_id)
        try:
            return app.state.coordinator.build_plan(
                payload.intent,
                whitelist=payload.whitelist,
                context=context,
            )
        except UPSTREAM_ERRORS as exc:
            raise HTTPException(status_code=502, detail=_error_detail(exc, context)) from exc
        except PlanningError as exc:
            raise HTTPException(status_code=422, detail=_error_detail(exc, context)) from exc

    return app


def _error_detail(exc: PlanningError, context: PlanContext) -> dict[str, str]:
    return {
        "error": type(exc).__name__,
        "stage": exc.stage,
        "message": str(exc),
        "trace_id": context.trace_id,
    }


# Module-level app for `uvicorn orchestra_planner.main:app`.
app = create_app()
