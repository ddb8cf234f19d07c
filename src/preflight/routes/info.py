from typing import Any

from fastapi import APIRouter, Request

from preflight.pipeline.context import RuntimeContext
from preflight.pipeline.executor import PHASES

router = APIRouter()


def _duration(ctx: RuntimeContext, name: str) -> float | None:
    record = ctx.timers.get(name)
    if record is None or not record.stopped:
        return None
    return round(record.duration_ms, 3)


@router.get("/v1/info")
async def runtime_info(request: Request) -> dict[str, Any]:
    """Describe the bootstrap pipeline and what it prepared for this request."""
    ctx: RuntimeContext = request.state.context
    return {
        "name": "Preflight",
        "version": "0.1.0",
        "phases": [
            {"name": name, "label": label, "duration_ms": _duration(ctx, name)}
            for name, label, _ in PHASES
        ],
        "plugins": list(ctx.plugins.plugins),
        "page_types": ctx.pages.types,
        "session_started": ctx.session is not None and ctx.session.started,
        "messages": [
            {"message": m.message, "severity": m.severity} for m in ctx.messages.all()
        ],
    }
