from starlette.requests import Request

from preflight.pipeline.context import CONTINUE, PhaseOutcome, RuntimeContext
from preflight.services.environment import accepts_gzip

PHASE_NAME = "_init"
PHASE_LABEL = "Initialize"


def execute(ctx: RuntimeContext, request: Request) -> PhaseOutcome:
    """Set up output buffering, timezone and locale before anything is emitted."""
    compress = bool(ctx.config.get("system.cache.gzip", False)) and accepts_gzip(
        request.headers.get("accept-encoding", "")
    )
    ctx.output = ctx.env.start_output_buffer(compress=compress)

    timezone = ctx.config.get("system.timezone")
    if timezone:
        ctx.env.set_timezone(timezone)

    default_locale = ctx.config.get("system.default_locale")
    if default_locale:
        ctx.env.set_locale(default_locale)

    return CONTINUE
