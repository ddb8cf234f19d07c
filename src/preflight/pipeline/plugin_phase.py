from starlette.requests import Request

from preflight.pipeline.context import CONTINUE, PhaseOutcome, RuntimeContext

PHASE_NAME = "_plugins_load"
PHASE_LABEL = "Load Plugins"


def execute(ctx: RuntimeContext, request: Request) -> PhaseOutcome:
    ctx.plugins.init(ctx.config)
    return CONTINUE
