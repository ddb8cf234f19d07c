from starlette.requests import Request

from preflight.pipeline.context import CONTINUE, PhaseOutcome, RuntimeContext

PHASE_NAME = "_errors"
PHASE_LABEL = "Error Handlers Reset"


def execute(ctx: RuntimeContext, request: Request) -> PhaseOutcome:
    ctx.errors.reset_handlers(ctx.config, ctx.log)
    return CONTINUE
