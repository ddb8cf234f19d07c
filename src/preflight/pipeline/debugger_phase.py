from starlette.requests import Request

from preflight.pipeline.context import CONTINUE, PhaseOutcome, RuntimeContext, ShortCircuit
from preflight.services.debugger import CLOCKWORK_PATH

PHASE_NAME = "_debugger"
PHASE_LABEL = "Init Debugger"


def execute(ctx: RuntimeContext, request: Request) -> PhaseOutcome:
    """Initialize the debugger and answer Clockwork API calls directly."""
    debugger = ctx.debugger.init(ctx.config)
    clockwork = debugger.get_clockwork()
    if clockwork is None:
        return CONTINUE

    request.state.request_time = ctx.request_time

    if CLOCKWORK_PATH in request.url.path:
        return ShortCircuit(debugger.debugger_request(request))

    ctx.clockwork = clockwork
    return CONTINUE
