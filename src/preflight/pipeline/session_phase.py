from collections.abc import Callable

from starlette.requests import Request

from preflight.errors import SessionCorruptionError
from preflight.pipeline.context import CONTINUE, PhaseOutcome, Recovered, RuntimeContext

PHASE_NAME = "_session"
PHASE_LABEL = "Start Session"

CORRUPTION_MESSAGE = "Session corruption detected, restarting session..."


def retry_once(call: Callable[[], None], on: type[Exception]) -> bool:
    """Run ``call``; if it raises ``on``, run it exactly once more.

    The second outcome is final. Returns True when the retry happened.
    """
    try:
        call()
    except on:
        call()
        return True
    return False


def execute(ctx: RuntimeContext, request: Request) -> PhaseOutcome:
    # Runs after plugins and pages; do not move earlier
    session = ctx.session
    if session is None or not ctx.config.get("system.session.initialize", True):
        return CONTINUE

    if retry_once(session.init, on=SessionCorruptionError):
        return Recovered(CORRUPTION_MESSAGE, severity="error")
    return CONTINUE
