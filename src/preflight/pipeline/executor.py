import asyncio
from collections.abc import Awaitable, Callable

import structlog
from starlette.requests import Request
from starlette.responses import Response

from preflight.pipeline import (
    config_phase,
    core_phase,
    debugger_phase,
    error_phase,
    logger_phase,
    page_phase,
    plugin_phase,
    session_phase,
)
from preflight.pipeline.context import PhaseOutcome, Recovered, RuntimeContext, ShortCircuit

log = structlog.get_logger()

Phase = Callable[[RuntimeContext, Request], PhaseOutcome]
Delegate = Callable[[Request], Awaitable[Response]]

# Ordered list of bootstrap phases: (name, label, phase)
PHASES: list[tuple[str, str, Phase]] = [
    (m.PHASE_NAME, m.PHASE_LABEL, m.execute)
    for m in (
        config_phase,
        logger_phase,
        error_phase,
        debugger_phase,
        core_phase,
        plugin_phase,
        page_phase,
        session_phase,
    )
]


def run_phase(ctx: RuntimeContext, request: Request, name: str, label: str, phase: Phase) -> PhaseOutcome:
    ctx.timers.start(name, label)
    try:
        return phase(ctx, request)
    except Exception as e:
        log.error("phase_failed", phase=name, error=str(e), error_type=type(e).__name__)
        raise
    finally:
        ctx.timers.stop(name)


async def process(
    request: Request,
    ctx: RuntimeContext,
    delegate: Delegate,
    phases: list[tuple[str, str, Phase]] | None = None,
) -> Response:
    """Run the bootstrap phases in order, then hand the request to ``delegate``.

    A phase may short-circuit (its response is returned and ``delegate`` is
    never called) or report a recovered failure, which is recorded in the
    message sink. Fatal errors propagate once the phase timer is stopped.
    """
    loop = asyncio.get_running_loop()
    for name, label, phase in phases or PHASES:
        # Phases do blocking I/O (config read, plugin imports, syslog socket)
        outcome = await loop.run_in_executor(None, run_phase, ctx, request, name, label, phase)

        if isinstance(outcome, ShortCircuit):
            log.info(
                "pipeline_short_circuit",
                phase=name,
                status=outcome.response.status_code,
                path=request.url.path,
            )
            return outcome.response

        if isinstance(outcome, Recovered):
            ctx.messages.add(outcome.message, outcome.severity)
            log.warning("phase_recovered", phase=name, message=outcome.message)

    response = await ctx.debugger.profile(lambda: delegate(request), ctx.timers)
    return ctx.debugger.log_request(request, response, ctx)
