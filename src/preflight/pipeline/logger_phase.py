from starlette.requests import Request

from preflight.pipeline.context import CONTINUE, PhaseOutcome, RuntimeContext
from preflight.services.log import install_syslog

PHASE_NAME = "_logger"
PHASE_LABEL = "Logger"


def execute(ctx: RuntimeContext, request: Request) -> PhaseOutcome:
    """Swap the site log sink to syslog when configured; the file sink is the default."""
    if ctx.config.get("system.log.handler", "file") == "syslog":
        install_syslog(
            ctx.log,
            facility=ctx.config.get("system.log.syslog.facility", "local6"),
            address=(ctx.settings.syslog_host, ctx.settings.syslog_port),
        )
    return CONTINUE
