from starlette.requests import Request

from preflight.pipeline.context import CONTINUE, PhaseOutcome, RuntimeContext

PHASE_NAME = "_config"
PHASE_LABEL = "Configuration"


def execute(ctx: RuntimeContext, request: Request) -> PhaseOutcome:
    """Materialize site configuration and prepare the plugin manifest."""
    ctx.config.init()
    ctx.plugins.setup(ctx.config)
    return CONTINUE
