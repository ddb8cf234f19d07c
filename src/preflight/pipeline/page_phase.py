from starlette.requests import Request
from starlette.responses import RedirectResponse

from preflight.pipeline.context import CONTINUE, PhaseOutcome, RuntimeContext, ShortCircuit

PHASE_NAME = "_pages_register"
PHASE_LABEL = "Register Pages"


def redirect(route: str, status_code: int = 302) -> RedirectResponse:
    return RedirectResponse(url=route, status_code=status_code)


def execute(ctx: RuntimeContext, request: Request) -> PhaseOutcome:
    """Register pages, resolve the route and canonicalize trailing slashes."""
    ctx.pages.register()
    ctx.uri.init(request)

    path = ctx.uri.path() or "/"
    if (
        path != "/"
        and ctx.config.get("system.pages.redirect_trailing_slash", False)
        and path.endswith("/")
    ):
        route = ctx.uri.current_route().to_string()
        code = ctx.config.get("system.pages.redirect_default_code", 302)
        return ShortCircuit(redirect(route, code))

    return CONTINUE
