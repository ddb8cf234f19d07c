import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from preflight.errors import PreflightError
from preflight.pipeline.executor import process
from preflight.runtime import Runtime

log = structlog.get_logger()


class BootstrapMiddleware(BaseHTTPMiddleware):
    """Runs the bootstrap pipeline in front of every route."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        runtime: Runtime = request.app.state.runtime
        ctx = runtime.for_request(request)
        request.state.context = ctx

        try:
            response = await process(request, ctx, call_next)
        except PreflightError as e:
            log.error(
                "bootstrap_failed",
                error=str(e),
                error_type=type(e).__name__,
                path=request.url.path,
            )
            return runtime.errors.handle(e, request)

        if ctx.session is not None:
            response = ctx.session.close(response)
        if ctx.output is not None:
            response = await ctx.output.flush(response)
        return response
