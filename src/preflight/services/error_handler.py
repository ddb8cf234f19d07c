import logging
import sys
import threading
import traceback
from collections.abc import Callable

import structlog
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response

log = structlog.get_logger()

GENERIC_MESSAGE = "Internal Server Error"

ExceptionHandler = Callable[[BaseException], None]


def _wants_json(request: Request | None) -> bool:
    return request is not None and "application/json" in request.headers.get("accept", "")


class ErrorHandler:
    """Process-wide exception handling.

    Verbosity follows ``system.errors.display``: -1 renders an empty body,
    0 a generic page, 1 the exception with its traceback.
    """

    def __init__(self) -> None:
        self.verbosity = 0
        self._handlers: list[ExceptionHandler] = []
        self._lock = threading.Lock()

    def reset_handlers(self, config, channel: logging.Logger) -> None:
        handlers: list[ExceptionHandler] = []
        if config.get("system.errors.log", True):
            handlers.append(lambda exc: _log_critical(channel, exc))

        with self._lock:
            self.verbosity = config.get("system.errors.display", 0)
            self._handlers = handlers
        self.register()

    def register(self) -> None:
        if sys.excepthook != self._excepthook:
            sys.excepthook = self._excepthook
        if threading.excepthook != self._thread_excepthook:
            threading.excepthook = self._thread_excepthook

    def handle(self, exc: BaseException, request: Request | None = None) -> Response:
        self._dispatch(exc)
        return self.render(exc, request)

    def render(self, exc: BaseException, request: Request | None = None) -> Response:
        if self.verbosity < 0:
            return Response(status_code=500)

        if self.verbosity == 0:
            if _wants_json(request):
                return JSONResponse(status_code=500, content={"detail": GENERIC_MESSAGE})
            return HTMLResponse(
                status_code=500,
                content=f"<html><body><h1>{GENERIC_MESSAGE}</h1></body></html>",
            )

        trace = traceback.format_exception(exc)
        if _wants_json(request):
            return JSONResponse(
                status_code=500,
                content={
                    "detail": str(exc),
                    "type": type(exc).__name__,
                    "trace": trace,
                },
            )
        return PlainTextResponse(status_code=500, content="".join(trace))

    def _dispatch(self, exc: BaseException) -> None:
        for handler in list(self._handlers):
            try:
                handler(exc)
            except Exception as e:
                log.error("error_handler_failed", error=str(e))

    def _excepthook(self, exc_type, exc, tb) -> None:
        self._dispatch(exc)
        sys.__excepthook__(exc_type, exc, tb)

    def _thread_excepthook(self, args) -> None:
        if args.exc_value is not None:
            self._dispatch(args.exc_value)
        threading.__excepthook__(args)


def _log_critical(channel: logging.Logger, exc: BaseException) -> None:
    trace = "".join(traceback.format_exception(exc))
    channel.critical("%s - Trace: %s", exc, trace)
