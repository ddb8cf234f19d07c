"""Debugger with a Clockwork-compatible request inspector.

Clockwork browser extensions read per-request data from
``/__clockwork/{id}``; responses carry the id in ``X-Clockwork-Id``.
"""
import re
import secrets
import threading
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

log = structlog.get_logger()

CLOCKWORK_PATH = "/__clockwork/"
CLOCKWORK_VERSION = "5.0"

CLOCKWORK_DATA_URI = re.compile(
    r"/__clockwork/(?P<id>[0-9-]+|latest)(?:/(?P<direction>previous|next))?(?:/(?P<count>\d+))?/?$"
)

CENSORED = "CENSORED"


class ClockworkStorage:
    """Bounded in-memory store of request records, oldest first."""

    def __init__(self, max_requests: int = 100) -> None:
        self.max_requests = max_requests
        self._requests: OrderedDict[str, dict[str, Any]] = OrderedDict()
        self._lock = threading.Lock()

    def store(self, data: dict[str, Any]) -> None:
        with self._lock:
            self._requests[data["id"]] = data
            while len(self._requests) > self.max_requests:
                self._requests.popitem(last=False)

    def find(self, request_id: str) -> dict[str, Any] | None:
        return self._requests.get(request_id)

    def latest(self) -> dict[str, Any] | None:
        with self._lock:
            if not self._requests:
                return None
            return next(reversed(self._requests.values()))

    def previous(self, request_id: str, count: int = 1) -> list[dict[str, Any]]:
        ids = list(self._requests)
        if request_id not in ids:
            return []
        index = ids.index(request_id)
        return [self._requests[i] for i in ids[max(0, index - count):index]]

    def next(self, request_id: str, count: int = 1) -> list[dict[str, Any]]:
        ids = list(self._requests)
        if request_id not in ids:
            return []
        index = ids.index(request_id)
        return [self._requests[i] for i in ids[index + 1:index + 1 + count]]


class Clockwork:
    """Per-request handle onto the shared storage."""

    def __init__(self, storage: ClockworkStorage) -> None:
        self.storage = storage
        self.id = f"{int(time.time())}-{secrets.randbelow(10000):04d}-{secrets.randbelow(100000):05d}"

    def resolve_request(
        self,
        request: Request,
        response: Response,
        request_time: float,
        timers: list,
        messages: list,
        censored: bool = False,
    ) -> dict[str, Any]:
        headers = dict(request.headers)
        cookies = dict(request.cookies)
        if censored:
            if "cookie" in headers:
                headers["cookie"] = CENSORED
            cookies = {name: CENSORED for name in cookies}

        now = time.time()
        return {
            "id": self.id,
            "version": CLOCKWORK_VERSION,
            "time": request_time,
            "method": request.method,
            "uri": str(request.url),
            "headers": headers,
            "cookies": cookies,
            "responseStatus": response.status_code,
            "responseTime": now,
            "responseDuration": (now - request_time) * 1000,
            "timelineData": [
                {
                    "description": t.label,
                    "name": t.name,
                    "start": t.start,
                    "end": t.end,
                    "duration": t.duration_ms,
                }
                for t in timers
            ],
            "log": [{"message": m.message, "level": m.severity} for m in messages],
        }


class Debugger:
    def __init__(self, storage: ClockworkStorage | None = None) -> None:
        self.storage = storage or ClockworkStorage()
        self.enabled = False
        self.provider = "clockwork"
        self.censored = False

    def init(self, config) -> "Debugger":
        self.enabled = bool(config.get("system.debugger.enabled", False))
        self.provider = config.get("system.debugger.provider", "clockwork")
        self.censored = bool(config.get("system.debugger.censored", False))
        return self

    def get_clockwork(self) -> Clockwork | None:
        if not self.enabled or self.provider != "clockwork":
            return None
        return Clockwork(self.storage)

    def debugger_request(self, request: Request) -> Response:
        match = CLOCKWORK_DATA_URI.search(request.url.path)
        if match is None:
            return JSONResponse(status_code=400, content={"message": "Bad Input"})

        request_id = match.group("id")
        direction = match.group("direction")
        count = int(match.group("count") or 1)

        data: Any
        if direction == "previous":
            data = self.storage.previous(request_id, count)
        elif direction == "next":
            data = self.storage.next(request_id, count)
        elif request_id == "latest":
            data = self.storage.latest()
        else:
            data = self.storage.find(request_id)

        if data is None:
            return JSONResponse(status_code=404, content={"message": "Not Found"})
        return JSONResponse(content=data)

    async def profile(
        self,
        call: Callable[[], Awaitable[Response]],
        timers,
    ) -> Response:
        timers.start("_profile", "Handle Request")
        try:
            return await call()
        finally:
            timers.stop("_profile")

    def log_request(self, request: Request, response: Response, ctx) -> Response:
        clockwork = ctx.clockwork
        if not self.enabled or clockwork is None:
            return response

        data = clockwork.resolve_request(
            request,
            response,
            request_time=getattr(request.state, "request_time", ctx.request_time),
            timers=ctx.timers.records(),
            messages=ctx.messages.all(),
            censored=self.censored,
        )
        clockwork.storage.store(data)
        log.debug("clockwork_request_stored", clockwork_id=clockwork.id)

        response.headers["X-Clockwork-Id"] = clockwork.id
        response.headers["X-Clockwork-Version"] = CLOCKWORK_VERSION
        response.headers["X-Clockwork-Path"] = ctx.uri.root + CLOCKWORK_PATH
        response.headers["Server-Timing"] = server_timing(ctx.timers.records())
        return response


def server_timing(timers) -> str:
    entries = []
    for t in timers:
        if t.stopped:
            label = t.label.replace('"', "'")
            entries.append(f'{t.name.lstrip("_")};desc="{label}";dur={t.duration_ms:.2f}')
    return ", ".join(entries)
