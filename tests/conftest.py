import sys
import threading
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from starlette.requests import Request

from preflight.config import Settings
from preflight.pipeline.context import RuntimeContext
from preflight.runtime import Runtime, create_runtime
from preflight.services.config_store import DictConfigSource
from preflight.services.environment import OutputBuffer, ProcessEnvironment


class FakeEnvironment(ProcessEnvironment):
    """Records process-wide changes instead of applying them."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []

    def start_output_buffer(self, compress: bool = False) -> OutputBuffer:
        self.calls.append(("buffer", compress))
        return super().start_output_buffer(compress)

    def set_timezone(self, name: str) -> bool:
        self.calls.append(("timezone", name))
        return True

    def set_locale(self, name: str) -> bool:
        self.calls.append(("locale", name))
        return True


def make_request(
    path: str = "/",
    headers: dict[str, str] | None = None,
    query: str = "",
    method: str = "GET",
) -> Request:
    return Request(
        {
            "type": "http",
            "method": method,
            "path": path,
            "raw_path": path.encode(),
            "root_path": "",
            "query_string": query.encode(),
            "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
            "scheme": "http",
            "server": ("testserver", 80),
            "client": ("testclient", 50000),
        }
    )


@pytest.fixture(autouse=True)
def restore_excepthooks() -> Iterator[None]:
    hook, thread_hook = sys.excepthook, threading.excepthook
    yield
    sys.excepthook, threading.excepthook = hook, thread_hook


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        config_file=str(tmp_path / "system.json"),
        log_file=str(tmp_path / "logs" / "preflight.log"),
        log_channel=f"preflight.test.{tmp_path.name}",
    )


@pytest.fixture
def make_runtime(settings: Settings) -> Iterator[Callable[..., Runtime]]:
    created: list[Runtime] = []

    def _make(config: dict[str, Any] | None = None) -> Runtime:
        runtime = create_runtime(settings, DictConfigSource(config or {}))
        runtime.env = FakeEnvironment()
        created.append(runtime)
        return runtime

    yield _make

    for runtime in created:
        for handler in list(runtime.log.handlers):
            runtime.log.removeHandler(handler)
            handler.close()


@pytest.fixture
def make_context(make_runtime) -> Callable[..., RuntimeContext]:
    def _make(config: dict[str, Any] | None = None, request: Request | None = None) -> RuntimeContext:
        runtime = make_runtime(config)
        return runtime.for_request(request or make_request())

    return _make
