import logging
import time
from dataclasses import dataclass, field

from starlette.requests import Request

from preflight.config import Settings
from preflight.pipeline.context import RuntimeContext
from preflight.services.config_store import Config, ConfigSource, JsonFileConfigSource
from preflight.services.debugger import ClockworkStorage, Debugger
from preflight.services.environment import ProcessEnvironment
from preflight.services.error_handler import ErrorHandler
from preflight.services.log import create_channel
from preflight.services.pages import PageRegistry
from preflight.services.plugins import PluginRegistry
from preflight.services.session import Session, SessionStore
from preflight.services.uri import Uri


@dataclass
class Runtime:
    """Collaborators built once per worker and shared by every request."""

    settings: Settings
    config: Config
    log: logging.Logger
    errors: ErrorHandler = field(default_factory=ErrorHandler)
    debugger: Debugger = field(default_factory=Debugger)
    env: ProcessEnvironment = field(default_factory=ProcessEnvironment)
    plugins: PluginRegistry = field(default_factory=PluginRegistry)
    pages: PageRegistry | None = None
    session_store: SessionStore | None = None

    def __post_init__(self) -> None:
        if self.pages is None:
            self.pages = PageRegistry(self.plugins)
        if self.session_store is None and self.settings.session_enabled:
            self.session_store = SessionStore(
                timeout=self.settings.session_timeout,
                max_entries=self.settings.session_max_entries,
            )

    def for_request(self, request: Request) -> RuntimeContext:
        session = None
        if self.session_store is not None:
            session = Session.from_request(
                request,
                self.session_store,
                cookie_name=self.settings.session_cookie,
                timeout=self.settings.session_timeout,
            )
        return RuntimeContext(
            settings=self.settings,
            config=self.config,
            log=self.log,
            errors=self.errors,
            debugger=self.debugger,
            env=self.env,
            plugins=self.plugins,
            pages=self.pages,
            uri=Uri(),
            session=session,
            request_time=time.time(),
        )


def create_runtime(settings: Settings, source: ConfigSource | None = None) -> Runtime:
    return Runtime(
        settings=settings,
        config=Config(source or JsonFileConfigSource(settings.config_file)),
        log=create_channel(settings.log_channel, settings.log_file, settings.log_level),
        debugger=Debugger(ClockworkStorage(settings.clockwork_max_requests)),
    )
