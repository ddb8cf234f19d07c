import logging
from dataclasses import dataclass, field

from starlette.responses import Response

from preflight.config import Settings
from preflight.pipeline.timer import TimerRecorder
from preflight.services.config_store import Config
from preflight.services.debugger import Clockwork, Debugger
from preflight.services.environment import OutputBuffer, ProcessEnvironment
from preflight.services.error_handler import ErrorHandler
from preflight.services.messages import MessageSink
from preflight.services.pages import PageRegistry
from preflight.services.plugins import PluginRegistry
from preflight.services.session import Session
from preflight.services.uri import Uri


@dataclass(frozen=True)
class Continue:
    pass


@dataclass(frozen=True)
class ShortCircuit:
    response: Response


@dataclass(frozen=True)
class Recovered:
    message: str
    severity: str = "error"


PhaseOutcome = Continue | ShortCircuit | Recovered

CONTINUE = Continue()


@dataclass
class RuntimeContext:
    # Shared across requests, read-mostly after warm-up
    settings: Settings
    config: Config
    log: logging.Logger
    errors: ErrorHandler
    debugger: Debugger
    env: ProcessEnvironment
    plugins: PluginRegistry
    pages: PageRegistry

    # Request-local
    uri: Uri
    session: Session | None
    request_time: float
    messages: MessageSink = field(default_factory=MessageSink)
    timers: TimerRecorder = field(default_factory=TimerRecorder)
    output: OutputBuffer | None = None
    clockwork: Clockwork | None = None
