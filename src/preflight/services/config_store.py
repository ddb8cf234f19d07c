import copy
import json
import threading
from logging.handlers import SysLogHandler
from pathlib import Path
from typing import Any, Protocol

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from preflight.errors import ConfigurationError

log = structlog.get_logger()

_MISSING = object()


class _Section(BaseModel):
    # Site configuration may carry keys Preflight does not know about
    model_config = ConfigDict(extra="allow")


class SyslogConfig(_Section):
    facility: str = "local6"

    @field_validator("facility")
    @classmethod
    def _known_facility(cls, value: str) -> str:
        if value not in SysLogHandler.facility_names:
            raise ValueError(f"unknown syslog facility '{value}'")
        return value


class LogConfig(_Section):
    handler: str = "file"
    syslog: SyslogConfig = Field(default_factory=SyslogConfig)


class CacheConfig(_Section):
    gzip: bool = False


class PagesConfig(_Section):
    redirect_trailing_slash: bool = False
    redirect_default_code: int = 302

    @field_validator("redirect_default_code")
    @classmethod
    def _redirect_status(cls, value: int) -> int:
        if not 300 <= value < 400:
            raise ValueError("redirect_default_code must be a 3xx status")
        return value


class SessionConfig(_Section):
    initialize: bool = True


class ErrorsConfig(_Section):
    display: int = 0
    log: bool = True

    @field_validator("display")
    @classmethod
    def _verbosity(cls, value: int) -> int:
        if value not in (-1, 0, 1):
            raise ValueError("display must be -1, 0 or 1")
        return value


class DebuggerConfig(_Section):
    enabled: bool = False
    provider: str = "clockwork"
    censored: bool = False


class SystemConfig(_Section):
    timezone: str | None = None
    default_locale: str | None = None
    log: LogConfig = Field(default_factory=LogConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    pages: PagesConfig = Field(default_factory=PagesConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    errors: ErrorsConfig = Field(default_factory=ErrorsConfig)
    debugger: DebuggerConfig = Field(default_factory=DebuggerConfig)


class PluginConfig(_Section):
    enabled: bool = True
    class_path: str | None = Field(default=None, alias="class")
    dependencies: list[str] = Field(default_factory=list)


class SiteConfig(_Section):
    system: SystemConfig = Field(default_factory=SystemConfig)
    plugins: dict[str, PluginConfig] = Field(default_factory=dict)


class ConfigSource(Protocol):
    name: str

    def load(self) -> dict[str, Any]: ...


class DictConfigSource:
    def __init__(self, data: dict[str, Any], name: str = "<dict>") -> None:
        self.data = data
        self.name = name

    def load(self) -> dict[str, Any]:
        return copy.deepcopy(self.data)


class JsonFileConfigSource:
    """Reads site configuration from a JSON document.

    A missing file means "all defaults"; a file that exists but does not
    parse is a configuration error.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.name = str(self.path)

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ConfigurationError(self.name, str(e)) from e
        if not isinstance(data, dict):
            raise ConfigurationError(self.name, "top level must be an object")
        return data


class Config:
    """Validated site configuration with dotted-key lookup."""

    def __init__(self, source: ConfigSource) -> None:
        self.source = source
        self._items: dict[str, Any] = {}
        self._lock = threading.Lock()
        self.initialized = False

    def init(self) -> "Config":
        raw = self.source.load()
        try:
            validated = SiteConfig.model_validate(raw)
        except ValidationError as e:
            raise ConfigurationError(self.source.name, str(e)) from e

        items = validated.model_dump(by_alias=True)
        with self._lock:
            if items != self._items:
                self._items = items
                log.info("config_loaded", source=self.source.name)
            self.initialized = True
        return self

    def get(self, key: str, default: Any = None) -> Any:
        node: Any = self._items
        for part in key.split("."):
            if not isinstance(node, dict):
                return default
            node = node.get(part, _MISSING)
            if node is _MISSING:
                return default
        return default if node is None else node

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._items)
