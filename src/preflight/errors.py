class PreflightError(Exception):
    """Base exception for all Preflight errors."""


class ConfigurationError(PreflightError):
    def __init__(self, source: str, detail: str) -> None:
        self.source = source
        self.detail = detail
        super().__init__(f"Invalid configuration in {source}: {detail}")


class PluginLoadError(PreflightError):
    def __init__(self, plugin: str, detail: str) -> None:
        self.plugin = plugin
        self.detail = detail
        super().__init__(f"Plugin '{plugin}' failed to load: {detail}")


class SessionError(PreflightError):
    def __init__(self, detail: str = "Failed to start session") -> None:
        self.detail = detail
        super().__init__(detail)


class SessionCorruptionError(SessionError):
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session {session_id} is corrupted")
