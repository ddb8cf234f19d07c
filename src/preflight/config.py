from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_env: str = "development"
    log_level: str = "info"

    config_file: str = "config/system.json"
    log_file: str = "logs/preflight.log"
    log_channel: str = "preflight"

    syslog_host: str = "localhost"
    syslog_port: int = 514

    session_enabled: bool = True
    session_cookie: str = "preflight-session"
    session_timeout: int = 1800
    session_max_entries: int = 10000

    clockwork_max_requests: int = 100

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
