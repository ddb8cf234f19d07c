import logging
import threading
from logging.handlers import SysLogHandler
from pathlib import Path

import structlog

log = structlog.get_logger()

SYSLOG_FORMAT = "%(name)s.%(levelname)s: %(message)s %(extra)s"

_swap_lock = threading.Lock()


def create_channel(name: str, log_file: str | Path, level: str = "info") -> logging.Logger:
    """Build the site log channel with the default file sink installed."""
    channel = logging.getLogger(name)
    channel.setLevel(level.upper())
    channel.propagate = False
    for handler in list(channel.handlers):
        channel.removeHandler(handler)
        handler.close()

    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, delay=True, encoding="utf-8")
    handler.setFormatter(logging.Formatter("[%(asctime)s] %(name)s.%(levelname)s: %(message)s"))
    channel.addHandler(handler)
    return channel


def syslog_formatter() -> logging.Formatter:
    return logging.Formatter(SYSLOG_FORMAT, defaults={"extra": ""})


def install_syslog(
    channel: logging.Logger,
    facility: str,
    address: tuple[str, int] = ("localhost", 514),
) -> SysLogHandler:
    """Replace the channel's active sink with a syslog handler.

    Calling it again with the same facility leaves the installed handler in
    place.
    """
    encoded = SysLogHandler.facility_names[facility]
    with _swap_lock:
        active = channel.handlers[-1] if channel.handlers else None
        if isinstance(active, SysLogHandler) and active.facility == encoded:
            return active

        if active is not None:
            channel.removeHandler(active)
            active.close()

        handler = SysLogHandler(address=address, facility=encoded)
        handler.ident = f"{channel.name}: "
        handler.setFormatter(syslog_formatter())
        channel.addHandler(handler)

    log.info("log_sink_swapped", channel=channel.name, sink="syslog", facility=facility)
    return handler
