import time
from dataclasses import dataclass

import structlog

log = structlog.get_logger()


@dataclass
class PhaseRecord:
    name: str
    label: str
    start: float
    end: float | None = None

    @property
    def stopped(self) -> bool:
        return self.end is not None

    @property
    def duration_ms(self) -> float:
        if self.end is None:
            return 0.0
        return (self.end - self.start) * 1000


class TimerRecorder:
    """Start/stop bookkeeping for named phases.

    Diagnostics must never fail the pipeline, so misuse (stopping an unknown
    or already stopped timer) is logged and otherwise ignored.
    """

    def __init__(self) -> None:
        self._records: dict[str, PhaseRecord] = {}

    def start(self, name: str, label: str) -> PhaseRecord:
        record = PhaseRecord(name=name, label=label, start=time.time())
        self._records[name] = record
        return record

    def stop(self, name: str) -> PhaseRecord | None:
        record = self._records.get(name)
        if record is None:
            log.warning("timer_not_started", timer=name)
            return None
        if record.stopped:
            log.warning("timer_already_stopped", timer=name)
            return record
        record.end = time.time()
        return record

    def get(self, name: str) -> PhaseRecord | None:
        return self._records.get(name)

    def records(self) -> list[PhaseRecord]:
        return list(self._records.values())

    def open_timers(self) -> list[str]:
        return [r.name for r in self._records.values() if not r.stopped]
