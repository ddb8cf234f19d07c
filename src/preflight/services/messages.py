from dataclasses import dataclass


@dataclass
class Message:
    message: str
    severity: str = "info"


class MessageSink:
    """Per-request messages destined for the user and the debugger."""

    def __init__(self) -> None:
        self._messages: list[Message] = []

    def add(self, message: str, severity: str = "info") -> None:
        self._messages.append(Message(message=message, severity=severity))

    def all(self, severity: str | None = None) -> list[Message]:
        if severity is None:
            return list(self._messages)
        return [m for m in self._messages if m.severity == severity]
