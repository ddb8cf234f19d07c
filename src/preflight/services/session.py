import json
import secrets
import threading
import time
from collections import OrderedDict
from typing import Any

import structlog
from starlette.requests import Request
from starlette.responses import Response

from preflight.errors import SessionCorruptionError, SessionError

log = structlog.get_logger()


class SessionStore:
    """In-memory blob store keyed by session id.

    Expired entries are purged on every write and the oldest entries are
    evicted once ``max_entries`` is reached.
    """

    def __init__(self, timeout: int = 1800, max_entries: int = 10000) -> None:
        self.timeout = timeout
        self.max_entries = max_entries
        self._blobs: OrderedDict[str, tuple[bytes, float]] = OrderedDict()
        self._lock = threading.Lock()

    def read(self, session_id: str, timeout: int) -> bytes | None:
        with self._lock:
            entry = self._blobs.get(session_id)
            if entry is None:
                return None
            blob, touched = entry
            if time.time() - touched > timeout:
                del self._blobs[session_id]
                return None
            return blob

    def write(self, session_id: str, blob: bytes) -> None:
        now = time.time()
        with self._lock:
            self._blobs.pop(session_id, None)
            self._purge(now)
            self._blobs[session_id] = (blob, now)
            while len(self._blobs) > self.max_entries:
                self._blobs.popitem(last=False)

    def destroy(self, session_id: str) -> None:
        with self._lock:
            self._blobs.pop(session_id, None)

    def _purge(self, now: float) -> None:
        # Entries are kept in write order, so the expired ones are at the front
        while self._blobs:
            _, touched = next(iter(self._blobs.values()))
            if now - touched <= self.timeout:
                break
            self._blobs.popitem(last=False)

    def __len__(self) -> int:
        return len(self._blobs)


class Session:
    def __init__(
        self,
        store: SessionStore,
        cookie_name: str,
        session_id: str | None = None,
        timeout: int = 1800,
    ) -> None:
        self.store = store
        self.cookie_name = cookie_name
        self.id = session_id
        self.timeout = timeout
        self.started = False
        self.is_new = session_id is None
        self.data: dict[str, Any] = {}

    @classmethod
    def from_request(cls, request: Request, store: SessionStore, cookie_name: str, timeout: int) -> "Session":
        return cls(store, cookie_name, request.cookies.get(cookie_name), timeout)

    def init(self) -> None:
        if self.started:
            return
        if self.id is None:
            self.id = secrets.token_urlsafe(24)
            self.is_new = True

        try:
            blob = self.store.read(self.id, self.timeout)
        except OSError as e:
            raise SessionError(f"Failed to read session: {e}") from e

        data: Any = {}
        if blob is not None:
            try:
                data = json.loads(blob)
            except ValueError:
                data = None
            if not isinstance(data, dict):
                corrupted = self.id
                # Discard the blob and the id so the next init starts fresh
                self.store.destroy(corrupted)
                self.id = None
                raise SessionCorruptionError(corrupted)

        self.data = data
        self.started = True

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value

    def close(self, response: Response) -> Response:
        if not self.started or self.id is None:
            return response
        if self.is_new and not self.data:
            return response
        self.store.write(self.id, json.dumps(self.data).encode("utf-8"))
        if self.is_new:
            response.set_cookie(self.cookie_name, self.id, max_age=self.timeout, httponly=True, samesite="lax")
        return response
