import locale
import os
import time
import zlib
import zoneinfo

import structlog
from starlette.responses import Response

log = structlog.get_logger()

# Statuses that must not carry a body
_BODYLESS = {204, 304}

# Content types left uncompressed: already compressed or streamed
_UNCOMPRESSED_TYPES = ("text/event-stream", "image/", "video/", "audio/", "application/zip", "application/gzip")


def accepts_gzip(accept_encoding: str) -> bool:
    for part in accept_encoding.split(","):
        coding, _, params = part.strip().partition(";")
        if coding.strip().lower() not in ("gzip", "*"):
            continue
        q = 1.0
        for param in params.split(";"):
            key, _, value = param.strip().partition("=")
            if key.strip().lower() == "q":
                try:
                    q = float(value)
                except ValueError:
                    q = 0.0
        return q > 0
    return False


class OutputBuffer:
    """Holds a response until the outer boundary flushes it.

    With a compressor the flushed body is gzip encoded.
    """

    def __init__(self, compressor=None) -> None:
        self._compressor = compressor

    @property
    def compressed(self) -> bool:
        return self._compressor is not None

    async def flush(self, response: Response) -> Response:
        if (
            self._compressor is None
            or response.status_code < 200
            or response.status_code in _BODYLESS
            or "content-encoding" in response.headers
            or response.headers.get("content-type", "").startswith(_UNCOMPRESSED_TYPES)
        ):
            return response

        if hasattr(response, "body_iterator"):
            chunks = [chunk async for chunk in response.body_iterator]
            body = b"".join(c if isinstance(c, bytes) else c.encode("utf-8") for c in chunks)
        else:
            body = response.body

        compressed = self._compressor.compress(body) + self._compressor.flush()
        out = Response(content=compressed, status_code=response.status_code)
        out.raw_headers = [
            (k, v)
            for k, v in response.raw_headers
            if k not in (b"content-length", b"content-encoding")
        ]
        out.headers["content-encoding"] = "gzip"
        out.headers["content-length"] = str(len(compressed))
        out.headers.add_vary_header("Accept-Encoding")
        out.background = getattr(response, "background", None)
        return out


class ProcessEnvironment:
    """Process-wide settings: output buffering, timezone and locale."""

    def start_output_buffer(self, compress: bool = False) -> OutputBuffer:
        if not compress:
            return OutputBuffer()
        try:
            compressor = zlib.compressobj(6, zlib.DEFLATED, 16 + zlib.MAX_WBITS)
        except (zlib.error, ValueError) as e:
            log.warning("gzip_unavailable", error=str(e))
            return OutputBuffer()
        return OutputBuffer(compressor)

    def set_timezone(self, name: str) -> bool:
        try:
            zoneinfo.ZoneInfo(name)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError):
            log.warning("unknown_timezone", timezone=name)
            return False
        if os.environ.get("TZ") != name:
            os.environ["TZ"] = name
            if hasattr(time, "tzset"):
                time.tzset()
        return True

    def set_locale(self, name: str) -> bool:
        try:
            locale.setlocale(locale.LC_ALL, name)
        except locale.Error:
            log.warning("unsupported_locale", locale=name)
            return False
        return True
