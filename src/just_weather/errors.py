from __future__ import annotations

import json
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    INVALID_PARAMETERS = "InvalidParameters"
    CACHE_MISS = "CacheMiss"
    CACHE_EXPIRED = "CacheExpired"
    CACHE_IO = "CacheIOError"
    UPSTREAM_TIMEOUT = "UpstreamTimeout"
    UPSTREAM_ERROR = "UpstreamError"
    PARSE = "ParseError"


class JustWeatherError(Exception):
    """Base class for every failure raised by this package."""

    kind: ErrorKind = ErrorKind.UPSTREAM_ERROR
    status_code: int = 500

    @property
    def retryable(self) -> bool:
        return False


class InvalidParameters(JustWeatherError, ValueError):
    kind = ErrorKind.INVALID_PARAMETERS
    status_code = 400


class CacheMiss(JustWeatherError):
    kind = ErrorKind.CACHE_MISS
    status_code = 404


class CacheExpired(CacheMiss):
    kind = ErrorKind.CACHE_EXPIRED


class CacheIOError(JustWeatherError, OSError):
    kind = ErrorKind.CACHE_IO


class UpstreamTimeout(JustWeatherError):
    kind = ErrorKind.UPSTREAM_TIMEOUT
    status_code = 504

    @property
    def retryable(self) -> bool:
        return True


class UpstreamError(JustWeatherError, RuntimeError):
    kind = ErrorKind.UPSTREAM_ERROR
    status_code = 502


class ParseError(JustWeatherError, ValueError):
    kind = ErrorKind.PARSE
    status_code = 502


_ERROR_TYPES = {
    400: "Bad Request",
    404: "Not Found",
    500: "Internal Server Error",
    502: "Bad Gateway",
    504: "Gateway Timeout",
}


def error_type(code: int) -> str:
    return _ERROR_TYPES.get(code, "Unknown Error")


def envelope(data: Any = None, error: JustWeatherError | None = None) -> str:
    """Render the ``{"success": ..., "data"|"error": ...}`` response body."""

    if error is not None:
        body: dict[str, Any] = {
            "success": False,
            "error": {
                "code": error.status_code,
                "type": error_type(error.status_code),
                "kind": error.kind.value,
                "message": str(error),
            },
        }
    else:
        body = {"success": True, "data": data}
    return json.dumps(body, indent=2, ensure_ascii=False)
