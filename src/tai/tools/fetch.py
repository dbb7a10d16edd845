"""
Network tool: fetch_url.
"""

import logging
import time
from typing import Any
from urllib.parse import urlsplit

import httpx

from tai.errors import NetworkError, ValidationError
from tai.tools.base import ParamSpec, Tool, ToolSpec, positive

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 10
DEFAULT_MAX_BYTES = 200_000
ALLOWED_SCHEMES = ("http", "https")
ALLOWED_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD")


def _clean_headers(headers: dict[str, Any] | None) -> dict[str, str]:
    """Keep string-valued headers; anything else is dropped."""
    cleaned: dict[str, str] = {}
    for name, value in (headers or {}).items():
        if isinstance(value, str):
            cleaned[name] = value
        else:
            logger.debug(f"Dropping non-string header {name!r}")
    return cleaned


class _DeadlineExceeded(Exception):
    """The whole request ran past timeout_sec."""


class FetchTool:
    """
    HTTP(S) fetch with a hard byte cap on the body.

    `transport` is handed to httpx unchanged, which lets tests substitute an
    httpx.MockTransport.
    """

    name = "fetch_url"

    def __init__(self, transport: httpx.BaseTransport | None = None) -> None:
        self.transport = transport

    def fetch_url(
        self,
        url: str,
        method: str = "GET",
        headers: dict[str, Any] | None = None,
        body: str | None = None,
        timeout_sec: int = DEFAULT_TIMEOUT_SEC,
        max_bytes: int = DEFAULT_MAX_BYTES,
    ) -> dict[str, Any]:
        if urlsplit(url).scheme.lower() not in ALLOWED_SCHEMES:
            raise NetworkError("Only http/https URLs are allowed")
        method = method.upper()
        if method not in ALLOWED_METHODS:
            raise ValidationError(f"Unsupported method: {method}")
        positive("timeout_sec", timeout_sec)
        positive("max_bytes", max_bytes)

        timeout = httpx.Timeout(timeout_sec, connect=timeout_sec)
        deadline = time.monotonic() + timeout_sec
        logger.info(f"Fetching {method} {url}")
        try:
            with httpx.Client(
                timeout=timeout,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                with client.stream(
                    method,
                    url,
                    headers=_clean_headers(headers),
                    content=body,
                ) as response:
                    data, truncated = self._read_capped(response, max_bytes, deadline)
                    encoding = response.encoding or "utf-8"
                    return {
                        "url": url,
                        "final_url": str(response.url),
                        "status": response.status_code,
                        "headers": dict(response.headers),
                        "text": data.decode(encoding, errors="replace"),
                        "truncated": truncated,
                    }
        except (httpx.TimeoutException, _DeadlineExceeded) as e:
            raise NetworkError(f"Request timed out after {timeout_sec}s: {url}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Request failed for {url}: {e}") from e

    @staticmethod
    def _read_capped(
        response: httpx.Response,
        max_bytes: int,
        deadline: float,
    ) -> tuple[bytes, bool]:
        """
        Read at most max_bytes of the body before `deadline`.

        httpx only bounds each network read, so a server that trickles the
        body is stopped here once the total time is used up.
        """
        buffer = bytearray()
        if time.monotonic() >= deadline:
            raise _DeadlineExceeded()
        for chunk in response.iter_bytes():
            if time.monotonic() >= deadline:
                raise _DeadlineExceeded()
            buffer.extend(chunk)
            if len(buffer) > max_bytes:
                return bytes(buffer[:max_bytes]), True
        return bytes(buffer), False

    def tools(self) -> list[Tool]:
        """Tool definitions for registration."""
        return [
            Tool(
                spec=ToolSpec(
                    name=self.name,
                    description=(
                        "Fetch content from an HTTP/HTTPS URL with optional method, headers, body, "
                        "and timeout. Returns status, headers, and text (truncated)."
                    ),
                    parameters=(
                        ParamSpec("url", "string", "The URL to fetch (http or https)", required=True),
                        ParamSpec("method", "string", "HTTP method (default GET)"),
                        ParamSpec("headers", "object", "Optional headers as key-value object"),
                        ParamSpec("body", "string", "Optional request body for POST/PUT/PATCH"),
                        ParamSpec("timeout_sec", "integer", f"Request timeout in seconds (default {DEFAULT_TIMEOUT_SEC})"),
                        ParamSpec("max_bytes", "integer", f"Maximum response bytes to capture (default {DEFAULT_MAX_BYTES})"),
                    ),
                ),
                handler=self.fetch_url,
            ),
        ]
