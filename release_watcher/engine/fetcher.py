"""HTTP fetching with a bounded timeout and per-source custom headers."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Dict

import httpx
import structlog

from ..errors import HeaderParseError, HttpError

POLL_TIMEOUT_SECONDS = 20.0
USER_AGENT = "ReleaseWatcher/0.1"


def parse_request_headers(text: str | None) -> dict[str, str]:
    """Parse custom headers given as a JSON object or as ``Key: Value`` lines.

    Blank lines and lines starting with ``#`` are ignored. Only the first
    colon separates key from value.
    """

    if not text or not text.strip():
        return {}
    stripped = text.strip()

    if stripped.startswith("{"):
        try:
            payload = json.loads(stripped)
        except ValueError as exc:
            raise HeaderParseError(f"Request headers are not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise HeaderParseError("Request headers JSON must be an object.")
        headers: dict[str, str] = {}
        for key, value in payload.items():
            if not str(key).strip():
                raise HeaderParseError("Request header names cannot be empty.")
            if isinstance(value, (dict, list)) or value is None:
                raise HeaderParseError(f"Request header {key!r} must have a scalar value.")
            headers[str(key).strip()] = str(value).lower() if isinstance(value, bool) else str(value)
        return headers

    headers = {}
    for number, line in enumerate(stripped.splitlines(), start=1):
        entry = line.strip()
        if not entry or entry.startswith("#"):
            continue
        if ":" not in entry:
            raise HeaderParseError(f"Invalid header line {number}: expected 'Key: Value', got {entry!r}")
        key, value = entry.split(":", 1)
        key = key.strip()
        if not key:
            raise HeaderParseError(f"Invalid header line {number}: missing header name")
        headers[key] = value.strip()
    return headers


@dataclass(slots=True)
class FetchResponse:
    """Standardised response wrapper."""

    url: str
    status_code: int
    text: str
    headers: Dict[str, str]
    raw: httpx.Response | None = field(repr=False, default=None)


class Fetcher:
    """Perform single GET requests; every failure surfaces as :class:`HttpError`."""

    def __init__(
        self,
        timeout: float = POLL_TIMEOUT_SECONDS,
        user_agent: str = USER_AGENT,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.timeout = timeout
        self.logger = logger or structlog.get_logger("release_watcher.fetcher")
        self._client = client or httpx.Client(
            follow_redirects=True,
            timeout=timeout,
            headers={"User-Agent": user_agent},
        )

    def close(self) -> None:
        self._client.close()

    def _timed_out(self, url: str) -> HttpError:
        return HttpError(f"Request timed out after {self.timeout:g}s: {url}")

    def fetch(self, url: str, headers: dict[str, str] | None = None) -> FetchResponse:
        """GET ``url`` within a wall-clock deadline covering connect, headers and body."""

        deadline = time.monotonic() + self.timeout
        try:
            with self._client.stream(
                "GET",
                url,
                headers=headers or None,
                timeout=self.timeout,
            ) as response:
                if not response.is_success:
                    raise HttpError(f"HTTP {response.status_code} {response.reason_phrase}".rstrip())
                chunks: list[bytes] = []
                for chunk in response.iter_bytes():
                    if time.monotonic() > deadline:
                        raise self._timed_out(url)
                    chunks.append(chunk)
                if time.monotonic() > deadline:
                    raise self._timed_out(url)
                body = b"".join(chunks)
        except httpx.TimeoutException as exc:
            raise self._timed_out(url) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise HttpError(f"Request failed: {exc}") from exc

        self.logger.debug("fetch_ok", url=url, status=response.status_code, size=len(body))
        return FetchResponse(
            url=str(response.url),
            status_code=response.status_code,
            text=body.decode(response.encoding or "utf-8", errors="replace"),
            headers=dict(response.headers),
            raw=response,
        )


__all__ = [
    "FetchResponse",
    "Fetcher",
    "POLL_TIMEOUT_SECONDS",
    "USER_AGENT",
    "parse_request_headers",
]
