"""Deadline-bounded HTTP GET with rotating browser headers."""

from __future__ import annotations

import json
import logging
import random
import socket
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

import cloudscraper
import requests
from urllib3.exceptions import ReadTimeoutError

from linkpreview.config import ExtractionSettings
from linkpreview.errors import (
    ClientHttpError,
    FetchTimeoutError,
    NetworkError,
    ParseError,
    ServerHttpError,
)

from .deadline import Deadline
from .utils import mask_credentials

logger = logging.getLogger(__name__)

CHUNK_SIZE = 16 * 1024

# Desktop and mobile browsers, recent versions
USER_AGENT_POOL = [
    (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/129.0.0.0 Safari/537.36"
    ),
    (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/128.0.0.0 Safari/537.36"
    ),
    (
        "Mozilla/5.0 (X11; Linux x86_64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/129.0.0.0 Safari/537.36"
    ),
    (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:131.0) "
        "Gecko/20100101 Firefox/131.0"
    ),
    (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/605.1.15 (KHTML, like Gecko) "
        "Version/18.0 Safari/605.1.15"
    ),
    (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/129.0.0.0 Safari/537.36 Edg/129.0.0.0"
    ),
    # Mobile
    (
        "Mozilla/5.0 (iPhone; CPU iPhone OS 18_0 like Mac OS X) "
        "AppleWebKit/605.1.15 (KHTML, like Gecko) "
        "Version/18.0 Mobile/15E148 Safari/604.1"
    ),
    (
        "Mozilla/5.0 (Linux; Android 14; Pixel 8) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/129.0.0.0 Mobile Safari/537.36"
    ),
]

ACCEPT_LANGUAGE_POOL = [
    "en-US,en;q=0.9",
    "en-GB,en;q=0.9",
    "en-US,en;q=0.9,es;q=0.8",
    "en-US,en;q=0.9,fr;q=0.8,de;q=0.7",
    "en-US,en;q=0.8",
]

ACCEPT_HEADER_POOL = [
    "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
]


@dataclass
class FetchResult:
    """Outcome of one GET that produced an HTTP response."""

    url: str
    effective_url: str
    status_code: int
    content_type: str
    body: str

    @property
    def status_ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_html(self) -> bool:
        content_type = self.content_type.lower()
        if "html" in content_type:
            return True
        if not content_type or content_type.startswith("text/plain"):
            # Servers that omit or misreport the type for real HTML
            head = self.body[:2048].lstrip().lower()
            return head.startswith("<!doctype html") or "<html" in head
        return False

    def raise_for_status(self) -> None:
        if 400 <= self.status_code < 500:
            raise ClientHttpError(self.status_code, self.url)
        if self.status_code >= 500:
            raise ServerHttpError(self.status_code, self.url)

    def json(self) -> Any:
        try:
            return json.loads(self.body)
        except ValueError as exc:
            raise ParseError(f"Invalid JSON from {mask_credentials(self.url)}") from exc


def _is_read_timeout(exc: BaseException) -> bool:
    """True when a transport error wraps urllib3's mid-body read timeout."""
    seen = set()
    pending = [exc]
    while pending:
        current = pending.pop()
        if current is None or id(current) in seen:
            continue
        seen.add(id(current))
        if isinstance(current, (ReadTimeoutError, socket.timeout)):
            return True
        pending.extend(arg for arg in current.args if isinstance(arg, BaseException))
        pending.extend([current.__cause__, current.__context__])
    return False


def _abort_response(response: requests.Response) -> None:
    """Unblock a read in progress on ``response``.

    Shutting the socket down makes a blocked ``recv`` return end-of-stream,
    which surfaces in the reading thread as an incomplete read. The reader
    still owns closing the response.
    """
    connection = getattr(response.raw, "connection", None)
    sock = getattr(connection, "sock", None)
    if not isinstance(sock, socket.socket):
        response.close()
        return
    try:
        # Plain socket shutdown, also for TLS sockets, so the SSL object stays intact
        socket.socket.shutdown(sock, socket.SHUT_RDWR)
    except OSError as exc:
        logger.debug(f"Socket already closed while aborting read: {exc}")


class ReadWatchdog:
    """Aborts the response being read once ``deadline`` passes.

    Socket timeouts only bound each individual ``recv``, so a server that
    drips bytes can keep a read alive indefinitely. The watchdog enforces
    the deadline from a timer thread instead.
    """

    def __init__(self, deadline: Deadline):
        self.fired = False
        self._response: Optional[requests.Response] = None
        self._lock = threading.Lock()
        self._timer = threading.Timer(deadline.remaining(), self._expire)
        self._timer.daemon = True

    def __enter__(self) -> "ReadWatchdog":
        self._timer.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self._timer.cancel()

    def watch(self, response: requests.Response) -> None:
        with self._lock:
            self._response = response
            fired = self.fired
        if fired:
            _abort_response(response)

    def _expire(self) -> None:
        with self._lock:
            self.fired = True
            response = self._response
        if response is not None:
            _abort_response(response)


class BoundedFetcher:
    """Single-GET fetcher that never outlives the deadline it is handed.

    A fresh session with freshly rotated headers is used per request, so the
    fetcher holds no per-call state and can be shared between threads.
    """

    def __init__(
        self,
        settings: Optional[ExtractionSettings] = None,
        session_factory: Optional[Callable[[], requests.Session]] = None,
    ):
        self.settings = settings or ExtractionSettings()
        self._session_factory = session_factory or self._create_session

    def _create_session(self) -> requests.Session:
        if self.settings.use_cloudscraper:
            return cloudscraper.create_scraper()
        return requests.Session()

    def browser_headers(self) -> dict[str, str]:
        """Randomized, realistic browser headers for one request."""
        headers = {
            "User-Agent": random.choice(USER_AGENT_POOL),
            "Accept": random.choice(ACCEPT_HEADER_POOL),
            "Accept-Language": random.choice(ACCEPT_LANGUAGE_POOL),
            # Avoid advertising brotli unless we know we can decode it everywhere.
            "Accept-Encoding": "gzip, deflate",
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
            "Sec-Fetch-Dest": "document",
            "Sec-Fetch-Mode": "navigate",
            "Sec-Fetch-Site": "none",
            "Sec-Fetch-User": "?1",
            "Cache-Control": "no-cache",
        }
        if random.random() > 0.3:
            headers["DNT"] = "1"
        return headers

    def fetch(
        self,
        url: str,
        deadline: Deadline,
        *,
        timeout: Optional[float] = None,
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, str]] = None,
    ) -> FetchResult:
        """GET ``url`` following redirects, bounded by ``deadline``.

        ``timeout`` further caps this single request. The body is streamed,
        and a watchdog aborts the read once the deadline passes, even while
        the server is still trickling bytes.

        Raises:
            FetchTimeoutError: the deadline passed before the body was read.
            NetworkError: connection, DNS, TLS or protocol failure.
        """
        if deadline.expired():
            raise FetchTimeoutError(f"Deadline already passed before fetching {url}")

        request_deadline = deadline.child(timeout)
        request_headers = self.browser_headers()
        if headers:
            request_headers.update(headers)

        masked = mask_credentials(url)
        session = self._session_factory()
        watchdog = ReadWatchdog(request_deadline)
        try:
            with watchdog:
                wait = request_deadline.timeout()
                logger.debug(f"GET {masked} (timeout {wait:.1f}s)")
                response = session.get(
                    url,
                    headers=request_headers,
                    params=params,
                    timeout=(wait, wait),
                    allow_redirects=True,
                    stream=True,
                )
                watchdog.watch(response)
                try:
                    body = self._read_body(response, request_deadline, masked)
                finally:
                    response.close()
        except requests.Timeout as exc:
            raise FetchTimeoutError(f"Timed out fetching {masked}") from exc
        except requests.RequestException as exc:
            if watchdog.fired or _is_read_timeout(exc):
                raise FetchTimeoutError(f"Timed out reading {masked}") from exc
            raise NetworkError(f"{type(exc).__name__} fetching {masked}: {exc}") from exc
        finally:
            session.close()

        if watchdog.fired:
            # Unsized bodies end cleanly when the socket is shut down
            raise FetchTimeoutError(f"Deadline passed while reading {masked}")

        result = FetchResult(
            url=url,
            effective_url=response.url or url,
            status_code=response.status_code,
            content_type=response.headers.get("Content-Type", ""),
            body=body,
        )
        logger.debug(
            f"GET {masked} -> {result.status_code} "
            f"({len(body)} chars, {result.content_type or 'no content type'})"
        )
        return result

    def _read_body(
        self, response: requests.Response, deadline: Deadline, masked_url: str
    ) -> str:
        chunks: list[bytes] = []
        size = 0
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            if deadline.expired():
                raise FetchTimeoutError(f"Deadline passed while reading {masked_url}")
            if not chunk:
                continue
            chunks.append(chunk)
            size += len(chunk)
            if size >= self.settings.max_body_bytes:
                logger.debug(f"Body cap reached for {masked_url}; truncating")
                break

        raw = b"".join(chunks)
        content_type = response.headers.get("Content-Type", "").lower()
        encoding = response.encoding if "charset" in content_type else None
        try:
            return raw.decode(encoding or "utf-8", errors="replace")
        except LookupError:
            return raw.decode("utf-8", errors="replace")

    def fetch_json(
        self,
        url: str,
        deadline: Deadline,
        *,
        timeout: Optional[float] = None,
        params: Optional[dict[str, str]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """GET a JSON document. Non-2xx responses raise like ``raise_for_status``."""
        json_headers = {"Accept": "application/json"}
        if headers:
            json_headers.update(headers)
        result = self.fetch(
            url, deadline, timeout=timeout, headers=json_headers, params=params
        )
        result.raise_for_status()
        return result.json()
