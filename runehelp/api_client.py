from __future__ import annotations

import logging
import socket
import threading
import time
from collections import deque
from typing import Any, Deque, Dict, Optional, Tuple
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from runehelp.config import DEFAULT_HISCORES_LEGACY_URL, DEFAULT_HISCORES_URL
from runehelp.exceptions import PlayerNotFoundError, UpstreamError
from runehelp.metrics import MetricSet
from runehelp.parser import TEXT_LAYOUTS, parse_hiscores

logger = logging.getLogger(__name__)


class HiscoresAPIClient:
    HEADERS = {
        "User-Agent": "RuneHelp/0.1 (+https://runehelp.onrender.com)",
        "Accept": "application/json, text/plain, */*",
        "Accept-Language": "en-US,en;q=0.9",
    }

    def __init__(
        self,
        url_template: str = DEFAULT_HISCORES_URL,
        legacy_url_template: str = DEFAULT_HISCORES_LEGACY_URL,
        response_format: str = "json",
        text_layout: str = "live",
        timeout_seconds: float = 10.0,
        retry_429_sleep_seconds: float = 10.0,
        rate_window_seconds: int = 600,
        rate_max_calls: int = 30,
    ):
        self.url_template = url_template
        self.legacy_url_template = legacy_url_template
        self.response_format = response_format
        self.text_parser = TEXT_LAYOUTS[text_layout]
        self.timeout_seconds = timeout_seconds
        self.retry_429_sleep_seconds = retry_429_sleep_seconds
        self.rate_window_seconds = rate_window_seconds
        self.rate_max_calls = rate_max_calls
        self._calls_made = 0
        self._calls_in_window: Deque[Tuple[float, str]] = deque()
        self._last_call: Optional[float] = None
        self._rate_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings) -> "HiscoresAPIClient":
        return cls(
            url_template=settings.hiscores_url,
            legacy_url_template=settings.hiscores_legacy_url,
            response_format=settings.hiscores_format,
            text_layout=settings.hiscores_text_layout,
            timeout_seconds=settings.http_timeout_seconds,
        )

    def build_url(self, username: str) -> str:
        template = self.legacy_url_template if self.response_format == "text" else self.url_template
        return template.format(player=quote(username, safe=""))

    def _track_call(self, url: str) -> None:
        now = time.time()
        with self._rate_lock:
            self._calls_made += 1
            self._last_call = now
            self._calls_in_window.append((now, url))
            cutoff = now - self.rate_window_seconds
            while self._calls_in_window and self._calls_in_window[0][0] <= cutoff:
                self._calls_in_window.popleft()

    def rate_status(self) -> Dict[str, Any]:
        now = time.time()
        with self._rate_lock:
            cutoff = now - self.rate_window_seconds
            recent_calls = sum(1 for ts, _ in self._calls_in_window if ts > cutoff)
            calls_made = self._calls_made

        if recent_calls >= self.rate_max_calls:
            status = "danger"
        elif recent_calls >= self.rate_max_calls * 0.8:
            status = "warning"
        else:
            status = "safe"
        return {
            "status": status,
            "calls_in_window": recent_calls,
            "calls_made": calls_made,
            "max_calls": self.rate_max_calls,
            "window_seconds": self.rate_window_seconds,
        }

    def _get_text(self, url: str, retry_429: bool = True) -> str:
        req = Request(url, headers=self.HEADERS, method="GET")
        try:
            with urlopen(req, timeout=self.timeout_seconds) as resp:
                return resp.read().decode("utf-8")
        except HTTPError as exc:
            if exc.code == 429 and retry_429:
                logger.warning("Hiscores rate limited (429); retrying once in %ss", self.retry_429_sleep_seconds)
                time.sleep(self.retry_429_sleep_seconds)
                return self._get_text(url, retry_429=False)
            raise

    def fetch_player_stats(self, username: str) -> MetricSet:
        """
        Fetch and parse the current hiscores entry for username.
        Counts as one call in rate_status(), including a retried 429.

        Raises:
            PlayerNotFoundError: The service answered 404 for this name
            UpstreamError: Network failure, timeout, other non-2xx status,
                or a body neither parser strategy accepts
        """
        url = self.build_url(username)
        self._track_call(url)
        try:
            body = self._get_text(url)
        except HTTPError as exc:
            if exc.code == 404:
                raise PlayerNotFoundError(f"Hiscores has no entry for '{username}'")
            raise UpstreamError(f"Hiscores returned HTTP {exc.code} for '{username}'")
        except (URLError, socket.timeout, OSError) as exc:
            raise UpstreamError(f"Hiscores unreachable for '{username}': {exc}")
        except UnicodeDecodeError as exc:
            raise UpstreamError(f"Hiscores body for '{username}' is not UTF-8: {exc}")

        try:
            return parse_hiscores(body, self.text_parser)
        except ValueError as exc:
            raise UpstreamError(f"Malformed hiscores response for '{username}': {exc}")
