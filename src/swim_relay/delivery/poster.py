"""
Ingest Poster
=============

HTTP POST of serialized documents with an unbounded retry loop.

Design Rules:
    - Success is any 2xx status
    - Non-2xx responses and transport errors are logged and retried
    - Fixed delay between attempts (no growth, no attempt cap)
    - The same body bytes are re-sent on every attempt
    - Blocks the calling pipeline until the POST succeeds
"""

import logging
import time
from typing import Callable, Optional

import requests


logger = logging.getLogger(__name__)


MIN_RETRY_SLEEP_MS = 50


class IngestPoster:
    """
    POSTs JSON bodies to one ingest endpoint.

    Attributes:
        url: Ingest endpoint
        attempts: Total POST attempts made
        failures: Total failed attempts

    Example:
        poster = IngestPoster(
            url="http://localhost:8080/api/wx/radar",
            token="secret",
            token_header="X-WX-Token",
        )
        poster.post_with_retry(b'{"productId": 9850}')
    """

    def __init__(
        self,
        url: str,
        token: Optional[str] = None,
        token_header: str = "X-WX-Token",
        connect_timeout_ms: int = 1500,
        request_timeout_ms: int = 2500,
        retry_sleep_ms: int = 200,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize poster.

        Args:
            url: Ingest endpoint URL
            token: Optional ingest token; sent only when non-blank
            token_header: Header carrying the token
            connect_timeout_ms: TCP connect timeout
            request_timeout_ms: Response read timeout
            retry_sleep_ms: Delay between attempts (floored at 50 ms)
            session: requests session (created if omitted)
            sleep: Sleep function, injectable for tests
        """
        self.url = url
        self.token = token
        self.token_header = token_header
        self.timeout = (connect_timeout_ms / 1000.0, request_timeout_ms / 1000.0)
        self.retry_sleep_sec = max(MIN_RETRY_SLEEP_MS, retry_sleep_ms) / 1000.0

        self._session = session or requests.Session()
        self._sleep = sleep

        self.attempts = 0
        self.failures = 0

    @property
    def headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.token and self.token.strip():
            headers[self.token_header] = self.token
        return headers

    def post_once(self, body: bytes) -> bool:
        """
        Make a single POST attempt.

        Returns:
            True on a 2xx response, False otherwise (already logged)
        """
        self.attempts += 1
        try:
            response = self._session.post(
                self.url,
                data=body,
                headers=self.headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            self.failures += 1
            logger.error(f"POST error ({self.url}): {e}")
            return False

        if 200 <= response.status_code < 300:
            return True

        self.failures += 1
        logger.error(f"POST failed ({self.url}): HTTP {response.status_code}")
        logger.error(f"Response: {response.text}")
        return False

    def post_with_retry(self, body: bytes) -> int:
        """
        POST until a 2xx response is received.

        Args:
            body: UTF-8 JSON body, re-sent unchanged on every attempt

        Returns:
            Number of attempts it took
        """
        attempt = 0
        while True:
            attempt += 1
            if self.post_once(body):
                if attempt > 1:
                    logger.info(f"POST succeeded after {attempt} attempts")
                return attempt
            self._sleep(self.retry_sleep_sec)

    def close(self) -> None:
        self._session.close()
