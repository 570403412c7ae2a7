from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Optional

import requests

from .logging_utils import get_logger, log_json
from .rate_limit import Throttle

RETRY_STATUS = {408, 429, 500, 502, 503, 504}

logger = get_logger(__name__)


@dataclass
class HttpConfig:
    access_token: str
    user_agent: str = "amplify-syndication/0.1"
    connect_timeout: float = 10.0
    read_timeout: float = 30.0
    max_retries: int = 6
    backoff_base_sec: float = 2.0
    backoff_max_sec: float = 60.0
    requests_per_sec: float = 0.0


class HttpClient:
    def __init__(self, cfg: HttpConfig, session: Optional[requests.Session] = None):
        self.cfg = cfg
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "User-Agent": cfg.user_agent,
                "Authorization": f"Bearer {cfg.access_token}",
                "Accept": "application/json",
            }
        )
        self.throttle = Throttle(cfg.requests_per_sec) if cfg.requests_per_sec > 0 else None

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        """Send a request, retrying transient statuses and connection errors.

        The last response is returned as-is once retries are exhausted;
        deciding whether it is an error is the caller's job.
        """
        timeout = kwargs.pop("timeout", (self.cfg.connect_timeout, self.cfg.read_timeout))

        attempt = 0
        while True:
            attempt += 1
            if self.throttle is not None:
                self.throttle.wait()
            try:
                resp = self.session.request(method, url, timeout=timeout, **kwargs)
                if resp.status_code in RETRY_STATUS and attempt <= self.cfg.max_retries:
                    self._sleep(attempt, resp)
                    continue
                return resp
            except requests.RequestException as e:
                if attempt <= self.cfg.max_retries:
                    self._sleep(attempt, None, error=str(e))
                    continue
                raise

    def _sleep(self, attempt: int, resp: Optional[requests.Response], error: str | None = None) -> None:
        base = self.cfg.backoff_base_sec * (2 ** (attempt - 1))
        wait = min(base, self.cfg.backoff_max_sec)

        if resp is not None:
            ra = resp.headers.get("Retry-After")
            if ra:
                try:
                    wait = max(wait, float(ra))
                except ValueError:
                    # HTTP-date form; keep the computed backoff.
                    pass

        wait += random.uniform(0, 0.25 * wait)
        log_json(
            logger,
            logging.WARNING,
            "http_retry",
            attempt=attempt,
            status=resp.status_code if resp is not None else None,
            error=error,
            wait_sec=round(wait, 2),
        )
        time.sleep(wait)
