from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable


@dataclass
class Throttle:
    """Spaces requests at least ``1 / rate_per_sec`` seconds apart.

    Shared by every call made through one HttpClient, retries included.
    """

    rate_per_sec: float
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], None] = time.sleep
    _next_at: float = field(default=0.0, init=False)

    def wait(self) -> None:
        now = self.clock()
        if now < self._next_at:
            self.sleep(self._next_at - now)
            now = self._next_at
        self._next_at = now + 1.0 / max(self.rate_per_sec, 1e-9)
