from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock


@dataclass
class _Bucket:
  reset_at: float
  count: int


class RateLimiter:
  """Fixed-window counters for the credential endpoints.

  Keys look like ``auth:login:ip:<ip>``, ``auth:login:email:<email>`` and
  ``auth:pwreset:{ip,email}:<value>``; each window starts on the first hit.
  Counters are per process.
  """

  def __init__(self) -> None:
    self._lock = Lock()
    self._buckets: dict[str, _Bucket] = {}

  def hit(self, key: str, *, limit: int, window_seconds: int) -> tuple[bool, int]:
    """
    Returns (allowed, retry_after_seconds).
    """
    now = time.time()
    with self._lock:
      b = self._buckets.get(key)
      if b is None or now >= b.reset_at:
        self._buckets[key] = _Bucket(reset_at=now + window_seconds, count=1)
        return True, 0
      if b.count >= limit:
        retry = max(1, int(b.reset_at - now))
        return False, retry
      b.count += 1
      return True, 0

  def reset(self) -> None:
    with self._lock:
      self._buckets.clear()


limiter = RateLimiter()
