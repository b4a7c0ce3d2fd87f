# ingestion/rpc.py
from __future__ import annotations

import itertools
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

import requests

from common.errors import ProviderUnavailable, RetriesExhausted, RpcError

log = logging.getLogger(__name__)

# JSON-RPC error codes providers use for throttling
RATE_LIMIT_CODES = (429, -32005)
RETRYABLE_STATUS = (429, 500, 502, 503, 504)


class _Retryable(Exception):
    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Seconds from a Retry-After header, or None when absent or not numeric."""
    if value is None:
        return None
    v = str(value).strip()
    try:
        secs = float(v)
    except ValueError:
        return None
    return secs if secs >= 0 else None


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 6
    base_delay: float = 0.5
    max_delay: float = 30.0
    jitter: float = 0.2

    def delay_for(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """
        Backoff before retry number `attempt` (1 based). A server hint longer
        than the computed backoff is honoured as is.
        """
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay *= 1.0 - self.jitter + 2 * self.jitter * random.random()
        if retry_after is not None and retry_after > delay:
            return retry_after
        return delay


class JsonRpcClient:
    """
    Minimal JSON-RPC 2.0 client over requests.post with rate limit aware retries.
    """

    def __init__(
        self,
        url: Optional[str],
        timeout: float = 30.0,
        retry: RetryPolicy = RetryPolicy(),
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.url = url
        self.timeout = timeout
        self.retry = retry
        self._sleep = sleep
        self._ids = itertools.count(1)

    def _check_url(self) -> str:
        u = (self.url or "").strip()
        if not u or "${" in u:
            raise ProviderUnavailable("RPC endpoint not configured (missing URL or credential)")
        return u

    def _post_once(self, url: str, method: str, params: List[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            resp = requests.post(url, json=payload, timeout=self.timeout)
        except requests.Timeout as e:
            raise _Retryable(f"timeout calling {method}") from e
        except requests.ConnectionError as e:
            raise ProviderUnavailable(f"RPC endpoint unreachable for {method}: {e}") from e
        except requests.RequestException as e:
            raise RpcError(f"RPC transport failed for {method}: {e}") from e

        if resp.status_code in (401, 403):
            raise ProviderUnavailable(f"RPC endpoint rejected credential ({resp.status_code}) for {method}")
        if resp.status_code in RETRYABLE_STATUS:
            headers = getattr(resp, "headers", None) or {}
            raise _Retryable(
                f"{resp.status_code} from provider for {method}",
                retry_after=parse_retry_after(headers.get("Retry-After")),
            )
        try:
            resp.raise_for_status()
        except requests.HTTPError as e:
            raise RpcError(f"RPC transport failed for {method}: {e}") from e

        try:
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise RpcError(f"RPC response for {method} is not JSON") from e
        if not isinstance(data, dict):
            raise RpcError(f"RPC response for {method} is not a JSON object: {data!r}")
        if "error" in data:
            err = data["error"] or {}
            code = err.get("code") if isinstance(err, dict) else None
            msg = str(err)
            if code in RATE_LIMIT_CODES or "rate" in msg.lower() or "too many" in msg.lower():
                raise _Retryable(f"RPC throttled for {method}: {msg}")
            raise RpcError(f"RPC error for {method}: {msg}", code=code)
        return data.get("result")

    def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Return the JSON-RPC result field directly."""
        url = self._check_url()
        params = list(params or [])
        attempt = 0
        while True:
            attempt += 1
            try:
                return self._post_once(url, method, params)
            except _Retryable as e:
                if attempt >= self.retry.max_attempts:
                    raise RetriesExhausted(
                        f"{method} still failing after {attempt} attempts: {e}", attempts=attempt
                    ) from e
                delay = self.retry.delay_for(attempt, e.retry_after)
                log.warning("%s; retry %d/%d in %.2fs", e, attempt, self.retry.max_attempts - 1, delay)
                self._sleep(delay)

    def block_number(self) -> int:
        return int(self.call("eth_blockNumber"), 16)

    def get_code(self, address: str, block: str = "latest") -> str:
        return self.call("eth_getCode", [address, block]) or "0x"


__all__ = ["JsonRpcClient", "RetryPolicy", "parse_retry_after"]
