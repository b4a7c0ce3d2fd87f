"""
scheduling.refresh

Periodic recompute of holder statistics for configured tokens.

Each target is refreshed at most once per minimum interval and never twice
at the same time; overlapping requests for the same token are skipped rather
than queued. The engine itself holds no state between runs, so both guards
live here.
"""
from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional

from analytics.engine import HolderStatsEngine
from analytics.models import EngineResult
from common.settings import TokenTarget
from scheduling.notify import LogNotifier
from storage.sqlite_backend import SQLiteSnapshotStore

log = logging.getLogger(__name__)

REFRESHED = "refreshed"
SKIPPED_RECENT = "skipped_recent"
IN_FLIGHT = "in_flight"
FAILED = "failed"


@dataclass(frozen=True)
class RefreshOutcome:
    token_address: str
    status: str
    result: Optional[EngineResult] = None
    detail: str = ""


def load_abi(path: Optional[str]):
    if not path:
        return None
    with open(path, "r") as f:
        data = json.load(f)
    # accept both a bare ABI list and a compiler artifact with an "abi" key
    return data.get("abi") if isinstance(data, dict) else data


class TargetLocks:
    """One non-blocking lock per token address."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def get(self, key: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key.lower(), threading.Lock())


class TokenRefresher:
    def __init__(
        self,
        engine: HolderStatsEngine,
        store: SQLiteSnapshotStore,
        notifier=None,
        min_interval: timedelta = timedelta(minutes=15),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.engine = engine
        self.store = store
        self.notifier = notifier or LogNotifier()
        self.min_interval = min_interval
        self.clock = clock
        self.locks = TargetLocks()

    def _too_soon(self, address: str, now: datetime) -> bool:
        last = self.store.last_updated(address)
        return last is not None and now - last < self.min_interval

    def refresh(self, target: TokenTarget) -> RefreshOutcome:
        address = target.token_address.lower()
        lock = self.locks.get(address)
        if not lock.acquire(blocking=False):
            log.info("Refresh of %s already running, skipping", target.name)
            return RefreshOutcome(address, IN_FLIGHT)
        try:
            now = self.clock()
            if self._too_soon(address, now):
                self.notifier.send(
                    f"**Skipping {target.name}, update requested too soon. "
                    f"(last updated <{int(self.min_interval.total_seconds() // 60)} minutes ago)**"
                )
                return RefreshOutcome(address, SKIPPED_RECENT)

            self.notifier.send(f"**Refreshing Token Stats For: {target.name} at {now:%Y-%m-%d %H:%M:%S}**")
            result = self.engine.compute_holder_stats(
                target.token_address,
                abi=load_abi(target.abi_path),
                start_block=target.start_block,
                decimals=target.decimals,
                ticker_for_market_cap=target.mc_ticker,
            )
            if not result.ok:
                self.notifier.send(f"Error occurred refreshing token: {target.name}")
                return RefreshOutcome(address, FAILED, result, str(result.error))

            self.store.save_snapshot(address, result.report, token_name=target.name, updated_at=now)
            self.store.append_holder_point(address, now, result.report.holder_count)
            self.notifier.send(f"**Finished refreshing {target.name} token stats**")
            return RefreshOutcome(address, REFRESHED, result)
        finally:
            lock.release()

    def refresh_all(self, targets: Iterable[TokenTarget]) -> List[RefreshOutcome]:
        self.notifier.send(f"**Starting daily token refresh at: {self.clock():%Y-%m-%d %H:%M:%S}**")
        outcomes: List[RefreshOutcome] = []
        for target in targets:
            try:
                outcomes.append(self.refresh(target))
            except Exception as e:  # one bad target must not stop the rest
                log.exception("Error occurred refreshing token %s", target.name)
                self.notifier.send(f"Error occurred refreshing token: {target.name}")
                outcomes.append(RefreshOutcome(target.token_address.lower(), FAILED, detail=str(e)))
        self.notifier.send(f"**Daily token refresh complete at {self.clock():%Y-%m-%d %H:%M:%S}**")
        return outcomes

    def run_forever(
        self,
        targets: List[TokenTarget],
        interval: timedelta = timedelta(hours=24),
        sleep: Callable[[float], None] = time.sleep,
        max_cycles: Optional[int] = None,
    ) -> None:
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            self.refresh_all(targets)
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            sleep(interval.total_seconds())
