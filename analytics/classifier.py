# analytics/classifier.py
from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, Tuple

from analytics.models import HolderKind, SkippedItem

log = logging.getLogger(__name__)

GetCodeFn = Callable[[str], str]


def kind_from_code(code) -> HolderKind:
    c = (code or "").strip().lower()
    return HolderKind.WALLET if c in ("", "0x", "0x0") else HolderKind.CONTRACT


class HolderClassifier:
    """
    Wallet or contract, decided by whether the address has code on chain.
    Best effort: a failed lookup marks that address unknown and nothing else.
    """

    def __init__(self, get_code: GetCodeFn, concurrency: int = 10):
        self.get_code = get_code
        self.concurrency = max(1, int(concurrency))

    async def classify_async(self, addresses: Iterable[str]) -> Tuple[Dict[str, HolderKind], List[SkippedItem]]:
        addrs = list(dict.fromkeys(addresses))
        sem = asyncio.Semaphore(self.concurrency)

        async def one(addr: str) -> str:
            async with sem:
                # run the sync lookup off the event loop
                return await asyncio.to_thread(self.get_code, addr)

        results = await asyncio.gather(*(one(a) for a in addrs), return_exceptions=True)

        kinds: Dict[str, HolderKind] = {}
        failures: List[SkippedItem] = []
        for addr, res in zip(addrs, results):
            if isinstance(res, BaseException):
                if not isinstance(res, Exception):
                    raise res
                log.error("Error fetching code for address %s: %s", addr, res)
                kinds[addr] = HolderKind.UNKNOWN
                failures.append(SkippedItem(item=addr, reason=f"classification failed: {res}"))
            else:
                kinds[addr] = kind_from_code(res)
        return kinds, failures

    def classify_with_failures(self, addresses: Iterable[str]) -> Tuple[Dict[str, HolderKind], List[SkippedItem]]:
        """
        Blocking entry point. Safe to call from inside a running event loop:
        the lookups then run on a worker thread with its own loop.
        """
        addrs = list(addresses)
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.classify_async(addrs))
        with ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(lambda: asyncio.run(self.classify_async(addrs))).result()

    def classify(self, addresses: Iterable[str]) -> Dict[str, HolderKind]:
        kinds, _ = self.classify_with_failures(addresses)
        return kinds


__all__ = ["HolderClassifier", "kind_from_code"]
