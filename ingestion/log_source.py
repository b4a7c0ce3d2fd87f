# ingestion/log_source.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from analytics.models import SkippedItem, TransferEvent
from common.errors import MalformedEvent, RpcError
from common.utils import chunked, hex_to_int
from ingestion.erc20 import TRANSFER_TOPIC0, TransferLayout, decode_transfer_log, transfer_layout
from ingestion.erc20_rpc import normalize_contract
from ingestion.rpc import JsonRpcClient

log = logging.getLogger(__name__)

DEFAULT_WINDOW = 100_000


@dataclass(frozen=True)
class LogBatch:
    from_block: int
    to_block: int
    events: Tuple[TransferEvent, ...] = ()
    skipped: Tuple[SkippedItem, ...] = field(default_factory=tuple)

    @property
    def empty(self) -> bool:
        return not self.events


class ChainLogSource:
    """
    Transfer log reader over a JSON-RPC provider. A block range is split into
    fixed windows fetched strictly one after another, in ascending order.
    """

    def __init__(
        self,
        client: JsonRpcClient,
        window_size: int = DEFAULT_WINDOW,
        pause_seconds: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if window_size < 1:
            raise ValueError("window_size must be at least 1")
        self.client = client
        self.window_size = window_size
        self.pause_seconds = pause_seconds
        self._sleep = sleep

    def current_height(self) -> int:
        res = self.client.call("eth_blockNumber", [])
        try:
            return hex_to_int(res)
        except (TypeError, ValueError) as e:
            raise RpcError(f"eth_blockNumber returned {res!r}") from e

    def _get_logs(self, contract: str, from_block: int, to_block: int) -> List[Dict[str, Any]]:
        params = {
            "address": contract,
            "fromBlock": hex(from_block),
            "toBlock": hex(to_block),
            # filter by topic0 so providers can optimize
            "topics": [TRANSFER_TOPIC0],
        }
        result = self.client.call("eth_getLogs", [params])
        if result is None:
            return []
        if not isinstance(result, list):
            raise RpcError("RPC response for eth_getLogs did not return a list")
        return result

    def fetch_window(self, contract: str, layout: TransferLayout, from_block: int, to_block: int) -> LogBatch:
        raw = self._get_logs(contract, from_block, to_block)
        events: List[TransferEvent] = []
        skipped: List[SkippedItem] = []
        for lg in raw:
            try:
                ev = decode_transfer_log(lg, layout)
            except MalformedEvent as e:
                log.warning("Skipping malformed event: %s", e)
                skipped.append(SkippedItem(item=str(lg.get("transactionHash")), reason=str(e)))
                continue
            if ev is not None:
                events.append(ev)
        events.sort(key=lambda e: (e.block_number, e.log_index))
        return LogBatch(from_block, to_block, tuple(events), tuple(skipped))

    def iter_batches(
        self,
        contract: str,
        abi: Optional[List[Dict[str, Any]]],
        from_block: int,
        to_block: int,
    ) -> Iterator[LogBatch]:
        if not isinstance(from_block, int) or not isinstance(to_block, int):
            raise ValueError("from_block and to_block must be integers")
        if from_block < 0 or to_block < from_block:
            raise ValueError("invalid block range")
        addr = normalize_contract(contract)
        layout = transfer_layout(abi)

        for i, (s, e) in enumerate(chunked(from_block, to_block, self.window_size)):
            if i and self.pause_seconds > 0:
                self._sleep(self.pause_seconds)
            log.info("Fetching events from block %d to %d...", s, e)
            batch = self.fetch_window(addr, layout, s, e)
            if batch.empty:
                log.debug("No transfer events found from block %d to %d", s, e)
            yield batch

    def fetch_transfers(
        self,
        contract: str,
        abi: Optional[List[Dict[str, Any]]],
        from_block: int,
        to_block: int,
    ) -> List[TransferEvent]:
        out: List[TransferEvent] = []
        for batch in self.iter_batches(contract, abi, from_block, to_block):
            out.extend(batch.events)
        return out


__all__ = ["ChainLogSource", "LogBatch", "DEFAULT_WINDOW"]
