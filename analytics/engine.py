# analytics/engine.py
from __future__ import annotations

import logging
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from analytics.classifier import HolderClassifier
from analytics.distribution import DistributionAnalyzer, TOP_N, rank_holders, top_concentration_pct
from analytics.ledger import BalanceLedger, LedgerReplayer
from analytics.models import EngineResult, HolderKind, HolderRecord, HolderStatsReport, SkippedItem
from common.errors import EngineError, ProviderUnavailable
from ingestion.erc20_rpc import DEFAULT_DECIMALS, TokenMetadata, erc20_total_supply, fetch_metadata, normalize_contract
from ingestion.log_source import ChainLogSource
from ingestion.prices import PriceLookup
from ingestion.rpc import JsonRpcClient, RetryPolicy

log = logging.getLogger(__name__)

Abi = Optional[List[Dict[str, Any]]]


class EngineState(str, Enum):
    IDLE = "idle"
    FETCHING_SUPPLY = "fetching_supply"
    SCANNING_LOGS = "scanning_logs"
    CLASSIFYING = "classifying"
    ANALYZING = "analyzing"
    DONE = "done"
    FAILED = "failed"


class _Run:
    """State of one compute_holder_stats call. Nothing here outlives the call."""

    def __init__(self, token: str):
        self.token = token
        self.state = EngineState.IDLE
        self.transitions: List[str] = [EngineState.IDLE.value]
        self.diagnostics: List[SkippedItem] = []
        self.total_supply = Decimal(0)
        self.end_block: Optional[int] = None

    def to(self, state: EngineState) -> None:
        log.debug("%s: %s -> %s", self.token, self.state.value, state.value)
        self.state = state
        self.transitions.append(state.value)


class HolderStatsEngine:
    """
    Rebuilds current holder balances from the full Transfer history of a token
    and reports holder statistics. Stateless between invocations: each call
    owns a fresh ledger and discards it once the report is built.
    """

    def __init__(
        self,
        client: JsonRpcClient,
        log_source: Optional[ChainLogSource] = None,
        classifier: Optional[HolderClassifier] = None,
        analyzer: Optional[DistributionAnalyzer] = None,
        price_lookup: Optional[PriceLookup] = None,
        metadata_lookup: Optional[Callable[[str], TokenMetadata]] = None,
        top_n: int = TOP_N,
    ):
        self.client = client
        self.log_source = log_source or ChainLogSource(client)
        self.classifier = classifier or HolderClassifier(client.get_code)
        self.analyzer = analyzer or DistributionAnalyzer()
        self.price_lookup = price_lookup
        self.metadata_lookup = metadata_lookup or (lambda addr: fetch_metadata(client, addr))
        self.top_n = top_n

    @classmethod
    def from_settings(cls, settings) -> "HolderStatsEngine":
        from common.settings import resolve_rpc_url
        from ingestion.prices import CoinGeckoPrices

        scan = settings.scan
        try:
            url = resolve_rpc_url(settings.rpc)
        except ProviderUnavailable as e:
            # surfaces as a failed run on first use
            log.error("%s", e)
            url = None
        client = JsonRpcClient(
            url,
            timeout=settings.rpc.timeout,
            retry=RetryPolicy(
                max_attempts=scan.max_retries,
                base_delay=scan.backoff_seconds,
                max_delay=scan.max_backoff_seconds,
            ),
        )
        prices = None
        if settings.prices.enabled:
            prices = CoinGeckoPrices(settings.prices.base_url, settings.prices.timeout).lookup
        return cls(
            client,
            log_source=ChainLogSource(client, scan.window_size, scan.pause_seconds),
            classifier=HolderClassifier(client.get_code, settings.holders.classify_concurrency),
            analyzer=DistributionAnalyzer(settings.holders.dust_threshold, settings.holders.buckets),
            price_lookup=prices,
            top_n=settings.holders.top_n,
        )

    def _resolve_decimals(self, token: str, decimals: Optional[int]) -> int:
        if decimals is not None:
            return int(decimals)
        meta = self.metadata_lookup(token)
        return meta.decimals if meta and meta.decimals is not None else DEFAULT_DECIMALS

    def _scan(self, token: str, abi: Abi, start_block: int, decimals: int, run: Optional[_Run] = None) -> BalanceLedger:
        end_block = self.log_source.current_height()
        if run is not None:
            run.end_block = end_block
        ledger = BalanceLedger()
        replayer = LedgerReplayer(decimals)
        if start_block > end_block:
            log.warning("%s: start block %d is past chain height %d", token, start_block, end_block)
            return ledger
        for batch in self.log_source.iter_batches(token, abi, start_block, end_block):
            replayer.replay(batch.events, ledger=ledger)
            if run is not None:
                run.diagnostics.extend(batch.skipped)
        if run is not None:
            run.diagnostics.extend(ledger.skipped)
        log.info("%s: replayed %d transfers up to block %d (%d addresses)",
                 token, ledger.applied, end_block, len(ledger))
        return ledger

    def _market_cap(self, ticker: Optional[str]) -> Optional[float]:
        if not ticker or self.price_lookup is None:
            return None
        try:
            quote = self.price_lookup(ticker)
        except Exception as e:  # price data is optional enrichment
            log.error("Price lookup failed for %s: %s", ticker, e)
            return None
        return quote.market_cap_usd if quote else None

    def compute_holder_stats(
        self,
        token_address: str,
        abi: Abi = None,
        start_block: int = 0,
        decimals: Optional[int] = None,
        ticker_for_market_cap: Optional[str] = None,
    ) -> EngineResult:
        run = _Run(str(token_address))
        try:
            run.to(EngineState.FETCHING_SUPPLY)
            token = normalize_contract(token_address)
            run.token = token
            dec = self._resolve_decimals(token, decimals)
            run.total_supply = erc20_total_supply(self.client, token, dec)

            run.to(EngineState.SCANNING_LOGS)
            ledger = self._scan(token, abi, int(start_block), dec, run)

            run.to(EngineState.CLASSIFYING)
            ranked = rank_holders(ledger.items(), self.analyzer.dust_threshold)
            top = ranked[: self.top_n]
            kinds, failures = self.classifier.classify_with_failures([a for a, _ in top])
            run.diagnostics.extend(failures)
            top_holders = tuple(
                HolderRecord(address=a, balance=b, kind=kinds.get(a, HolderKind.UNKNOWN)) for a, b in top
            )

            run.to(EngineState.ANALYZING)
            summary = self.analyzer.analyze(ranked, run.total_supply)
            if summary.holder_count == 0:
                log.warning("%s: no holders above dust threshold, returning empty stats", token)
            report = HolderStatsReport(
                total_supply=run.total_supply,
                top_holders=top_holders,
                holder_count=summary.holder_count,
                average_balance=summary.average_balance,
                median_balance=summary.median_balance,
                buckets=summary.buckets,
                top_holders_concentration_pct=top_concentration_pct(ranked, run.total_supply, self.top_n),
                token_address=token,
                market_cap_usd=self._market_cap(ticker_for_market_cap),
                gini=summary.gini,
                hhi=summary.hhi,
                end_block=run.end_block,
            )
            run.to(EngineState.DONE)
            return EngineResult(
                ok=True,
                report=report,
                state=run.state.value,
                transitions=tuple(run.transitions),
                diagnostics=tuple(run.diagnostics),
            )
        except (EngineError, ValueError) as e:
            failed_in = run.state.value
            run.to(EngineState.FAILED)
            log.error("Holder stats for %s failed while %s: %s", run.token, failed_in, e)
            return EngineResult(
                ok=False,
                report=HolderStatsReport.empty(
                    token_address=run.token,
                    total_supply=run.total_supply,
                    end_block=run.end_block,
                ),
                state=run.state.value,
                error=e,
                transitions=tuple(run.transitions),
                diagnostics=tuple(run.diagnostics),
            )

    def count_holders(
        self,
        token_address: str,
        abi: Abi = None,
        start_block: int = 0,
        decimals: Optional[int] = None,
    ) -> int:
        """Number of addresses above the dust threshold. EngineError propagates."""
        token = normalize_contract(token_address)
        dec = self._resolve_decimals(token, decimals)
        ledger = self._scan(token, abi, int(start_block), dec)
        return len(ledger.holders_above(self.analyzer.dust_threshold))


__all__ = ["EngineState", "HolderStatsEngine"]
