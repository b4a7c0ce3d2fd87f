"""
analytics.models

Value types produced and consumed by the holder statistics engine.
All of them are immutable once built.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

RawAmount = Union[int, str]


@dataclass(frozen=True)
class TransferEvent:
    sender: str
    recipient: str
    amount: RawAmount  # base units as read off the log, not yet scaled by decimals
    block_number: int
    tx_hash: str
    log_index: int = 0


@dataclass(frozen=True)
class SkippedItem:
    item: str
    reason: str


class HolderKind(str, Enum):
    WALLET = "wallet"
    CONTRACT = "contract"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class HolderRecord:
    address: str
    balance: Decimal
    kind: HolderKind = HolderKind.UNKNOWN

    def to_dict(self) -> Dict[str, Any]:
        return {"address": self.address, "balance": str(self.balance), "kind": self.kind.value}


@dataclass(frozen=True)
class DistributionBucket:
    label: str
    holder_count: int
    cumulative_balance: Decimal
    percent_of_supply: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "holder_count": self.holder_count,
            "cumulative_balance": str(self.cumulative_balance),
            "percent_of_supply": self.percent_of_supply,
        }


@dataclass(frozen=True)
class HolderStatsReport:
    total_supply: Decimal
    top_holders: Tuple[HolderRecord, ...]
    holder_count: int
    average_balance: Decimal
    median_balance: Decimal
    buckets: Tuple[DistributionBucket, ...]
    top_holders_concentration_pct: float
    token_address: str = ""
    market_cap_usd: Optional[float] = None
    gini: float = 0.0
    hhi: float = 0.0
    end_block: Optional[int] = None

    @classmethod
    def empty(cls, token_address: str = "", total_supply: Decimal = Decimal(0),
              buckets: Tuple[DistributionBucket, ...] = (), end_block: Optional[int] = None) -> "HolderStatsReport":
        return cls(
            total_supply=total_supply,
            top_holders=(),
            holder_count=0,
            average_balance=Decimal(0),
            median_balance=Decimal(0),
            buckets=tuple(buckets),
            top_holders_concentration_pct=0.0,
            token_address=token_address,
            end_block=end_block,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token_address": self.token_address,
            "total_supply": str(self.total_supply),
            "market_cap_usd": self.market_cap_usd,
            "holder_count": self.holder_count,
            "average_balance": str(self.average_balance),
            "median_balance": str(self.median_balance),
            "top_holders_concentration_pct": self.top_holders_concentration_pct,
            "top_holders": [h.to_dict() for h in self.top_holders],
            "buckets": [b.to_dict() for b in self.buckets],
            "gini": self.gini,
            "hhi": self.hhi,
            "end_block": self.end_block,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "HolderStatsReport":
        return cls(
            total_supply=Decimal(d["total_supply"]),
            top_holders=tuple(
                HolderRecord(h["address"], Decimal(h["balance"]), HolderKind(h.get("kind", "unknown")))
                for h in d.get("top_holders") or []
            ),
            holder_count=int(d["holder_count"]),
            average_balance=Decimal(d["average_balance"]),
            median_balance=Decimal(d["median_balance"]),
            buckets=tuple(
                DistributionBucket(b["label"], int(b["holder_count"]),
                                   Decimal(b["cumulative_balance"]), float(b["percent_of_supply"]))
                for b in d.get("buckets") or []
            ),
            top_holders_concentration_pct=float(d["top_holders_concentration_pct"]),
            token_address=d.get("token_address", ""),
            market_cap_usd=d.get("market_cap_usd"),
            gini=float(d.get("gini", 0.0)),
            hhi=float(d.get("hhi", 0.0)),
            end_block=d.get("end_block"),
        )


@dataclass(frozen=True)
class EngineResult:
    """
    Outcome of one engine run. `ok` is the only way to tell a run that found
    nothing apart from a run that could not complete.
    """
    ok: bool
    report: HolderStatsReport
    state: str
    error: Optional[Exception] = None
    transitions: Tuple[str, ...] = ()
    diagnostics: Tuple[SkippedItem, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return self.ok and self.report.holder_count == 0


__all__ = [
    "RawAmount",
    "TransferEvent",
    "SkippedItem",
    "HolderKind",
    "HolderRecord",
    "DistributionBucket",
    "HolderStatsReport",
    "EngineResult",
]
