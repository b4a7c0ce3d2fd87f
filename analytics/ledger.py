"""
analytics.ledger

Balance reconstruction by replaying Transfer events in order.

Replay is exact only when the first replayed event is the token's genesis.
A scan that starts later leaves earlier inflows out, so some balances come
out understated or negative. Those are kept as is; the dust filter drops them
from holder statistics.
"""
from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from analytics.models import RawAmount, SkippedItem, TransferEvent
from common.utils import hex_to_int

log = logging.getLogger(__name__)

ZERO = Decimal(0)


def decode_amount(raw: RawAmount, decimals: int) -> Decimal:
    """
    Scale a raw base-unit amount to token units. Raises ValueError when the raw
    value is not a non-negative integer quantity.
    """
    if isinstance(raw, Decimal):
        if raw != raw.to_integral_value():
            raise ValueError(f"fractional base-unit amount {raw}")
        units = int(raw)
    else:
        try:
            units = hex_to_int(raw)
        except (TypeError, ValueError) as e:
            raise ValueError(f"cannot decode amount {raw!r}") from e
    if units < 0:
        raise ValueError(f"negative amount {raw!r}")
    if decimals < 0:
        raise ValueError(f"negative decimals {decimals}")
    try:
        return Decimal(units).scaleb(-decimals)
    except InvalidOperation as e:
        raise ValueError(f"cannot scale amount {raw!r}") from e


class BalanceLedger:
    """
    Signed running balance per address. Both parties of an applied transfer get
    an entry, starting at zero.
    """

    def __init__(self):
        self._balances: Dict[str, Decimal] = {}
        self.applied = 0
        self.skipped: List[SkippedItem] = []

    def apply(self, sender: str, recipient: str, amount: Decimal) -> None:
        self._balances[sender] = self._balances.get(sender, ZERO) - amount
        self._balances[recipient] = self._balances.get(recipient, ZERO) + amount
        self.applied += 1

    def balance_of(self, address: str) -> Decimal:
        return self._balances.get(address.lower(), ZERO)

    def items(self) -> Iterator[Tuple[str, Decimal]]:
        return iter(self._balances.items())

    def as_dict(self) -> Dict[str, Decimal]:
        return dict(self._balances)

    def total(self) -> Decimal:
        return sum(self._balances.values(), ZERO)

    def holders_above(self, threshold: Decimal) -> List[Tuple[str, Decimal]]:
        return [(a, b) for a, b in self._balances.items() if b > threshold]

    def __len__(self) -> int:
        return len(self._balances)

    def __contains__(self, address: str) -> bool:
        return address.lower() in self._balances


class LedgerReplayer:
    def __init__(self, decimals: int = 18):
        self.decimals = decimals

    def replay(
        self,
        events: Iterable[TransferEvent],
        decimals: Optional[int] = None,
        ledger: Optional[BalanceLedger] = None,
    ) -> BalanceLedger:
        """
        Apply every event once, in the order given. Passing a ledger continues
        it in place, which is how batched scans feed one window at a time.
        Events with an undecodable amount leave both parties untouched and are
        recorded in `ledger.skipped`.
        """
        dec = self.decimals if decimals is None else decimals
        led = ledger if ledger is not None else BalanceLedger()
        for ev in events:
            try:
                amount = decode_amount(ev.amount, dec)
            except ValueError as e:
                log.warning("Skipping transfer %s: %s", ev.tx_hash, e)
                led.skipped.append(SkippedItem(item=ev.tx_hash, reason=str(e)))
                continue
            led.apply(ev.sender.lower(), ev.recipient.lower(), amount)
        return led


def replay(events: Iterable[TransferEvent], decimals: int) -> BalanceLedger:
    return LedgerReplayer(decimals).replay(events)


__all__ = ["BalanceLedger", "LedgerReplayer", "decode_amount", "replay"]
