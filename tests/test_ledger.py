import random
from decimal import Decimal

import pytest

from analytics.ledger import BalanceLedger, LedgerReplayer, decode_amount, replay
from analytics.models import TransferEvent


def ev(frm, to, amount, block=1, tx="0x1"):
    return TransferEvent(sender=frm, recipient=to, amount=amount, block_number=block, tx_hash=tx)


def test_three_event_fixture():
    events = [
        ev("0x0", "0xA", 1000, 1, "0xm"),
        ev("0xA", "0xB", 400, 2, "0x2"),
        ev("0xB", "0xC", 100, 3, "0x3"),
    ]
    led = replay(events, decimals=0)
    assert led.balance_of("0xA") == 600
    assert led.balance_of("0xB") == 300
    assert led.balance_of("0xC") == 100
    # the mint source goes negative; it is a ledger entry, never a holder
    assert led.balance_of("0x0") == -1000
    assert led.applied == 3


def test_conservation_random_sequences():
    rng = random.Random(7)
    addrs = [f"0x{i:02x}" for i in range(12)]
    for _ in range(20):
        events = [
            ev(rng.choice(addrs), rng.choice(addrs), rng.randint(0, 10**24), b)
            for b in range(rng.randint(0, 60))
        ]
        led = replay(events, decimals=18)
        assert led.total() == 0


def test_decimals_scaling_is_exact():
    led = replay([ev("0xa", "0xb", "0x" + format(123456789, "x"))], decimals=6)
    assert led.balance_of("0xb") == Decimal("123.456789")
    assert decode_amount(10**30, 18) == Decimal(10**12)


@pytest.mark.parametrize("raw", ["0xzz", "abc", -5, None, Decimal("1.5")])
def test_decode_failure_skips_event(raw):
    led = replay([ev("0xa", "0xb", 5, tx="0xgood"), ev("0xb", "0xc", raw, tx="0xbad")], decimals=0)
    assert led.balance_of("0xb") == 5
    assert "0xc" not in led
    assert led.applied == 1
    assert [s.item for s in led.skipped] == ["0xbad"]


def test_replay_continues_ledger_in_place():
    r = LedgerReplayer(decimals=0)
    led = BalanceLedger()
    out = r.replay([ev("0x0", "0xa", 10)], ledger=led)
    assert out is led
    r.replay([ev("0xa", "0xb", 4)], ledger=led)
    assert led.as_dict() == {"0x0": -10, "0xa": 6, "0xb": 4}


def test_order_is_respected_and_negatives_allowed():
    # scan started mid history: B spends before any inflow was seen
    led = replay([ev("0xb", "0xc", 50), ev("0xa", "0xb", 20)], decimals=0)
    assert led.balance_of("0xb") == -30
    assert led.holders_above(Decimal("0.01")) == [("0xc", Decimal(50))]


def test_addresses_are_case_insensitive():
    led = replay([ev("0xABC", "0xDEF", 3), ev("0xdef", "0xabc", 1)], decimals=0)
    assert led.balance_of("0xabc") == -2
    assert led.balance_of("0xDEF") == 2
    assert len(led) == 2
