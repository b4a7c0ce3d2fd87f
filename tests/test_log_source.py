import pytest

from analytics.ledger import LedgerReplayer
from conftest import TOKEN, FakeChain, addr, transfer_log
from ingestion.log_source import ChainLogSource


def _logs():
    a, b, c = addr("a"), addr("b"), addr("c")
    return [
        transfer_log("0x" + "0" * 40, a, 1000, 5),
        transfer_log(a, b, 400, 999_999),
        # same block, out of order log indexes
        transfer_log(b, c, 50, 1_000_000, log_index=3),
        transfer_log(b, c, 50, 1_000_000, log_index=1),
        transfer_log(c, a, 10, 2_000_000),
    ]


def test_windows_cover_range_in_order():
    chain = FakeChain(logs=_logs())
    src = ChainLogSource(chain, window_size=1_000_000)
    batches = list(src.iter_batches(TOKEN, None, 0, 2_000_000))
    assert [(b.from_block, b.to_block) for b in batches] == [
        (0, 999_999), (1_000_000, 1_999_999), (2_000_000, 2_000_000),
    ]
    calls = chain.get_logs_calls()
    assert [c["fromBlock"] for c in calls] == [hex(0), hex(1_000_000), hex(2_000_000)]
    assert all(c["address"] == TOKEN for c in calls)


def test_events_ascending_within_and_across_windows():
    src = ChainLogSource(FakeChain(logs=list(reversed(_logs()))), window_size=1_000_000)
    evs = src.fetch_transfers(TOKEN, None, 0, 2_000_000)
    positions = [(e.block_number, e.log_index) for e in evs]
    assert positions == sorted(positions)
    assert len(evs) == 5


def test_empty_windows_are_not_errors():
    chain = FakeChain(logs=[transfer_log(addr("a"), addr("b"), 1, 250)])
    src = ChainLogSource(chain, window_size=100)
    batches = list(src.iter_batches(TOKEN, None, 0, 399))
    assert [len(b.events) for b in batches] == [0, 0, 1, 0]
    assert batches[0].empty


def test_malformed_events_skipped_with_diagnostics():
    bad = transfer_log(addr("a"), addr("b"), 1, 3)
    bad["topics"] = bad["topics"][:2]
    chain = FakeChain(logs=[bad, transfer_log(addr("a"), addr("b"), 7, 4)])
    batch = next(ChainLogSource(chain).iter_batches(TOKEN, None, 0, 10))
    assert len(batch.events) == 1
    assert len(batch.skipped) == 1
    assert "missing" in batch.skipped[0].reason


def test_batch_equivalence():
    """One big window and several small ones yield the same ledger."""
    logs = _logs()
    ledgers = []
    for window in (2_000_001, 1_000_001, 1_000_000):
        src = ChainLogSource(FakeChain(logs=logs), window_size=window)
        replayer = LedgerReplayer(decimals=0)
        ledger = None
        for batch in src.iter_batches(TOKEN, None, 0, 2_000_000):
            ledger = replayer.replay(batch.events, ledger=ledger)
        ledgers.append(ledger.as_dict())
    assert ledgers[0] == ledgers[1] == ledgers[2]


def test_pause_between_windows():
    sleeps = []
    src = ChainLogSource(FakeChain(), window_size=10, pause_seconds=0.5, sleep=sleeps.append)
    list(src.iter_batches(TOKEN, None, 0, 29))
    assert sleeps == [0.5, 0.5]


@pytest.mark.parametrize("lo,hi", [(10, 5), (-1, 5)])
def test_invalid_range(lo, hi):
    with pytest.raises(ValueError):
        list(ChainLogSource(FakeChain()).iter_batches(TOKEN, None, lo, hi))


def test_current_height():
    assert ChainLogSource(FakeChain(height=12345)).current_height() == 12345
