from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from analytics.models import DistributionBucket, HolderKind, HolderRecord, HolderStatsReport
from storage.manager import get_storage
from storage.sqlite_backend import SQLiteSnapshotStore, day_timestamp_ms

TOKEN = "0x" + "ab" * 20


def _report(holders=3):
    return HolderStatsReport(
        total_supply=Decimal("1000"),
        top_holders=(HolderRecord("0xa", Decimal("600"), HolderKind.WALLET),
                     HolderRecord("0xc", Decimal("100.5"), HolderKind.CONTRACT)),
        holder_count=holders,
        average_balance=Decimal("333.33"),
        median_balance=Decimal("300.00"),
        buckets=(DistributionBucket("0-10%", 0, Decimal(0), 0.0),
                 DistributionBucket("10-25%", 1, Decimal("600"), 60.0)),
        top_holders_concentration_pct=100.0,
        token_address=TOKEN,
        market_cap_usd=None,
        gini=0.3,
        hhi=0.46,
        end_block=50,
    )


def test_save_and_load_roundtrip(tmp_path):
    st = SQLiteSnapshotStore(str(tmp_path / "s.db"))
    st.setup()
    when = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
    st.save_snapshot(TOKEN.upper().replace("0X", "0x"), _report(), token_name="demo", updated_at=when)

    snap = st.load_snapshot(TOKEN)
    assert snap["token_name"] == "demo"
    assert snap["report"] == _report()
    assert snap["last_updated"] == when
    assert st.last_updated(TOKEN) == when
    assert st.list_tokens() == [TOKEN]


def test_upsert_keeps_date_added(tmp_path):
    st = SQLiteSnapshotStore(str(tmp_path / "s.db"))
    t0 = datetime(2024, 5, 1, tzinfo=timezone.utc)
    st.save_snapshot(TOKEN, _report(3), token_name="demo", updated_at=t0)
    st.save_snapshot(TOKEN, _report(4), updated_at=t0 + timedelta(days=1))
    snap = st.load_snapshot(TOKEN)
    assert snap["date_added"] == t0
    assert snap["last_updated"] == t0 + timedelta(days=1)
    assert snap["token_name"] == "demo"
    assert snap["report"].holder_count == 4


def test_missing_token(tmp_path):
    st = SQLiteSnapshotStore(str(tmp_path / "s.db"))
    assert st.load_snapshot(TOKEN) is None
    assert st.last_updated(TOKEN) is None


def test_holder_graph_one_point_per_day(tmp_path):
    st = get_storage("sqlite", sqlite_path=str(tmp_path / "g.db"))
    st.setup()
    d1 = datetime(2024, 5, 1, 3, 0, tzinfo=timezone.utc)
    st.append_holder_point(TOKEN, d1, 10)
    st.append_holder_point(TOKEN, d1 + timedelta(hours=5), 12)
    st.append_holder_point(TOKEN, d1 + timedelta(days=1), 15)
    midnight = int(datetime(2024, 5, 1, tzinfo=timezone.utc).timestamp() * 1000)
    assert st.holder_graph(TOKEN) == [(midnight, 12), (midnight + 86_400_000, 15)]
    st.close()


def test_day_timestamp_naive_is_utc():
    assert day_timestamp_ms(datetime(1970, 1, 2, 13, 0)) == 86_400_000


def test_storage_factory():
    assert get_storage("memory").path == ":memory:"
    with pytest.raises(ValueError):
        get_storage("mongo")
