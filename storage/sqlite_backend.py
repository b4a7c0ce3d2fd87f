from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from analytics.models import HolderStatsReport
from storage.schema import ALL_TABLES


def _iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def day_timestamp_ms(dt: datetime) -> int:
    """Midnight UTC of the day containing dt, in epoch milliseconds."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    day = dt.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    return int(day.timestamp() * 1000)


class SQLiteSnapshotStore:
    """
    Key-value snapshot cache: the latest holder report per token address plus
    a (day, holder count) series for charting.
    """

    def __init__(self, path: str):
        self.path = path
        self.conn: Optional[sqlite3.Connection] = None

    def _ensure(self) -> None:
        if self.conn is not None:
            return
        self.setup()

    def setup(self) -> None:
        con = sqlite3.connect(self.path, check_same_thread=False)
        con.row_factory = sqlite3.Row
        for ddl in ALL_TABLES:
            con.execute(ddl)
        con.commit()
        self.conn = con

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def save_snapshot(
        self,
        token_address: str,
        report: HolderStatsReport,
        *,
        token_name: Optional[str] = None,
        updated_at: Optional[datetime] = None,
    ) -> None:
        """
        Upsert the report for a token. date_added is kept from the first save.
        """
        self._ensure()
        now = _iso(updated_at or datetime.now(timezone.utc))
        self.conn.execute(
            """
            INSERT INTO token_snapshots(token_address, token_name, date_added, last_updated, report)
            VALUES(?,?,?,?,?)
            ON CONFLICT(token_address) DO UPDATE SET
              token_name   = COALESCE(excluded.token_name, token_snapshots.token_name),
              last_updated = excluded.last_updated,
              report       = excluded.report
            """,
            (token_address.lower(), token_name, now, now, json.dumps(report.to_dict())),
        )
        self.conn.commit()

    def load_snapshot(self, token_address: str) -> Optional[Dict[str, Any]]:
        self._ensure()
        row = self.conn.execute(
            "SELECT * FROM token_snapshots WHERE token_address = ?", (token_address.lower(),)
        ).fetchone()
        if not row:
            return None
        out = dict(row)
        out["report"] = HolderStatsReport.from_dict(json.loads(row["report"]))
        out["date_added"] = datetime.fromisoformat(row["date_added"])
        out["last_updated"] = datetime.fromisoformat(row["last_updated"])
        return out

    def last_updated(self, token_address: str) -> Optional[datetime]:
        self._ensure()
        row = self.conn.execute(
            "SELECT last_updated FROM token_snapshots WHERE token_address = ?", (token_address.lower(),)
        ).fetchone()
        return datetime.fromisoformat(row[0]) if row else None

    def append_holder_point(self, token_address: str, when: datetime, holder_count: int) -> int:
        self._ensure()
        ts = day_timestamp_ms(when)
        self.conn.execute(
            "INSERT OR REPLACE INTO holders_graph(token_address, day_ts, holder_count) VALUES(?,?,?)",
            (token_address.lower(), ts, int(holder_count)),
        )
        self.conn.commit()
        return ts

    def holder_graph(self, token_address: str) -> List[Tuple[int, int]]:
        self._ensure()
        cur = self.conn.execute(
            "SELECT day_ts, holder_count FROM holders_graph WHERE token_address = ? ORDER BY day_ts",
            (token_address.lower(),),
        )
        return [(int(r[0]), int(r[1])) for r in cur.fetchall()]

    def list_tokens(self) -> List[str]:
        self._ensure()
        cur = self.conn.execute("SELECT token_address FROM token_snapshots ORDER BY token_address")
        return [r[0] for r in cur.fetchall()]
