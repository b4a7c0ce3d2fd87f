from __future__ import annotations

import argparse
import sys
from datetime import timedelta
from pathlib import Path

from analytics.engine import HolderStatsEngine
from common.logging_setup import setup_logging
from common.settings import load_settings
from scheduling.notify import make_notifier
from scheduling.refresh import FAILED, TokenRefresher
from storage.manager import get_storage


def main(argv=None) -> None:
    p = argparse.ArgumentParser(description="Refresh holder stats for the configured tokens")
    p.add_argument("--config", default="config.yaml", help="Path to config.yaml")
    p.add_argument("--token", action="append", default=None,
                   help="Only refresh this token (name or address); repeatable")
    p.add_argument("--loop", action="store_true", help="Keep running, once per refresh.interval_hours")
    args = p.parse_args(argv)

    setup_logging()
    st = load_settings(args.config)

    targets = st.tokens
    if args.token:
        wanted = {t.lower() for t in args.token}
        targets = [t for t in targets if t.name.lower() in wanted or t.token_address.lower() in wanted]
    if not targets:
        print("ERROR no matching tokens configured", file=sys.stderr)
        sys.exit(2)

    Path(st.db.sqlite_path).parent.mkdir(parents=True, exist_ok=True)
    store = get_storage(st.db.driver, sqlite_path=st.db.sqlite_path)
    store.setup()

    refresher = TokenRefresher(
        HolderStatsEngine.from_settings(st),
        store,
        notifier=make_notifier(st.refresh.discord_webhook),
        min_interval=timedelta(minutes=st.refresh.min_interval_minutes),
    )
    try:
        if args.loop:
            refresher.run_forever(targets, interval=timedelta(hours=st.refresh.interval_hours))
            return
        outcomes = refresher.refresh_all(targets)
    finally:
        store.close()

    for o in outcomes:
        suffix = f"  {o.detail}" if o.detail else ""
        print(f"{o.token_address}  {o.status}{suffix}")
    if any(o.status == FAILED for o in outcomes):
        sys.exit(1)


if __name__ == "__main__":
    main()
