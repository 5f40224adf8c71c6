from __future__ import annotations

import datetime as dt
import time


def now_unix() -> int:
    return int(time.time())


def unix_to_iso(ts: int) -> str:
    return dt.datetime.fromtimestamp(ts, tz=dt.timezone.utc).isoformat()
