from __future__ import annotations

import datetime as dt
import time

from .config import get_settings
from .main import run_cycle


def seconds_until_next_hour(now: dt.datetime) -> int:
    next_hour = (now + dt.timedelta(hours=1)).replace(minute=0, second=0, microsecond=0)
    return max(1, int((next_hour - now).total_seconds()))


def main() -> None:
    settings = get_settings()
    print(f"[scheduler] Content Curator scheduler started (hourly) api={settings.api_base_url}")
    while True:
        run_cycle(settings)
        time.sleep(seconds_until_next_hour(dt.datetime.now(dt.UTC)))


if __name__ == "__main__":
    main()
