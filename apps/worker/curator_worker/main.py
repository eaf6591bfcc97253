from __future__ import annotations

import json
import time
from pathlib import Path

from .config import Settings, get_settings
from .tasks import run_batch_search, summarize


def run_cycle(settings: Settings | None = None) -> Path | None:
    settings = settings or get_settings()

    ok, payload = run_batch_search(settings)
    if not ok:
        print(f"[worker] batch status={ok} message={payload.get('error')}")
        return None

    stats = summarize(payload)
    out_dir = Path(settings.worker_output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    out_file = out_dir / "latest.json"
    out_file.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    print(
        f"[worker] queries={stats['queries']} succeeded={stats['succeeded']} "
        f"items={stats['items']} file={out_file}"
    )
    return out_file


def main() -> None:
    settings = get_settings()
    print("[worker] Content Curator worker started")
    while True:
        run_cycle(settings)
        time.sleep(settings.worker_interval_seconds)


if __name__ == "__main__":
    main()
