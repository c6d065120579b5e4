"""Domain event outbox runner.

Safe to run from cron: delivers due outbox rows once and exits. Use
`--loop` to keep polling (retries follow the dispatcher backoff).
"""

from __future__ import annotations

import argparse
import logging

from hssedb.apps.events import dispatcher
from hssedb.database import WriteSessionLocal


def run() -> dict:
    db = WriteSessionLocal()
    try:
        delivered = dispatcher.dispatch_pending(db)
        return {"delivered": delivered}
    finally:
        db.close()


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Deliver pending domain events")
    parser.add_argument("--loop", action="store_true", help="keep polling the outbox")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    if args.loop:
        dispatcher.run_dispatch_loop()
        return
    result = run()
    print("Event dispatch runner completed:", result)


if __name__ == "__main__":
    main()
