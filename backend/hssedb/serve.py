"""
Run the API under uvicorn.

Environment: HOST, PORT, RELOAD, LOG_LEVEL, WEB_CONCURRENCY, FORWARDED_ALLOW_IPS,
SSL_CERTFILE / SSL_KEYFILE, and EVENT_DISPATCH_IN_PROCESS to run the outbox
dispatcher loop in a background thread of this process (single-worker setups
without a separate `hsse-dispatch-events --loop`).
"""

import logging
import os
import threading
from typing import Any, Dict

import uvicorn

logger = logging.getLogger(__name__)

_TRUE = {"1", "true", "yes", "on"}


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUE


def uvicorn_options() -> Dict[str, Any]:
    log_level = os.getenv("LOG_LEVEL", "info").lower()
    options: Dict[str, Any] = {
        "host": os.getenv("HOST", "0.0.0.0"),
        "port": int(os.getenv("PORT", "8000")),
        "reload": _flag("RELOAD"),
        "log_level": log_level,
        "proxy_headers": True,
        "forwarded_allow_ips": os.getenv("FORWARDED_ALLOW_IPS", "*"),
    }
    workers = os.getenv("WEB_CONCURRENCY")
    if workers and not options["reload"]:
        options["workers"] = int(workers)
    for env_name, option in (("SSL_CERTFILE", "ssl_certfile"), ("SSL_KEYFILE", "ssl_keyfile")):
        value = os.getenv(env_name)
        if value:
            options[option] = value
    return options


def _start_dispatcher_thread() -> threading.Thread:
    from hssedb.apps.events.dispatcher import run_dispatch_loop

    thread = threading.Thread(target=run_dispatch_loop, name="outbox-dispatcher", daemon=True)
    thread.start()
    logger.info("Started in-process outbox dispatcher")
    return thread


def main() -> None:
    options = uvicorn_options()
    logging.basicConfig(level=options["log_level"].upper())

    if _flag("EVENT_DISPATCH_IN_PROCESS"):
        if options["reload"] or options.get("workers", 1) > 1:
            logger.warning("EVENT_DISPATCH_IN_PROCESS ignored with reload or multiple workers")
        else:
            _start_dispatcher_thread()

    uvicorn.run("hssedb.main:app", **options)


if __name__ == "__main__":
    main()
