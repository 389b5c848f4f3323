"""Mark expired auth codes and purge the ones past retention."""

from __future__ import annotations

import argparse
import logging
import threading

from siren.core.config import settings
from siren.db.session import SessionLocal
from siren.services.code_store import CodeStore

logger = logging.getLogger(__name__)


class CodeExpirySweeper:
    """Runs ``CodeStore.sweep_expired`` on a fixed interval in a daemon thread."""

    def __init__(self, code_store: CodeStore, interval_seconds: float | None = None) -> None:
        self.code_store = code_store
        self.interval = interval_seconds or settings.auth_code_sweep_interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="auth-code-sweeper", daemon=True)
        self._thread.start()
        logger.info("Auth code sweeper started (every %ss)", self.interval)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None

    def run_once(self) -> None:
        try:
            self.code_store.sweep_expired()
        except Exception:
            logger.exception("Auth code sweep failed")

    def _run(self) -> None:
        while not self._stop.is_set():
            self.run_once()
            self._stop.wait(self.interval)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Expire and purge authentication codes")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))
    result = CodeStore(SessionLocal).sweep_expired()
    logger.info("Sweep complete: %s expired, %s purged", result.expired, result.purged)


if __name__ == "__main__":
    main()
