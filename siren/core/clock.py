from datetime import UTC, datetime
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how TIMESTAMP columns round-trip."""
    return datetime.now(UTC).replace(tzinfo=None)
