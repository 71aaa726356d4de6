"""
delivery_auth.clock

Wall-clock helpers.

Responsibilities:
- Provide epoch-millisecond and ISO-8601 timestamps used by the session cache.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], int]


def epoch_ms() -> int:
    return int(time.time() * 1000)


def iso_from_ms(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=UTC).isoformat()


# --- Module Notes -----------------------------------------------------------
# Components accept a `Clock` so tests can pin "now" without monkeypatching `time`.
