"""
Logical Clock for Deterministic History
=======================================

Injectable clock used for amendment timestamps and relative date labels.

MODES:
- LIVE: reads system time on every call
- FROZEN: returns a fixed instant until explicitly advanced

GUARANTEES:
- Same writes + same frozen instants = identical version histories
- Never reads system time outside LIVE mode
- Reading the clock keeps no per-call state beyond a read counter
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..contracts.base import to_utc


@dataclass
class LogicalClock:
    """
    Injectable clock for deterministic execution.

    All time reads in the core go through `now()`, so a frozen clock
    reproduces the same validity intervals byte for byte.
    """
    _frozen_at: Optional[datetime] = None
    _reads: int = 0

    def now(self) -> datetime:
        """
        Get current logical time.

        In LIVE mode: reads system time
        In FROZEN mode: returns the frozen instant
        """
        self._reads += 1
        if self._frozen_at is not None:
            return self._frozen_at
        return datetime.now(timezone.utc)

    def advance(self, delta: timedelta) -> datetime:
        """Move a frozen clock forward; returns the new instant."""
        if self._frozen_at is None:
            raise RuntimeError("Only a frozen clock can be advanced")
        self._frozen_at = self._frozen_at + delta
        return self._frozen_at

    def tick_count(self) -> int:
        """Number of times `now()` has been read."""
        return self._reads

    def is_live(self) -> bool:
        return self._frozen_at is None

    @classmethod
    def live(cls) -> 'LogicalClock':
        """Create clock in LIVE mode (uses system time)."""
        return cls()

    @classmethod
    def frozen(cls, instant: datetime) -> 'LogicalClock':
        """Create clock pinned to `instant`."""
        return cls(_frozen_at=to_utc(instant))

    def __repr__(self) -> str:
        mode = "LIVE" if self.is_live() else f"FROZEN at {self._frozen_at.isoformat()}"
        return f"LogicalClock({mode}, reads={self._reads})"
