"""
Observability Layer

RESPONSIBILITY: Collect data-quality signals raised while deriving views
ALLOWED INPUTS: Signals from lineage, temporal and timeline components
OUTPUTS: Append-only, filterable DiagnosticEntry lists

WHAT THIS LAYER MUST NOT DO:
============================
- Modify system behavior
- Filter or interpret signals on the way in (only record them)
- Block or delay the component that raised the signal

A traversal guard trip, a dropped timeline event or a rejected write is
written to the standard logger by the component itself. The collector keeps
the same signal as data so an embedding application can forward it to its
own telemetry.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple
import threading

from ..contracts.base import ErrorCode, TimeRange, utc_now


@dataclass(frozen=True)
class DiagnosticEntry:
    """One recorded signal."""
    sequence: int
    code: ErrorCode
    component: str
    record_id: str
    message: str
    timestamp: datetime
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)


class DiagnosticsCollector:
    """
    Append-only collector shared by all components of one service.

    Collectors receive copies of signals; entries are never modified.
    """

    def __init__(self):
        self._entries: List[DiagnosticEntry] = []
        self._lock = threading.Lock()

    def collect(
        self,
        code: ErrorCode,
        component: str,
        record_id: str,
        message: str,
        **context: object
    ) -> DiagnosticEntry:
        """Record a signal (append-only)."""
        with self._lock:
            entry = DiagnosticEntry(
                sequence=len(self._entries) + 1,
                code=code,
                component=component,
                record_id=record_id,
                message=message,
                timestamp=utc_now(),
                context=tuple((k, str(v)) for k, v in context.items()),
            )
            self._entries.append(entry)
        return entry

    def get_entries(
        self,
        code: Optional[ErrorCode] = None,
        record_id: Optional[str] = None,
        time_range: Optional[TimeRange] = None
    ) -> List[DiagnosticEntry]:
        """Get entries, optionally filtered."""
        with self._lock:
            entries = list(self._entries)

        if code is not None:
            entries = [e for e in entries if e.code == code]
        if record_id is not None:
            entries = [e for e in entries if e.record_id == record_id]
        if time_range is not None:
            entries = [e for e in entries if time_range.contains(e.timestamp)]
        return entries

    def counts(self) -> Dict[ErrorCode, int]:
        """Number of entries per signal code."""
        totals: Dict[ErrorCode, int] = {}
        for entry in self.get_entries():
            totals[entry.code] = totals.get(entry.code, 0) + 1
        return totals

    @property
    def entry_count(self) -> int:
        with self._lock:
            return len(self._entries)
