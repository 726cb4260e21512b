"""
Temporal Layer
==============

Version history and injectable time.

Modules:
- clock: live/frozen clock used for every timestamp the core produces
- versioning: derived version lists, point-in-time reads, amend and restore

INVARIANTS:
- History is append-only; restore adds a version, never rewinds one
- No component reads system time except through LogicalClock
"""

from .clock import LogicalClock
from .versioning import RecordHistory, VersionStore, derive_versions, diff_fields

__all__ = [
    'LogicalClock',
    'RecordHistory',
    'VersionStore',
    'derive_versions',
    'diff_fields',
]
