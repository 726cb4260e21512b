"""
Contracts Module

This module defines the explicit interfaces and data transfer objects
that form the contracts between layers. All inter-layer communication
MUST use these contracts. No layer may import implementation details
from another layer.

DESIGN PRINCIPLES:
==================
1. All contract types are immutable (frozen dataclasses)
2. All write contracts include explicit error states
3. Missing data is represented explicitly (None, empty tuples), never guessed
4. All timestamps use UTC and are never mutated
5. Hash-based identity for versions and amendments
"""

from .base import Error, ErrorCode, Result, TimeRange
from .records import Flush, Observation, Record, RecordKind, Transfer
from .history import (
    Amendment, AmendmentType, FieldChange, HistoryState,
    Version, VersionSnapshot, VersionSummary,
)
from .events import TimelineEvent, TimelineEventType, TimelineFilter, TimelineGroup
from .views import (
    DataQualityWarning, LineageView, RecordSummary,
    TimelineView, VersionHistoryView,
)

__all__ = [
    'Error', 'ErrorCode', 'Result', 'TimeRange',
    'Flush', 'Observation', 'Record', 'RecordKind', 'Transfer',
    'Amendment', 'AmendmentType', 'FieldChange', 'HistoryState',
    'Version', 'VersionSnapshot', 'VersionSummary',
    'TimelineEvent', 'TimelineEventType', 'TimelineFilter', 'TimelineGroup',
    'DataQualityWarning', 'LineageView', 'RecordSummary',
    'TimelineView', 'VersionHistoryView',
]
