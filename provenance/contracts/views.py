"""
Read Model Contracts

Serialisable projections handed to the presentation layer.

EXPLICIT ABSENCE:
=================
Every view can be empty. An empty view is a valid, displayable state -
distinct from an error - and carries warnings rather than raising.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

from .base import ErrorCode
from .events import TimelineEvent, TimelineGroup
from .history import Amendment, HistoryState, VersionSummary
from .records import Record, RecordKind


@dataclass(frozen=True)
class RecordSummary:
    """Minimal record projection for lineage lists."""
    id: str
    kind: RecordKind
    label: str
    status: str
    generation: int
    parent_id: Optional[str]
    created_at: Optional[datetime]
    is_archived: bool = False

    @staticmethod
    def of(record: Record) -> RecordSummary:
        return RecordSummary(
            id=record.id,
            kind=record.kind,
            label=record.display_label,
            status=record.status,
            generation=record.generation,
            parent_id=record.parent_id,
            created_at=record.created_at,
            is_archived=record.is_archived,
        )


@dataclass(frozen=True)
class DataQualityWarning:
    """
    Data-quality signal attached to a view.

    Rendered (or not) by the UI; never blocks computation.
    """
    code: ErrorCode
    message: str
    record_id: str
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class LineageView:
    record_id: str
    kind: RecordKind
    generation: int
    ancestors: Tuple[RecordSummary, ...] = field(default_factory=tuple)
    descendants: Tuple[RecordSummary, ...] = field(default_factory=tuple)
    direct_children: Tuple[RecordSummary, ...] = field(default_factory=tuple)
    truncated: bool = False
    warnings: Tuple[DataQualityWarning, ...] = field(default_factory=tuple)

    @property
    def total_descendants(self) -> int:
        return len(self.descendants)

    @property
    def has_lineage(self) -> bool:
        return bool(self.ancestors or self.direct_children)


@dataclass(frozen=True)
class VersionHistoryView:
    record_id: str
    record_group_id: str
    state: HistoryState
    versions: Tuple[VersionSummary, ...] = field(default_factory=tuple)
    amendments: Tuple[Amendment, ...] = field(default_factory=tuple)
    is_archived: bool = False
    warnings: Tuple[DataQualityWarning, ...] = field(default_factory=tuple)

    @property
    def current(self) -> Optional[VersionSummary]:
        for summary in self.versions:
            if summary.is_current:
                return summary
        return None


@dataclass(frozen=True)
class TimelineView:
    record_id: str
    events: Tuple[TimelineEvent, ...] = field(default_factory=tuple)
    groups: Tuple[TimelineGroup, ...] = field(default_factory=tuple)
    dropped_count: int = 0
    warnings: Tuple[DataQualityWarning, ...] = field(default_factory=tuple)
