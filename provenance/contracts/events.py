"""
Timeline Event Contracts

Normalised, read-only projections of historical occurrences.
Never persisted - recomputed from source data on every read.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, FrozenSet, Iterable, Optional, Tuple

from .base import TimeRange


class TimelineEventType(Enum):
    """Closed set of event type tags accepted by timeline filters."""
    CREATED = "created"
    STATUS_CHANGE = "status_change"
    STAGE_CHANGE = "stage_change"
    OBSERVATION = "observation"
    CONTAMINATION = "contamination"
    TRANSFER_OUT = "transfer_out"
    TRANSFER_IN = "transfer_in"
    HARVEST = "harvest"
    AMENDMENT = "amendment"
    ARCHIVE = "archive"


@dataclass(frozen=True)
class TimelineEvent:
    """
    One entry on a record's timeline.

    `metadata` is a tuple of (key, value) pairs to keep the event hashable.
    """
    id: str
    type: TimelineEventType
    timestamp: datetime
    title: str
    color: str
    icon: str
    description: Optional[str] = None
    metadata: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)

    def meta(self, key: str, default: Any = None) -> Any:
        for k, v in self.metadata:
            if k == key:
                return v
        return default


@dataclass(frozen=True)
class TimelineGroup:
    """Events sharing one calendar date in the display timezone."""
    date: str
    label: str
    events: Tuple[TimelineEvent, ...]


@dataclass(frozen=True)
class TimelineFilter:
    """
    Type and date-range filter.

    An empty type set means "no type filtering", never "exclude all".
    """
    types: FrozenSet[TimelineEventType] = field(default_factory=frozenset)
    time_range: TimeRange = field(default_factory=TimeRange)

    def __post_init__(self):
        object.__setattr__(self, 'types', frozenset(
            t if isinstance(t, TimelineEventType) else TimelineEventType(t)
            for t in (self.types or ())
        ))

    @staticmethod
    def of(types: Iterable[object] = (), start: Optional[datetime] = None,
           end: Optional[datetime] = None) -> TimelineFilter:
        return TimelineFilter(types=frozenset(types), time_range=TimeRange(start, end))

    @property
    def is_empty(self) -> bool:
        return not self.types and self.time_range.is_unbounded

    def accepts(self, event: TimelineEvent) -> bool:
        if self.types and event.type not in self.types:
            return False
        return self.time_range.contains(event.timestamp)
