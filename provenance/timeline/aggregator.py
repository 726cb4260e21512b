"""
Timeline Aggregator
===================

Merges a record's source collections into one filtered, ordered, grouped
timeline.

PIPELINE:
1. Map every source (mapping.map_sources)
2. Drop candidates without a usable timestamp (logged, counted)
3. Filter by type set and optional date bounds
4. Stable sort by timestamp, newest first
5. Group by calendar date in the display timezone

GUARANTEES:
- Output is a pure function of (record, amendments, filter, reference date)
- Ties keep source order; nothing is reordered by id or title
- One bad source entry never aborts the rest of the timeline
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Tuple
import logging

from ..config import ProvenanceConfig
from ..contracts.base import ErrorCode, to_utc
from ..contracts.events import TimelineEvent, TimelineFilter, TimelineGroup
from ..contracts.history import Amendment
from ..contracts.records import Record
from ..observability import DiagnosticsCollector
from ..temporal.clock import LogicalClock

from .mapping import CandidateEvent, TimelineSource, map_sources

logger = logging.getLogger(__name__)

COMPONENT = "timeline"


@dataclass(frozen=True)
class AggregatedTimeline:
    """Flat and grouped renditions of the same event sequence."""
    record_id: str
    timeline: Tuple[TimelineEvent, ...] = field(default_factory=tuple)
    grouped_timeline: Tuple[TimelineGroup, ...] = field(default_factory=tuple)
    dropped_count: int = 0
    dropped_ids: Tuple[str, ...] = field(default_factory=tuple)


def format_date_label(day: date, today: date) -> str:
    """'Today', 'Yesterday', else e.g. 'Dec 5, 2024'."""
    if day == today:
        return "Today"
    if day == today - timedelta(days=1):
        return "Yesterday"
    return f"{day:%b} {day.day}, {day.year}"


class TimelineAggregator:
    """
    Builds timelines for culture and grow records.

    Holds configuration and the clock only; every call starts from scratch.
    """

    def __init__(
        self,
        config: Optional[ProvenanceConfig] = None,
        clock: Optional[LogicalClock] = None,
        diagnostics: Optional[DiagnosticsCollector] = None
    ):
        self._config = config or ProvenanceConfig()
        self._clock = clock or LogicalClock.live()
        self._diagnostics = diagnostics

    def aggregate(
        self,
        record: Record,
        amendments: Iterable[Amendment] = (),
        filter: Optional[TimelineFilter] = None,
        reference_time: Optional[datetime] = None
    ) -> AggregatedTimeline:
        candidates = map_sources(TimelineSource(record=record, amendments=tuple(amendments)))

        events: List[TimelineEvent] = []
        dropped: List[str] = []
        for item in candidates:
            event = self._materialise(record.id, item)
            if event is None:
                dropped.append(item.id)
            else:
                events.append(event)

        if filter is not None and not filter.is_empty:
            events = [e for e in events if filter.accepts(e)]

        # sorted() is stable with reverse=True: equal timestamps keep source order
        events = sorted(events, key=lambda e: e.timestamp, reverse=True)

        reference = reference_time if reference_time is not None else self._clock.now()
        groups = self.group(events, self.local_date(reference))

        return AggregatedTimeline(
            record_id=record.id,
            timeline=tuple(events),
            grouped_timeline=groups,
            dropped_count=len(dropped),
            dropped_ids=tuple(dropped),
        )

    def group(self, events: List[TimelineEvent], today: date) -> Tuple[TimelineGroup, ...]:
        """
        Bucket already-sorted events by local calendar date.

        Buckets appear in first-seen order, which for sorted input is newest
        first; events inside a bucket keep the global order.
        """
        buckets: List[Tuple[date, List[TimelineEvent]]] = []
        for event in events:
            day = self.local_date(event.timestamp)
            if buckets and buckets[-1][0] == day:
                buckets[-1][1].append(event)
            else:
                buckets.append((day, [event]))
        return tuple(
            TimelineGroup(
                date=day.isoformat(),
                label=format_date_label(day, today),
                events=tuple(bucket),
            )
            for day, bucket in buckets
        )

    def local_date(self, instant: datetime) -> date:
        return to_utc(instant).astimezone(self._config.tzinfo).date()

    def _materialise(self, record_id: str, item: CandidateEvent) -> Optional[TimelineEvent]:
        if not isinstance(item.timestamp, datetime):
            message = f"Dropped timeline event {item.id}: missing or malformed timestamp in {item.source}"
            logger.warning(message)
            if self._diagnostics is not None:
                self._diagnostics.collect(
                    ErrorCode.MALFORMED_SOURCE_EVENT, COMPONENT, record_id, message,
                    event_id=item.id, source=item.source,
                )
            return None
        return item.to_event()
