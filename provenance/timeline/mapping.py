"""
Timeline Source Mapping
=======================

Turns each source collection of a record into candidate timeline events.

EXTENSION POINT:
================
Adding a source or an event subtype touches only this module:
1. Add a style to EVENT_STYLES
2. Register a mapper with @source_mapper

Mappers never sort, filter or validate timestamps. A candidate whose source
timestamp is missing or malformed is still yielded with `timestamp=None`;
the aggregator decides what to do with it.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, FrozenSet, Iterator, List, Optional, Tuple

from ..contracts.events import TimelineEvent, TimelineEventType
from ..contracts.history import Amendment, AmendmentType
from ..contracts.records import Observation, Record, RecordKind


GROW_STAGE_ORDER = ('spawning', 'colonization', 'fruiting', 'harvesting', 'completed')


@dataclass(frozen=True)
class EventStyle:
    """Display attributes shared by every event of one style."""
    type: TimelineEventType
    icon: str
    color: str
    title: str


EVENT_STYLES: Dict[str, EventStyle] = {
    'culture_created': EventStyle(TimelineEventType.CREATED, '🌱', 'emerald', 'Culture created'),
    'grow_created': EventStyle(TimelineEventType.CREATED, '🌱', 'emerald', 'Grow started'),
    'transfer_in': EventStyle(TimelineEventType.TRANSFER_IN, '⬅️', 'purple', 'Transferred in from {origin}'),
    'spawned_in': EventStyle(TimelineEventType.TRANSFER_IN, '⬅️', 'purple', 'Spawned from culture {origin}'),
    'culture_observation': EventStyle(TimelineEventType.OBSERVATION, '📋', 'zinc', '{subtype} observation'),
    'grow_observation': EventStyle(TimelineEventType.OBSERVATION, '📋', 'zinc', '{subtype} logged'),
    'contamination': EventStyle(TimelineEventType.CONTAMINATION, '⚠️', 'red', 'Contamination detected'),
    'transfer_out': EventStyle(TimelineEventType.TRANSFER_OUT, '➡️', 'purple', 'Transfer recorded'),
    'status_contaminated': EventStyle(TimelineEventType.STATUS_CHANGE, '🔴', 'red', 'Status changed to Contaminated'),
    'status_depleted': EventStyle(TimelineEventType.STATUS_CHANGE, '💧', 'amber', 'Status changed to Depleted'),
    'stage_colonization': EventStyle(TimelineEventType.STAGE_CHANGE, '🔄', 'blue', 'Entered colonization stage'),
    'stage_fruiting': EventStyle(TimelineEventType.STAGE_CHANGE, '🍄', 'green', 'Entered fruiting stage'),
    'harvest': EventStyle(TimelineEventType.HARVEST, '🍄', 'green', 'Flush {number} harvested'),
    'grow_failed': EventStyle(TimelineEventType.STATUS_CHANGE, '❌', 'red', 'Grow marked as failed'),
    'grow_completed': EventStyle(TimelineEventType.STATUS_CHANGE, '✅', 'emerald', 'Grow completed'),
    'amendment': EventStyle(TimelineEventType.AMENDMENT, '📝', 'blue', 'Record {action} (version {version})'),
    'archive': EventStyle(TimelineEventType.ARCHIVE, '📦', 'zinc', '{noun} archived'),
}


@dataclass(frozen=True)
class TimelineSource:
    """Everything a mapper may read for one record."""
    record: Record
    amendments: Tuple[Amendment, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CandidateEvent:
    """A mapped event before timestamp validation."""
    id: str
    style: str
    timestamp: Optional[datetime]
    source: str
    description: Optional[str] = None
    metadata: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)
    title_args: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)

    def to_event(self) -> TimelineEvent:
        if self.timestamp is None:
            raise ValueError(f"Candidate {self.id} has no timestamp")
        style = EVENT_STYLES[self.style]
        return TimelineEvent(
            id=self.id,
            type=style.type,
            timestamp=self.timestamp,
            title=style.title.format(**dict(self.title_args)),
            color=style.color,
            icon=style.icon,
            description=self.description or None,
            metadata=self.metadata,
        )


def candidate(
    event_id: str,
    style: str,
    timestamp: Optional[datetime],
    source: str,
    description: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    **title_args: Any
) -> CandidateEvent:
    """Build a candidate; metadata entries whose value is None are omitted."""
    if style not in EVENT_STYLES:
        raise KeyError(f"Unknown event style: {style}")
    return CandidateEvent(
        id=event_id,
        style=style,
        timestamp=timestamp,
        source=source,
        description=description,
        metadata=tuple((k, v) for k, v in (metadata or {}).items() if v is not None),
        title_args=tuple(title_args.items()),
    )


# =============================================================================
# REGISTRY
# =============================================================================

Mapper = Callable[[TimelineSource], Iterator[CandidateEvent]]

_SOURCE_MAPPERS: List[Tuple[FrozenSet[RecordKind], Mapper]] = []


def source_mapper(*kinds: RecordKind) -> Callable[[Mapper], Mapper]:
    """Register a mapper for the given record kinds (all kinds if none given)."""
    applies_to = frozenset(kinds or tuple(RecordKind))

    def register(fn: Mapper) -> Mapper:
        _SOURCE_MAPPERS.append((applies_to, fn))
        return fn
    return register


def map_sources(source: TimelineSource) -> List[CandidateEvent]:
    """
    Run every registered mapper for the record's kind.

    Output order is registration order, then each source's own order; the
    aggregator's stable sort uses it to break timestamp ties.
    """
    candidates: List[CandidateEvent] = []
    for kinds, mapper in _SOURCE_MAPPERS:
        if source.record.kind in kinds:
            candidates.extend(mapper(source))
    return candidates


def registered_mappers() -> List[str]:
    return [fn.__name__ for _, fn in _SOURCE_MAPPERS]


# =============================================================================
# MAPPERS (registration order is tie-break order)
# =============================================================================

@source_mapper(RecordKind.CULTURE)
def culture_creation(source: TimelineSource) -> Iterator[CandidateEvent]:
    record = source.record
    if record.acquisition_method == 'purchased':
        description = 'Purchased from supplier'
    elif record.parent_id:
        description = 'Created from transfer'
    else:
        description = 'Created in lab'
    yield candidate(
        f"created-{record.id}", 'culture_created', record.created_at, 'record.created_at',
        description=description,
    )


@source_mapper(RecordKind.GROW)
def grow_creation(source: TimelineSource) -> Iterator[CandidateEvent]:
    record = source.record
    yield candidate(
        f"created-{record.id}", 'grow_created', record.created_at, 'record.created_at',
        description=record.field_values.get('notes'),
    )


@source_mapper()
def transfer_in(source: TimelineSource) -> Iterator[CandidateEvent]:
    record = source.record
    if record.parent_id:
        yield candidate(
            f"transfer-in-{record.id}", 'transfer_in', record.created_at, 'record.parent_id',
            metadata={'related_entity_id': record.parent_id},
            origin=record.parent_id,
        )
    if record.kind is RecordKind.GROW and record.source_culture_id:
        yield candidate(
            f"spawned-in-{record.id}", 'spawned_in', record.created_at, 'record.source_culture_id',
            metadata={'related_entity_id': record.source_culture_id},
            origin=record.source_culture_id,
        )


def _observation_candidate(record: Record, obs: Observation) -> CandidateEvent:
    if obs.type == 'contamination':
        style = 'contamination'
    elif record.kind is RecordKind.GROW:
        style = 'grow_observation'
    else:
        style = 'culture_observation'
    return candidate(
        f"obs-{obs.id}", style, obs.date, 'observations',
        description=obs.notes,
        metadata={
            'observation_type': obs.type,
            'health_rating': obs.health_rating,
            'colonization_percent': obs.colonization_percent,
        },
        subtype=obs.type[:1].upper() + obs.type[1:],
    )


@source_mapper()
def observations(source: TimelineSource) -> Iterator[CandidateEvent]:
    for obs in source.record.observations:
        yield _observation_candidate(source.record, obs)


@source_mapper(RecordKind.CULTURE)
def transfers_out(source: TimelineSource) -> Iterator[CandidateEvent]:
    for transfer in source.record.transfers:
        yield candidate(
            f"transfer-{transfer.id}", 'transfer_out', transfer.date, 'transfers',
            description=' '.join(
                part for part in (f"{transfer.quantity:g}", transfer.unit, 'transferred to', transfer.to_type)
                if part
            ),
            metadata={'related_entity_id': transfer.to_id, 'to_type': transfer.to_type},
        )


@source_mapper(RecordKind.CULTURE)
def culture_status(source: TimelineSource) -> Iterator[CandidateEvent]:
    record = source.record
    if record.status == 'contaminated':
        contamination = _first_contamination(record)
        when = contamination.date if contamination is not None else record.updated_at
        yield candidate(
            f"status-contam-{record.id}", 'status_contaminated', when, 'record.status',
            metadata={'old_value': 'active', 'new_value': 'contaminated'},
        )
    elif record.status == 'depleted':
        yield candidate(
            f"status-depleted-{record.id}", 'status_depleted', record.updated_at, 'record.status',
            description='Culture volume exhausted',
            metadata={'old_value': 'active', 'new_value': 'depleted'},
        )


@source_mapper(RecordKind.GROW)
def grow_stages(source: TimelineSource) -> Iterator[CandidateEvent]:
    record = source.record
    stage_index = GROW_STAGE_ORDER.index(record.stage) if record.stage in GROW_STAGE_ORDER else -1
    # Stage dates only count once the grow has actually reached the stage
    if record.colonization_started_at is not None and stage_index >= 1:
        yield candidate(
            f"stage-colonization-{record.id}", 'stage_colonization',
            record.colonization_started_at, 'record.colonization_started_at',
            metadata={'old_value': 'spawning', 'new_value': 'colonization'},
        )
    if record.fruiting_started_at is not None and stage_index >= 2:
        yield candidate(
            f"stage-fruiting-{record.id}", 'stage_fruiting',
            record.fruiting_started_at, 'record.fruiting_started_at',
            metadata={'old_value': 'colonization', 'new_value': 'fruiting'},
        )


@source_mapper(RecordKind.GROW)
def harvests(source: TimelineSource) -> Iterator[CandidateEvent]:
    for index, flush in enumerate(source.record.flushes):
        yield candidate(
            f"harvest-{flush.id}", 'harvest', flush.harvest_date, 'flushes',
            description=flush.notes,
            metadata={'wet_weight': flush.wet_weight, 'dry_weight': flush.dry_weight},
            number=flush.flush_number or index + 1,
        )


@source_mapper(RecordKind.GROW)
def grow_outcome(source: TimelineSource) -> Iterator[CandidateEvent]:
    record = source.record
    if record.status == 'failed' or record.stage == 'contaminated':
        contamination = _first_contamination(record)
        if contamination is not None:
            when = contamination.date
        else:
            when = record.completed_at or record.created_at
        yield candidate(
            f"status-failed-{record.id}", 'grow_failed', when, 'record.status',
            metadata={'new_value': 'failed'},
        )
    if record.stage == 'completed' and record.completed_at is not None:
        yield candidate(
            f"status-completed-{record.id}", 'grow_completed', record.completed_at, 'record.completed_at',
            metadata={'new_value': 'completed'},
        )


_AMENDMENT_ACTIONS = {
    AmendmentType.CORRECTION: 'corrected',
    AmendmentType.UPDATE: 'updated',
    AmendmentType.VOID: 'voided',
    AmendmentType.MERGE: 'merged',
    AmendmentType.RESTORE: 'restored',
}


@source_mapper()
def amendments(source: TimelineSource) -> Iterator[CandidateEvent]:
    for amendment in source.amendments:
        changed = sorted(amendment.change_map)
        yield candidate(
            f"amendment-{amendment.amendment_id}", 'amendment', amendment.amended_at, 'amendments',
            description=amendment.reason,
            metadata={
                'amendment_type': amendment.amendment_type.value,
                'version_id': amendment.produced_version_id,
                'changed_fields': ', '.join(changed) if changed else None,
                'restored_from': amendment.restored_from,
                'amended_by': amendment.amended_by,
            },
            action=_AMENDMENT_ACTIONS.get(amendment.amendment_type, 'amended'),
            version=amendment.produced_version,
        )


@source_mapper()
def archive(source: TimelineSource) -> Iterator[CandidateEvent]:
    record = source.record
    if record.is_archived or record.status == 'archived':
        yield candidate(
            f"archive-{record.id}", 'archive', record.updated_at, 'record.updated_at',
            noun='Culture' if record.kind is RecordKind.CULTURE else 'Grow',
        )


def _first_contamination(record: Record) -> Optional[Observation]:
    for obs in record.observations:
        if obs.type == 'contamination':
            return obs
    return None
