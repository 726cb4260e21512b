"""
Record Contracts

Immutable projections of the lineage-bearing entities (cultures and grows)
and the sub-logs embedded in them (observations, transfers, flushes).

WHY A TAGGED VARIANT:
- Lineage, version and timeline logic must not depend on how a screen
  happens to hold the object
- `kind` selects behaviour; every other field is plain data
- Loosely-typed inputs (ISO strings, lists, dicts) are normalised once here
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from .base import parse_timestamp


class RecordKind(Enum):
    """Kinds of lineage-bearing records."""
    CULTURE = "culture"
    GROW = "grow"


def _freeze_fields(values: object) -> Tuple[Tuple[str, Any], ...]:
    if values is None:
        return ()
    if isinstance(values, Mapping):
        return tuple(sorted(values.items()))
    return tuple(sorted(tuple(pair) for pair in values))


# =============================================================================
# SUB-LOG ENTRIES
# =============================================================================

@dataclass(frozen=True)
class Observation:
    """
    A logged observation on a culture or grow.

    `date` is None when the source value was missing or malformed.
    """
    id: str
    date: Optional[datetime]
    type: str = "general"
    notes: str = ""
    title: Optional[str] = None
    stage: Optional[str] = None
    health_rating: Optional[int] = None
    colonization_percent: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, 'date', parse_timestamp(self.date))


@dataclass(frozen=True)
class Transfer:
    """An outgoing transfer from a culture into another vessel or grow."""
    id: str
    date: Optional[datetime]
    from_id: str
    to_type: str
    quantity: float = 0
    unit: str = ""
    to_id: Optional[str] = None
    notes: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'date', parse_timestamp(self.date))


@dataclass(frozen=True)
class Flush:
    """A harvested flush of a grow."""
    id: str
    harvest_date: Optional[datetime]
    wet_weight: float = 0
    dry_weight: float = 0
    flush_number: Optional[int] = None
    notes: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'harvest_date', parse_timestamp(self.harvest_date))


# =============================================================================
# RECORD
# =============================================================================

@dataclass(frozen=True)
class Record:
    """
    A versionable, lineage-bearing record owned by the backing store.

    The core only reads it. `fields` holds the editable values that versions
    snapshot; everything else is structural.
    """
    id: str
    kind: RecordKind
    created_at: Optional[datetime]
    parent_id: Optional[str] = None
    generation: int = 0
    label: str = ""
    status: str = "active"
    stage: Optional[str] = None
    is_archived: bool = False
    version: int = 1
    record_group_id: Optional[str] = None
    updated_at: Optional[datetime] = None
    fields: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)

    # Embedded sub-logs
    observations: Tuple[Observation, ...] = field(default_factory=tuple)
    transfers: Tuple[Transfer, ...] = field(default_factory=tuple)
    flushes: Tuple[Flush, ...] = field(default_factory=tuple)

    # Culture specifics
    acquisition_method: Optional[str] = None

    # Grow specifics
    source_culture_id: Optional[str] = None
    colonization_started_at: Optional[datetime] = None
    fruiting_started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.id or not isinstance(self.id, str):
            raise ValueError("Record id must be a non-empty string")
        if not isinstance(self.kind, RecordKind):
            object.__setattr__(self, 'kind', RecordKind(self.kind))
        if self.generation is None:
            object.__setattr__(self, 'generation', 0)
        if self.generation < 0:
            raise ValueError("Record generation must not be negative")
        if self.record_group_id is None:
            object.__setattr__(self, 'record_group_id', self.id)

        for name in (
            'created_at', 'updated_at', 'colonization_started_at',
            'fruiting_started_at', 'completed_at'
        ):
            object.__setattr__(self, name, parse_timestamp(getattr(self, name)))

        object.__setattr__(self, 'fields', _freeze_fields(self.fields))
        object.__setattr__(self, 'observations', tuple(self.observations or ()))
        object.__setattr__(self, 'transfers', tuple(self.transfers or ()))
        object.__setattr__(self, 'flushes', tuple(self.flushes or ()))

    @property
    def field_values(self) -> Dict[str, Any]:
        """Editable values as a fresh dict (callers may mutate the copy)."""
        return dict(self.fields)

    @property
    def display_label(self) -> str:
        return self.label or dict(self.fields).get('label') or dict(self.fields).get('name') or self.id
