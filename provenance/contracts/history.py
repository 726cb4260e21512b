"""
Version History Contracts

Immutable versions and the amendments that produced them.

INVARIANTS:
- A Version is never mutated after creation; closing its validity interval
  produces a new Version value with the same fields
- Exactly one version per record group has `valid_to` unset
- The amendment log is append-only, one entry per version after the first
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .base import parse_timestamp
from .records import _freeze_fields


class AmendmentType(Enum):
    """Kinds of operation that can produce a version."""
    ORIGINAL = "original"
    CORRECTION = "correction"
    UPDATE = "update"
    VOID = "void"
    MERGE = "merge"
    RESTORE = "restore"


# Types a caller may submit through `amend`. ORIGINAL is synthesised and
# RESTORE is produced only by `restore_version`.
USER_AMENDMENT_TYPES = frozenset({
    AmendmentType.CORRECTION,
    AmendmentType.UPDATE,
    AmendmentType.VOID,
    AmendmentType.MERGE,
})


class HistoryState(Enum):
    """Per record group state machine."""
    NO_HISTORY = "no_history"
    AMENDED = "amended"
    ARCHIVED = "archived"


@dataclass(frozen=True)
class FieldChange:
    """Old/new pair for one field touched by an amendment."""
    old: Any
    new: Any
    had_old: bool = True


@dataclass(frozen=True)
class Amendment:
    """
    Logged operation that produced a version.

    `snapshot` is the complete field state after the amendment, `changes`
    the per-field diff against the previous version.
    """
    amendment_id: str
    record_group_id: str
    amendment_type: AmendmentType
    produced_version: int
    produced_version_id: str
    previous_version_id: str
    amended_at: datetime
    snapshot: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)
    changes: Tuple[Tuple[str, FieldChange], ...] = field(default_factory=tuple)
    reason: Optional[str] = None
    amended_by: Optional[str] = None
    restored_from: Optional[str] = None

    def __post_init__(self):
        if self.produced_version < 2:
            raise ValueError("Amendments produce version 2 or later")
        amended_at = parse_timestamp(self.amended_at)
        if amended_at is None:
            raise ValueError(f"Amendment amended_at is not a timestamp: {self.amended_at!r}")
        object.__setattr__(self, 'amended_at', amended_at)
        object.__setattr__(self, 'snapshot', _freeze_fields(self.snapshot))
        object.__setattr__(self, 'changes', _freeze_fields(self.changes))

    @property
    def snapshot_values(self) -> Dict[str, Any]:
        return dict(self.snapshot)

    @property
    def change_map(self) -> Dict[str, FieldChange]:
        return dict(self.changes)


@dataclass(frozen=True)
class Version:
    """
    Immutable snapshot of a record group's fields.

    Valid over [valid_from, valid_to); `valid_to` None means current.
    """
    record_group_id: str
    version: int
    version_id: str
    valid_from: datetime
    fields: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)
    valid_to: Optional[datetime] = None
    amendment_type: AmendmentType = AmendmentType.ORIGINAL
    amendment_reason: Optional[str] = None
    restored_from: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'fields', _freeze_fields(self.fields))

    @property
    def is_current(self) -> bool:
        return self.valid_to is None

    @property
    def field_values(self) -> Dict[str, Any]:
        return dict(self.fields)

    def covers(self, instant: datetime) -> bool:
        """Whether this version was the current one at `instant`."""
        if instant < self.valid_from:
            return False
        return self.valid_to is None or instant < self.valid_to

    def summary(self) -> VersionSummary:
        return VersionSummary(
            version_id=self.version_id,
            version=self.version,
            is_current=self.is_current,
            valid_from=self.valid_from,
            valid_to=self.valid_to,
            amendment_type=self.amendment_type,
            amendment_reason=self.amendment_reason,
        )


@dataclass(frozen=True)
class VersionSummary:
    """Display projection of a version, without its field payload."""
    version_id: str
    version: int
    is_current: bool
    valid_from: datetime
    valid_to: Optional[datetime]
    amendment_type: AmendmentType
    amendment_reason: Optional[str] = None


@dataclass(frozen=True)
class VersionSnapshot:
    """Read-only point-in-time projection returned by `view_version`."""
    record_id: str
    record_group_id: str
    version: Version

    @property
    def fields(self) -> Dict[str, Any]:
        return self.version.field_values
