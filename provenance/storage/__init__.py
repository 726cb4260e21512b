"""
Storage Collaborators

RESPONSIBILITY: Keyed record lookup and the append-only amendment log
ALLOWED INPUTS: Records and Amendments from the hosting application
OUTPUTS: Records, Amendments, materialised Versions

WHAT THIS LAYER MUST NOT DO:
============================
- Derive lineage or timelines
- Modify or delete an appended amendment
- Decide whether a write is allowed (the VersionStore does)

BOUNDARY ENFORCEMENT:
=====================
The interfaces below are what the core consumes. A database-backed
application implements them over its own tables; the in-memory versions
back tests and embedded use. `list_by_parent` is expected to be an indexed
lookup, never a full scan.
"""

from __future__ import annotations
from typing import Dict, Iterable, List, Optional, Tuple
import threading

from ..contracts.base import make_version_id
from ..contracts.history import Amendment, Version
from ..contracts.records import Record, RecordKind


class VersionConflict(Exception):
    """Raised when an appended amendment does not extend the group's head."""

    def __init__(self, record_group_id: str, expected: int, actual: int):
        super().__init__(
            f"Record group {record_group_id}: expected version {expected}, got {actual}"
        )
        self.record_group_id = record_group_id
        self.expected = expected
        self.actual = actual


# =============================================================================
# RECORD REPOSITORY
# =============================================================================

class RecordRepository:
    """
    Abstract keyed lookup of records by kind and id.

    Implementations may raise on transport failures; the core treats any
    exception as "unresolved" and degrades.
    """

    def get_by_id(self, kind: RecordKind, record_id: str) -> Optional[Record]:
        raise NotImplementedError

    def list_by_parent(self, kind: RecordKind, parent_id: str) -> List[Record]:
        raise NotImplementedError

    def list_all(self, kind: RecordKind) -> List[Record]:
        raise NotImplementedError


class InMemoryRecordRepository(RecordRepository):
    """
    Dictionary-backed repository with a parent index.

    Records are immutable values; `put` replaces the stored value for an id.
    """

    def __init__(self, records: Iterable[Record] = ()):
        self._records: Dict[Tuple[RecordKind, str], Record] = {}
        self._order: List[Tuple[RecordKind, str]] = []
        self._children: Dict[Tuple[RecordKind, str], List[str]] = {}
        for record in records:
            self.put(record)

    def put(self, record: Record) -> None:
        key = (record.kind, record.id)
        previous = self._records.get(key)
        if previous is None:
            self._order.append(key)
        elif previous.parent_id:
            siblings = self._children.get((record.kind, previous.parent_id), [])
            if record.id in siblings:
                siblings.remove(record.id)

        self._records[key] = record
        if record.parent_id:
            self._children.setdefault((record.kind, record.parent_id), []).append(record.id)

    def get_by_id(self, kind: RecordKind, record_id: str) -> Optional[Record]:
        return self._records.get((kind, record_id))

    def list_by_parent(self, kind: RecordKind, parent_id: str) -> List[Record]:
        child_ids = self._children.get((kind, parent_id), [])
        return [self._records[(kind, cid)] for cid in child_ids]

    def list_all(self, kind: RecordKind) -> List[Record]:
        return [self._records[key] for key in self._order if key[0] == kind]

    def __len__(self) -> int:
        return len(self._records)


# =============================================================================
# AMENDMENT LOG
# =============================================================================

class AmendmentLog:
    """
    Abstract append-only amendment log.

    `append` returns the Version the amendment produced. The log never
    rewrites an entry; closing the previous version's validity interval is
    a derived fact, not a stored mutation.
    """

    def list_by_record_group(self, record_group_id: str) -> List[Amendment]:
        raise NotImplementedError

    def append(self, amendment: Amendment) -> Version:
        raise NotImplementedError


class InMemoryAmendmentLog(AmendmentLog):
    """
    Append-only in-memory log, one list per record group.

    GUARANTEES:
    - Entries are never updated or removed
    - `produced_version` must extend the group's head by exactly one
    - `previous_version_id` must name the version being superseded
    - Appends to one group are atomic with respect to readers
    """

    def __init__(self):
        self._entries: Dict[str, List[Amendment]] = {}
        self._lock = threading.Lock()

    def list_by_record_group(self, record_group_id: str) -> List[Amendment]:
        with self._lock:
            return list(self._entries.get(record_group_id, ()))

    def append(self, amendment: Amendment) -> Version:
        with self._lock:
            entries = self._entries.setdefault(amendment.record_group_id, [])
            # The first entry may extend a synthetic base version of any number
            expected = entries[-1].produced_version + 1 if entries else amendment.produced_version
            if amendment.produced_version != expected:
                raise VersionConflict(
                    amendment.record_group_id, expected, amendment.produced_version
                )
            expected_previous = make_version_id(amendment.record_group_id, amendment.produced_version - 1)
            if amendment.previous_version_id != expected_previous:
                raise VersionConflict(
                    amendment.record_group_id, expected, amendment.produced_version
                )
            entries.append(amendment)

        return Version(
            record_group_id=amendment.record_group_id,
            version=amendment.produced_version,
            version_id=amendment.produced_version_id,
            valid_from=amendment.amended_at,
            fields=amendment.snapshot,
            valid_to=None,
            amendment_type=amendment.amendment_type,
            amendment_reason=amendment.reason,
            restored_from=amendment.restored_from,
        )