"""
Provenance Test Fixtures

Factories for records, collaborators and services used across test layers.

RULES:
======
1. All timestamps are explicit and UTC; nothing reads the wall clock
2. Broken data (dangling parents, cycles, bad dates) is built on purpose,
   never by accident
"""

from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from provenance.config import ProvenanceConfig
from provenance.contracts.base import make_version_id
from provenance.contracts.history import Amendment, AmendmentType, FieldChange
from provenance.contracts.records import Record, RecordKind
from provenance.observability import DiagnosticsCollector
from provenance.query import ProvenanceService
from provenance.storage import (
    AmendmentLog, InMemoryAmendmentLog, InMemoryRecordRepository, RecordRepository,
)
from provenance.temporal.clock import LogicalClock


T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def at(days: float = 0, hours: float = 0) -> datetime:
    """Instant relative to T0."""
    return T0 + timedelta(days=days, hours=hours)


def make_culture(
    record_id: str,
    parent_id: Optional[str] = None,
    generation: int = 0,
    created_at: Any = None,
    fields: Optional[Dict[str, Any]] = None,
    label: Optional[str] = None,
    **kwargs: Any
) -> Record:
    """Factory for culture records."""
    return Record(
        id=record_id,
        kind=RecordKind.CULTURE,
        created_at=created_at if created_at is not None else T0,
        parent_id=parent_id,
        generation=generation,
        label=label or record_id.upper(),
        fields=fields if fields is not None else {'strain': 'Golden Teacher', 'notes': ''},
        **kwargs
    )


def make_grow(
    record_id: str,
    created_at: Any = None,
    fields: Optional[Dict[str, Any]] = None,
    label: Optional[str] = None,
    **kwargs: Any
) -> Record:
    """Factory for grow records."""
    return Record(
        id=record_id,
        kind=RecordKind.GROW,
        created_at=created_at if created_at is not None else T0,
        label=label or record_id.upper(),
        fields=fields if fields is not None else {'name': record_id, 'notes': ''},
        **kwargs
    )


def make_chain(length: int, prefix: str = "c") -> List[Record]:
    """Linear culture chain c0 <- c1 <- ... with consistent generations."""
    records = []
    for i in range(length):
        records.append(make_culture(
            f"{prefix}{i}",
            parent_id=f"{prefix}{i - 1}" if i else None,
            generation=i,
            created_at=at(days=i),
        ))
    return records


class FailingRepository(RecordRepository):
    """Repository whose lookups for chosen ids raise."""

    def __init__(self, inner: RecordRepository, failing_ids=(), fail_list_all: bool = False):
        self._inner = inner
        self._failing = set(failing_ids)
        self._fail_list_all = fail_list_all

    def get_by_id(self, kind, record_id):
        if record_id in self._failing:
            raise ConnectionError(f"lookup of {record_id} timed out")
        return self._inner.get_by_id(kind, record_id)

    def list_by_parent(self, kind, parent_id):
        if parent_id in self._failing:
            raise ConnectionError(f"child listing of {parent_id} timed out")
        return self._inner.list_by_parent(kind, parent_id)

    def list_all(self, kind):
        if self._fail_list_all:
            raise ConnectionError("list_all timed out")
        return self._inner.list_all(kind)


class UnavailableAmendmentLog(AmendmentLog):
    """Amendment log that is permanently offline."""

    def list_by_record_group(self, record_group_id):
        raise ConnectionError("amendment log offline")

    def append(self, amendment):
        raise ConnectionError("amendment log offline")


class StaticAmendmentLog(AmendmentLog):
    """Read-only log serving amendments exactly as an external store built them."""

    def __init__(self, amendments):
        self._amendments = list(amendments)

    def list_by_record_group(self, record_group_id):
        return [a for a in self._amendments if a.record_group_id == record_group_id]

    def append(self, amendment):
        raise PermissionError("log is read-only")


def make_correction(
    record_group_id: str,
    amended_at: Any,
    name: str,
    old: Any,
    new: Any,
    base_fields: Optional[Dict[str, Any]] = None
) -> Amendment:
    """Version-2 correction of one field, timestamp passed through untouched."""
    snapshot = dict(base_fields if base_fields is not None else {'strain': 'Golden Teacher', 'notes': ''})
    snapshot[name] = new
    return Amendment(
        amendment_id=f"amd_{record_group_id}_2",
        record_group_id=record_group_id,
        amendment_type=AmendmentType.CORRECTION,
        produced_version=2,
        produced_version_id=make_version_id(record_group_id, 2),
        previous_version_id=make_version_id(record_group_id, 1),
        amended_at=amended_at,
        snapshot=snapshot,
        changes={name: FieldChange(old=old, new=new)},
        reason="Imported correction",
    )


def make_service(
    records=(),
    clock: Optional[LogicalClock] = None,
    config: Optional[ProvenanceConfig] = None,
    repository: Optional[RecordRepository] = None,
    amendment_log: Optional[AmendmentLog] = None
) -> ProvenanceService:
    """Service over in-memory collaborators with a frozen clock."""
    return ProvenanceService(
        repository=repository if repository is not None else InMemoryRecordRepository(records),
        amendment_log=amendment_log if amendment_log is not None else InMemoryAmendmentLog(),
        clock=clock or LogicalClock.frozen(at(days=30)),
        config=config or ProvenanceConfig(),
        diagnostics=DiagnosticsCollector(),
    )
