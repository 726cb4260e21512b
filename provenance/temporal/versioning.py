"""
Version Store
=============

Non-destructive version history per record group.

INVARIANT: Every edit produces a new version.
Versions are DERIVED from the record plus its append-only amendment log;
they are never stored twice and never rewritten.

STATE MACHINE (per record group):
- NO_HISTORY: one synthetic "original" version, empty amendment log
- AMENDED:    two or more versions
- ARCHIVED:   current version frozen, amend/restore rejected

VALIDITY PARTITION:
- valid_from(1) = record creation (clamped to the first amendment)
- valid_from(k) = amended_at of the amendment that produced k
- valid_to(k)   = valid_from(k + 1); the last version is open

WRITE POLICY:
Writes are serialised per record group. A caller passing
`expected_current_version_id` gets VERSION_CONFLICT if another write landed
first. Without it the later write wins, and both amendments remain in the
log as consecutive versions.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple
import logging
import threading

from ..config import ProvenanceConfig
from ..contracts.base import (
    Error, ErrorCode, Result,
    make_amendment_id, make_version_id, utc_now,
)
from ..contracts.history import (
    Amendment, AmendmentType, FieldChange, HistoryState,
    USER_AMENDMENT_TYPES, Version, VersionSnapshot,
)
from ..contracts.records import Record, RecordKind
from ..contracts.views import DataQualityWarning
from ..observability import DiagnosticsCollector
from ..storage import AmendmentLog, RecordRepository, VersionConflict

from .clock import LogicalClock

logger = logging.getLogger(__name__)

COMPONENT = "temporal"


@dataclass(frozen=True)
class RecordHistory:
    """
    Complete version lineage for a record group.

    Versions are ordered by version number, oldest first.
    """
    record: Record
    state: HistoryState
    versions: Tuple[Version, ...]
    amendments: Tuple[Amendment, ...] = field(default_factory=tuple)
    warnings: Tuple[DataQualityWarning, ...] = field(default_factory=tuple)

    @property
    def record_group_id(self) -> str:
        return self.record.record_group_id

    @property
    def current(self) -> Version:
        return self.versions[-1]

    @property
    def is_archived(self) -> bool:
        return self.state is HistoryState.ARCHIVED

    def find(self, version_id: str) -> Optional[Version]:
        for version in self.versions:
            if version.version_id == version_id:
                return version
        return None

    def at(self, instant: datetime) -> Optional[Version]:
        """Version that was current at `instant`, if any."""
        for version in self.versions:
            if version.covers(instant):
                return version
        return None


def is_archived(record: Record) -> bool:
    return record.is_archived or record.status == "archived"


def derive_versions(
    record: Record,
    amendments: List[Amendment],
    fallback_time: Optional[datetime] = None
) -> Tuple[Version, ...]:
    """
    Pure derivation of the version list from a record and its amendments.

    Same record + same log = identical versions.
    """
    group_id = record.record_group_id

    if not amendments:
        number = max(record.version or 1, 1)
        return (Version(
            record_group_id=group_id,
            version=number,
            version_id=make_version_id(group_id, number),
            valid_from=record.created_at or record.updated_at or fallback_time or utc_now(),
            fields=record.fields,
            amendment_type=AmendmentType.ORIGINAL,
        ),)

    first = amendments[0]

    # Rebuild the base version by undoing the first amendment's changes
    base_fields = first.snapshot_values
    for name, change in first.changes:
        if change.had_old:
            base_fields[name] = change.old
        else:
            base_fields.pop(name, None)

    base_from = record.created_at or first.amended_at
    if base_from > first.amended_at:
        base_from = first.amended_at

    boundaries = [base_from] + [a.amended_at for a in amendments]
    base_number = first.produced_version - 1

    versions = [Version(
        record_group_id=group_id,
        version=base_number,
        version_id=make_version_id(group_id, base_number),
        valid_from=boundaries[0],
        valid_to=boundaries[1],
        fields=base_fields,
        amendment_type=AmendmentType.ORIGINAL,
    )]
    for index, amendment in enumerate(amendments):
        is_last = index == len(amendments) - 1
        versions.append(Version(
            record_group_id=group_id,
            version=amendment.produced_version,
            version_id=amendment.produced_version_id,
            valid_from=boundaries[index + 1],
            valid_to=None if is_last else boundaries[index + 2],
            fields=amendment.snapshot,
            amendment_type=amendment.amendment_type,
            amendment_reason=amendment.reason,
            restored_from=amendment.restored_from,
        ))
    return tuple(versions)


def diff_fields(
    current: Mapping[str, Any],
    target: Mapping[str, Any]
) -> Dict[str, FieldChange]:
    """Per-field changes turning `current` into `target`."""
    changes: Dict[str, FieldChange] = {}
    for name in sorted(set(current) | set(target)):
        if name in current and name in target and current[name] == target[name]:
            continue
        changes[name] = FieldChange(
            old=current.get(name),
            new=target.get(name),
            had_old=name in current,
        )
    return changes


class VersionStore:
    """
    Version history, point-in-time reads and additive restore.

    GUARANTEES:
    ===========
    1. Exactly one open version per record group
    2. restore_version adds exactly one version and never touches the source
    3. Rejected writes change nothing and carry a typed ErrorCode
    4. A missing amendment log degrades to NO_HISTORY, not to an error
    """

    def __init__(
        self,
        repository: RecordRepository,
        amendment_log: AmendmentLog,
        clock: Optional[LogicalClock] = None,
        config: Optional[ProvenanceConfig] = None,
        diagnostics: Optional[DiagnosticsCollector] = None
    ):
        self._repository = repository
        self._log = amendment_log
        self._clock = clock or LogicalClock.live()
        self._config = config or ProvenanceConfig()
        self._diagnostics = diagnostics
        self._group_locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def history(self, kind: RecordKind, record_id: str) -> Result:
        """Result wrapping a RecordHistory, or RECORD_NOT_FOUND."""
        record = self._get_record(kind, record_id)
        if record is None:
            return Result.failure(Error.create(
                ErrorCode.RECORD_NOT_FOUND,
                f"{kind.value} {record_id} not found",
                record_id=record_id,
            ))
        return Result.success(self._build_history(record))

    def view_version(self, kind: RecordKind, record_id: str, version_id: str) -> Result:
        """
        Read-only projection of the record's fields at one version.

        Unknown ids are reported, never answered with the current version.
        """
        result = self.history(kind, record_id)
        if result.is_failure:
            return result
        history: RecordHistory = result.value
        version = history.find(version_id)
        if version is None:
            return Result.failure(Error.create(
                ErrorCode.VERSION_NOT_FOUND,
                f"Version {version_id} not found for {record_id}",
                record_id=record_id, version_id=version_id,
            ))
        return Result.success(VersionSnapshot(
            record_id=record_id,
            record_group_id=history.record_group_id,
            version=version,
        ))

    def version_at(self, kind: RecordKind, record_id: str, instant: datetime) -> Result:
        """Version that was current at `instant`."""
        result = self.history(kind, record_id)
        if result.is_failure:
            return result
        history: RecordHistory = result.value
        version = history.at(instant)
        if version is None:
            return Result.failure(Error.create(
                ErrorCode.VERSION_NOT_FOUND,
                f"{record_id} had no version at {instant.isoformat()}",
                record_id=record_id,
            ))
        return Result.success(VersionSnapshot(
            record_id=record_id,
            record_group_id=history.record_group_id,
            version=version,
        ))

    # -------------------------------------------------------------------------
    # Writes (serialised per record group)
    # -------------------------------------------------------------------------

    def amend(
        self,
        kind: RecordKind,
        record_id: str,
        changes: Mapping[str, Any],
        amendment_type: AmendmentType = AmendmentType.CORRECTION,
        reason: Optional[str] = None,
        amended_by: Optional[str] = None,
        expected_current_version_id: Optional[str] = None
    ) -> Result:
        """Append a correction/update/void/merge; Result wraps the new Version."""
        if amendment_type not in USER_AMENDMENT_TYPES:
            return self._reject(
                ErrorCode.INVALID_AMENDMENT_TYPE, record_id,
                f"{amendment_type.value} amendments cannot be submitted directly",
            )
        if self._config.require_amendment_reason and not (reason or "").strip():
            return self._reject(
                ErrorCode.MISSING_REASON, record_id,
                "A reason is required for every amendment",
            )

        def build(history: RecordHistory) -> Tuple[Optional[Dict[str, Any]], Optional[Error]]:
            current = history.current.field_values
            target = dict(current)
            target.update(changes)
            if amendment_type is not AmendmentType.VOID and not diff_fields(current, target):
                return None, Error.create(
                    ErrorCode.EMPTY_AMENDMENT,
                    "Amendment does not change any field",
                    record_id=record_id,
                )
            return target, None

        return self._write(
            kind, record_id, build, amendment_type,
            reason=(reason or "").strip() or None,
            amended_by=amended_by,
            expected_current_version_id=expected_current_version_id,
        )

    def restore_version(
        self,
        kind: RecordKind,
        record_id: str,
        version_id: str,
        reason: Optional[str] = None,
        amended_by: Optional[str] = None,
        expected_current_version_id: Optional[str] = None
    ) -> Result:
        """
        Create a new current version equal to a historical snapshot.

        Restore is itself an amendment; the source version is untouched.
        """
        restored_from: List[Version] = []

        def build(history: RecordHistory) -> Tuple[Optional[Dict[str, Any]], Optional[Error]]:
            target = history.find(version_id)
            if target is None:
                return None, Error.create(
                    ErrorCode.VERSION_NOT_FOUND,
                    f"Version {version_id} not found for {record_id}",
                    record_id=record_id, version_id=version_id,
                )
            if target.is_current:
                return None, Error.create(
                    ErrorCode.ALREADY_CURRENT,
                    f"Version {target.version} is already current",
                    record_id=record_id, version_id=version_id,
                )
            restored_from.append(target)
            return target.field_values, None

        def default_reason() -> Optional[str]:
            if reason and reason.strip():
                return reason.strip()
            return f"Restored from version {restored_from[0].version}" if restored_from else None

        return self._write(
            kind, record_id, build, AmendmentType.RESTORE,
            reason=None,
            amended_by=amended_by,
            expected_current_version_id=expected_current_version_id,
            restored_from_id=version_id,
            reason_factory=default_reason,
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _write(
        self,
        kind: RecordKind,
        record_id: str,
        build,
        amendment_type: AmendmentType,
        reason: Optional[str],
        amended_by: Optional[str],
        expected_current_version_id: Optional[str],
        restored_from_id: Optional[str] = None,
        reason_factory=None
    ) -> Result:
        record = self._get_record(kind, record_id)
        if record is None:
            return self._reject(ErrorCode.RECORD_NOT_FOUND, record_id, f"{kind.value} {record_id} not found")

        with self._lock_for(record.record_group_id):
            # Re-read under the lock
            record = self._get_record(kind, record_id) or record
            if is_archived(record):
                return self._reject(
                    ErrorCode.RECORD_ARCHIVED, record_id,
                    f"{record_id} is archived; history is read-only",
                )

            try:
                amendments = list(self._log.list_by_record_group(record.record_group_id))
            except Exception:
                logger.warning("Amendment log unavailable for %s", record.record_group_id, exc_info=True)
                return self._reject(
                    ErrorCode.REPOSITORY_UNAVAILABLE, record_id,
                    "Amendment log unavailable; nothing was written",
                )

            history = self._assemble(record, amendments, ())
            current = history.current
            if (expected_current_version_id is not None
                    and expected_current_version_id != current.version_id):
                return self._reject(
                    ErrorCode.VERSION_CONFLICT, record_id,
                    f"Expected current version {expected_current_version_id}, "
                    f"found {current.version_id}",
                )

            target, error = build(history)
            if error is not None:
                return self._reject(error.code, record_id, error.message)

            amended_at = self._clock.now()
            if amended_at < current.valid_from:
                amended_at = current.valid_from

            produced = current.version + 1
            amendment = Amendment(
                amendment_id=make_amendment_id(record.record_group_id, produced, amended_at),
                record_group_id=record.record_group_id,
                amendment_type=amendment_type,
                produced_version=produced,
                produced_version_id=make_version_id(record.record_group_id, produced),
                previous_version_id=current.version_id,
                amended_at=amended_at,
                snapshot=target,
                changes=diff_fields(current.field_values, target),
                reason=reason_factory() if reason_factory else reason,
                amended_by=amended_by,
                restored_from=restored_from_id,
            )

            try:
                version = self._log.append(amendment)
            except VersionConflict as exc:
                return self._reject(ErrorCode.VERSION_CONFLICT, record_id, str(exc))

        logger.info(
            "%s %s: %s produced version %d",
            kind.value, record_id, amendment_type.value, version.version
        )
        return Result.success(version)

    def _build_history(self, record: Record) -> RecordHistory:
        warnings: Tuple[DataQualityWarning, ...] = ()
        try:
            amendments = list(self._log.list_by_record_group(record.record_group_id))
        except Exception:
            logger.warning(
                "Amendment log unavailable for %s; showing synthetic original",
                record.record_group_id, exc_info=True
            )
            amendments = []
            warnings = (DataQualityWarning(
                code=ErrorCode.REPOSITORY_UNAVAILABLE,
                message="Amendment log unavailable; showing current record only",
                record_id=record.id,
            ),)
            self._signal(ErrorCode.REPOSITORY_UNAVAILABLE, record.id, warnings[0].message)
        return self._assemble(record, amendments, warnings)

    def _assemble(
        self,
        record: Record,
        amendments: List[Amendment],
        warnings: Tuple[DataQualityWarning, ...]
    ) -> RecordHistory:
        amendments = sorted(amendments, key=lambda a: a.produced_version)
        fallback = None
        if not amendments and record.created_at is None and record.updated_at is None:
            logger.warning("%s has no creation timestamp; original version starts now", record.id)
            fallback = self._clock.now()
        versions = derive_versions(record, amendments, fallback)
        if is_archived(record):
            state = HistoryState.ARCHIVED
        elif amendments:
            state = HistoryState.AMENDED
        else:
            state = HistoryState.NO_HISTORY
        return RecordHistory(
            record=record,
            state=state,
            versions=versions,
            amendments=tuple(amendments),
            warnings=warnings,
        )

    def _get_record(self, kind: RecordKind, record_id: str) -> Optional[Record]:
        try:
            return self._repository.get_by_id(kind, record_id)
        except Exception:
            logger.warning("get_by_id failed for %s %s", kind.value, record_id, exc_info=True)
            self._signal(ErrorCode.REPOSITORY_UNAVAILABLE, record_id, "Record lookup raised")
            return None

    def _lock_for(self, record_group_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._group_locks.get(record_group_id)
            if lock is None:
                lock = threading.Lock()
                self._group_locks[record_group_id] = lock
            return lock

    def _reject(self, code: ErrorCode, record_id: str, message: str) -> Result:
        logger.warning("Rejected write on %s: %s", record_id, message)
        self._signal(code, record_id, message)
        return Result.failure(Error.create(code, message, record_id=record_id))

    def _signal(self, code: ErrorCode, record_id: str, message: str) -> None:
        if self._diagnostics is not None:
            self._diagnostics.collect(code, COMPONENT, record_id, message)
