"""
Query Facade

RESPONSIBILITY: Compose lineage, version history and timeline into views
ALLOWED INPUTS: (kind, record id) plus explicit filters and write requests
OUTPUTS: LineageView, VersionHistoryView, TimelineView, write Results

WHAT THIS LAYER MUST NOT DO:
============================
- Raise into the caller for unknown records or unavailable collaborators
- Cache views between calls
- Render anything (see api.mapper for the dict projection)

BOUNDARY ENFORCEMENT:
=====================
- Reads go through RecordRepository and AmendmentLog only
- Writes are delegated to VersionStore, which owns the write policy
- Every view can be empty; emptiness carries a RECORD_NOT_FOUND warning
"""

from __future__ import annotations
from datetime import datetime
from typing import Any, List, Mapping, Optional, Tuple
import logging

from ..config import ProvenanceConfig
from ..contracts.base import ErrorCode, Result
from ..contracts.events import TimelineFilter
from ..contracts.history import Amendment, AmendmentType, HistoryState
from ..contracts.records import Record, RecordKind
from ..contracts.views import (
    DataQualityWarning, LineageView, RecordSummary,
    TimelineView, VersionHistoryView,
)
from ..lineage import LineageResolver
from ..observability import DiagnosticsCollector
from ..storage import AmendmentLog, RecordRepository
from ..temporal import LogicalClock, VersionStore
from ..timeline import TimelineAggregator

logger = logging.getLogger(__name__)


def _not_found(kind: RecordKind, record_id: str) -> DataQualityWarning:
    return DataQualityWarning(
        code=ErrorCode.RECORD_NOT_FOUND,
        message=f"{kind.value} {record_id} could not be resolved",
        record_id=record_id,
    )


class ProvenanceService:
    """
    Entry point for hosting applications.

    One instance wires the three components over shared collaborators,
    configuration, clock and diagnostics.
    """

    def __init__(
        self,
        repository: RecordRepository,
        amendment_log: AmendmentLog,
        clock: Optional[LogicalClock] = None,
        config: Optional[ProvenanceConfig] = None,
        diagnostics: Optional[DiagnosticsCollector] = None
    ):
        self.repository = repository
        self.amendment_log = amendment_log
        self.clock = clock or LogicalClock.live()
        self.config = config or ProvenanceConfig()
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticsCollector()

        self.lineage = LineageResolver(repository, self.config, self.diagnostics)
        self.versions = VersionStore(
            repository, amendment_log, self.clock, self.config, self.diagnostics
        )
        self.timeline = TimelineAggregator(self.config, self.clock, self.diagnostics)

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def lineage_view(self, kind: RecordKind, record_id: str) -> LineageView:
        lineage = self.lineage.resolve(kind, record_id)
        return LineageView(
            record_id=record_id,
            kind=kind,
            generation=lineage.generation,
            ancestors=tuple(RecordSummary.of(r) for r in lineage.ancestors),
            descendants=tuple(RecordSummary.of(r) for r in lineage.descendants),
            direct_children=tuple(RecordSummary.of(r) for r in lineage.direct_children),
            truncated=lineage.chain.truncated,
            warnings=lineage.warnings,
        )

    def version_history_view(self, kind: RecordKind, record_id: str) -> VersionHistoryView:
        result = self.versions.history(kind, record_id)
        if result.is_failure:
            return VersionHistoryView(
                record_id=record_id,
                record_group_id=record_id,
                state=HistoryState.NO_HISTORY,
                warnings=(_not_found(kind, record_id),),
            )
        history = result.value
        return VersionHistoryView(
            record_id=record_id,
            record_group_id=history.record_group_id,
            state=history.state,
            versions=tuple(v.summary() for v in history.versions),
            amendments=history.amendments,
            is_archived=history.is_archived,
            warnings=history.warnings,
        )

    def timeline_view(
        self,
        kind: RecordKind,
        record_id: str,
        filter: Optional[TimelineFilter] = None,
        reference_time: Optional[datetime] = None
    ) -> TimelineView:
        record = self._get_record(kind, record_id)
        if record is None:
            return TimelineView(record_id=record_id, warnings=(_not_found(kind, record_id),))

        warnings: List[DataQualityWarning] = []
        amendments, unavailable = self._amendments_for(record)
        if unavailable:
            warnings.append(DataQualityWarning(
                code=ErrorCode.REPOSITORY_UNAVAILABLE,
                message="Amendment log unavailable; amendment events omitted",
                record_id=record_id,
            ))

        result = self.timeline.aggregate(record, amendments, filter, reference_time)
        if result.dropped_count:
            warnings.append(DataQualityWarning(
                code=ErrorCode.MALFORMED_SOURCE_EVENT,
                message=f"{result.dropped_count} event(s) dropped for missing or malformed timestamps",
                record_id=record_id,
                context=tuple(("event_id", event_id) for event_id in result.dropped_ids),
            ))

        return TimelineView(
            record_id=record_id,
            events=result.timeline,
            groups=result.grouped_timeline,
            dropped_count=result.dropped_count,
            warnings=tuple(warnings),
        )

    # -------------------------------------------------------------------------
    # Cross-kind lineage
    # -------------------------------------------------------------------------

    def source_culture(self, grow_id: str) -> Optional[RecordSummary]:
        grow = self._get_record(RecordKind.GROW, grow_id)
        if grow is None:
            return None
        culture = self.lineage.source_culture(grow)
        return RecordSummary.of(culture) if culture is not None else None

    def spawned_grows(self, culture_id: str) -> Tuple[RecordSummary, ...]:
        return tuple(RecordSummary.of(g) for g in self.lineage.spawned_grows(culture_id))

    # -------------------------------------------------------------------------
    # Version operations (delegated)
    # -------------------------------------------------------------------------

    def view_version(self, kind: RecordKind, record_id: str, version_id: str) -> Result:
        return self.versions.view_version(kind, record_id, version_id)

    def version_at(self, kind: RecordKind, record_id: str, instant: datetime) -> Result:
        return self.versions.version_at(kind, record_id, instant)

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
        return self.versions.amend(
            kind, record_id, changes, amendment_type, reason,
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
        return self.versions.restore_version(
            kind, record_id, version_id, reason,
            amended_by=amended_by,
            expected_current_version_id=expected_current_version_id,
        )

    # -------------------------------------------------------------------------
    # Collaborator access
    # -------------------------------------------------------------------------

    def _get_record(self, kind: RecordKind, record_id: str) -> Optional[Record]:
        try:
            return self.repository.get_by_id(kind, record_id)
        except Exception:
            logger.warning("get_by_id failed for %s %s", kind.value, record_id, exc_info=True)
            return None

    def _amendments_for(self, record: Record) -> Tuple[Tuple[Amendment, ...], bool]:
        try:
            entries = self.amendment_log.list_by_record_group(record.record_group_id)
        except Exception:
            logger.warning(
                "Amendment log unavailable for %s", record.record_group_id, exc_info=True
            )
            return (), True
        return tuple(sorted(entries, key=lambda a: a.produced_version)), False


__all__ = ['ProvenanceService']
