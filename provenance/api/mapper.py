"""
API Mapper
==========

Transforms read models (LineageView, VersionHistoryView, TimelineView) into
plain dicts for the presentation layer.

Output is JSON-serialisable: enums become their values, datetimes become
ISO-8601 UTC strings with a trailing 'Z', tuples become lists. No field is
dropped or smoothed; an empty view maps to empty lists plus its warnings.
"""
from typing import Any, Dict, List, Optional
from datetime import datetime

from ..contracts.base import to_iso
from ..contracts.events import TimelineEvent, TimelineGroup
from ..contracts.history import Amendment, Version, VersionSnapshot, VersionSummary
from ..contracts.views import (
    DataQualityWarning, LineageView, RecordSummary,
    TimelineView, VersionHistoryView,
)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return to_iso(value) if value is not None else None


def _plain(value: Any) -> Any:
    """Best-effort conversion of field values."""
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


def map_warning(warning: DataQualityWarning) -> Dict[str, Any]:
    return {
        "code": warning.code.name,
        "message": warning.message,
        "record_id": warning.record_id,
        "context": dict(warning.context),
    }


def map_record_summary(summary: RecordSummary) -> Dict[str, Any]:
    return {
        "id": summary.id,
        "kind": summary.kind.value,
        "label": summary.label,
        "status": summary.status,
        "generation": summary.generation,
        "parent_id": summary.parent_id,
        "created_at": _iso(summary.created_at),
        "is_archived": summary.is_archived,
    }


def map_lineage_view(view: LineageView) -> Dict[str, Any]:
    """Map LineageView to LineageDTO."""
    return {
        "record_id": view.record_id,
        "kind": view.kind.value,
        "generation": view.generation,
        "ancestors": [map_record_summary(s) for s in view.ancestors],
        "descendants": [map_record_summary(s) for s in view.descendants],
        "direct_children": [map_record_summary(s) for s in view.direct_children],
        "total_descendants": view.total_descendants,
        "truncated": view.truncated,
        "warnings": [map_warning(w) for w in view.warnings],
    }


def map_version_summary(summary: VersionSummary) -> Dict[str, Any]:
    return {
        "version_id": summary.version_id,
        "version": summary.version,
        "is_current": summary.is_current,
        "valid_from": _iso(summary.valid_from),
        "valid_to": _iso(summary.valid_to),
        "amendment_type": summary.amendment_type.value,
        "amendment_reason": summary.amendment_reason,
    }


def map_amendment(amendment: Amendment) -> Dict[str, Any]:
    return {
        "amendment_id": amendment.amendment_id,
        "amendment_type": amendment.amendment_type.value,
        "produced_version": amendment.produced_version,
        "produced_version_id": amendment.produced_version_id,
        "previous_version_id": amendment.previous_version_id,
        "amended_at": _iso(amendment.amended_at),
        "amended_by": amendment.amended_by,
        "reason": amendment.reason,
        "restored_from": amendment.restored_from,
        # changesSummary shape: {field: {old, new}}
        "changes": {
            name: {"old": _plain(change.old), "new": _plain(change.new)}
            for name, change in amendment.changes
        },
    }


def map_version_history_view(view: VersionHistoryView) -> Dict[str, Any]:
    """Map VersionHistoryView to RecordHistoryDTO; versions newest first."""
    current = view.current
    return {
        "record_id": view.record_id,
        "record_group_id": view.record_group_id,
        "state": view.state.value,
        "is_archived": view.is_archived,
        "current_version_id": current.version_id if current else None,
        "versions": [map_version_summary(s) for s in reversed(view.versions)],
        "amendments": [map_amendment(a) for a in reversed(view.amendments)],
        "warnings": [map_warning(w) for w in view.warnings],
    }


def map_version(version: Version) -> Dict[str, Any]:
    payload = map_version_summary(version.summary())
    payload["restored_from"] = version.restored_from
    payload["fields"] = {k: _plain(v) for k, v in version.fields}
    return payload


def map_version_snapshot(snapshot: VersionSnapshot) -> Dict[str, Any]:
    return {
        "record_id": snapshot.record_id,
        "record_group_id": snapshot.record_group_id,
        "read_only": True,
        "version": map_version(snapshot.version),
    }


def map_timeline_event(event: TimelineEvent) -> Dict[str, Any]:
    return {
        "id": event.id,
        "type": event.type.value,
        "timestamp": _iso(event.timestamp),
        "title": event.title,
        "description": event.description,
        "icon": event.icon,
        "color": event.color,
        "metadata": {k: _plain(v) for k, v in event.metadata},
    }


def map_timeline_group(group: TimelineGroup) -> Dict[str, Any]:
    return {
        "date": group.date,
        "label": group.label,
        "events": [map_timeline_event(e) for e in group.events],
    }


def map_timeline_view(view: TimelineView) -> Dict[str, Any]:
    """Map TimelineView to the {timeline, grouped_timeline} DTO."""
    timeline: List[Dict[str, Any]] = [map_timeline_event(e) for e in view.events]
    return {
        "record_id": view.record_id,
        "timeline": timeline,
        "grouped_timeline": [map_timeline_group(g) for g in view.groups],
        "dropped_count": view.dropped_count,
        "warnings": [map_warning(w) for w in view.warnings],
    }
