"""
Provenance Service Integration Tests

End-to-end flows through ProvenanceService and the dict mappers.

TEST AXIOMS:
1. Every view renders, including for unknown records
2. Mapped output is JSON-serialisable with 'Z' timestamps
3. Writes through the service are visible in every view
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from provenance import ProvenanceService
from provenance.api import (
    map_lineage_view, map_timeline_view, map_version_history_view, map_version_snapshot,
)
from provenance.contracts.base import ErrorCode, make_version_id
from provenance.contracts.events import TimelineEventType, TimelineFilter
from provenance.contracts.history import HistoryState
from provenance.contracts.records import Observation, RecordKind, Transfer
from provenance.storage import InMemoryRecordRepository
from provenance.temporal import LogicalClock

from tests.fixtures import (
    FailingRepository, StaticAmendmentLog, UnavailableAmendmentLog, at, make_correction,
    make_culture, make_grow, make_service,
)


CULTURE = RecordKind.CULTURE


@pytest.fixture
def clock():
    return LogicalClock.frozen(at(days=10))


@pytest.fixture
def service(clock):
    records = [
        make_culture("c1", label="LC-001"),
        make_culture("c2", parent_id="c1", generation=1, created_at=at(days=1)),
        make_culture(
            "c3", parent_id="c2", generation=2, created_at=at(days=2),
            observations=[Observation("o1", at(days=3), type="contamination")],
            transfers=[Transfer("t1", at(days=4), from_id="c3", to_type="grow", to_id="g1")],
        ),
        make_culture("orphan", parent_id="deleted", generation=1),
    ]
    return make_service(records, clock=clock)


class TestLineageView:

    def test_chain_and_descendants(self, service):
        view = service.lineage_view(CULTURE, "c3")
        root = service.lineage_view(CULTURE, "c1")

        assert [a.id for a in view.ancestors] == ["c1", "c2"]
        assert view.generation == 2
        assert [d.id for d in root.descendants] == ["c2", "c3"]
        assert [c.id for c in root.direct_children] == ["c2"]
        assert root.total_descendants == 2

    def test_dangling_parent_reports_zero_ancestors(self, service):
        view = service.lineage_view(CULTURE, "orphan")

        assert view.ancestors == ()
        assert not view.has_lineage
        assert [w.code for w in view.warnings] == [ErrorCode.DANGLING_PARENT]

    def test_unknown_record_renders_empty(self, service):
        view = service.lineage_view(CULTURE, "nope")

        assert view.ancestors == () and view.descendants == ()
        assert view.warnings[0].code == ErrorCode.RECORD_NOT_FOUND

    def test_mapped_lineage_is_json(self, service):
        payload = map_lineage_view(service.lineage_view(CULTURE, "c3"))

        json.dumps(payload)
        assert payload["ancestors"][0]["label"] == "LC-001"
        assert payload["ancestors"][0]["created_at"].endswith("Z")

    def test_cross_kind_links(self, clock):
        service = make_service(
            [make_culture("lc1"), make_grow("g1", source_culture_id="lc1")], clock=clock
        )

        assert service.source_culture("g1").id == "lc1"
        assert [g.id for g in service.spawned_grows("lc1")] == ["g1"]
        assert service.source_culture("missing") is None


class TestVersionHistoryView:

    def test_amend_then_restore_flow(self, service, clock):
        assert service.version_history_view(CULTURE, "c1").state == HistoryState.NO_HISTORY

        service.amend(CULTURE, "c1", {"strain": "APE"}, reason="Wrong strain")
        clock.advance(timedelta(days=1))
        service.amend(CULTURE, "c1", {"notes": "Fast"}, reason="Note")
        clock.advance(timedelta(days=1))
        restored = service.restore_version(CULTURE, "c1", make_version_id("c1", 1))
        view = service.version_history_view(CULTURE, "c1")

        assert restored.is_success
        assert [v.version for v in view.versions] == [1, 2, 3, 4]
        assert view.current.version == 4
        assert view.state == HistoryState.AMENDED
        snapshot = service.view_version(CULTURE, "c1", make_version_id("c1", 2)).value
        assert snapshot.fields["strain"] == "APE"

    def test_mapped_history_is_newest_first(self, service):
        service.amend(CULTURE, "c1", {"strain": "APE"}, reason="Wrong strain")

        payload = map_version_history_view(service.version_history_view(CULTURE, "c1"))

        json.dumps(payload)
        assert [v["version"] for v in payload["versions"]] == [2, 1]
        assert payload["versions"][1]["valid_to"].endswith("Z")
        assert payload["amendments"][0]["changes"]["strain"] == {
            "old": "Golden Teacher", "new": "APE",
        }
        assert payload["current_version_id"] == make_version_id("c1", 2)

    def test_mapped_snapshot_is_read_only(self, service):
        snapshot = service.view_version(CULTURE, "c1", make_version_id("c1", 1)).value

        payload = map_version_snapshot(snapshot)

        assert payload["read_only"] is True
        assert payload["version"]["fields"]["strain"] == "Golden Teacher"

    def test_unknown_record_renders_empty(self, service):
        view = service.version_history_view(CULTURE, "nope")

        assert view.versions == ()
        assert view.warnings[0].code == ErrorCode.RECORD_NOT_FOUND

    def test_log_outage_degrades(self, clock):
        service = make_service(
            [make_culture("c1")], clock=clock, amendment_log=UnavailableAmendmentLog()
        )

        view = service.version_history_view(CULTURE, "c1")
        write = service.amend(CULTURE, "c1", {"strain": "APE"}, reason="Fix")

        assert len(view.versions) == 1
        assert view.warnings[0].code == ErrorCode.REPOSITORY_UNAVAILABLE
        assert write.error.code == ErrorCode.REPOSITORY_UNAVAILABLE

    def test_external_log_with_naive_timestamps_renders(self, clock):
        log = StaticAmendmentLog([
            make_correction("c1", datetime(2024, 3, 5), "strain", "Golden Teacher", "APE"),
        ])
        service = make_service([make_culture("c1")], clock=clock, amendment_log=log)

        history = service.version_history_view(CULTURE, "c1")
        timeline = service.timeline_view(CULTURE, "c1")

        assert [v.version for v in history.versions] == [1, 2]
        assert history.current.valid_from == datetime(2024, 3, 5, tzinfo=timezone.utc)
        assert timeline.events[0].type == TimelineEventType.AMENDMENT
        assert timeline.events[0].timestamp.tzinfo is not None
        assert timeline.dropped_count == 0


class TestTimelineView:

    def test_timeline_merges_record_and_amendments(self, service):
        service.amend(CULTURE, "c3", {"notes": "Isolated"}, reason="Update notes")

        view = service.timeline_view(CULTURE, "c3")

        assert [e.type for e in view.events][:3] == [
            TimelineEventType.AMENDMENT,
            TimelineEventType.TRANSFER_OUT,
            TimelineEventType.CONTAMINATION,
        ]
        assert view.groups[0].label == "Today"

    def test_filtered_timeline(self, service):
        view = service.timeline_view(
            CULTURE, "c3", TimelineFilter.of({TimelineEventType.CONTAMINATION})
        )

        assert [e.id for e in view.events] == ["obs-o1"]

    def test_dropped_events_surface_as_warning(self, clock):
        service = make_service(
            [make_culture("c1", observations=[Observation("bad", "31/02/2024")])], clock=clock
        )

        view = service.timeline_view(CULTURE, "c1")

        assert view.dropped_count == 1
        assert view.warnings[0].code == ErrorCode.MALFORMED_SOURCE_EVENT
        assert service.diagnostics.counts()[ErrorCode.MALFORMED_SOURCE_EVENT] == 1

    def test_unknown_record_renders_empty(self, service):
        view = service.timeline_view(CULTURE, "nope")

        assert view.events == () and view.groups == ()
        assert view.warnings[0].code == ErrorCode.RECORD_NOT_FOUND

    def test_repository_failure_renders_empty(self, clock):
        inner = InMemoryRecordRepository([make_culture("c1")])
        service = make_service(clock=clock, repository=FailingRepository(inner, failing_ids={"c1"}))

        assert service.timeline_view(CULTURE, "c1").events == ()
        assert service.lineage_view(CULTURE, "c1").warnings[0].code == ErrorCode.RECORD_NOT_FOUND

    def test_mapped_timeline_is_json(self, service):
        payload = map_timeline_view(service.timeline_view(CULTURE, "c3"))

        json.dumps(payload)
        assert payload["timeline"][0]["timestamp"].endswith("Z")
        assert payload["grouped_timeline"][0]["events"][0] == payload["timeline"][0]

    def test_repeated_renders_do_not_accumulate_clock_state(self):
        service = ProvenanceService(
            InMemoryRecordRepository([make_culture("c1")]), StaticAmendmentLog([])
        )
        for _ in range(500):
            service.timeline_view(CULTURE, "c1")

        assert service.clock.is_live()
        assert service.clock.tick_count() == 500
        assert not any(isinstance(v, (list, dict)) for v in vars(service.clock).values())


def test_service_is_exported_from_package():
    assert ProvenanceService.__name__ == "ProvenanceService"
