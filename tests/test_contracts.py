"""
Contract Tests

Timestamp normalisation at the contract boundary.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from provenance.contracts.base import parse_timestamp

from tests.fixtures import make_correction


class TestParseTimestamp:

    @pytest.mark.parametrize("text, expected", [
        ("2024-03-01T09:00:00Z", datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)),
        ("2024-03-01T09:00:00.12345Z", datetime(2024, 3, 1, 9, 0, 0, 123450, tzinfo=timezone.utc)),
        ("2024-03-01T09:00:00.1Z", datetime(2024, 3, 1, 9, 0, 0, 100000, tzinfo=timezone.utc)),
        ("2024-03-01T10:00:00+0100", datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)),
        ("2024-03-01", datetime(2024, 3, 1, tzinfo=timezone.utc)),
    ])
    def test_iso_variants(self, text, expected):
        assert parse_timestamp(text) == expected

    def test_naive_datetime_is_read_as_utc(self):
        parsed = parse_timestamp(datetime(2024, 3, 1, 9, 0))

        assert parsed.tzinfo is not None
        assert parsed.utcoffset() == timedelta(0)

    def test_date_and_epoch(self):
        assert parse_timestamp(date(2024, 3, 1)) == datetime(2024, 3, 1, tzinfo=timezone.utc)
        assert parse_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "31/02/2024", "soon", True, object()])
    def test_unparseable_is_none(self, value):
        assert parse_timestamp(value) is None


class TestAmendmentTimestamp:

    def test_naive_amended_at_becomes_utc(self):
        amendment = make_correction("c1", datetime(2024, 3, 5, 12, 0), "strain", "A", "B")

        assert amendment.amended_at == datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc)

    def test_iso_amended_at_is_parsed(self):
        amendment = make_correction("c1", "2024-03-05T12:00:00.5Z", "strain", "A", "B")

        assert amendment.amended_at == datetime(2024, 3, 5, 12, 0, 0, 500000, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "garbage", "31/02/2024"])
    def test_unparseable_amended_at_rejected(self, value):
        with pytest.raises(ValueError):
            make_correction("c1", value, "strain", "A", "B")
