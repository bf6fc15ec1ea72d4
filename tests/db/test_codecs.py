"""Tests for timestamp and JSON column codecs."""

from datetime import datetime, timedelta, timezone

from sqlalchemy.dialects import postgresql, sqlite

from alertrouter.db.codecs import UtcDateTime, load_json, parse_timestamp, timestamp_params

CEST = timezone(timedelta(hours=2))


class TestUtcDateTime:
    """Tests for the bound timestamp type."""

    def test_offset_normalized_to_utc(self):
        bound = UtcDateTime().process_bind_param(
            datetime(2026, 10, 19, 14, 0, tzinfo=CEST), postgresql.dialect()
        )

        assert isinstance(bound, datetime)
        assert bound == datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
        assert bound.utcoffset() == timedelta(0)

    def test_naive_treated_as_utc(self):
        bound = UtcDateTime().process_bind_param(datetime(2026, 10, 19, 12, 0), sqlite.dialect())

        assert bound.tzinfo == timezone.utc

    def test_none(self):
        assert UtcDateTime().process_bind_param(None, sqlite.dialect()) is None

    def test_timestamp_params_are_typed(self):
        since, until = timestamp_params("since", "until")

        assert since.key == "since"
        assert until.key == "until"
        assert isinstance(since.type, UtcDateTime)


class TestParseTimestamp:
    """Tests for parse_timestamp."""

    def test_iso_string(self):
        parsed = parse_timestamp("2026-01-25T12:00:00+00:00")
        assert parsed == datetime(2026, 1, 25, 12, 0, tzinfo=timezone.utc)

    def test_sqlite_storage_format(self):
        parsed = parse_timestamp("2026-01-25 12:00:00.000000")
        assert parsed == datetime(2026, 1, 25, 12, 0, tzinfo=timezone.utc)

    def test_datetime_passthrough(self):
        value = datetime(2026, 1, 25, tzinfo=timezone.utc)
        assert parse_timestamp(value) == value

    def test_none(self):
        assert parse_timestamp(None) is None


class TestLoadJson:
    def test_text(self):
        assert load_json('{"a": [1, 2]}', {}) == {"a": [1, 2]}

    def test_already_decoded(self):
        assert load_json(["u1"], []) == ["u1"]

    def test_empty_uses_default(self):
        assert load_json(None, []) == []
        assert load_json("", {}) == {}
