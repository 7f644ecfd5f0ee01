"""
Tests for the event normalizer.

Shape errors are collected and raised together; the tenant check runs only
once the payload is well formed.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import pytest

from trackflow.adapters.clock import FixedClock
from trackflow.components.analytics import (
    EventNormalizer,
    NormalizerConfig,
    create_event_normalizer,
)
from trackflow.core.entities import EventType
from trackflow.core.errors import UnknownTenantError, ValidationError


class MockSiteDirectory:
    def __init__(self, owners: dict[str, str]) -> None:
        self._owners = owners
        self.lookups: list[str] = []

    def resolve(self, site_id: str) -> str | None:
        self.lookups.append(site_id)
        return self._owners.get(site_id)


@pytest.fixture
def directory() -> MockSiteDirectory:
    return MockSiteDirectory({"site-1": "owner-a"})


@pytest.fixture
def normalizer(directory: MockSiteDirectory, clock: FixedClock) -> EventNormalizer:
    return create_event_normalizer(sites=directory, time_port=clock)


def payload(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "site_id": "site-1",
        "visitor_id": "v1",
        "session_id": "s1",
        "event_type": "pageview",
        "timestamp": "2024-06-15T11:30:00Z",
    }
    data.update(overrides)
    return data


def error_codes(exc: pytest.ExceptionInfo[ValidationError]) -> set[str]:
    return {e.code for e in exc.value.errors}


class TestRequiredFields:
    def test_minimal_payload(self, normalizer: EventNormalizer) -> None:
        event = normalizer.normalize(payload())

        assert event.site_id == "site-1"
        assert event.event_type is EventType.PAGEVIEW
        assert event.timestamp == datetime(2024, 6, 15, 11, 30, tzinfo=UTC)
        assert event.path is None
        assert event.revenue is None
        assert (event.source, event.medium) == ("direct", "none")

    def test_all_missing_fields_reported_together(self, normalizer: EventNormalizer) -> None:
        with pytest.raises(ValidationError) as exc:
            normalizer.normalize({})

        assert error_codes(exc) == {
            "site_id_required",
            "visitor_id_required",
            "session_id_required",
            "event_type_required",
            "timestamp_required",
        }

    def test_non_object_payload(self, normalizer: EventNormalizer) -> None:
        with pytest.raises(ValidationError) as exc:
            normalizer.normalize(["not", "an", "object"])
        assert error_codes(exc) == {"invalid_payload"}

    def test_identifier_must_be_string(self, normalizer: EventNormalizer) -> None:
        with pytest.raises(ValidationError) as exc:
            normalizer.normalize(payload(visitor_id=42))
        assert error_codes(exc) == {"invalid_type"}

    def test_identifier_length_limit(self, directory: MockSiteDirectory, clock: FixedClock) -> None:
        normalizer = create_event_normalizer(directory, clock, NormalizerConfig(max_id_length=8))
        with pytest.raises(ValidationError) as exc:
            normalizer.normalize(payload(session_id="s" * 9))
        assert error_codes(exc) == {"too_long"}

    def test_unknown_event_type(self, normalizer: EventNormalizer) -> None:
        with pytest.raises(ValidationError) as exc:
            normalizer.normalize(payload(event_type="purchase_intent"))
        assert error_codes(exc) == {"invalid_event_type"}


class TestTimestamps:
    def test_naive_timestamp_taken_as_utc(self, normalizer: EventNormalizer) -> None:
        event = normalizer.normalize(payload(timestamp="2024-06-15T10:00:00"))
        assert event.timestamp == datetime(2024, 6, 15, 10, 0, tzinfo=UTC)

    def test_offset_timestamp_converted_to_utc(self, normalizer: EventNormalizer) -> None:
        event = normalizer.normalize(payload(timestamp="2024-06-15T13:00:00+02:00"))
        assert event.timestamp == datetime(2024, 6, 15, 11, 0, tzinfo=UTC)

    def test_unparseable_timestamp(self, normalizer: EventNormalizer) -> None:
        with pytest.raises(ValidationError) as exc:
            normalizer.normalize(payload(timestamp=1718449200))
        assert error_codes(exc) == {"invalid_timestamp"}

    def test_too_old(self, normalizer: EventNormalizer) -> None:
        with pytest.raises(ValidationError) as exc:
            normalizer.normalize(payload(timestamp="2024-06-01T00:00:00Z"))
        assert error_codes(exc) == {"timestamp_too_old"}

    def test_too_far_in_future(self, normalizer: EventNormalizer) -> None:
        with pytest.raises(ValidationError) as exc:
            normalizer.normalize(payload(timestamp="2024-06-15T12:10:00Z"))
        assert error_codes(exc) == {"timestamp_in_future"}

    def test_small_clock_skew_accepted(self, normalizer: EventNormalizer) -> None:
        event = normalizer.normalize(payload(timestamp="2024-06-15T12:04:00Z"))
        assert event.timestamp.minute == 4

    @pytest.mark.parametrize("ts", ["9999-12-31T23:59:59-01:00", "0001-01-01T00:00:00+01:00"])
    def test_offset_past_calendar_edge(self, normalizer: EventNormalizer, ts: str) -> None:
        with pytest.raises(ValidationError) as exc:
            normalizer.normalize(payload(timestamp=ts))
        assert error_codes(exc) == {"invalid_timestamp"}


class TestTenantCheck:
    def test_unknown_site(self, normalizer: EventNormalizer) -> None:
        with pytest.raises(UnknownTenantError) as exc:
            normalizer.normalize(payload(site_id="ghost"))
        assert exc.value.site_id == "ghost"

    def test_tenant_not_checked_for_malformed_payload(
        self, normalizer: EventNormalizer, directory: MockSiteDirectory
    ) -> None:
        with pytest.raises(ValidationError):
            normalizer.normalize(payload(site_id="ghost", event_type=None))
        assert directory.lookups == []


class TestOptionalFields:
    def test_device_aliases(self, normalizer: EventNormalizer) -> None:
        event = normalizer.normalize(
            payload(deviceType="mobile", screenWidth=390, screenHeight=844.0, browser="Safari")
        )
        assert event.device_type == "mobile"
        assert event.screen_width == 390
        assert event.screen_height == 844
        assert event.browser == "Safari"

    def test_snake_case_wins_over_alias(self, normalizer: EventNormalizer) -> None:
        event = normalizer.normalize(payload(device_type="desktop", deviceType="mobile"))
        assert event.device_type == "desktop"

    def test_wrong_optional_types(self, normalizer: EventNormalizer) -> None:
        with pytest.raises(ValidationError) as exc:
            normalizer.normalize(payload(path=123, screen_width="wide"))
        fields = {e.field_name for e in exc.value.errors}
        assert fields == {"path", "screen_width"}

    def test_bool_is_not_an_int(self, normalizer: EventNormalizer) -> None:
        with pytest.raises(ValidationError):
            normalizer.normalize(payload(screen_width=True))

    @pytest.mark.parametrize("value", [10**20, -1, 1e20])
    def test_int_out_of_range(self, normalizer: EventNormalizer, value: Any) -> None:
        with pytest.raises(ValidationError) as exc:
            normalizer.normalize(payload(screen_width=value))
        assert error_codes(exc) == {"out_of_range"}
        assert exc.value.errors[0].field_name == "screen_width"

    def test_int_upper_bound_accepted(self, normalizer: EventNormalizer) -> None:
        event = normalizer.normalize(payload(screen_height=2**31 - 1))
        assert event.screen_height == 2**31 - 1

    def test_amount_wins_over_revenue(self, normalizer: EventNormalizer) -> None:
        event = normalizer.normalize(payload(event_type="revenue", amount=19.99, revenue=5, currency="USD"))
        assert event.revenue == Decimal("19.99")
        assert event.currency == "USD"

    def test_revenue_alias(self, normalizer: EventNormalizer) -> None:
        event = normalizer.normalize(payload(event_type="revenue", revenue="7.5"))
        assert event.revenue == Decimal("7.5")

    @pytest.mark.parametrize(
        "value,code",
        [(-1, "negative_revenue"), ("lots", "invalid_revenue"), (True, "invalid_revenue"), ("1e28", "invalid_revenue")],
    )
    def test_bad_revenue(self, normalizer: EventNormalizer, value: Any, code: str) -> None:
        with pytest.raises(ValidationError) as exc:
            normalizer.normalize(payload(amount=value))
        assert error_codes(exc) == {code}

    def test_event_data_json_string(self, normalizer: EventNormalizer) -> None:
        event = normalizer.normalize(
            payload(event_type="event", event_name="signup", event_data='{"plan": "pro"}')
        )
        assert event.event_data == {"plan": "pro"}

    def test_event_data_must_be_object(self, normalizer: EventNormalizer) -> None:
        with pytest.raises(ValidationError) as exc:
            normalizer.normalize(payload(event_data="[1, 2]"))
        assert error_codes(exc) == {"invalid_event_data"}


class TestClassificationAndRawPayload:
    def test_source_derived_server_side(self, normalizer: EventNormalizer) -> None:
        """Client-sent source/medium are ignored but kept in raw_payload."""
        data = payload(
            referrer="https://news.ycombinator.com/item?id=1",
            source="spoofed",
            medium="cpc",
            unknown_field={"nested": True},
        )
        event = normalizer.normalize(data)

        assert (event.source, event.medium) == ("hackernews", "referral")
        assert event.raw_payload == data
        assert event.raw_payload["source"] == "spoofed"

    def test_utm_tags_override(self, normalizer: EventNormalizer) -> None:
        event = normalizer.normalize(
            payload(referrer="https://www.google.com/", utm_source="newsletter", utm_medium="email")
        )
        assert (event.source, event.medium) == ("newsletter", "email")
        assert event.utm_source == "newsletter"

    def test_raw_payload_is_a_copy(self, normalizer: EventNormalizer) -> None:
        data = payload()
        event = normalizer.normalize(data)
        data["visitor_id"] = "mutated"
        assert event.raw_payload["visitor_id"] == "v1"
