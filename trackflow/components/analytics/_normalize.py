"""
EventNormalizer - validates and canonicalizes inbound event payloads.

Key behaviors:
- Required: site_id, visitor_id, session_id, event_type, timestamp
- Shape errors are collected and raised together as ValidationError
- Unknown site_id -> UnknownTenantError (checked after shape validation)
- Timestamps outside the plausible window are rejected
- source/medium are re-derived with the traffic classifier
- Extra fields are ignored but kept verbatim in raw_payload
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from trackflow.core.entities import Event, EventType
from trackflow.core.errors import FieldError, UnknownTenantError, ValidationError
from trackflow.core.services.traffic import (
    DEFAULT_CONFIG as DEFAULT_CLASSIFIER_CONFIG,
)
from trackflow.core.services.traffic import (
    ClassifierConfig,
    classify,
    parse_utm_params,
)

from .ports import SiteDirectoryPort, TimePort

# --- Configuration ---


@dataclass(frozen=True)
class NormalizerConfig:
    """Ingestion configuration."""

    allowed_event_types: frozenset[str] = field(
        default_factory=lambda: frozenset(t.value for t in EventType),
    )
    max_id_length: int = 128

    # Timestamp validation
    max_timestamp_age_seconds: int = 7 * 24 * 3600  # 7 days
    max_timestamp_future_seconds: int = 300  # 5 minutes

    classifier: ClassifierConfig = DEFAULT_CLASSIFIER_CONFIG


DEFAULT_CONFIG = NormalizerConfig()

REQUIRED_ID_FIELDS = ("site_id", "visitor_id", "session_id")

# Stored as SQLite INTEGER
MAX_INT_FIELD = 2**31 - 1

# Monetary amounts must stay below this
MAX_AMOUNT = Decimal("1e12")

OPTIONAL_STRING_FIELDS = (
    "url",
    "path",
    "hostname",
    "title",
    "referrer",
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "ref",
    "device_type",
    "browser",
    "os",
    "language",
    "timezone",
    "event_name",
    "currency",
)

# camelCase keys sent by the tracking script
FIELD_ALIASES = {
    "deviceType": "device_type",
    "screenWidth": "screen_width",
    "screenHeight": "screen_height",
}


# --- Validation Functions ---


def validate_identifier(
    value: Any,
    field_name: str,
    config: NormalizerConfig = DEFAULT_CONFIG,
) -> list[FieldError]:
    """Required non-empty string identifier."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return [
            FieldError(
                code=f"{field_name}_required",
                message=f"Field '{field_name}' is required",
                field_name=field_name,
            )
        ]

    if not isinstance(value, str):
        return [
            FieldError(
                code="invalid_type",
                message=f"Field '{field_name}' must be a string",
                field_name=field_name,
            )
        ]

    if len(value) > config.max_id_length:
        return [
            FieldError(
                code="too_long",
                message=f"Field '{field_name}' exceeds {config.max_id_length} characters",
                field_name=field_name,
            )
        ]

    return []


def validate_event_type(
    event_type: Any,
    config: NormalizerConfig = DEFAULT_CONFIG,
) -> list[FieldError]:
    """Event type must be a known, allowed value."""
    if not event_type:
        return [
            FieldError(
                code="event_type_required",
                message="Event type is required",
                field_name="event_type",
            )
        ]

    if not isinstance(event_type, str) or event_type not in config.allowed_event_types:
        return [
            FieldError(
                code="invalid_event_type",
                message=f"Event type '{event_type}' is not allowed",
                field_name="event_type",
            )
        ]

    return []


def validate_timestamp(
    ts: Any,
    now: datetime,
    config: NormalizerConfig = DEFAULT_CONFIG,
) -> tuple[datetime | None, list[FieldError]]:
    """Parse an ISO-8601 timestamp and check it against the plausible window."""
    if ts is None or ts == "":
        return None, [
            FieldError(
                code="timestamp_required",
                message="Timestamp is required",
                field_name="timestamp",
            )
        ]

    parsed: datetime | None = None

    if isinstance(ts, datetime):
        parsed = ts
    elif isinstance(ts, str):
        try:
            parsed = datetime.fromisoformat(ts.strip().replace("Z", "+00:00"))
        except ValueError:
            parsed = None

    if parsed is None:
        return None, [
            FieldError(
                code="invalid_timestamp",
                message="Timestamp must be an ISO 8601 string",
                field_name="timestamp",
            )
        ]

    # Naive timestamps are taken as UTC
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    else:
        try:
            parsed = parsed.astimezone(UTC)
        except OverflowError:
            return None, [
                FieldError(
                    code="invalid_timestamp",
                    message="Timestamp is outside the supported date range",
                    field_name="timestamp",
                )
            ]

    age = (now - parsed).total_seconds()
    if age > config.max_timestamp_age_seconds:
        return None, [
            FieldError(
                code="timestamp_too_old",
                message=f"Timestamp is too old (max {config.max_timestamp_age_seconds}s)",
                field_name="timestamp",
            )
        ]
    if age < -config.max_timestamp_future_seconds:
        max_future = config.max_timestamp_future_seconds
        return None, [
            FieldError(
                code="timestamp_in_future",
                message=f"Timestamp is too far in future (max {max_future}s)",
                field_name="timestamp",
            )
        ]

    return parsed, []


def parse_optional_string(data: dict[str, Any], field_name: str) -> tuple[str | None, list[FieldError]]:
    value = data.get(field_name)
    if value is None:
        return None, []
    if not isinstance(value, str):
        return None, [
            FieldError(
                code="invalid_type",
                message=f"Field '{field_name}' must be a string",
                field_name=field_name,
            )
        ]
    return value, []


def parse_optional_int(data: dict[str, Any], field_name: str) -> tuple[int | None, list[FieldError]]:
    value = data.get(field_name)
    if value is None:
        return None, []
    # bool is an int subclass; reject it explicitly
    invalid = isinstance(value, bool) or not isinstance(value, int | float)
    if not invalid and isinstance(value, float):
        invalid = not value.is_integer()
    if invalid:
        return None, [
            FieldError(
                code="invalid_type",
                message=f"Field '{field_name}' must be an integer",
                field_name=field_name,
            )
        ]
    number = int(value)
    if not 0 <= number <= MAX_INT_FIELD:
        return None, [
            FieldError(
                code="out_of_range",
                message=f"Field '{field_name}' must be between 0 and {MAX_INT_FIELD}",
                field_name=field_name,
            )
        ]
    return number, []


def parse_revenue(data: dict[str, Any]) -> tuple[Decimal | None, list[FieldError]]:
    """Revenue from `amount`, falling back to `revenue`."""
    value = data.get("amount")
    if value is None:
        value = data.get("revenue")
    if value is None:
        return None, []

    amount: Decimal | None = None
    if not isinstance(value, bool) and isinstance(value, int | float | str):
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            amount = None

    if amount is None or not amount.is_finite():
        return None, [
            FieldError(
                code="invalid_revenue",
                message="Revenue must be a number",
                field_name="revenue",
            )
        ]
    if amount < 0:
        return None, [
            FieldError(
                code="negative_revenue",
                message="Revenue must not be negative",
                field_name="revenue",
            )
        ]
    if amount >= MAX_AMOUNT:
        return None, [
            FieldError(
                code="invalid_revenue",
                message=f"Revenue must be below {MAX_AMOUNT:f}",
                field_name="revenue",
            )
        ]
    return amount, []


def parse_event_data(value: Any) -> tuple[dict[str, Any] | None, list[FieldError]]:
    """event_data must be an object; a JSON-encoded object is accepted."""
    if value is None:
        return None, []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            value = None
    if not isinstance(value, dict):
        return None, [
            FieldError(
                code="invalid_event_data",
                message="Field 'event_data' must be a JSON object",
                field_name="event_data",
            )
        ]
    return value, []


def apply_aliases(data: dict[str, Any]) -> dict[str, Any]:
    """Copy camelCase aliases onto canonical keys (canonical keys win)."""
    merged = dict(data)
    for alias, canonical in FIELD_ALIASES.items():
        if merged.get(canonical) is None and alias in data:
            merged[canonical] = data[alias]
    return merged


# --- Normalizer ---


class EventNormalizer:
    """
    Turns a raw tracking payload into a canonical Event.

    Stateless apart from the injected ports; persistence is the caller's job.
    """

    def __init__(
        self,
        sites: SiteDirectoryPort,
        time_port: TimePort,
        config: NormalizerConfig | None = None,
    ) -> None:
        """Initialize normalizer."""
        self._sites = sites
        self._time = time_port
        self._config = config or DEFAULT_CONFIG

    def normalize(self, payload: Any) -> Event:
        """
        Validate and canonicalize one payload.

        Raises:
            ValidationError: required fields missing or malformed.
            UnknownTenantError: site_id does not resolve.
        """
        if not isinstance(payload, dict):
            raise ValidationError(
                [FieldError(code="invalid_payload", message="Payload must be a JSON object")]
            )

        data = apply_aliases(payload)
        errors: list[FieldError] = []

        for name in REQUIRED_ID_FIELDS:
            errors.extend(validate_identifier(data.get(name), name, self._config))

        errors.extend(validate_event_type(data.get("event_type"), self._config))

        ts, ts_errors = validate_timestamp(data.get("timestamp"), self._time.now_utc(), self._config)
        errors.extend(ts_errors)

        strings: dict[str, str | None] = {}
        for name in OPTIONAL_STRING_FIELDS:
            strings[name], field_errors = parse_optional_string(data, name)
            errors.extend(field_errors)

        screen_width, int_errors = parse_optional_int(data, "screen_width")
        errors.extend(int_errors)
        screen_height, int_errors = parse_optional_int(data, "screen_height")
        errors.extend(int_errors)

        revenue, revenue_errors = parse_revenue(data)
        errors.extend(revenue_errors)

        event_data, data_errors = parse_event_data(data.get("event_data"))
        errors.extend(data_errors)

        if errors or ts is None:
            raise ValidationError(errors)

        site_id: str = data["site_id"]
        if self._sites.resolve(site_id) is None:
            raise UnknownTenantError(site_id)

        classification = classify(
            strings["referrer"],
            parse_utm_params(data),
            self._config.classifier,
        )

        return Event(
            site_id=site_id,
            visitor_id=data["visitor_id"],
            session_id=data["session_id"],
            event_type=EventType(data["event_type"]),
            timestamp=ts,
            url=strings["url"],
            path=strings["path"],
            hostname=strings["hostname"],
            title=strings["title"],
            referrer=classification.referrer,
            source=classification.source,
            medium=classification.medium,
            utm_source=strings["utm_source"],
            utm_medium=strings["utm_medium"],
            utm_campaign=strings["utm_campaign"],
            utm_term=strings["utm_term"],
            utm_content=strings["utm_content"],
            ref=strings["ref"],
            device_type=strings["device_type"],
            browser=strings["browser"],
            os=strings["os"],
            screen_width=screen_width,
            screen_height=screen_height,
            language=strings["language"],
            timezone=strings["timezone"],
            event_name=strings["event_name"],
            event_data=event_data,
            revenue=revenue,
            currency=strings["currency"],
            raw_payload=dict(payload),
        )


# --- Factory ---


def create_event_normalizer(
    sites: SiteDirectoryPort,
    time_port: TimePort,
    config: NormalizerConfig | None = None,
) -> EventNormalizer:
    """Create an EventNormalizer."""
    return EventNormalizer(sites=sites, time_port=time_port, config=config)
