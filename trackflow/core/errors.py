"""
Error taxonomy for the analytics engine.

Ingestion raises ValidationError / UnknownTenantError and writes nothing.
Queries raise AccessDeniedError for any site the caller does not own; the
message never says whether the site exists.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldError:
    """Single field-level validation failure."""

    code: str
    message: str
    field_name: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {"code": self.code, "message": self.message, "field": self.field_name}


class TrackflowError(Exception):
    """Base class for engine errors."""


class ValidationError(TrackflowError):
    """Inbound payload is malformed."""

    def __init__(self, errors: list[FieldError]) -> None:
        self.errors = list(errors)
        codes = ", ".join(e.code for e in self.errors)
        super().__init__(f"Invalid event payload: {codes}")


class UnknownTenantError(TrackflowError):
    """site_id does not resolve to an existing site."""

    def __init__(self, site_id: str) -> None:
        self.site_id = site_id
        super().__init__(f"Unknown site: {site_id}")


class InvalidFunnelError(TrackflowError):
    """Funnel definition cannot be evaluated."""


class AccessDeniedError(TrackflowError):
    """Caller may not read this site."""

    def __init__(self) -> None:
        super().__init__("Site not found")


class QueryTimeoutError(TrackflowError):
    """Store query ran past its deadline and was aborted."""
