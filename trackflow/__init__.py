"""TrackFlow Analytics - multi-tenant event analytics engine."""

__version__ = "0.1.0"
