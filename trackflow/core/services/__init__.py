# TrackFlow core services - pure functions with no I/O.
