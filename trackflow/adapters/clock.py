from datetime import UTC, datetime, timedelta


class SystemClock:
    def now_utc(self) -> datetime:
        return datetime.now(UTC)


class FixedClock:
    """Clock pinned to one instant; advance() moves it forward."""

    def __init__(self, now: datetime):
        self._now = now if now.tzinfo else now.replace(tzinfo=UTC)

    def now_utc(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        self._now = now if now.tzinfo else now.replace(tzinfo=UTC)

    def advance(self, **kwargs: float) -> None:
        self._now += timedelta(**kwargs)
