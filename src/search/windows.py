"""Resolve symbolic time windows into UTC half-open datetime intervals.

Every window is `[start, end)` in UTC:
    - rolling windows (`1h` ... `90d`): [now - duration, now)
    - `today`: [today 00:00:00, now)
    - `yesterday`: [yesterday 00:00:00, today 00:00:00)
    - `this_week`: [Monday 00:00:00, now)
    - `all`: unbounded (`None`)
"""

from __future__ import annotations

from datetime import UTC, datetime, time, timedelta

from src.search.schema import TimeRange

_ROLLING: dict[TimeRange, timedelta] = {
    TimeRange.last_1h: timedelta(hours=1),
    TimeRange.last_6h: timedelta(hours=6),
    TimeRange.last_12h: timedelta(hours=12),
    TimeRange.last_24h: timedelta(hours=24),
    TimeRange.last_7d: timedelta(days=7),
    TimeRange.last_30d: timedelta(days=30),
    TimeRange.last_90d: timedelta(days=90),
}


def _utc_midnight(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min, tzinfo=UTC)


def time_window_bounds(
        window: TimeRange | str,
        *,
        now: datetime,
) -> tuple[datetime, datetime] | None:
    """Return the UTC `[start, end)` interval of `window` relative to `now`.

    Args:
        window: A `TimeRange` or its wire value (e.g. `"24h"`).
        now: Reference instant; must be timezone-aware.

    Returns:
        The interval, or `None` for `all`.

    Raises:
        ValueError: If `now` is naive or `window` is not a known time range.
    """

    if now.tzinfo is None or now.utcoffset() is None:
        raise ValueError("now must be timezone-aware")

    window = TimeRange(window)
    now_utc = now.astimezone(UTC)

    if window == TimeRange.all:
        return None
    if window in _ROLLING:
        return now_utc - _ROLLING[window], now_utc

    midnight = _utc_midnight(now_utc)
    if window == TimeRange.today:
        return midnight, now_utc
    if window == TimeRange.yesterday:
        return midnight - timedelta(days=1), midnight
    if window == TimeRange.this_week:
        return midnight - timedelta(days=now_utc.weekday()), now_utc

    raise ValueError(f"Unsupported time range: {window}")
