import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Union

import pandas as pd


@dataclass
class StreakData:
    current_streak: int = 0
    longest_streak: int = 0
    last_read_date: Optional[date] = None


def clamp_progress(percentage: float) -> float:
    """Clamp a reading-progress percentage into [0, 100]."""
    value = float(percentage)
    if math.isnan(value):
        raise ValueError("progress percentage must be a number")
    return max(0.0, min(100.0, value))


def is_completed(percentage: float) -> bool:
    return clamp_progress(percentage) >= 100.0


def _to_date(value: Union[str, date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    # Supabase returns ISO strings with variable fractional seconds
    return pd.to_datetime(value, utc=True).date()


def calculate_streak(read_timestamps: Iterable, today: date) -> StreakData:
    """
    Compute reading streaks from a list of activity timestamps.

    Parameters
    ----------
    read_timestamps : iterable
        ``last_read_at`` values (ISO strings, dates or datetimes).
    today : date
        Reference day; a streak is still alive if the latest activity was
        today or yesterday.

    Returns
    -------
    StreakData
    """
    days = sorted({_to_date(ts) for ts in read_timestamps if ts}, reverse=True)
    if not days:
        return StreakData()

    one_day = timedelta(days=1)

    runs = []
    run = 1
    for prev, cur in zip(days, days[1:]):
        if prev - cur == one_day:
            run += 1
        else:
            runs.append(run)
            run = 1
    runs.append(run)

    is_active = days[0] in (today, today - one_day)
    current = runs[0] if is_active else 0

    return StreakData(
        current_streak=current,
        longest_streak=max(max(runs), current),
        last_read_date=days[0],
    )
