import datetime as dt
from enum import Enum
from typing import Optional

from pydantic import BaseModel, model_validator

# "all" reaches back to when the first service went live
ALL_TIME_START = dt.datetime(2024, 1, 1)


class Period(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"


class DateRange(BaseModel):
    model_config = {"frozen": True}

    start: dt.datetime
    end: dt.datetime
    period: Optional[Period] = None

    @model_validator(mode="after")
    def _ordered(self):
        if self.start > self.end:
            raise ValueError("start must not be after end")
        return self

    @property
    def hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600

    @property
    def days(self) -> float:
        return self.hours / 24


def month_start(moment: dt.datetime) -> dt.datetime:
    return moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def resolve_range(period: Period, now: Optional[dt.datetime] = None) -> DateRange:
    """Map a period selector to a concrete [start, end] window ending at `now`.

    Datetimes are naive local time, matching what the dashboard shows.
    """
    end = now or dt.datetime.now()
    period = Period(period)
    if period is Period.TODAY:
        start = end.replace(hour=0, minute=0, second=0, microsecond=0)
    elif period is Period.WEEK:
        start = end - dt.timedelta(days=7)
    elif period is Period.MONTH:
        start = month_start(end)
    else:
        start = min(ALL_TIME_START, end)
    return DateRange(start=start, end=end, period=period)
