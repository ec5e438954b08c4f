from dataclasses import dataclass
from datetime import date, timedelta
from typing import List

FRIDAY = 4
TRIP_NIGHTS = 2


@dataclass(frozen=True)
class DateWindow:
    """A Friday-to-Sunday weekend trip."""
    outbound: date
    inbound: date


def next_friday(after: date) -> date:
    """Return the first Friday strictly after ``after``."""
    days_ahead = (FRIDAY - after.weekday()) % 7 or 7
    return after + timedelta(days=days_ahead)


def next_weekends(count: int, today: date) -> List[DateWindow]:
    """
    Generate the next ``count`` weekend windows after ``today``.

    If today is a Friday the first window starts next week, so a run never
    asks for a flight departing today.
    """
    windows: List[DateWindow] = []
    friday = next_friday(today)
    for _ in range(max(count, 0)):
        windows.append(DateWindow(outbound=friday, inbound=friday + timedelta(days=TRIP_NIGHTS)))
        friday += timedelta(days=7)
    return windows
