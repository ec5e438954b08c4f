"""
Schedule desirability for a weekend trip.

A desirable itinerary leaves between 07:00 and 13:59 and starts the trip home
between 15:00 and 22:59, both in the airport's local time.
"""
from datetime import datetime
from typing import Optional

OUTBOUND_HOURS = (7, 13)
INBOUND_HOURS = (15, 22)


def is_desirable_schedule(outbound_hour: int, inbound_hour: int) -> bool:
    return (
        OUTBOUND_HOURS[0] <= outbound_hour <= OUTBOUND_HOURS[1]
        and INBOUND_HOURS[0] <= inbound_hour <= INBOUND_HOURS[1]
    )


def _parse_local(timestamp: Optional[str]) -> Optional[datetime]:
    if not timestamp:
        return None
    try:
        return datetime.fromisoformat(timestamp)
    except (TypeError, ValueError):
        return None


def departure_hour(timestamp: Optional[str]) -> int:
    """Hour of a local ISO timestamp, or 0 when missing or unparseable."""
    parsed = _parse_local(timestamp)
    return parsed.hour if parsed else 0


def format_time_of_day(timestamp: Optional[str]) -> Optional[str]:
    """``"2025-03-14T09:35:00"`` -> ``"09:35"``."""
    parsed = _parse_local(timestamp)
    return parsed.strftime("%H:%M") if parsed else None
