"""
Tracked destinations from Incheon.

Routes are static configuration, not database rows. The tier decides how often
a route is collected: core routes on every run, normal routes once a day.
"""
import enum
from dataclasses import dataclass
from typing import Iterable, List, Optional


class RouteTier(str, enum.Enum):
    CORE = "core"
    NORMAL = "normal"


@dataclass(frozen=True)
class Route:
    code: str
    name: str
    origin: str = "ICN"
    tier: RouteTier = RouteTier.NORMAL


# Most-travelled weekend destinations from ICN
DEFAULT_DESTINATIONS = [
    ("KIX", "Osaka"),
    ("NRT", "Tokyo/Narita"),
    ("FUK", "Fukuoka"),
    ("HKG", "Hong Kong"),
    ("BKK", "Bangkok"),
    ("DAD", "Da Nang"),
    ("TPE", "Taipei"),
    ("SIN", "Singapore"),
    ("GUM", "Guam"),
    ("CDG", "Paris"),
]


def build_routes(
    core_codes: Iterable[str],
    origin: str = "ICN",
    destinations: Optional[List[tuple]] = None,
) -> List[Route]:
    """Build the route catalogue, marking ``core_codes`` as the core tier."""
    core = {c.upper() for c in core_codes}
    return [
        Route(
            code=code,
            name=name,
            origin=origin,
            tier=RouteTier.CORE if code in core else RouteTier.NORMAL,
        )
        for code, name in (destinations or DEFAULT_DESTINATIONS)
    ]


def find_route(routes: List[Route], code: str) -> Optional[Route]:
    code = code.upper()
    for route in routes:
        if route.code == code:
            return route
    return None
