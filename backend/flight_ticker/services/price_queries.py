"""
Read queries behind the dashboard API.
"""
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from flight_ticker.models import PriceSample

HISTORY_LIMIT = 30


@dataclass
class RouteSummary:
    route_code: str
    min_price: int
    max_price: int
    avg_price: float
    data_points: int


@dataclass
class TickerQuote:
    route_code: str
    current_price: int
    previous_price: int
    change: int
    change_percent: float
    trend: str
    min_price: int
    max_price: int
    data_points: int


def get_price_history(db: Session, route_code: str, limit: int = HISTORY_LIMIT) -> List[PriceSample]:
    """All samples for a route in collection order, capped at ``limit``."""
    return db.query(PriceSample).filter(
        PriceSample.route_code == route_code.upper()
    ).order_by(
        PriceSample.collected_at.asc(),
        PriceSample.id.asc(),
    ).limit(limit).all()


def get_recent_prices(db: Session, route_code: str, limit: int = HISTORY_LIMIT) -> List[PriceSample]:
    """The newest ``limit`` samples for a route, returned oldest first."""
    rows = db.query(PriceSample).filter(
        PriceSample.route_code == route_code.upper()
    ).order_by(
        PriceSample.collected_at.desc(),
        PriceSample.id.desc(),
    ).limit(limit).all()
    return list(reversed(rows))


def get_latest_prices(db: Session) -> List[PriceSample]:
    """Latest sample per (route, departure date), ordered by route then date."""
    latest = db.query(
        PriceSample.route_code,
        PriceSample.departure_date,
        func.max(PriceSample.collected_at).label("collected_at"),
    ).group_by(
        PriceSample.route_code,
        PriceSample.departure_date,
    ).subquery()

    rows = db.query(PriceSample).join(
        latest,
        and_(
            PriceSample.route_code == latest.c.route_code,
            PriceSample.departure_date == latest.c.departure_date,
            PriceSample.collected_at == latest.c.collected_at,
        ),
    ).order_by(
        PriceSample.route_code,
        PriceSample.departure_date,
        PriceSample.id.desc(),
    ).all()

    # Same-timestamp duplicates: keep the highest id per key
    seen = set()
    result = []
    for row in rows:
        key = (row.route_code, row.departure_date)
        if key in seen:
            continue
        seen.add(key)
        result.append(row)
    return result


def get_route_summaries(db: Session) -> List[RouteSummary]:
    rows = db.query(
        PriceSample.route_code,
        func.min(PriceSample.price),
        func.max(PriceSample.price),
        func.avg(PriceSample.price),
        func.count(PriceSample.id),
    ).group_by(PriceSample.route_code).order_by(PriceSample.route_code).all()

    return [
        RouteSummary(
            route_code=code,
            min_price=min_price,
            max_price=max_price,
            avg_price=round(float(avg_price), 2),
            data_points=count,
        )
        for code, min_price, max_price, avg_price, count in rows
    ]


def build_ticker(route_code: str, history: List[PriceSample]) -> Optional[TickerQuote]:
    """
    Stock-ticker view of a route's history: last price, change against the
    sample before it, and the range.
    """
    if not history:
        return None

    prices = [s.price for s in history]
    current = prices[-1]
    previous = prices[-2] if len(prices) > 1 else current
    change = current - previous
    change_percent = round(change / previous * 100, 1) if previous > 0 else 0.0

    if change > 0:
        trend = "up"
    elif change < 0:
        trend = "down"
    else:
        trend = "flat"

    return TickerQuote(
        route_code=route_code,
        current_price=current,
        previous_price=previous,
        change=change,
        change_percent=change_percent,
        trend=trend,
        min_price=min(prices),
        max_price=max(prices),
        data_points=len(prices),
    )
