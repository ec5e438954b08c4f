from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import List, Optional
from dataclasses import asdict
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from flight_ticker.api.dependencies import get_routes
from flight_ticker.config import get_settings
from flight_ticker.database import get_db
from flight_ticker.models import PriceSample
from flight_ticker.routes import Route, find_route
from flight_ticker.services.price_queries import (
    HISTORY_LIMIT,
    build_ticker,
    get_latest_prices,
    get_price_history,
    get_recent_prices,
    get_route_summaries,
)

router = APIRouter()


class PricePoint(BaseModel):
    time: str
    price: int
    departure_date: date
    return_date: date
    is_desirable: bool
    collected_at: datetime


class LatestPrice(BaseModel):
    route_code: str
    price: int
    departure_date: date
    return_date: date
    outbound_departure_time: Optional[str] = None
    inbound_departure_time: Optional[str] = None
    is_desirable: bool
    price_change: int
    collected_at: datetime

    class Config:
        from_attributes = True


class RouteSummaryResponse(BaseModel):
    route_code: str
    min_price: int
    max_price: int
    avg_price: float
    data_points: int

    class Config:
        from_attributes = True


class TickerResponse(BaseModel):
    route_code: str
    city: str
    tier: str
    current_price: int
    previous_price: int
    change: int
    change_percent: float
    trend: str
    min_price: int
    max_price: int
    data_points: int


class RouteResponse(BaseModel):
    code: str
    name: str
    origin: str
    tier: str


def local_label(collected_at: datetime, tz_name: str) -> str:
    """``MM/DD HH:MM`` in the dashboard timezone. Naive values are stored UTC."""
    if collected_at.tzinfo is None:
        collected_at = collected_at.replace(tzinfo=timezone.utc)
    return collected_at.astimezone(ZoneInfo(tz_name)).strftime("%m/%d %H:%M")


def _to_point(sample: PriceSample, tz_name: str) -> PricePoint:
    return PricePoint(
        time=local_label(sample.collected_at, tz_name),
        price=sample.price,
        departure_date=sample.departure_date,
        return_date=sample.return_date,
        is_desirable=sample.is_desirable,
        collected_at=sample.collected_at,
    )


@router.get("/prices", response_model=List[PricePoint])
async def price_history(
    route: str = Query("HKG", min_length=3, max_length=3),
    limit: int = Query(HISTORY_LIMIT, ge=1, le=200),
    db: Session = Depends(get_db),
):
    """Price history for one route, oldest first."""
    tz_name = get_settings().timezone
    return [_to_point(s, tz_name) for s in get_price_history(db, route, limit=limit)]


@router.get("/latest", response_model=List[LatestPrice])
async def latest_prices(db: Session = Depends(get_db)):
    """Latest price for every route and weekend."""
    return get_latest_prices(db)


@router.get("/summary", response_model=List[RouteSummaryResponse])
async def route_summary(db: Session = Depends(get_db)):
    return get_route_summaries(db)


@router.get("/routes", response_model=List[RouteResponse])
async def list_routes(routes: List[Route] = Depends(get_routes)):
    return [
        RouteResponse(code=r.code, name=r.name, origin=r.origin, tier=r.tier.value)
        for r in routes
    ]


@router.get("/ticker", response_model=List[TickerResponse])
async def ticker(
    routes: List[Route] = Depends(get_routes),
    db: Session = Depends(get_db),
):
    """Dashboard cards: current price, change and range for each route with data."""
    cards = []
    for r in routes:
        quote = build_ticker(r.code, get_recent_prices(db, r.code))
        if quote is None:
            continue
        cards.append(TickerResponse(
            city=r.name,
            tier=r.tier.value,
            **asdict(quote),
        ))
    return cards


@router.get("/ticker/{route_code}", response_model=TickerResponse)
async def route_ticker(
    route_code: str,
    routes: List[Route] = Depends(get_routes),
    db: Session = Depends(get_db),
):
    r = find_route(routes, route_code)
    if not r:
        raise HTTPException(status_code=404, detail=f"Unknown route: {route_code}")

    quote = build_ticker(r.code, get_recent_prices(db, r.code))
    if quote is None:
        raise HTTPException(status_code=404, detail=f"No prices collected for {r.code} yet")

    return TickerResponse(city=r.name, tier=r.tier.value, **asdict(quote))
