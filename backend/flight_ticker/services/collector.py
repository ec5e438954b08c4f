"""
Price collection orchestration.

One run walks routes x weekend windows in order:
1. Acquire an Amadeus token (failure aborts the run)
2. Fetch and select a quote
3. Compare with the latest stored price for the same route and weekend
4. Store the sample
5. Dispatch alerts on a large enough drop
"""

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from flight_ticker.config import Settings, get_settings
from flight_ticker.exceptions import AuthenticationError
from flight_ticker.models import PriceSample
from flight_ticker.routes import Route, RouteTier
from flight_ticker.services.amadeus_client import AmadeusClient, FetchStatus, Quote
from flight_ticker.services.date_windows import DateWindow, next_weekends
from flight_ticker.services.notification import AlertDispatcher
from flight_ticker.services.price_detector import compute_delta, detect_drop, get_previous_price

logger = logging.getLogger(__name__)


def is_daily_window(hour: int, start_hour: int = 0, end_hour: int = 6) -> bool:
    """True when ``hour`` falls in the once-a-day slot for normal-tier routes."""
    # Overnight slot, e.g. 22:00 - 04:00
    if start_hour > end_hour:
        return hour >= start_hour or hour < end_hour
    return start_hour <= hour < end_hour


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PairStatus(str, enum.Enum):
    SAVED = "saved"
    NO_DATA = "no_data"
    FAILED = "failed"


@dataclass
class PairOutcome:
    route_code: str
    outbound: str
    status: PairStatus
    price: Optional[int] = None
    delta: int = 0
    alerted: bool = False
    error: Optional[str] = None


@dataclass
class CollectionSummary:
    started_at: datetime
    routes: List[str] = field(default_factory=list)
    outcomes: List[PairOutcome] = field(default_factory=list)
    include_normal: bool = False

    def _count(self, status: PairStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def saved(self) -> int:
        return self._count(PairStatus.SAVED)

    @property
    def no_data(self) -> int:
        return self._count(PairStatus.NO_DATA)

    @property
    def failed(self) -> int:
        return self._count(PairStatus.FAILED)

    @property
    def alerts_sent(self) -> int:
        return sum(1 for o in self.outcomes if o.alerted)

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "routes": self.routes,
            "include_normal": self.include_normal,
            "saved": self.saved,
            "no_data": self.no_data,
            "failed": self.failed,
            "alerts_sent": self.alerts_sent,
        }


class PriceCollector:
    """
    Runs one collection pass. Every collaborator is passed in, including the
    clock, so a run can be replayed for any wall-clock time.
    """

    def __init__(
        self,
        db: Session,
        client: AmadeusClient,
        dispatcher: AlertDispatcher,
        routes: List[Route],
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable = asyncio.sleep,
    ):
        self.db = db
        self.client = client
        self.dispatcher = dispatcher
        self.routes = routes
        self.settings = settings or get_settings()
        self.clock = clock
        self.sleep = sleep

    def local_now(self) -> datetime:
        return self.clock().astimezone(ZoneInfo(self.settings.timezone))

    def routes_for_run(self, now: datetime) -> List[Route]:
        """Core routes always; normal routes only inside the daily window."""
        include_normal = is_daily_window(
            now.hour,
            self.settings.daily_window_start_hour,
            self.settings.daily_window_end_hour,
        )
        return [
            r for r in self.routes
            if r.tier == RouteTier.CORE or include_normal
        ]

    async def run(self) -> CollectionSummary:
        now = self.local_now()
        routes = self.routes_for_run(now)
        summary = CollectionSummary(
            started_at=now,
            routes=[r.code for r in routes],
            include_normal=any(r.tier == RouteTier.NORMAL for r in routes),
        )

        try:
            token = await self.client.get_token()
        except AuthenticationError as e:
            logger.error(f"❌ Collection aborted, no Amadeus token: {e}")
            raise
        logger.info("✅ Amadeus token acquired")

        windows = next_weekends(self.settings.weekend_count, now.date())
        logger.info(
            f"Collecting {len(routes)} routes x {len(windows)} weekends "
            f"(normal tier {'included' if summary.include_normal else 'skipped'})"
        )

        first = True
        for route in routes:
            for window in windows:
                if not first:
                    await self.sleep(self.settings.request_delay_seconds)
                first = False
                outcome = await self.collect_pair(token, route, window)
                summary.outcomes.append(outcome)

        logger.info(
            f"Collection complete: {summary.saved} saved, {summary.no_data} without data, "
            f"{summary.failed} failed, {summary.alerts_sent} alerts"
        )
        return summary

    async def collect_pair(self, token: str, route: Route, window: DateWindow) -> PairOutcome:
        outbound = window.outbound.isoformat()
        try:
            result = await self.client.fetch_quote(token, route.code, window.outbound, window.inbound)

            if result.status == FetchStatus.NO_DATA:
                logger.info(f"  ⚠️ [{route.code} {outbound}] no non-stop offers")
                return PairOutcome(route.code, outbound, PairStatus.NO_DATA)

            if not result.is_success:
                logger.error(f"  ❌ [{route.code} {outbound}] fetch failed: {result.error}")
                return PairOutcome(route.code, outbound, PairStatus.FAILED, error=result.error)

            quote = result.quote
            previous = get_previous_price(self.db, route.code, window.outbound)
            delta = compute_delta(quote.price, previous)
            self._save_sample(quote, delta)
            logger.info(f"  ✅ [{route.code} {outbound}] {quote.price:,} KRW ({delta:+,})")

            outcome = PairOutcome(route.code, outbound, PairStatus.SAVED, price=quote.price, delta=delta)

            event = detect_drop(
                route_code=route.code,
                city=route.name,
                price=quote.price,
                previous_price=previous,
                outbound_date=window.outbound,
                inbound_date=window.inbound,
            )
            if event:
                logger.info(f"  📉 [{route.code} {outbound}] dropped {event.drop:,} KRW, dispatching alerts")
                dispatch = await self.dispatcher.dispatch(event)
                outcome.alerted = dispatch.any_sent

            return outcome

        except Exception as e:
            self.db.rollback()
            logger.error(f"  ❌ [{route.code} {outbound}] error: {e}")
            return PairOutcome(route.code, outbound, PairStatus.FAILED, error=str(e))

    def _save_sample(self, quote: Quote, delta: int) -> PriceSample:
        sample = PriceSample(
            route_code=quote.route_code,
            price=quote.price,
            departure_date=quote.outbound_date,
            return_date=quote.inbound_date,
            outbound_departure_time=quote.outbound_departure_time,
            outbound_arrival_time=quote.outbound_arrival_time,
            inbound_departure_time=quote.inbound_departure_time,
            inbound_arrival_time=quote.inbound_arrival_time,
            is_desirable=quote.is_desirable,
            airline=quote.airline,
            price_change=delta,
            collected_at=self.clock(),
        )
        self.db.add(sample)
        self.db.commit()
        return sample
