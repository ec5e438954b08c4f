"""
Amadeus Flight Offers Search client.

Fetches non-stop round-trip offers for one route and weekend, and reduces them
to the single quote the collector stores.
"""
import enum
import httpx
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Optional

from flight_ticker.config import Settings, get_settings
from flight_ticker.exceptions import AuthenticationError, QuoteFetchError
from flight_ticker.services.schedule_rule import (
    departure_hour,
    format_time_of_day,
    is_desirable_schedule,
)

logger = logging.getLogger(__name__)


@dataclass
class Offer:
    price: int
    airline: Optional[str] = None
    outbound_departure_at: Optional[str] = None
    outbound_arrival_at: Optional[str] = None
    inbound_departure_at: Optional[str] = None
    inbound_arrival_at: Optional[str] = None

    @property
    def is_desirable(self) -> bool:
        return is_desirable_schedule(
            departure_hour(self.outbound_departure_at),
            departure_hour(self.inbound_departure_at),
        )


@dataclass
class Quote:
    route_code: str
    price: int
    currency: str
    outbound_date: date
    inbound_date: date
    is_desirable: bool
    airline: Optional[str] = None
    outbound_departure_time: Optional[str] = None
    outbound_arrival_time: Optional[str] = None
    inbound_departure_time: Optional[str] = None
    inbound_arrival_time: Optional[str] = None


class FetchStatus(str, enum.Enum):
    SUCCESS = "success"
    NO_DATA = "no_data"
    FAILURE = "failure"


@dataclass
class FetchResult:
    status: FetchStatus
    quote: Optional[Quote] = None
    offer_count: int = 0
    error: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.status == FetchStatus.SUCCESS


def select_best_offer(offers: List[Offer]) -> Optional[Offer]:
    """
    Pick the cheapest desirable offer, or the cheapest overall if none is
    desirable. Ties keep the first offer encountered.
    """
    if not offers:
        return None
    desirable = [o for o in offers if o.is_desirable]
    candidates = desirable or offers
    return min(candidates, key=lambda o: o.price)


def round_price(amount) -> int:
    """Decimal price string -> whole currency units, half rounded up."""
    try:
        return int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except (InvalidOperation, ValueError) as e:
        raise QuoteFetchError(f"Invalid price {amount!r}") from e


def _segment_times(itinerary: dict) -> tuple:
    segments = itinerary.get("segments") or []
    if not segments:
        return None, None
    departure = segments[0].get("departure", {}).get("at")
    arrival = segments[-1].get("arrival", {}).get("at")
    return departure, arrival


def parse_offers(payload) -> List[Offer]:
    """Map a flight-offers response body to ``Offer`` objects.

    Offers without a usable price are skipped. An ``errors`` body or a
    non-list ``data`` raises ``QuoteFetchError``.
    """
    if not isinstance(payload, dict):
        raise QuoteFetchError("Response body is not a JSON object")

    data = payload.get("data")
    if data is None:
        errors = payload.get("errors")
        if errors:
            first = errors[0] if isinstance(errors, list) and errors else errors
            if isinstance(first, dict):
                first = first.get("detail") or first.get("title")
            raise QuoteFetchError(f"API error: {first}")
        return []
    if not isinstance(data, list):
        raise QuoteFetchError("Response 'data' is not a list")

    offers = []
    for item in data:
        try:
            price_info = item.get("price", {})
            price_val = price_info.get("grandTotal") or price_info.get("total")
            if not price_val:
                continue

            itineraries = item.get("itineraries") or []
            out_dep, out_arr = _segment_times(itineraries[0]) if len(itineraries) > 0 else (None, None)
            in_dep, in_arr = _segment_times(itineraries[1]) if len(itineraries) > 1 else (None, None)

            airlines = item.get("validatingAirlineCodes") or []
            offers.append(Offer(
                price=round_price(price_val),
                airline=airlines[0] if airlines else None,
                outbound_departure_at=out_dep,
                outbound_arrival_at=out_arr,
                inbound_departure_at=in_dep,
                inbound_arrival_at=in_arr,
            ))
        except (QuoteFetchError, AttributeError, KeyError, IndexError) as e:
            logger.debug(f"Skipping malformed offer: {e}")
            continue

    return offers


class AmadeusClient:
    """Client for the Amadeus OAuth2 token and Flight Offers Search endpoints."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.client_id = settings.amadeus_client_id
        self.client_secret = settings.amadeus_client_secret
        self.base_url = settings.amadeus_base_url.rstrip("/")
        self.origin = settings.origin
        self.currency = settings.currency
        self.max_offers = settings.max_offers
        self._token: Optional[str] = None
        self._token_expires: Optional[datetime] = None

    def is_available(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def get_token(self) -> str:
        """Return a bearer token, requesting a new one when the cached one expired."""
        if self._token and self._token_expires and datetime.utcnow() < self._token_expires:
            return self._token

        if not self.is_available():
            raise AuthenticationError("Amadeus credentials not configured")

        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(
                    f"{self.base_url}/v1/security/oauth2/token",
                    data={
                        "grant_type": "client_credentials",
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                    }
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise AuthenticationError(f"Token request failed: HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise AuthenticationError(f"Token request failed: {e}") from e

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise AuthenticationError("Token response has no access_token")

        self._token = token
        self._token_expires = datetime.utcnow() + timedelta(seconds=data.get("expires_in", 1799) - 60)
        return self._token

    async def search_offers(
        self,
        token: str,
        destination: str,
        departure_date: date,
        return_date: date,
    ) -> List[Offer]:
        params = {
            "originLocationCode": self.origin,
            "destinationLocationCode": destination,
            "departureDate": departure_date.isoformat(),
            "returnDate": return_date.isoformat(),
            "adults": 1,
            "currencyCode": self.currency,
            "nonStop": "true",
            "max": self.max_offers,
        }

        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.get(
                f"{self.base_url}/v2/shopping/flight-offers",
                headers={"Authorization": f"Bearer {token}"},
                params=params,
            )
            response.raise_for_status()
            try:
                payload = response.json()
            except ValueError as e:
                raise QuoteFetchError("Response body is not JSON") from e

        return parse_offers(payload)

    async def fetch_quote(
        self,
        token: str,
        route_code: str,
        outbound: date,
        inbound: date,
    ) -> FetchResult:
        """Fetch offers for one route and weekend and select the quote to store."""
        try:
            offers = await self.search_offers(token, route_code, outbound, inbound)
        except httpx.HTTPStatusError as e:
            return FetchResult(status=FetchStatus.FAILURE, error=f"HTTP {e.response.status_code}")
        except (httpx.HTTPError, QuoteFetchError) as e:
            return FetchResult(status=FetchStatus.FAILURE, error=str(e) or type(e).__name__)

        best = select_best_offer(offers)
        if best is None:
            return FetchResult(status=FetchStatus.NO_DATA)

        quote = Quote(
            route_code=route_code,
            price=best.price,
            currency=self.currency,
            outbound_date=outbound,
            inbound_date=inbound,
            is_desirable=best.is_desirable,
            airline=best.airline,
            outbound_departure_time=format_time_of_day(best.outbound_departure_at),
            outbound_arrival_time=format_time_of_day(best.outbound_arrival_at),
            inbound_departure_time=format_time_of_day(best.inbound_departure_at),
            inbound_arrival_time=format_time_of_day(best.inbound_arrival_at),
        )
        return FetchResult(status=FetchStatus.SUCCESS, quote=quote, offer_count=len(offers))
