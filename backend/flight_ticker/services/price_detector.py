from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from flight_ticker.models import PriceSample

# A drop must exceed 10,000 KRW to alert; -10,000 exactly does not
DROP_THRESHOLD = -10_000


@dataclass
class DropEvent:
    route_code: str
    city: str
    price: int
    delta: int
    outbound_date: date
    inbound_date: Optional[date] = None

    @property
    def drop(self) -> int:
        return -self.delta

    @property
    def drop_percent(self) -> int:
        """Drop as a share of the previous price, in whole percent."""
        previous = self.price + self.drop
        if previous <= 0:
            return 0
        return round(self.drop / previous * 100)

    def to_payload(self) -> dict:
        return {
            "city": self.city,
            "code": self.route_code,
            "price": self.price,
            "drop": self.drop,
            "dropPercent": self.drop_percent,
            "date": self.outbound_date.isoformat(),
        }


def compute_delta(new_price: int, previous_price: Optional[int]) -> int:
    """Signed change from the previous sample; 0 when there is none."""
    if previous_price is None:
        return 0
    return new_price - previous_price


def is_price_drop(delta: int) -> bool:
    return delta < DROP_THRESHOLD


def detect_drop(
    route_code: str,
    city: str,
    price: int,
    previous_price: Optional[int],
    outbound_date: date,
    inbound_date: Optional[date] = None,
) -> Optional[DropEvent]:
    delta = compute_delta(price, previous_price)
    if not is_price_drop(delta):
        return None
    return DropEvent(
        route_code=route_code,
        city=city,
        price=price,
        delta=delta,
        outbound_date=outbound_date,
        inbound_date=inbound_date,
    )


def get_previous_price(db: Session, route_code: str, departure_date: date) -> Optional[int]:
    """Most recent stored price for the (route, outbound date) key."""
    row = db.query(PriceSample.price).filter(
        PriceSample.route_code == route_code,
        PriceSample.departure_date == departure_date,
    ).order_by(
        PriceSample.collected_at.desc(),
        PriceSample.id.desc(),
    ).first()
    return row[0] if row else None
