from sqlalchemy import Column, Boolean, Integer, String, Date, DateTime, Index
from sqlalchemy.sql import func
from flight_ticker.database import Base


class PriceSample(Base):
    """
    One collected quote for a route and weekend at a point in time.

    Rows are append-only. The latest price for a (route_code, departure_date)
    key is the row with the greatest collected_at.
    """
    __tablename__ = "price_history"
    __table_args__ = (
        Index("ix_price_history_route_departure", "route_code", "departure_date", "collected_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)

    route_code = Column(String(3), nullable=False, index=True)
    price = Column(Integer, nullable=False)

    # The weekend this price is for
    departure_date = Column(Date, nullable=False)
    return_date = Column(Date, nullable=False)

    # Local time-of-day strings ("HH:MM") from the chosen itinerary
    outbound_departure_time = Column(String(5), nullable=True)
    outbound_arrival_time = Column(String(5), nullable=True)
    inbound_departure_time = Column(String(5), nullable=True)
    inbound_arrival_time = Column(String(5), nullable=True)

    is_desirable = Column(Boolean, default=False, server_default='0', nullable=False)
    airline = Column(String(3), nullable=True)

    # Signed difference to the previous sample for the same key (0 for the first)
    price_change = Column(Integer, default=0, server_default='0', nullable=False)

    collected_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self) -> str:
        return f"<PriceSample {self.id}: {self.route_code} {self.departure_date} {self.price} KRW at {self.collected_at}>"
