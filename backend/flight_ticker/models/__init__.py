# SQLAlchemy models
from flight_ticker.models.price_sample import PriceSample

__all__ = [
    "PriceSample",
]
