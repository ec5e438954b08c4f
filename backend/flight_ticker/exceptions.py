class FlightTickerError(Exception):
    """Base error for the price collector."""


class AuthenticationError(FlightTickerError):
    """Could not obtain an Amadeus access token. Aborts the collection run."""


class QuoteFetchError(FlightTickerError):
    """A flight-offers response could not be read."""
