from typing import List

from fastapi import Request

from flight_ticker.config import get_settings
from flight_ticker.routes import Route, build_routes
from flight_ticker.services.notification import AlertDispatcher, build_sinks


def get_routes() -> List[Route]:
    settings = get_settings()
    return build_routes(settings.core_route_codes, origin=settings.origin)


def get_dispatcher(request: Request) -> AlertDispatcher:
    """The app-wide dispatcher, created on first use when lifespan didn't run."""
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        dispatcher = AlertDispatcher(build_sinks(get_settings()))
        request.app.state.dispatcher = dispatcher
    return dispatcher
