from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from flight_ticker.api import collection, health, prices
from flight_ticker.scheduler import start_scheduler, stop_scheduler
from flight_ticker.services.notification import AlertDispatcher, build_sinks
from flight_ticker.config import get_settings
from flight_ticker.database import init_db

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting Flight Ticker")

    init_db()

    dispatcher = AlertDispatcher(build_sinks(settings))
    app.state.dispatcher = dispatcher
    configured = [s.name for s in dispatcher.sinks if s.is_configured()]
    logger.info(f"Alert sinks configured: {', '.join(configured) or 'none'}")

    if settings.scheduler_enabled:
        try:
            start_scheduler(dispatcher)
            logger.info("✅ APScheduler started")
        except Exception as e:
            logger.error(f"❌ Scheduler startup failed: {e}")

    yield

    logger.info("🛑 Shutting down Flight Ticker")

    try:
        stop_scheduler()
        await dispatcher.close()
    except Exception as e:
        logger.error(f"❌ Shutdown error: {e}")


app = FastAPI(
    title="Flight Ticker",
    description="Weekend airfare ticker for non-stop routes from Incheon",
    version="1.0.0",
    lifespan=lifespan
)

# Read-only API polled by the dashboard
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)

app.include_router(health.router, tags=["health"])
app.include_router(prices.router, prefix="/api", tags=["prices"])
app.include_router(collection.router, prefix="/api", tags=["collection"])


@app.get("/")
async def index():
    return {
        "service": "Flight Ticker API",
        "endpoints": ["/api/prices", "/api/latest", "/api/summary", "/api/ticker", "/api/routes"],
    }
