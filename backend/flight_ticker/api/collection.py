from fastapi import APIRouter, Depends, HTTPException
from typing import List, Dict

from flight_ticker.api.dependencies import get_dispatcher
from flight_ticker.exceptions import AuthenticationError
from flight_ticker.scheduler import get_scheduler_status, run_collection
from flight_ticker.services.notification import AlertDispatcher

router = APIRouter()


@router.get("/notifications")
async def get_notifications(
    limit: int = 50,
    dispatcher: AlertDispatcher = Depends(get_dispatcher),
) -> List[Dict]:
    """Recent drop alerts, newest first."""
    return dispatcher.get_notifications(limit=limit)


@router.post("/collect")
async def trigger_collection(dispatcher: AlertDispatcher = Depends(get_dispatcher)) -> Dict:
    """Run a collection pass now instead of waiting for the next scheduled one."""
    try:
        summary = await run_collection(dispatcher=dispatcher)
    except AuthenticationError as e:
        raise HTTPException(status_code=502, detail=f"Amadeus authentication failed: {e}")
    return summary.to_dict()


@router.get("/scheduler")
async def scheduler_status() -> Dict:
    return get_scheduler_status()
