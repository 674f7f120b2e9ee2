import asyncio
import logging
import threading
from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool

from turnright.core.cache import CacheClient, InMemoryCacheClient, MongoCacheClient
from turnright.core.category_rules import GOAL_RULES
from turnright.core.errors import InvalidRouteRequest, RequestCancelled
from turnright.core.overpass_service import OverpassService
from turnright.core.places_service import GooglePlacesService
from turnright.core.route_engine import RouteEngine
from turnright.core.schemas import RouteRequest, RouteResponse
from turnright.core.settings import Settings, get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/routes", tags=["routes"])

# Seconds between client-disconnect checks while a route is being generated
DISCONNECT_POLL_S = 0.5

# Non-standard "client closed request" status
CLIENT_CLOSED_REQUEST = 499


def build_cache(settings: Settings) -> CacheClient:
    if settings.cache_backend == "mongo":
        return MongoCacheClient(
            settings.mongodb_uri,
            settings.database_name,
            search_ttl_s=settings.search_cache_ttl_s,
            details_ttl_s=settings.details_cache_ttl_s,
        )
    return InMemoryCacheClient(
        search_ttl_s=settings.search_cache_ttl_s,
        details_ttl_s=settings.details_cache_ttl_s,
    )


@lru_cache
def get_route_engine() -> RouteEngine:
    """Process-wide engine; the cache is the only state shared between requests."""
    settings = get_settings()
    places = GooglePlacesService(settings.google_places_api_key, timeout=settings.request_timeout_s)
    overpass = OverpassService(settings.overpass_url, timeout=settings.request_timeout_s)
    logger.info(f"[Routes] Route engine ready (cache={settings.cache_backend})")
    return RouteEngine(places, build_cache(settings), overpass, settings)


async def _watch_disconnect(request: Request, cancel_event: threading.Event) -> None:
    while not cancel_event.is_set():
        if await request.is_disconnected():
            logger.info("[Routes] Client disconnected, cancelling generation")
            cancel_event.set()
            return
        await asyncio.sleep(DISCONNECT_POLL_S)


@router.post("/generate", response_model=RouteResponse)
async def generate_route(
    payload: RouteRequest,
    request: Request,
    engine: RouteEngine = Depends(get_route_engine),
) -> RouteResponse:
    """
    Generate a walkable, time-bounded route for the requested goals.

    The engine runs in a worker thread; if the client goes away mid-request
    the outstanding provider calls are abandoned.
    """
    cancel_event = threading.Event()
    watcher = asyncio.create_task(_watch_disconnect(request, cancel_event))
    try:
        return await run_in_threadpool(engine.generate, payload, cancel_event)
    except InvalidRouteRequest as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RequestCancelled:
        raise HTTPException(status_code=CLIENT_CLOSED_REQUEST, detail="Client closed request")
    finally:
        cancel_event.set()
        watcher.cancel()


@router.get("/goals")
def list_goals() -> list[dict]:
    """Return the supported goals with their aliases and default dwell minutes."""
    return [
        {
            "name": rule.name,
            "aliases": list(rule.aliases),
            "dwell_minutes": rule.dwell_minutes,
            "nightlife": rule.nightlife,
        }
        for rule in GOAL_RULES
    ]
