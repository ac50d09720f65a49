from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional

import sentry_sdk
from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.redis import RedisIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from discovery.config import settings
from discovery.models.interest import Decision
from discovery.models.profile import FeedFilters
from discovery.services.discovery_service import DiscoveryService, build_discovery_service
from discovery.utils.database import init_database
from discovery.utils.errors import DiscoveryError, Outcome, outcome_for
from discovery.utils.logging import configure_logging, get_logger, log_error

configure_logging()
logger = get_logger(__name__)

# Initialize Sentry if DSN is provided
if settings.SENTRY_DSN:
    logger.info("Initializing Sentry...")
    try:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            traces_sample_rate=1.0 if settings.ENVIRONMENT == "development" else 0.1,
            profiles_sample_rate=1.0 if settings.ENVIRONMENT == "development" else 0.1,
            integrations=[
                FastApiIntegration(transaction_style="url"),
                SqlalchemyIntegration(),
                RedisIntegration(),
            ],
        )
        logger.info("Sentry initialized")
    except Exception as e:
        logger.error("Failed to initialize Sentry", error=str(e))


class SwipeRequest(BaseModel):
    actor_id: str
    target_id: str
    decision: Decision


class BlockRequest(BaseModel):
    user_id: str
    other_id: str


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifespan."""
    # Startup
    logger.info("Starting discovery API...")

    if getattr(app.state, "service", None) is None:
        try:
            init_database()
        except Exception as e:
            error_details = {}
            if hasattr(e, "details"):
                error_details = e.details
            logger.error("Failed to initialize database", error=str(e), details=error_details)
            raise
        app.state.service = build_discovery_service()

    yield

    # Shutdown
    logger.info("Shutting down discovery API...")
    service = getattr(app.state, "service", None)
    if service is not None and service.notifier is not None:
        service.notifier.shutdown(wait=False)


def get_service(request: Request) -> DiscoveryService:
    return request.app.state.service


async def discovery_error_handler(request: Request, exc: DiscoveryError) -> JSONResponse:
    """Render discovery errors with the outcome callers act on."""
    content: Dict[str, Any] = {"error": exc.message, "details": exc.details}
    try:
        content["outcome"] = outcome_for(exc).value
    except DiscoveryError:
        # Not-found and validation errors have no outcome of their own
        pass
    if exc.status_code >= 500:
        log_error(logger, exc, "Request failed", {"path": request.url.path})
    return JSONResponse(status_code=exc.status_code, content=content)


def create_app(service: Optional[DiscoveryService] = None) -> FastAPI:
    """
    Build the discovery API.

    Args:
        service (Optional[DiscoveryService]): Pre-wired service. When omitted
            the lifespan initializes the database and wires one from settings.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        description="MeetsMatch discovery API",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.service = service
    app.add_exception_handler(DiscoveryError, discovery_error_handler)  # type: ignore[arg-type]

    @app.get("/health")
    async def health_check() -> JSONResponse:
        """Health check endpoint."""
        is_ready = app.state.service is not None
        return JSONResponse(
            status_code=200 if is_ready else 503,
            content={
                "status": "ok" if is_ready else "error",
                "app": settings.APP_NAME,
                "environment": settings.ENVIRONMENT,
            },
        )

    @app.get("/feed/{user_id}")
    def get_feed(
        user_id: str,
        max_distance_km: Optional[float] = None,
        min_age: Optional[int] = None,
        max_age: Optional[int] = None,
        interested_in: Optional[List[str]] = Query(default=None),
        service: DiscoveryService = Depends(get_service),
    ) -> Dict[str, Any]:
        filters = None
        if any(value is not None for value in (max_distance_km, min_age, max_age, interested_in)):
            filters = FeedFilters(
                max_distance_km=settings.DEFAULT_MAX_DISTANCE_KM if max_distance_km is None else max_distance_km,
                min_age=settings.DEFAULT_MIN_AGE if min_age is None else min_age,
                max_age=settings.DEFAULT_MAX_AGE if max_age is None else max_age,
                interested_in=set(interested_in or []),
            )
        feed = service.get_feed(user_id, filters)
        return {
            "outcome": (Outcome.OK if feed else Outcome.NO_CANDIDATES).value,
            "candidates": [candidate.public_dump() for candidate in feed],
        }

    @app.post("/swipes")
    def submit_swipe(body: SwipeRequest, service: DiscoveryService = Depends(get_service)) -> Dict[str, Any]:
        result = service.submit_swipe(body.actor_id, body.target_id, body.decision)
        return {"outcome": Outcome.OK.value, **result.model_dump(mode="json")}

    @app.get("/users/{user_id}/swipes/remaining")
    def get_swipes_remaining(user_id: str, service: DiscoveryService = Depends(get_service)) -> Dict[str, Any]:
        return {"outcome": Outcome.OK.value, "remaining": service.get_swipes_remaining(user_id)}

    @app.get("/users/{user_id}/matches")
    def list_matches(
        user_id: str,
        limit: int = Query(default=50, ge=1, le=200),
        offset: int = Query(default=0, ge=0),
        service: DiscoveryService = Depends(get_service),
    ) -> Dict[str, Any]:
        matches = service.list_matches(user_id, limit=limit, offset=offset)
        return {"outcome": Outcome.OK.value, "matches": [match.model_dump(mode="json") for match in matches]}

    @app.get("/users/{user_id}/admirers")
    def get_admirers(user_id: str, service: DiscoveryService = Depends(get_service)) -> Dict[str, Any]:
        admirers = service.get_admirers(user_id)
        return {"outcome": Outcome.OK.value, "admirers": [profile.public_dump() for profile in admirers]}

    @app.delete("/matches/{user_id}/{other_id}")
    def unmatch(user_id: str, other_id: str, service: DiscoveryService = Depends(get_service)) -> JSONResponse:
        if not service.unmatch(user_id, other_id):
            return JSONResponse(status_code=404, content={"error": "Match not found"})
        return JSONResponse(content={"outcome": Outcome.OK.value})

    @app.post("/blocks")
    def block_user(body: BlockRequest, service: DiscoveryService = Depends(get_service)) -> Dict[str, Any]:
        service.block_user(body.user_id, body.other_id)
        return {"outcome": Outcome.OK.value}

    @app.delete("/blocks/{user_id}/{other_id}")
    def unblock_user(user_id: str, other_id: str, service: DiscoveryService = Depends(get_service)) -> Dict[str, Any]:
        return {"outcome": Outcome.OK.value, "removed": service.unblock_user(user_id, other_id)}

    return app


app = create_app()
