import asyncio
import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tripplanner.api.routers.places import router as places_router
from tripplanner.api.routers.trips import router as trips_router
from tripplanner.core.kv_store import build_store
from tripplanner.core.llm_provider import LLMProvider
from tripplanner.core.places_service import PlacesService
from tripplanner.core.repository import TripRepository
from tripplanner.core.settings import get_settings
from tripplanner.core.trip_state import TripStateManager

load_dotenv()

logger = logging.getLogger(__name__)


def build_manager() -> TripStateManager:
    settings = get_settings()
    repository = TripRepository(build_store(settings))

    try:
        provider = LLMProvider(model=settings.planner_model)
    except RuntimeError as e:
        logger.warning("[Planner] Trip planning unavailable: %s", e)
        provider = None

    try:
        places = PlacesService()
    except ValueError as e:
        logger.warning("[Places] Photo enrichment unavailable: %s", e)
        places = None

    return TripStateManager(repository, provider=provider, places=places)


def create_app(manager: TripStateManager | None = None) -> FastAPI:
    manager = manager or build_manager()

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        autosave = asyncio.create_task(manager.run_autosave())
        manager.load_last_active_trip()
        try:
            yield
        finally:
            autosave.cancel()
            # Shutdown counts as going to the background
            manager.save_before_background()

    application = FastAPI(title="Trip Planner Backend", lifespan=lifespan)

    allowed_origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # For deployments: set ALLOWED_ORIGINS=https://a.example,https://b.example
    prod_origins = os.getenv("ALLOWED_ORIGINS", "")
    if prod_origins:
        allowed_origins.extend(
            [origin.strip() for origin in prod_origins.split(",") if origin.strip()]
        )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    application.state.manager = manager

    application.include_router(trips_router)
    application.include_router(places_router)
    return application


app = create_app()
