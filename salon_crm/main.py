import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import config
from .database import build_engine, build_session_factory, init_db
from .domain.bookings import OnlineBookingService
from .domain.bookings import router as online_bookings_router
from .store import StoreClient, build_store

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_configured_store() -> StoreClient:
    """Store backend selected by STORE_BACKEND"""
    if config.STORE_BACKEND == "supabase":
        return build_store("supabase", supabase_url=config.SUPABASE_URL, supabase_key=config.SUPABASE_KEY)

    engine = build_engine(config.DATABASE_URL)
    try:
        init_db(engine)
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        if "already exists" in str(e):
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")
            raise
    return build_store("sql", session_factory=build_session_factory(engine), actor_id=config.LOCAL_ACTOR_ID)


def create_app(booking_service: Optional[OnlineBookingService] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Application starting up...")
        store = None
        service = booking_service
        if service is None:
            store = build_configured_store()
            service = OnlineBookingService(store)
            logger.info(f"Using {config.STORE_BACKEND} store backend")

        app.state.booking_service = service
        await service.start()

        yield

        logger.info("Application shutting down...")
        await service.stop()
        if store is not None:
            await store.close()

    app = FastAPI(title="Salon CRM Online Bookings API", version="1.0.0", lifespan=lifespan)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors())})

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    app.include_router(online_bookings_router)
    return app


app = create_app()
