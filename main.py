from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy import text
import logging
import models
from config import get_settings
from database import engine, SessionLocal
from migrations.runner import run_migrations
from routers import auth, users, events, invites, gifts, flights, translations
from services.event_service import EventService
from services.localization_service import LocalizationService

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

API_NAME = "Giftwise API"
API_VERSION = "1.0.0"


def import_translations():
    db = SessionLocal()
    try:
        count = LocalizationService(db, settings).import_translations_from_json()
        logger.info(f"Imported {count} translations")
    except Exception as e:
        db.rollback()
        logger.warning(f"Translation import skipped: {e}")
    finally:
        db.close()


def sync_participant_counts():
    db = SessionLocal()
    try:
        EventService(db).sync_participant_counts()
    except Exception as e:
        db.rollback()
        logger.warning(f"Participant count sync failed: {e}")
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, migrate, then load translations and repair counts."""
    logger.info(f"Starting {API_NAME} ({settings.APP_ENV})")
    models.Base.metadata.create_all(bind=engine)

    # A failing migration stops startup
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        run_migrations()
    if settings.IMPORT_TRANSLATIONS_ON_STARTUP:
        import_translations()
    if settings.SYNC_PARTICIPANTS_ON_STARTUP:
        sync_participant_counts()

    yield

    logger.info(f"Shutting down {API_NAME}")


app = FastAPI(
    title=API_NAME,
    version=API_VERSION,
    description="Group events with shared gift suggestions, votes and an AI travel agent",
    lifespan=lifespan,
)

# Production traffic goes through an ingress that handles CORS
if not settings.is_production:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["*"],
        max_age=3600,
    )

# Include routers
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(events.router, prefix="/events", tags=["Events"])
app.include_router(invites.router, prefix="/invites", tags=["Invites"])
app.include_router(gifts.router, prefix="/gift-suggestions", tags=["Gift Suggestions"])
app.include_router(flights.router, tags=["Flights"])
app.include_router(translations.router, prefix="/api/translations", tags=["Translations"])


@app.get("/health")
def health():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=500,
            content={"status": "error", "message": "Database connection failed"}
        )
    return {"status": "ok", "message": "Service is healthy"}


@app.get("/")
async def root():
    return {"message": API_NAME, "version": API_VERSION, "docs": "/docs"}
