from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from cancellation_engine.api.cancellations import router as cancellations_router
from cancellation_engine.api.review_queue import router as review_queue_router
from cancellation_engine.api.rules import router as rules_router
from cancellation_engine.core.config import settings
from cancellation_engine.core.models import HealthResponse
from cancellation_engine.database.tools.create_tables import create_tables
from cancellation_engine.database.tools.db_connection import get_db_session
from cancellation_engine.utils.logger import get_logger, log_separator

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log_separator(logger)
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}...")
    try:
        create_tables()
        logger.info("Database tables ready")
    except Exception as e:
        logger.error(f"Failed to prepare database: {str(e)}")
        logger.warning("API started but the database is not available")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.APP_NAME}...")


app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(cancellations_router)
app.include_router(review_queue_router)
app.include_router(rules_router)


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    db = get_db_session()
    try:
        db.execute(text("SELECT 1"))
        connected = True
    except Exception as e:
        logger.error(f"Health check could not reach the database: {e}")
        connected = False
    finally:
        db.close()

    return HealthResponse(
        status="healthy" if connected else "degraded",
        version=settings.APP_VERSION,
        database_connected=connected,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "cancellation_engine.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.API_RELOAD,
    )
