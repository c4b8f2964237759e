# app/main.py
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from app.core.config import get_settings
from app.database import create_db_and_tables, create_db_engine

# Routers
from app.routers.orders import router as orders_router
from app.routers.fulfillment import router as fulfillment_router

settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Build the ledger store engine and keep it on app.state.
      - Verify DB connectivity and create tables.

    Shutdown:
      - Dispose of the engine's connection pool.
    """
    logger.info("🔄 Startup: Connecting to Supabase Postgres...")
    engine = create_db_engine(settings.DATABASE_URL)
    try:
        create_db_and_tables(engine)
        logger.info("✅ Startup: DB connection OK, tables verified.")
    except Exception as e:
        logger.error(f"❌ Startup: DB connection FAILED: {e}")
        raise
    app.state.engine = engine
    yield
    engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)

# Versioned API prefix, e.g. /api/v1
app.include_router(orders_router, prefix=settings.API_V1_STR)
app.include_router(fulfillment_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "dropship-fulfillment"}
