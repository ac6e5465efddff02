import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from restaurant_api.core.config import CORS_ORIGINS, DATABASE_URL
from restaurant_api.core.database import Base, engine
from restaurant_api.core.errors import register_exception_handlers
from restaurant_api.core.logging_setup import configure_logging
from restaurant_api.core.startup_checks import ensure_migrations_applied, validate_database_environment
from restaurant_api.middleware.observability import ObservabilityMiddleware
import restaurant_api.models  # noqa: F401  models must be imported before create_all
from restaurant_api.routers.catalog import menu_items_router, restaurants_router, tables_router
from restaurant_api.routers.coupons import router as coupons_router
from restaurant_api.routers.inventory import router as inventory_router
from restaurant_api.routers.orders import router as orders_router
from restaurant_api.routers.promotions import router as promotions_router
from restaurant_api.services.event_handlers import register_event_handlers

configure_logging()

logger = logging.getLogger(__name__)
STARTUP_PREFIX = "[STARTUP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini")))


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
            return
        ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
    except Exception:
        logger.exception("%s ERROR startup failed", STARTUP_PREFIX)
        raise


@asynccontextmanager
async def lifespan(_: FastAPI):
    register_event_handlers()
    _startup_tasks()
    yield


app = FastAPI(
    title="Restaurant API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ObservabilityMiddleware)
register_exception_handlers(app)

# Routers
app.include_router(orders_router)
app.include_router(coupons_router)
app.include_router(restaurants_router)
app.include_router(menu_items_router)
app.include_router(tables_router)
app.include_router(inventory_router)
app.include_router(promotions_router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
