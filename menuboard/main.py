import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from menuboard.core.config import AUTO_CREATE_SCHEMA, CORS_ORIGINS, DATABASE_URL
from menuboard.core.database import Base, SessionLocal, engine
from menuboard.core.logging_setup import configure_logging
from menuboard.core.startup_checks import ensure_migrations_applied, validate_database_environment
from menuboard.middleware.observability import ObservabilityMiddleware
import menuboard.models  # noqa: F401  registers the tables before create_all

from menuboard.routers.auth import router as auth_router
from menuboard.routers.internal_metrics import router as internal_metrics_router
from menuboard.routers.menu_builder import router as menu_builder_router
from menuboard.routers.public_menu import router as public_menu_router
from menuboard.routers.realtime import router as realtime_router
from menuboard.routers.shops import router as shops_router
from menuboard.services.owners import upsert_owner

configure_logging()

logger = logging.getLogger(__name__)
BOOTSTRAP_PREFIX = "[OWNER_BOOTSTRAP]"
DEFAULT_OWNER_EMAIL = "owner@example.com"
DEFAULT_OWNER_NAME = "Owner"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini")))


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(
    title="Menuboard API",
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


def _bootstrap_dev_owner() -> None:
    password = os.getenv("DEV_OWNER_PASSWORD", "").strip()
    if not password:
        logger.info("%s skipped: configure DEV_OWNER_PASSWORD.", BOOTSTRAP_PREFIX)
        return

    email = os.getenv("DEV_OWNER_EMAIL", DEFAULT_OWNER_EMAIL).strip() or DEFAULT_OWNER_EMAIL
    name = os.getenv("DEV_OWNER_NAME", DEFAULT_OWNER_NAME).strip() or DEFAULT_OWNER_NAME

    db = SessionLocal()
    try:
        owner, created = upsert_owner(db, email=email, name=name, password=password)
        logger.info(
            "%s %s id=%s email=%s",
            BOOTSTRAP_PREFIX,
            "created" if created else "updated",
            owner.id,
            owner.email,
        )
    except Exception:
        logger.exception("%s ERROR bootstrap failed", BOOTSTRAP_PREFIX)
        raise
    finally:
        db.close()


def _startup_tasks() -> None:
    validate_database_environment(DATABASE_URL)
    if AUTO_CREATE_SCHEMA:
        Base.metadata.create_all(bind=engine)
        logger.info("schema ensured with create_all")
    else:
        ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
    _bootstrap_dev_owner()


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(auth_router)
app.include_router(shops_router)
app.include_router(menu_builder_router)
app.include_router(public_menu_router)
app.include_router(realtime_router)
app.include_router(internal_metrics_router)
