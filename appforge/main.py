import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

# ✅ Import All API Routes
from appforge.api.routes import auth, contact, generations, health, icons, user

from appforge.core.config import CORS_ORIGINS, DOWNLOADS_DIR, LOG_LEVEL, STORE_BACKEND, UPLOADS_DIR
from appforge.core.errors import register_exception_handlers
from appforge.core.logging_config import setup_logging
from appforge.llm.openai_provider import get_model_client
from appforge.llm.provider import ModelClient
from appforge.services.app_generator import AppGenerator
from appforge.services.storage import JobStore, MemoryJobStore

logger = logging.getLogger(__name__)


def build_store(backend: str = STORE_BACKEND) -> JobStore:
    """Job store for the configured backend (``sql`` or ``memory``)."""
    if backend == "memory":
        logger.warning("Using in-memory job store - data is lost on restart")
        return MemoryJobStore()

    from appforge.db.init_db import init_db
    from appforge.db.session import SessionLocal
    from appforge.db.sql_store import SqlJobStore

    init_db()
    return SqlJobStore(SessionLocal)


# ============================================
# ✅ STARTUP: LOGGING, STORE, MODEL CLIENT
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(LOG_LEVEL)
    if app.state.store is None:
        app.state.store = build_store()
    if app.state.model_client is None:
        app.state.model_client = get_model_client()
    if app.state.generator is None:
        app.state.generator = AppGenerator(app.state.store, app.state.model_client, downloads_dir=DOWNLOADS_DIR)
    logger.info(f"AppForge API started: store={type(app.state.store).__name__}")
    yield


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

def create_app(
    store: Optional[JobStore] = None,
    model_client: Optional[ModelClient] = None,
    generator: Optional[AppGenerator] = None,
    uploads_dir: str = UPLOADS_DIR,
) -> FastAPI:
    """
    Build the API app.

    Components left as None are created on startup from the environment.
    """
    app = FastAPI(title="AppForge API", lifespan=lifespan)

    app.state.store = store
    app.state.model_client = model_client
    app.state.generator = generator
    app.state.uploads_dir = uploads_dir

    # ✅ CORS: ONLY ALLOW THE FRONTEND
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Authorization", "Content-Type"],
    )

    register_exception_handlers(app)

    # ============================================
    # ✅ REGISTER ALL ROUTERS
    # ============================================

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(user.router)
    app.include_router(generations.router)
    app.include_router(icons.router)
    app.include_router(contact.router)
    app.mount("/uploads", StaticFiles(directory=uploads_dir, check_dir=False), name="uploads")

    return app


app = create_app()
