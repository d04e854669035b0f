"""Lumiere Backend: FastAPI application entry point."""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from backend.errors import register_error_handlers
from backend.routes import auth, designer
from backend.middleware.rate_limit import RateLimitMiddleware
from backend.services.storage import MEDIA_URL_PATH, default_media_root

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    from backend.database import SessionLocal, init_db
    init_db()
    app.state.session_factory = SessionLocal

    from backend.designer.session_store import DesignSessionStore
    app.state.session_store = DesignSessionStore(SessionLocal)

    from backend.ai.generation import ImageGenerator, TextGenerator
    app.state.text_generator = TextGenerator()
    app.state.image_generator = ImageGenerator()

    from backend.services.storage import LocalObjectStorage
    app.state.storage = LocalObjectStorage(_media_root)
    yield


app = FastAPI(
    title="Lumiere API",
    description="AI jewelry design sessions for the Lumiere storefront",
    version="0.1.0",
    lifespan=lifespan,
)

register_error_handlers(app)

# CORS: allow frontend origins
_frontend_url = os.getenv("FRONTEND_URL")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[_frontend_url] if _frontend_url else [],
    allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rate limiting: 60 req/min general, 10 req/min for AI routes
app.add_middleware(
    RateLimitMiddleware,
    requests_per_minute=60,
    ai_requests_per_minute=10,
    enabled=os.getenv("RATE_LIMIT_ENABLED", "true").lower() not in ("0", "false", "no"),
)

# Register route modules
app.include_router(designer.router, prefix="/api", tags=["AI Designer"])
app.include_router(auth.router, prefix="/api", tags=["Auth"])

# Generated designs and reference images
_media_root = default_media_root()
os.makedirs(_media_root, exist_ok=True)
app.mount(MEDIA_URL_PATH, StaticFiles(directory=_media_root), name="media")


@app.get("/api/health")
async def health_check():
    return {"status": "healthy", "service": "lumiere-backend"}
