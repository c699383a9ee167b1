"""Main FastAPI application."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from expdash.config import get_settings
from expdash.middleware.logging import LoggingMiddleware, get_logger
from expdash.api import experiments, health, integrations, setup
from expdash.database import engine, Base
import expdash.models  # noqa: F401  registers all tables on Base.metadata

settings = get_settings()
logger = get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown."""
    Base.metadata.create_all(bind=engine)
    logger.info("database_tables_ready", url=engine.url.render_as_string(hide_password=True))

    yield  # App runs here

    logger.info("shutting_down", service=settings.app_name)


app = FastAPI(
    title=settings.app_name,
    description="Create, configure and operate A/B experiments with an audit trail",
    version="0.1.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

allowed_origins = [
    "http://localhost:3000",  # Local development
    settings.frontend_url,    # Production dashboard
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Trace-ID", "X-RateLimit-Limit", "X-RateLimit-Remaining"]
)

app.add_middleware(LoggingMiddleware)

app.include_router(health.router, tags=["health"])
app.include_router(experiments.router, tags=["experiments"])
app.include_router(integrations.router, tags=["integrations"])
app.include_router(setup.router, tags=["setup"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": "0.1.0",
        "docs": "/docs" if settings.debug else "disabled",
        "endpoints": {
            "health": "/health",
            "experiments": "/experiments",
            "live_feed": "GET /integrations/experiments"
        }
    }


# uvicorn expdash.main:app --reload
