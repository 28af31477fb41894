"""
FastAPI application entry point
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mocktrial.api.v1.api import api_router
from mocktrial.core.config import settings
from mocktrial.core.logger import logger
from mocktrial.middleware.correlation import CorrelationMiddleware
from mocktrial.services.scheduler import shutdown_scheduler, start_scheduler

app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
)

# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(api_router, prefix="/api/v1")

# ── Correlation ID middleware (must be added before CORS) ─────────────────────
app.add_middleware(CorrelationMiddleware)

# ── CORS ──────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Correlation-ID", "X-Tab-ID", "*"],
)


@app.get("/")
def read_root():
    logger.info("Root endpoint accessed")
    return {"message": "MockTrial API is running", "version": "1.0.0", "docs": "/docs"}


@app.get("/health")
def health_check():
    return {"status": "healthy"}


@app.on_event("startup")
async def startup_event():
    logger.info("MockTrial API started")
    start_scheduler()


@app.on_event("shutdown")
async def shutdown_event():
    shutdown_scheduler()
    logger.info("MockTrial API shutdown")
