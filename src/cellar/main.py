"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cellar.config.settings import get_settings
from cellar.config.logging_config import setup_logging
from cellar.repositories.sqlalchemy.database import init_db, get_session
from cellar.api.routers import vault_router, prices_router
from cellar.app_context import get_vault_context
from cellar.core.exceptions import CellarError, ErrorCategory, NotFoundError

_STATUS_BY_CATEGORY = {
    ErrorCategory.INVALID_INPUT: 400,
    ErrorCategory.RETRY_LATER: 409,
    ErrorCategory.INVARIANT: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    setup_logging()
    init_db()
    db = get_session()
    try:
        get_vault_context().bootstrap_stub_market(db)
    finally:
        db.close()
    yield
    # Shutdown (nothing to clean up)


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description="Multi-position vault ledger with a price oracle router",
    version=settings.app_version,
    lifespan=lifespan,
)

# Include routers
app.include_router(vault_router)
app.include_router(prices_router)


@app.exception_handler(CellarError)
async def cellar_error_handler(request: Request, exc: CellarError) -> JSONResponse:
    """Global handler for vault errors."""
    status_code = 404 if isinstance(exc, NotFoundError) else _STATUS_BY_CATEGORY[exc.category]
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "message": exc.message, "category": exc.category.value},
    )


@app.get("/health")
def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/")
def root() -> dict[str, str]:
    """Root endpoint with API info."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
