"""Main entrypoint and application factory for the Receipts Dashboard API.

This module initializes the FastAPI application, configures logging, creates the database tables, maps domain errors to readable JSON responses, and exposes the Scalar API reference endpoint for interactive OpenAPI documentation. It also includes the main entrypoint for running the app with Uvicorn.
"""

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from scalar_fastapi import get_scalar_api_reference
from sqlalchemy.exc import SQLAlchemyError

from app.api.routes import router
from app.core.db import Base, get_engine
from app.core.errors import DashboardError, PersistenceError, StorageError
from app.core.settings import get_settings
from app.core.utils import ensure_dir, get_logger

# Ensure the project root is in sys.path for 'uv run main.py' or 'python main.py'
PROJECT_ROOT = Path(__file__).resolve().parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


# --- Logging Setup ---
def setup_logging() -> None:
    """Configure logging to file and console, and ensure the log directory exists."""
    log_dir = Path(get_settings().log_dir)
    ensure_dir(log_dir)
    logger = get_logger("receipts-dashboard")
    logger.setLevel(logging.INFO)
    # Add file handler for persistent logs (not colorized)
    if not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        file_handler = logging.FileHandler(log_dir / "dashboard.log")
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        logger.addHandler(file_handler)
    logger.propagate = False


setup_logging()
logger = get_logger("receipts-dashboard")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan event handler to create the dashboard tables using SQLAlchemy (PostgreSQL compatible)."""
    _ = app  # Silence unused argument warning
    engine = get_engine()
    try:
        Base.metadata.create_all(engine)
    except SQLAlchemyError:
        logger.exception("Failed to create dashboard tables")
        raise
    yield


app = FastAPI(
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    title="Receipts Dashboard API",
    description="""
    The Receipts Dashboard API lets partners upload daily deposit receipts for the registered LLCs and lets administrators review them.

    **Endpoints:**
    - `POST /receipts/scan`: Suggest amount and company from a receipt image.
    - `POST /receipts`: Submit a receipt and create a pending transaction.
    - `GET /admin/transactions`: Review table with totals and estimated profit.
    - `POST /admin/transactions/{id}/approve|reject`: Review a pending transaction.
    - `GET /history`, `GET /checklist/today`, `GET /overview/today`: Partner views.
    - `GET|PUT /settings/platform-fee`: Commission percentage.
    - `GET|POST /vault`, `DELETE /vault/{id}`: Admin credential vault.
    - `GET /health`: Health check endpoint.
    - `GET /scalar`: Interactive Scalar OpenAPI documentation.
    """,
    version="1.0.0",
)
app.include_router(router)


@app.exception_handler(DashboardError)
async def dashboard_error_handler(request: Request, exc: DashboardError) -> JSONResponse:
    """Turn domain errors into a readable message with the matching status code."""
    if isinstance(exc, (StorageError, PersistenceError)):
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} refused: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/scalar", include_in_schema=False)
async def scalar_docs() -> JSONResponse:
    """Return Scalar API reference."""
    return get_scalar_api_reference(openapi_url=app.openapi_url, title=app.title)


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("main:app", host=settings.server_host, port=settings.server_port, reload=True)
