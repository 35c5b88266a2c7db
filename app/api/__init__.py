"""API package: provides FastAPI dependencies and route definitions for the application."""

from .dependencies import get_actor, get_blob_store, get_db_conn, get_scan_agent  # noqa: F401
from .routes import router  # noqa: F401
