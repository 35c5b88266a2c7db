"""FastAPI dependencies for DI (settings, DB, blob store, scan agent, caller identity).

This module provides dependency injection helpers for the database store, receipt storage, the scan agent and the authenticated actor, enabling modular and testable API endpoints. Tests swap any of them through ``app.dependency_overrides``.
"""

from collections.abc import Iterator
from functools import lru_cache

from fastapi import Depends, Header, HTTPException
from groq import Groq

from app.agents import AgentRegistry
from app.agents.base import BaseScanAgent
from app.core.db import DashboardStore, get_db
from app.core.models import Actor, Role
from app.core.settings import Settings, get_settings
from app.core.utils import get_logger
from app.services.blob_store import BlobStore
from app.services.commission import load_platform_fee
from app.services.s3_blob_store import S3BlobStore

logger = get_logger("receipts-dashboard.api")


def get_db_conn() -> Iterator[DashboardStore]:
    """Provide a database store for the duration of a request."""
    store = get_db()
    try:
        yield store
    finally:
        store.close()


@lru_cache(maxsize=1)
def _s3_blob_store() -> S3BlobStore:
    return S3BlobStore(get_settings())


def get_blob_store() -> BlobStore:
    """Provide the receipt blob store."""
    return _s3_blob_store()


def get_scan_agent(settings: Settings = Depends(get_settings)) -> BaseScanAgent | None:
    """Provide the configured scan agent, or None when no API key is set or the agent name is unknown."""
    if not settings.groq_api_key:
        logger.warning("GROQ_API_KEY is not set; receipt scanning is disabled")
        return None
    agent_cls = AgentRegistry.lookup(settings.scan_agent)
    if agent_cls is None:
        available = ", ".join(AgentRegistry.available())
        logger.warning(f"Unknown scan agent '{settings.scan_agent}' (available: {available}); scanning is disabled")
        return None
    return agent_cls(Groq(api_key=settings.groq_api_key), settings)


def get_actor(
    x_user_id: str | None = Header(default=None),
    x_user_role: Role = Header(default=Role.PARTNER),
) -> Actor:
    """Resolve the caller from the identity headers set by the authentication proxy."""
    if not x_user_id:
        raise HTTPException(401, "Please sign in to continue")
    return Actor(id=x_user_id, role=x_user_role)


def require_admin(actor: Actor = Depends(get_actor)) -> Actor:
    """Allow only administrators through."""
    if not actor.is_admin:
        raise HTTPException(403, "Only administrators can do this")
    return actor


def get_platform_fee(store: DashboardStore = Depends(get_db_conn)) -> float:
    """Fetch the platform fee once for the request."""
    return load_platform_fee(store)
