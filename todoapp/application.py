"""Application factory that wires settings, storage and the API together."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, load_settings
from .database import Database
from .service import create_app as create_api_app
from .sessions import SessionIssuer
from .storage import StorageBackend
from .users import CredentialStore, ensure_demo_account

logger = logging.getLogger("todoapp.application")


def create_application(
    *,
    settings: Optional[Settings] = None,
    backend: Optional[StorageBackend] = None,
) -> FastAPI:
    """Create the ASGI application served under ``/api``."""

    if settings is None:
        settings = load_settings()
    if not settings.token_secret:
        raise RuntimeError("TODO_TOKEN_SECRET must be configured to issue bearer tokens")

    if backend is None:
        backend = Database(settings.database_path)
    backend.initialize()
    ensure_demo_account(CredentialStore(backend), settings)

    issuer = SessionIssuer(settings.token_secret, ttl=settings.token_ttl)
    api_app = create_api_app(
        backend=backend,
        issuer=issuer,
        demo_enabled=settings.demo_enabled,
        demo_email=settings.demo_email,
    )

    app = FastAPI(
        title="Todo Service",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.backend = backend
    app.state.api = api_app

    app.mount("/api", api_app)
    logger.info("Todo API ready (token lifetime %s)", settings.token_ttl)

    return app


__all__ = ["create_application"]
