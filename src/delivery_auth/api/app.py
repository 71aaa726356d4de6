"""
delivery_auth.api.app

FastAPI app factory for the delivery auth service.

Responsibilities:
- Build the FastAPI application and register routers/middleware.
- Compose the session stack (KV store, session store, remote clients, services, monitors).
- Start the monitors on startup and tear everything down on shutdown.
"""

from __future__ import annotations

import httpx
from fastapi import FastAPI

from delivery_auth.api.errors import register_error_handlers
from delivery_auth.api.routers.health import router as health_router
from delivery_auth.api.routers.session import router as session_router
from delivery_auth.api.routers.sign_in import router as sign_in_router
from delivery_auth.clients.documents import DocumentStore, HttpDocumentStore
from delivery_auth.clients.identity import PhoneIdentityClient
from delivery_auth.db.init_db import init_db
from delivery_auth.db.repositories.key_value import KeyValueStore, SqlKeyValueStore
from delivery_auth.db.session import create_engine, create_sessionmaker
from delivery_auth.monitor.activity import ActivityMonitor
from delivery_auth.monitor.validation import PeriodicSessionValidator
from delivery_auth.observability.logging import configure_logging, get_logger
from delivery_auth.observability.middleware import RequestContextMiddleware
from delivery_auth.services.auth_service import AuthService
from delivery_auth.services.sign_in_service import SignInService
from delivery_auth.session.store import SessionStore
from delivery_auth.settings import Settings

log = get_logger(__name__)


def create_app(
    *,
    settings: Settings,
    identity: PhoneIdentityClient | None = None,
    documents: DocumentStore | None = None,
    kv: KeyValueStore | None = None,
) -> FastAPI:
    """
    `identity`, `documents` and `kv` replace the default remote clients / SQLite store;
    tests pass in-process ones.
    """

    configure_logging(service_name=settings.service_name, level=settings.log_level)

    app = FastAPI(
        title="Delivery Auth Session Service",
        version="0.1.0",
        docs_url="/docs",
        openapi_url="/openapi.json",
    )

    app.state.settings = settings
    app.add_middleware(RequestContextMiddleware)
    register_error_handlers(app)
    app.include_router(health_router, tags=["health"])
    app.include_router(session_router)
    app.include_router(sign_in_router)

    @app.on_event("startup")
    async def _startup() -> None:
        log.info("startup", env=settings.env)
        timeout = httpx.Timeout(settings.http_timeout_seconds)
        app.state.http_clients = []

        store_kv = kv
        if store_kv is None:
            engine = create_engine(settings)
            app.state.engine = engine
            await init_db(engine)
            store_kv = SqlKeyValueStore(create_sessionmaker(engine))
        app.state.kv = store_kv

        identity_client = identity
        if identity_client is None:
            http = httpx.AsyncClient(base_url=settings.identity_base_url, timeout=timeout)
            app.state.http_clients.append(http)
            identity_client = PhoneIdentityClient(settings=settings, http=http)

        document_store = documents
        if document_store is None:
            http = httpx.AsyncClient(base_url=settings.document_store_base_url, timeout=timeout)
            app.state.http_clients.append(http)
            document_store = HttpDocumentStore(http=http)

        session_store = SessionStore(store_kv)
        # The provider identity lives in process memory; bring it back before reconciling.
        identity_client.restore_from_token(await session_store.identity_token())

        auth = AuthService(
            store=session_store,
            identity=identity_client,
            documents=document_store,
            settings=settings,
        )
        app.state.auth = auth
        app.state.sign_in = SignInService(auth=auth, identity=identity_client)
        app.state.activity = ActivityMonitor(auth=auth, settings=settings)
        app.state.validator = PeriodicSessionValidator(auth=auth, settings=settings)

        await auth.initialize_auth()
        await app.state.activity.start()
        await app.state.validator.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        validator = getattr(app.state, "validator", None)
        if validator is not None:
            validator.stop()
        activity = getattr(app.state, "activity", None)
        if activity is not None:
            await activity.stop()
        for http in getattr(app.state, "http_clients", []):
            await http.aclose()
        engine = getattr(app.state, "engine", None)
        if engine is not None:
            await engine.dispose()
        log.info("shutdown")

    return app


# --- Module Notes -----------------------------------------------------------
# One process serves one device session: the session store, monitors and identity
# client are process-wide singletons living on app.state.
