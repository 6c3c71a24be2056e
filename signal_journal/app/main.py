"""
FastAPI entrypoint for the journal signing service.

Exposes signing (embedding a client-produced ECDSA signature into a
journal PDF) and verification (from an uploaded PDF or a scanned QR
payload). All cryptographic and PDF work happens in the core modules;
this layer only wires collaborators and maps errors to HTTP statuses.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.responses import ORJSONResponse

from signal_journal.app.api.routes import router as journal_router
from signal_journal.app.config import Settings, get_settings
from signal_journal.app.coordinator.verification import VerificationCoordinator
from signal_journal.app.events import LoggingEventEmitter
from signal_journal.app.services.signing import SigningService
from signal_journal.app.storage.base import DocumentStore
from signal_journal.app.storage.filesystem import FileSystemDocumentStore
from signal_journal.app.storage.memory import InMemoryDocumentStore

logger = logging.getLogger("signal_journal.main")


def get_app_version() -> str:
    """
    Resolve application version deterministically.

    Falls back to the source version when running from a checkout.
    """
    try:
        return version("signal-journal")
    except PackageNotFoundError:
        return "1.2.0"


def configure_logging(level: str) -> None:
    """Configure process-wide logging once, at startup."""
    logging.basicConfig(
        level=getattr(logging, level),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logging.getLogger("signal_journal").setLevel(level)


def build_store(settings: Settings) -> DocumentStore:
    if settings.storage_backend == "filesystem":
        return FileSystemDocumentStore(settings.storage_dir)
    return InMemoryDocumentStore()


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[DocumentStore] = None,
) -> FastAPI:
    """
    Application factory.

    ``settings`` and ``store`` may be injected for tests; otherwise they
    are resolved from the environment at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Guarantees:
        - Fail-fast startup if configuration is invalid
        - Collaborators are wired exactly once
        """
        try:
            resolved = settings or get_settings()
        except Exception:
            logger.exception("invalid_service_configuration")
            raise

        configure_logging(resolved.log_level)

        logger.info(
            "service_startup_begin",
            extra={
                "service": "signal_journal",
                "version": get_app_version(),
                "storage_backend": resolved.storage_backend,
            },
        )

        document_store = store if store is not None else build_store(resolved)

        app.state.settings = resolved
        app.state.store = document_store
        app.state.signing_service = SigningService.from_settings(
            resolved,
            store=document_store,
        )
        app.state.coordinator = VerificationCoordinator.from_config(
            resolved,
            store=document_store,
            emitter=LoggingEventEmitter(),
        )

        try:
            yield
        finally:
            logger.info("service_shutdown_begin")

    app = FastAPI(
        title="Signal Journal Signing Service",
        description=(
            "ECDSA P-256 journal signing with signature metadata embedded "
            "in the PDF itself."
        ),
        version=get_app_version(),
        docs_url="/docs",
        redoc_url=None,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.include_router(journal_router)

    @app.get(
        "/healthz",
        tags=["Monitoring"],
        summary="Liveness and readiness probe",
    )
    async def health_check():
        """
        NOTE:
        - Does NOT perform cryptographic operations
        - Does NOT touch storage
        """
        return ORJSONResponse(
            content={
                "status": "ok",
                "service": "signal_journal",
                "version": app.version,
                "runtime": f"python {sys.version.split()[0]}",
            }
        )

    return app


app = create_app()


def run() -> None:
    """Serve the application with uvicorn using the configured bind address."""
    settings = get_settings()
    uvicorn.run(
        "signal_journal.app.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
