"""FastAPI application factory."""
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from fieldsync.api.routes import history as history_routes
from fieldsync.api.routes import registry as registry_routes
from fieldsync.api.routes import tracking as tracking_routes
from fieldsync.db.engine import get_session
from fieldsync.tracking.errors import (
    ConflictNotPending,
    InvalidField,
    NotFound,
    SyncSuperseded,
    SyncTrackingError,
    TransientStoreError,
)

_STATUS_CODES = {
    InvalidField: 400,
    NotFound: 404,
    ConflictNotPending: 409,
    SyncSuperseded: 409,
    TransientStoreError: 503,
}


async def _tracking_error_handler(request: Request, exc: SyncTrackingError):
    status_code = next(
        (code for cls, code in _STATUS_CODES.items() if isinstance(exc, cls)), 500
    )
    return JSONResponse(
        status_code=status_code,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


def create_app() -> FastAPI:
    """Build and return the FastAPI app."""

    app = FastAPI(
        title="Field Sync API",
        description="Per-field sync tracking between local data and the business-profile service",
        version="0.1.0",
    )

    app.add_exception_handler(SyncTrackingError, _tracking_error_handler)
    app.include_router(registry_routes.router, prefix="/registry", tags=["registry"])
    app.include_router(tracking_routes.router, prefix="/tracking", tags=["tracking"])
    app.include_router(history_routes.router, prefix="/history", tags=["history"])

    @app.get("/health", tags=["health"])
    def health(session: Session = Depends(get_session)):
        """Report whether the database answers."""
        try:
            session.connection().execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "database": str(exc)},
            )
        return {"status": "healthy", "database": "connected"}

    return app


# Module-level app instance for uvicorn
app = create_app()
