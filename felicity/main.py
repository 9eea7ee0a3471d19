"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from felicity.config import Settings, settings as default_settings
from felicity.database import Database
from felicity.notifications import Notifier
from felicity.realtime import ChannelHub
from felicity.routers import admin, events, messages, organizers, password_resets, registrations, teams, users, ws
from felicity.services import account_service

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """Build the application with its own database, channel hub and notifier."""
    settings = settings or default_settings
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    database = database or Database(settings.DATABASE_URL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Alembic owns the schema everywhere except SQLite dev/test databases
        if database.is_sqlite:
            database.create_all()
        with database.session() as db:
            account_service.ensure_admin(db, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD, settings.BCRYPT_ROUNDS)
        logger.info("Felicity API started")
        yield
        app.state.hub.close()
        database.dispose()

    app = FastAPI(
        title="Felicity",
        description="Campus event management API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database
    app.state.hub = ChannelHub()
    app.state.notifier = Notifier(settings)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS.split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers
    app.include_router(users.router, prefix="/api/users", tags=["Users"])
    app.include_router(organizers.router, prefix="/api/organizers", tags=["Organizers"])
    app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])
    app.include_router(password_resets.router, prefix="/api/password-resets", tags=["PasswordResets"])
    app.include_router(events.router, prefix="/api/events", tags=["Events"])
    app.include_router(teams.router, prefix="/api/events", tags=["Teams"])
    app.include_router(registrations.router, prefix="/api/registrations", tags=["Registrations"])
    app.include_router(messages.router, prefix="/api", tags=["Discussion"])
    app.include_router(ws.router, prefix="/api", tags=["Realtime"])

    @app.exception_handler(SQLAlchemyError)
    async def persistence_error(request: Request, exc: SQLAlchemyError):
        logger.exception("Persistence failure on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    @app.get("/api/health")
    def health_check():
        return {"status": "ok"}

    return app


app = create_app()
