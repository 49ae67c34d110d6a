from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core import errors
from .core.config import Settings, get_settings
from .core.logging import init_logging, request_context_middleware
from .routers import categories, health, workflow
from .routers.workflow import GatewayFactory, SessionTable
from .services.gateway import HttpExpenseGateway


def create_app(
    settings_override: Settings | None = None,
    gateway_factory: Optional[GatewayFactory] = None,
) -> FastAPI:
    """Application factory.

    settings_override: pass an already constructed Settings instance for tests
    to isolate environment. Falls back to cached get_settings().
    gateway_factory: builds the store gateway for a new session; defaults to
    the HTTP gateway pointed at ``settings.api_base_url``.
    """
    settings = settings_override or get_settings()
    # Initialize logging early
    init_logging(debug=settings.debug)

    sessions = SessionTable(idle_seconds=settings.session_idle_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        # Each live session holds an open HTTP client
        sessions.close_all()

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.gateway_factory = gateway_factory or HttpExpenseGateway.from_settings
    app.state.sessions = sessions

    # Middleware (request id / structured logging)
    app.middleware("http")(request_context_middleware)

    # Error handlers
    app.add_exception_handler(StarletteHTTPException, errors.http_error_handler)
    app.add_exception_handler(RequestValidationError, errors.validation_error_handler)
    app.add_exception_handler(errors.ValidationFailure, errors.form_validation_handler)
    app.add_exception_handler(errors.GatewayFailure, errors.gateway_failure_handler)
    app.add_exception_handler(errors.NotAuthenticated, errors.not_authenticated_handler)
    app.add_exception_handler(errors.CategoryNotFound, errors.lookup_error_handler)
    app.add_exception_handler(errors.RecordNotFound, errors.lookup_error_handler)
    app.add_exception_handler(errors.IllegalTransition, errors.illegal_transition_handler)
    app.add_exception_handler(Exception, errors.server_error_handler)

    # Routers
    app.include_router(health.router)
    app.include_router(categories.router)
    app.include_router(workflow.router)

    @app.get("/")
    async def root():
        return {"message": "Expense Desk API", "version": settings.version}

    logging.getLogger("expense_desk").debug("app created for store %s", settings.api_base_url)
    return app


app = create_app()
