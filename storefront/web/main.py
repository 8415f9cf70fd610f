"""
Name: Web Shell Entry Point

Responsibilities:
  - Create the FastAPI app around one StorefrontSession
  - Initialize the session at start-up and tear it down at shutdown
  - Register the problem+json exception handlers

Collaborators:
  - container.get_session: default session
  - web.routes: endpoints
  - web.error_responses: handlers

Notes:
  - Run with: uvicorn storefront.web.main:app
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from ..container import get_session
from ..logger import logger
from ..session import StorefrontSession
from .error_responses import (
    AppHTTPException,
    app_exception_handler,
    generic_exception_handler,
)
from .routes import router


def create_app(session: StorefrontSession | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        active = session or get_session()
        app.state.session = active
        await active.initialize()
        logger.info("Storefront web shell starting up")
        try:
            yield
        finally:
            await active.teardown()
            logger.info("Storefront web shell shutting down")

    app = FastAPI(title="Storefront", version="0.1.0", lifespan=lifespan)
    app.add_exception_handler(AppHTTPException, app_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
    app.include_router(router)
    return app


app = create_app()
