"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from eclass_manager.api.eclasses import router as eclasses_router
from eclass_manager.app_logging import configure_logging
from eclass_manager.containers import AppContainer
from eclass_manager.domain.errors import EclassNotFoundError, IntegrityError


def create_app(container: AppContainer, run_scheduler: bool = True) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        try:
            count = state_container.eclass_service.rebuild_registry()
            logger.info("Registered %d planned class announcements", count)
        except Exception:
            logger.exception("Failed to rebuild the announcement registry")
        if run_scheduler:
            await state_container.scheduler.start()
        yield
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(eclasses_router)

    @app.exception_handler(EclassNotFoundError)
    async def not_found_handler(
        request: Request, exc: EclassNotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": {"reason": "not_found", "class_id": str(exc.class_id)}},
        )

    @app.exception_handler(IntegrityError)
    async def integrity_handler(request: Request, exc: IntegrityError) -> JSONResponse:
        logger.error("Integrity fault on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": {"reason": "integrity", "class_id": str(exc.class_id)}},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
