"""FastAPI application entry point."""

import logging
from collections.abc import Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI

from otp_session.api.router import router as auth_router
from otp_session.config import settings
from otp_session.machine.auth_machine import AuthStateMachine

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)


def create_app(
    machine_factory: Callable[[], AuthStateMachine] = AuthStateMachine.create,
) -> FastAPI:
    """Build the application; *machine_factory* is called once at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown lifecycle hook."""
        logger.info("Starting %s …", settings.app_name)
        app.state.auth_machine = machine_factory()
        yield
        logger.info("Shutting down %s …", settings.app_name)
        await app.state.auth_machine.aclose()

    app = FastAPI(
        title=settings.app_name,
        description="Email + OTP login engine with a timed session",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(auth_router)

    @app.get("/health")
    async def health_check():
        """Simple liveness probe."""
        return {"status": "healthy", "app": settings.app_name}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000, log_level="debug" if settings.debug else "info")
