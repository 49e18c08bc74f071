import logging
import time
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from sunscore import __version__
from sunscore.middleware.error_handler import error_handler_middleware, setup_error_handlers
from sunscore.routers import sunscore_router
from sunscore.services.container import ServiceContainer, build_container

logger = logging.getLogger("sunscore.main")


def create_app(container_factory: Optional[Callable[[], ServiceContainer]] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        container_factory: Builds the service container at startup; defaults
            to ``build_container`` with the global settings
    """
    factory = container_factory or build_container

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.container = factory()
        logger.info("🚀 Sun score API started")
        try:
            yield
        finally:
            await app.state.container.close()
            logger.info("🛑 Sun score API stopped")

    app = FastAPI(
        title="Sun Score API",
        description="Sun exposure scores for terraces, hour by hour",
        version=__version__,
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        method, path = request.method, request.url.path
        logger.info(f"🔔 {method} {path}")

        response = await call_next(request)

        process_time = time.time() - start_time
        status_code = response.status_code
        if status_code < 400:
            status_str = f"✅ {status_code}"
        elif status_code < 500:
            status_str = f"⚠️ {status_code}"
        else:
            status_str = f"❌ {status_code}"
        logger.info(f"🏁 {method} {path} - {status_str} - {process_time:.3f}s")
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.middleware("http")(error_handler_middleware)
    setup_error_handlers(app)

    app.include_router(sunscore_router.router)

    @app.get("/health")
    async def health_check(request: Request):
        container: ServiceContainer = request.app.state.container
        return {"status": "ok", "version": __version__, "tiles": container.tile_index.get_stats()}

    return app


app = create_app()
