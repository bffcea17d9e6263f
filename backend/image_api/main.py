"""FastAPI application entry point."""
import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from image_api.api.routes import router
from image_api.config import Settings, logger as config_logger
from image_api.conversion.service import ImageService
from image_api.workspace import Workspace

logging.getLogger("uvicorn").setLevel(logging.INFO)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    workspace = Workspace(settings.upload_dir, settings.output_dir, settings.max_upload_size_bytes)
    image_service = ImageService(max_workers=settings.max_workers)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        workspace.ensure_dirs()
        sweeper = asyncio.create_task(
            workspace.sweep_forever(settings.cleanup_interval_seconds, settings.output_ttl_seconds)
        )
        config_logger.info("Image API started (uploads=%s, output=%s)", workspace.upload_dir, workspace.output_dir)
        yield
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper
        image_service.shutdown()
        config_logger.info("Image API shutting down")

    app = FastAPI(
        title="Image Toolkit API",
        description="Convert, resize, crop and compress images, including size-targeted compression.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.workspace = workspace
    app.state.image_service = image_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins if settings.cors_origins else ["*"],
        allow_credentials=bool(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    # Bulk-resize results are fetched from here until the sweeper expires them
    app.mount("/output", StaticFiles(directory=settings.output_dir, check_dir=False), name="output")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("image_api.main:app", host=app.state.settings.host, port=app.state.settings.port, reload=True)
