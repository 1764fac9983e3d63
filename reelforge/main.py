from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from typing import Optional
from reelforge.api import ideas, queue, render, post
from reelforge.config import Settings, get_settings
from reelforge.services.registry import Services, build_services
import logging


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    settings = settings or get_settings()

    # Setup logging
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.VERSION,
        debug=settings.DEBUG
    )
    app.state.services = services or build_services(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Serve locally stored videos
    if settings.STORAGE_BACKEND == "local":
        settings.BASE_STORAGE_PATH.mkdir(parents=True, exist_ok=True)
        app.mount("/storage", StaticFiles(directory=str(settings.BASE_STORAGE_PATH)), name="storage")

    # Include routers
    app.include_router(ideas.router, prefix="/api/ideas", tags=["ideas"])
    app.include_router(queue.router, prefix="/api/queue", tags=["queue"])
    app.include_router(render.router, prefix="/api/render", tags=["render"])
    app.include_router(post.router, prefix="/api/post", tags=["social"])

    @app.get("/")
    def root():
        return {
            "app": settings.APP_NAME,
            "version": settings.VERSION,
            "status": "running",
            "environment": settings.ENVIRONMENT
        }

    @app.get("/health")
    def health_check():
        return {"status": "healthy"}

    return app
