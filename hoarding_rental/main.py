from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hoarding_rental import __version__
from hoarding_rental.api.v1.router import router as api_v1_router
from hoarding_rental.config.settings import settings
from hoarding_rental.core.middleware import register_middlewares
from hoarding_rental.db.init_db import init_db


def create_app(create_schema: bool = True) -> FastAPI:
    """
    Application factory for the FastAPI app.

    - Configures title, version, debug mode from Settings.
    - Registers CORS and request logging middleware.
    - Includes the versioned API router under /api/v1.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        debug=settings.DEBUG,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_middlewares(app)

    app.include_router(api_v1_router, prefix=settings.API_V1_STR)

    @app.get("/health", include_in_schema=False)
    def health() -> dict:
        return {"status": "ok", "version": __version__}

    # Schema bootstrap outside production; deployments run migrations
    if create_schema:
        @app.on_event("startup")
        def on_startup() -> None:
            if not settings.is_production():
                init_db()

    return app


app = create_app()
