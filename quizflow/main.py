import uvicorn
from fastapi import FastAPI

from quizflow.api.routes.health import router as health_router
from quizflow.api.routes.internal_quiz import router as internal_quiz_router
from quizflow.core.config import get_settings
from quizflow.core.logging import configure_logging


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Quizflow Session API",
        version="0.1.0",
        docs_url="/docs" if settings.app_env == "dev" else None,
        redoc_url="/redoc" if settings.app_env == "dev" else None,
    )
    app.include_router(health_router)
    app.include_router(internal_quiz_router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "quizflow.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "dev",
    )


if __name__ == "__main__":
    run()
