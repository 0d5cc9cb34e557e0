import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.logger import get_logger
from web.backend.routers import focus, plan, session

logger = get_logger("api")


def create_app() -> FastAPI:
    app = FastAPI(title="Momentum API", version="1.0")

    raw_origins = os.getenv("MOMENTUM_ALLOWED_ORIGINS", "*")
    allow_origins = [o.strip() for o in raw_origins.split(",") if o.strip()]
    allow_credentials = "*" not in allow_origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "service": "Momentum"}

    app.include_router(session.router, prefix="/api/v1/session", tags=["session"])
    app.include_router(plan.router, prefix="/api/v1/plan", tags=["plan"])
    app.include_router(focus.router, prefix="/api/v1/focus", tags=["focus"])

    logger.info("Momentum API ready (origins: %s)", ", ".join(allow_origins))
    return app


app = create_app()
