"""Application entrypoint for the FastAPI service."""

from __future__ import annotations

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from studioflow.api.v1.router import get_api_router
from studioflow.core.config import get_config
from studioflow.core.startup import bootstrap


@asynccontextmanager
async def lifespan(_app: FastAPI):
    bootstrap()
    yield


def create_app(run_bootstrap: bool = True) -> FastAPI:
    """Create the FastAPI application."""
    cfg = get_config()
    app = FastAPI(title=cfg.APP_NAME, version=cfg.APP_VERSION, lifespan=lifespan if run_bootstrap else None)
    app.include_router(get_api_router())

    @app.get("/")
    def root() -> dict:
        return {"service": cfg.APP_NAME, "version": cfg.APP_VERSION, "api_prefix": cfg.API_PREFIX}

    return app


# Expose ASGI app for `uvicorn studioflow.main:app`.
app = create_app()


if __name__ == "__main__":
    config = get_config()
    uvicorn.run("studioflow.main:app", host=config.API_HOST, port=config.API_PORT)
