"""FastAPI application exposing configuration, archive and conversion endpoints."""

from __future__ import annotations

from fastapi import FastAPI

from .archives import router as archives_router
from .configuration import router as config_router
from .conversion import router as conversion_router

app = FastAPI(title="srdir Archive Web API", version="1.0.0")

app.include_router(config_router)
app.include_router(archives_router)
app.include_router(conversion_router)


__all__ = ["app"]
