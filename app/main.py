"""FastAPI Application Entry Point.

Thin HTTP driver over the pipeline gates: the same operations as the
uiflow CLI, addressed by project path.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from uiflow import __version__
from uiflow.logging_config import get_api_logger

logger = logging.getLogger("uiflow.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    get_api_logger()
    logger.info(f"uiflow API {__version__} started")
    yield


app = FastAPI(title="UI Flow Pipeline API", version=__version__, lifespan=lifespan)

# CORS configuration: configurable via CORS_ORIGINS env var (comma-separated)
_default_origins = "http://localhost:3000,http://127.0.0.1:3000"
CORS_ORIGINS = [
    o.strip() for o in os.getenv("CORS_ORIGINS", _default_origins).split(",") if o.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

from .routes.pipeline import router as pipeline_router  # noqa: E402

app.include_router(pipeline_router)


@app.get("/health")
async def health_check():
    return {"status": "ok", "version": __version__}
