"""Exam Incident Desk — incident management service for exam logistics.

FastAPI entry point with lifespan management, middleware and CORS.
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api.router import api_router
from .database import close_engine, create_tables
from .dependencies import get_app_config
from .middleware.error_handler import register_error_handlers
from .middleware.request_id import RequestIDMiddleware
from .utils.logging import get_logger, setup_logging

config = get_app_config()
setup_logging(
    debug=config.debug,
    log_dir=config.log_dir,
    log_max_bytes=config.log_max_bytes,
    log_backup_count=config.log_backup_count,
)
logger = get_logger("examdesk.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables(config)
    logger.info("examdesk_started", version=__version__, host=config.host, port=config.port)
    yield
    await close_engine()
    logger.info("examdesk_stopped")


app = FastAPI(title=config.app_name, version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIDMiddleware)

register_error_handlers(app, expose_error_details=config.expose_error_details)
app.include_router(api_router)


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}


def run() -> None:
    """Console entry point."""
    uvicorn.run("examdesk.main:app", host=config.host, port=config.port, reload=config.debug)


if __name__ == "__main__":
    run()
