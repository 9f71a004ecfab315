import logging
import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core import config as config_module
from core import db
from core.config import ConfigManager, get_config

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Load config and connect the database once per process.
    manager = config_module.create()
    await manager.load()
    manager.check_deprecated()
    await db.connect_database(manager.get())
    app.state.config = manager
    logger.info("app_started url=%s socket=%s", manager.url, manager.get_socket())
    try:
        yield
    finally:
        await config_module.shutdown(manager)


app = FastAPI(lifespan=lifespan)

# Allow local admin dev server to call this API from the browser.
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip()
        for o in os.environ.get("CORS_ALLOWED_ORIGINS", "http://localhost:2368").split(",")
        if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "database": db.is_connected()}


@app.get("/")
def root(config: ConfigManager = Depends(get_config)) -> dict:
    return {"message": "icollege api", "version": config.get("icollegeVersion")}
