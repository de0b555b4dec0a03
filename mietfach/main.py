import logging

from fastapi import FastAPI

from . import config
from .routes import router as api_router

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(title="Mietfach Availability")

# API routes
app.include_router(api_router)
