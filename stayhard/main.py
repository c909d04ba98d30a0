import logging
import os
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

# Load env from the project root .env
project_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(project_dir, ".env"))

# Import after dotenv is loaded
from stayhard.core.config import settings, validate_config
from stayhard.core.database import create_all_tables, get_database_url
from stayhard.core.logging import configure_logging
from stayhard.core.middleware.request_id import RequestIdMiddleware
from stayhard.core.validation import validate_env
from stayhard.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_error_handler,
    unhandled_exception_handler,
)
from stayhard.api import challenges, progress, gallery, users, health

configure_logging(settings.ENV, settings.LOG_LEVEL)
validate_env()
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("stayhard")
    logger.info("Starting StayHard backend...")
    app.state.startup_time = time.time()
    if get_database_url():
        create_all_tables()
    try:
        yield
    finally:
        logging.getLogger("stayhard").info("Stopping StayHard backend...")


app = FastAPI(title="StayHard - Backend", lifespan=lifespan)

# Middlewares
app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(challenges.router)
app.include_router(progress.router)
app.include_router(gallery.router)
app.include_router(users.router)
app.include_router(health.root_router)
