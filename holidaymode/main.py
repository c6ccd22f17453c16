import logging
import os
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(package_dir, ".env"))

# Import after dotenv is loaded
from holidaymode.core.config import settings, validate_config  # noqa: E402
from holidaymode.core.database import create_all_tables  # noqa: E402
from holidaymode.core.errors import (  # noqa: E402
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_error_handler,
    unhandled_exception_handler,
)
from holidaymode.core.logging import configure_logging  # noqa: E402
from holidaymode.core.middleware.request_id import RequestIdMiddleware  # noqa: E402
from holidaymode.core.validation import validate_env  # noqa: E402
from holidaymode.api import habits, health, holidays  # noqa: E402

configure_logging(settings.ENV)
validate_env()
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("holidaymode")
    logger.info("Starting holiday mode service...")
    app.state.startup_time = time.time()
    try:
        create_all_tables()
    except Exception as e:
        # readyz reports the missing tables; keep liveness up
        logger.error(f"Failed to create tables on startup: {e}")
    try:
        yield
    finally:
        logging.getLogger("holidaymode").info("Stopping holiday mode service...")


app = FastAPI(title="Holiday Mode", lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(holidays.router, tags=["holidays"])
app.include_router(habits.router, tags=["habits"])
app.include_router(health.router, tags=["health"])
app.include_router(health.root_router, tags=["health"])
