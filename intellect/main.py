import logging
import os
import time
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.middleware.cors import CORSMiddleware

# Load .env before settings-dependent imports
package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(os.path.dirname(package_dir), ".env"))

from intellect.core.config import settings, validate_config
from intellect.core.logging import configure_logging
from intellect.core.middleware.request_id import RequestIdMiddleware
from intellect.core.validation import validate_env
from intellect.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from intellect.api import enforcement, usage, images, health

configure_logging(settings.ENV, settings.LOG_LEVEL)
validate_env()
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("intellect")
    logger.info("Starting Intellect backend...")
    app.state.startup_time = time.time()
    try:
        yield
    finally:
        logging.getLogger("intellect").info("Stopping Intellect backend...")


app = FastAPI(title="Intellect Protocol - Backend", lifespan=lifespan)

# Middlewares
app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(enforcement.router, tags=["enforcement"])
app.include_router(usage.router, tags=["usage"])
app.include_router(images.router, tags=["images"])
app.include_router(health.router, tags=["health"])
