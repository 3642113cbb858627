"""FastAPI main application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront_assistant.api.routes import assistant, errors, health
from storefront_assistant.api.middleware import RateLimitMiddleware, LoggingMiddleware
from storefront_assistant.analytics.error_tracker import error_tracker
from storefront_assistant.analytics.logger import logger
from storefront_assistant.database.db import init_db
from storefront_assistant.utils.config import settings
from storefront_assistant.utils.validation import validate_config


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting application...")

    config_status = validate_config()
    if not config_status["valid"]:
        logger.error("Configuration validation failed - some features may not work")

    try:
        init_db()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Error initializing database: {e}")

    if settings.provider_api_key:
        logger.info(f"Using {settings.llm_provider} provider with model: {settings.llm_model}")

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application...")


app = FastAPI(
    title="Storefront Assistant API",
    description="Catalog-grounded shopping assistant with streamed and structured replies",
    version="1.0.0",
    lifespan=lifespan,
)

cors_origins = [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RateLimitMiddleware, calls=settings.rate_limit_per_minute, period=60)
app.add_middleware(LoggingMiddleware)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies get a plain 400 without validator internals."""
    error_tracker.record_error(
        "validation_error",
        f"Invalid request body for {request.url.path}",
        {"errors": len(exc.errors())},
    )
    content = {"error": "Invalid input"}
    if request.url.path.endswith("/ask"):
        content["success"] = False
    return JSONResponse(status_code=400, content=content)


app.include_router(assistant.router)
app.include_router(health.router)
app.include_router(errors.router)


@app.get("/")
async def root():
    """Service info."""
    return {"message": "Storefront Assistant API", "version": "1.0.0", "docs": "/docs"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("storefront_assistant.api.main:app", host=settings.api_host, port=settings.api_port, reload=True)
