"""Maintainboard — dashboard layout resolution service.

FastAPI entry point with lifespan management, template seeding, and CORS.
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.router import api_router
from .config import get_config
from .database import close_engine, create_tables
from .dependencies import get_app_config, get_autosave_scheduler, get_template_store
from .engine.default_template import DEFAULT_TEMPLATE, DEFAULT_TEMPLATE_ID
from .errors import DashboardError
from .middleware.error_handler import register_error_handlers
from .middleware.request_id import RequestIDMiddleware
from .utils.logging import get_logger, setup_logging

APP_VERSION = "1.0.0"

config = get_config()
setup_logging(
    debug=config.debug,
    log_dir=config.log_dir,
    log_max_bytes=config.log_max_bytes,
    log_backup_count=config.log_backup_count,
)
logger = get_logger("maintainboard.main")


async def seed_default_template(template_store, template_id: str = DEFAULT_TEMPLATE_ID) -> bool:
    """Publish the built-in maintenance template if no version exists yet."""
    if await template_store.exists(template_id):
        return False
    published = await template_store.put({**DEFAULT_TEMPLATE, "id": template_id})
    logger.info("default_template_seeded", template_id=template_id, version=published.version)
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    app_config = get_app_config()

    # --- Startup ---
    logger.info("maintainboard_starting", host=app_config.host, port=app_config.port)

    if app_config.secret_key == "CHANGE_ME_IN_PRODUCTION":
        if not app_config.debug:
            raise RuntimeError(
                "INSECURE_SECRET_KEY — default secret_key detected in production mode. "
                "Set a strong, unique SECRET_KEY in .env before deploying."
            )
        logger.warning("insecure_secret_key", hint="set SECRET_KEY before deploying")

    await create_tables(app_config)

    if app_config.seed_default_template:
        try:
            await seed_default_template(get_template_store(), app_config.default_template_id)
        except DashboardError as e:
            logger.error("default_template_seed_failed", code=e.code, error=e.message)

    logger.info("maintainboard_started")

    yield

    # --- Shutdown ---
    logger.info("maintainboard_stopping")
    await get_autosave_scheduler().shutdown()
    await close_engine()
    logger.info("maintainboard_stopped")


app = FastAPI(
    title="MAINTAINBOARD",
    description="Dashboard layout resolution for the maintenance platform",
    version=APP_VERSION,
    lifespan=lifespan,
)

# Register standard error handlers
register_error_handlers(app)

# CORS origins from config
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in config.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)

# Request ID: added last so it runs first
app.add_middleware(RequestIDMiddleware)

app.include_router(api_router)


@app.get("/")
async def root():
    return {"name": config.app_name, "version": APP_VERSION, "status": "operational"}


@app.get("/health")
async def health():
    """Health check with autosave and template cache counters."""
    return {
        "status": "healthy",
        "version": APP_VERSION,
        "autosave": get_autosave_scheduler().get_stats(),
        "template_cache": get_template_store().cache.get_stats(),
    }


def main():
    """Run the Maintainboard server."""
    uvicorn.run(
        "maintainboard.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )


if __name__ == "__main__":
    main()
