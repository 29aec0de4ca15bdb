import locale
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import make_asgi_app

from recipevault.config import APP_NAME, VERSION, get_settings
from recipevault.core.dependencies import close_container
from recipevault.routes import api, auth

logger = logging.getLogger(__name__)


def configure_collation() -> None:
    """Use the environment's locale for sorting recipe names."""
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as e:
        logger.warning("Could not set collation locale, sorting by code point: %s", e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and release the session's HTTP clients on shutdown."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    configure_collation()
    if not settings.is_configured:
        logger.error(
            "Supabase is not configured. Set SUPABASE_URL and SUPABASE_ANON_KEY "
            "to your project's values (e.g. https://<project-id>.supabase.co)."
        )
    else:
        logger.info("Connecting to %s", settings.supabase_url)

    yield

    await close_container()


# Create FastAPI app
app = FastAPI(title=APP_NAME, version=VERSION, lifespan=lifespan)

# Prometheus scrape endpoint
app.mount("/metrics", make_asgi_app())

# Include routers
app.include_router(api.router)
app.include_router(auth.router)


# Basic health check
@app.get("/health")
def health_check():
    return {"status": "healthy"}
