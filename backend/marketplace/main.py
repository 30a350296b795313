import logging
import sys
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketplace.config import get_settings
from marketplace.routers import (
    admin,
    books,
    chat,
    crypto,
    gamification,
    imports,
    notifications,
    payments,
    reading,
    reviews,
    seo,
    social,
    stories,
    writers,
)

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stdout
)
logger = logging.getLogger(__name__)

logger.info("STARTUP: Initializing FastAPI application...")

try:
    logger.info("STARTUP: Loading configuration...")
    settings = get_settings()
    logger.info(f"STARTUP: Configuration loaded - SUPABASE_URL={settings.supabase_url[:50]}...")
    logger.info(f"STARTUP: FRONTEND_URL={settings.frontend_url}")
    logger.info(f"STARTUP: Stripe configured={bool(settings.stripe_secret_key)} "
                f"Thirdweb configured={bool(settings.thirdweb_secret_key)}")
except Exception as e:
    logger.error(f"STARTUP ERROR: Failed to load configuration: {e}")
    raise

app = FastAPI(
    title="Million Dollar eBooks API",
    description="Backend API for the Million Dollar eBooks marketplace",
    version="1.0.0",
)

logger.info("STARTUP: Configuring CORS...")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.frontend_url,
        settings.site_url,
        "http://localhost:3000",  # Local development
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
logger.info("STARTUP: CORS configured")

logger.info("STARTUP: Including routers...")
app.include_router(books.router)
app.include_router(reviews.router)
app.include_router(reading.router)
app.include_router(stories.router)
app.include_router(gamification.router)
app.include_router(payments.router)
app.include_router(crypto.router)
app.include_router(chat.router)
app.include_router(notifications.router)
app.include_router(admin.router)
app.include_router(imports.router)
app.include_router(seo.router)
app.include_router(writers.router)
app.include_router(social.router)
logger.info("STARTUP: All routers included")


@app.get("/")
def root():
    """Root endpoint for health checks."""
    return {"status": "ok"}


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
