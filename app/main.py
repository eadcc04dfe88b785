from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import health, news
from .config import settings
from .db.session import close_news_store, get_news_store
from .logging_config import setup_logging
from .middleware import RequestLoggingMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    # Creates the article table on first start
    await get_news_store()
    yield
    await close_news_store()


# Create FastAPI app
app = FastAPI(
    title="AIForecast Hub News API",
    description="Aggregated crypto news feed with classification, filters and stats",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(news.router, tags=["News"])


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "AIForecast Hub News API",
        "version": "0.1.0",
        "description": "Aggregated crypto news feed with classification, filters and stats",
        "docs": "/docs",
        "health": "/healthz"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower()
    )
