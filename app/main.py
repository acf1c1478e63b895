# Import necessary modules and libraries for the application
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import uvicorn
import logging

from app.settings import settings
from app.chat_router import router as chat_router, get_chat_pipeline

# Configure root logging
logging.basicConfig(level=settings.LOG_LEVEL, format='%(asctime)s %(levelname)s [%(name)s] %(message)s')
logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    from db.db import create_tables, engine

    # Startup
    logger.info("Starting Bible Chat Assistant...")
    try:
        await create_tables()
        logger.info("Database tables created/verified")
    except Exception as e:
        # Retrieval falls through to web search without a database
        logger.warning("Database unavailable, local retrieval disabled: %s", e)
    if settings.DEV_MOCK:
        logger.info("DEV_MOCK enabled: answers are canned and the model is never called")

    yield

    # Shutdown
    logger.info("Shutting down Bible Chat Assistant...")
    if get_chat_pipeline.cache_info().currsize:
        await get_chat_pipeline().aclose()
    await engine.dispose()

# Create FastAPI app
app = FastAPI(
    title="Bible Chat Assistant",
    description="Answers Bible questions with an LLM, grounded by verse lookups and retrieved context",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(chat_router)

@app.get("/health")
async def root_health():
    """Root health check"""
    return {
        "status": "healthy",
        "message": "Bible Chat Assistant API",
        "version": "1.0.0",
        "docs": "/docs"
    }

if __name__ == "__main__":
    # Development server
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
