from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy import text
import logging

from app.settings import settings
from db.models import Base

logger = logging.getLogger(__name__)

# Create async engine
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DB_ECHO,
    future=True,
    pool_pre_ping=True,  # Verify connections before use
    pool_recycle=300,    # Recycle connections every 5 minutes
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)

async def create_tables():
    """Create the documents table plus its full-text index"""
    async with engine.begin() as conn:
        # Enable pgvector extension
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))

        # Create all tables
        await conn.run_sync(Base.metadata.create_all)

        indexes = [
            "CREATE INDEX IF NOT EXISTS idx_documents_content_fts "
            "ON documents USING gin (to_tsvector('english', content))",
        ]
        for index_sql in indexes:
            try:
                await conn.execute(text(index_sql))
            except Exception as e:
                logger.warning("Index creation warning: %s", e)

async def create_vector_index():
    """Create vector similarity index - should be done after data ingestion"""
    async with engine.begin() as conn:
        try:
            # The lists parameter should be approximately sqrt(total_rows)
            await conn.execute(text(
                "CREATE INDEX IF NOT EXISTS idx_documents_embedding "
                "ON documents USING ivfflat (embedding vector_cosine_ops) "
                "WITH (lists = 100)"
            ))
            logger.info("Created vector similarity index for documents")
        except Exception as e:
            logger.warning("Vector index creation warning: %s", e)

