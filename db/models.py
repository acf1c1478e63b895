# Import necessary modules and libraries for database models
from sqlalchemy import Column, String, Text, DateTime, func
from sqlalchemy.orm import declarative_base
from pgvector.sqlalchemy import Vector

from app.settings import settings

# Define base class for stored context documents
Base = declarative_base()


class Document(Base):
    """Reference material used as retrieval context (commentary, notes, articles)"""
    __tablename__ = "documents"

    id = Column(String(255), primary_key=True)
    content = Column(Text, nullable=False)
    # Must match the embedding model's output size (384 for all-MiniLM-L6-v2)
    embedding = Column(Vector(settings.EMBEDDING_DIM), nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Document(id='{self.id}', content='{(self.content or '')[:50]}...')>"
