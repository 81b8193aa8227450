import uuid

from sqlalchemy import Column, Integer, String, Text, DateTime, Float
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class ClaudeInteraction(Base):
    """One row per completed (non-cached) model call. Append-only."""

    __tablename__ = "claude_interactions"

    interaction_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(64), nullable=False, index=True)
    concept_id = Column(String(64), nullable=True, index=True)
    interaction_type = Column(String(50), nullable=False, index=True)
    prompt = Column(Text, nullable=False)
    response = Column(Text)
    tokens_used = Column(Integer)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    duration_ms = Column(Integer)


class CacheEntry(Base):
    __tablename__ = "cache_entries"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    expires_at = Column(Float, nullable=False)  # unix timestamp
