import threading
import uuid
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import sessionmaker

from conceptlab.db.models import Base, ClaudeInteraction


@dataclass(frozen=True)
class InteractionRecord:
    user_id: str
    concept_id: Optional[str]
    interaction_type: str
    prompt: str
    response: str
    tokens_used: int
    duration_ms: int
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class UsageStats:
    user_id: str
    total_interactions: int = 0
    total_tokens: int = 0
    interaction_types: Dict[str, int] = field(default_factory=dict)


class InteractionLog(ABC):
    """Append-only sink; records are never updated or deleted."""

    @abstractmethod
    def append(self, record: InteractionRecord) -> None:
        pass

    @abstractmethod
    def usage_stats(self, user_id: str) -> UsageStats:
        pass


class InMemoryInteractionLog(InteractionLog):
    def __init__(self):
        self._lock = threading.Lock()
        self._records: List[InteractionRecord] = []

    def append(self, record: InteractionRecord) -> None:
        with self._lock:
            self._records.append(record)

    @property
    def records(self) -> List[InteractionRecord]:
        with self._lock:
            return list(self._records)

    def usage_stats(self, user_id: str) -> UsageStats:
        mine = [r for r in self.records if r.user_id == user_id]
        return UsageStats(
            user_id=user_id,
            total_interactions=len(mine),
            total_tokens=sum(r.tokens_used for r in mine),
            interaction_types=dict(Counter(r.interaction_type for r in mine)),
        )


class SqlInteractionLog(InteractionLog):
    def __init__(self, engine, create_tables: bool = True):
        if create_tables:
            Base.metadata.create_all(engine)
        self.Session = sessionmaker(bind=engine)

    def append(self, record: InteractionRecord) -> None:
        session = self.Session()
        try:
            session.add(
                ClaudeInteraction(
                    interaction_id=record.id,
                    user_id=record.user_id,
                    concept_id=record.concept_id,
                    interaction_type=record.interaction_type,
                    prompt=record.prompt,
                    response=record.response,
                    tokens_used=record.tokens_used,
                    duration_ms=record.duration_ms,
                    created_at=record.created_at,
                )
            )
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def usage_stats(self, user_id: str) -> UsageStats:
        session = self.Session()
        try:
            rows = (
                session.query(
                    ClaudeInteraction.interaction_type,
                    func.count(ClaudeInteraction.interaction_id),
                    func.coalesce(func.sum(ClaudeInteraction.tokens_used), 0),
                )
                .filter(ClaudeInteraction.user_id == user_id)
                .group_by(ClaudeInteraction.interaction_type)
                .all()
            )
        finally:
            session.close()

        stats = UsageStats(user_id=user_id)
        for interaction_type, count, tokens in rows:
            stats.interaction_types[interaction_type] = count
            stats.total_interactions += count
            stats.total_tokens += int(tokens)
        return stats
