import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, JSON, Index
from appforge.db.base import Base


class AppGeneration(Base):
    """
    One generation job.

    Created in "pending" state on submission and mutated only by the
    generator task afterwards.
    """
    __tablename__ = "app_generations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    app_name = Column(String, nullable=False)
    prompt = Column(Text, nullable=False)
    backend = Column(String, nullable=False)  # firebase | supabase | nodejs
    icon_url = Column(Text, nullable=True)  # upload path or SVG data URI
    status = Column(String, nullable=False, default="pending")  # pending | generating | completed | failed
    progress = Column(JSON, nullable=False, default=dict)
    result_url = Column(String, nullable=True)
    apk_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)  # sub-second ordering

    __table_args__ = (
        Index('idx_generation_user_created', 'user_id', 'created_at'),
    )
