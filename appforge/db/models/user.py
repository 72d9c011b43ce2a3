import uuid
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from appforge.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    photo_url = Column(String, nullable=True)
    provider = Column(String, nullable=False, default="email")  # email | google
    firebase_uid = Column(String, unique=True, index=True, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
