"""
Database models module.

Importing this package registers every model with SQLAlchemy's Base.metadata
before table creation.
"""
from appforge.db.models.user import User
from appforge.db.models.subscription import Subscription
from appforge.db.models.app_generation import AppGeneration

__all__ = [
    "User",
    "Subscription",
    "AppGeneration",
]
