# Models package
from app.db import Base
from app.models.base import TimestampMixin
from app.models.subscription import Subscription

__all__ = [
    "Base",
    "TimestampMixin",
    "Subscription",
]
