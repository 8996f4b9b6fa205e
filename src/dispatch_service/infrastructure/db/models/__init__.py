"""Import all models so Alembic can discover them via Base.metadata."""
from dispatch_service.infrastructure.db.models.message import MessageModel

__all__ = [
    "MessageModel",
]
