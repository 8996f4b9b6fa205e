from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dispatch_service.application.exceptions import (
    MessageFetchError,
    NotFoundError,
    PersistenceError,
)
from dispatch_service.domain.entities.message import Message
from dispatch_service.infrastructure.db.mappers import message as mapper
from dispatch_service.infrastructure.db.models.message import MessageModel

logger = logging.getLogger(__name__)

# Explicit ids bypass the SERIAL sequence; move it past the highest id in use.
_SYNC_ID_SEQUENCE = select(
    func.setval(
        func.pg_get_serial_sequence(MessageModel.__tablename__, "id"),
        select(func.max(MessageModel.id)).scalar_subquery(),
    )
)


class SqlAlchemyMessageStore:
    """Implements application.repositories.message.MessageStore.

    Each call runs in its own short-lived session and commits immediately, so no
    database transaction is held open across an outbound delivery call.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_unsent_messages(self, limit: int) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.sent.is_(False))
            .order_by(MessageModel.id.asc())
            .limit(limit)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [mapper.model_to_entity(m) for m in result.scalars().all()]
        except SQLAlchemyError as exc:
            raise MessageFetchError(f"failed to get unsent messages: {exc}") from exc

    async def update_message_sent(self, id: int, message_id: str | None = None) -> None:
        now = datetime.now(timezone.utc)
        stmt = (
            update(MessageModel)
            .where(MessageModel.id == id)
            .values(sent=True, sent_at=now, message_id=message_id, updated_at=now)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                if result.rowcount == 0:
                    await session.rollback()
                    raise NotFoundError(f"Message {id} not found")
                await session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to mark message {id} sent: {exc}") from exc

    async def get_sent_messages(self) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.sent.is_(True))
            .order_by(MessageModel.id.asc())
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [mapper.model_to_entity(m) for m in result.scalars().all()]
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to get sent messages: {exc}") from exc

    async def get_message(self, id: int) -> Message | None:
        try:
            async with self._session_factory() as session:
                model = await session.get(MessageModel, id)
                return mapper.model_to_entity(model) if model else None
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to get message {id}: {exc}") from exc

    async def create_message(self, id: int, content: str, recipient_phone: str) -> Message:
        model = MessageModel(id=id, content=content, recipient_phone=recipient_phone)
        try:
            async with self._session_factory() as session:
                session.add(model)
                await session.flush()
                await session.execute(_SYNC_ID_SEQUENCE)
                await session.commit()
                await session.refresh(model)
                logger.info("Created message %d", model.id)
                return mapper.model_to_entity(model)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to create message {id}: {exc}") from exc
