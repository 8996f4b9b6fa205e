"""Seed development data: creates the messages table and a few unsent messages."""
from __future__ import annotations

import asyncio
import logging

from dispatch_service.infrastructure.db.base import Base
from dispatch_service.infrastructure.db.models import MessageModel
from dispatch_service.infrastructure.db.session import AsyncSessionLocal, engine

logger = logging.getLogger(__name__)

SAMPLE_MESSAGES = [
    ("Your order has been shipped.", "+905551111111"),
    ("Your verification code is 4821.", "+905552222222"),
    ("Reminder: your appointment is tomorrow at 10:00.", "+905553333333"),
    ("Thanks for your purchase!", "+905554444444"),
]


async def seed() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        for content, phone in SAMPLE_MESSAGES:
            session.add(MessageModel(content=content, recipient_phone=phone))
        await session.commit()

    logger.info("Seeded %d unsent messages", len(SAMPLE_MESSAGES))
    await engine.dispose()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(seed())


if __name__ == "__main__":
    main()
