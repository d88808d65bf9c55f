from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from boostify.db.models.chats import Chat
from boostify.db.models.messages import Message


class ChatsRepo:
    @staticmethod
    async def get_latest_active_between(
        session: AsyncSession,
        *,
        customer_id: UUID,
        booster_id: UUID,
    ) -> Chat | None:
        stmt = (
            select(Chat)
            .where(
                Chat.customer_id == customer_id,
                Chat.booster_id == booster_id,
                Chat.status == "active",
            )
            .order_by(Chat.updated_at.desc())
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create_chat(session: AsyncSession, *, chat: Chat) -> Chat:
        session.add(chat)
        await session.flush()
        return chat

    @staticmethod
    async def create_message(session: AsyncSession, *, message: Message) -> Message:
        session.add(message)
        await session.flush()
        return message
