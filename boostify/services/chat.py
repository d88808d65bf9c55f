from __future__ import annotations

from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from boostify.db.models.chats import Chat
from boostify.db.models.messages import Message
from boostify.db.repo.chats_repo import ChatsRepo

logger = structlog.get_logger(__name__)

BOOSTER_ASSIGNED_MESSAGE = (
    "Thanks for choosing us! Your booster has been assigned and will reach out here soon."
)


async def ensure_order_chat(
    session: AsyncSession,
    *,
    order_id: UUID,
    customer_id: UUID,
    booster_id: UUID,
    now_utc: datetime,
    initial_message: str | None = None,
) -> Chat:
    """Reuse the latest active customer/booster chat or open a new one, then post the system greeting."""
    chat = await ChatsRepo.get_latest_active_between(
        session,
        customer_id=customer_id,
        booster_id=booster_id,
    )
    if chat is not None:
        chat.order_id = order_id
        chat.updated_at = now_utc
        reused = True
    else:
        chat = await ChatsRepo.create_chat(
            session,
            chat=Chat(
                order_id=order_id,
                customer_id=customer_id,
                booster_id=booster_id,
                status="active",
                created_at=now_utc,
                updated_at=now_utc,
            ),
        )
        reused = False

    await ChatsRepo.create_message(
        session,
        message=Message(
            chat_id=chat.id,
            sender_id=booster_id,
            content=initial_message or BOOSTER_ASSIGNED_MESSAGE,
            message_type="system",
            created_at=now_utc,
        ),
    )
    logger.info(
        "order_chat_ready",
        chat_id=str(chat.id),
        order_id=str(order_id),
        reused=reused,
    )
    return chat
