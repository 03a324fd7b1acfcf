"""In-app notifications: one row per recipient, read/unread."""

from __future__ import annotations

import logging
from typing import Any

from jiralite.gateway.base import RecordGateway, eq
from jiralite.types.enums import NotificationType

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, gateway: RecordGateway) -> None:
        self.gateway = gateway

    async def notify(
        self,
        user_id: str,
        notification_type: NotificationType,
        title: str,
        *,
        content: str = "",
        link: str | None = None,
    ) -> dict[str, Any]:
        result = await self.gateway.insert(
            "notifications",
            {
                "user_id": user_id,
                "type": notification_type,
                "title": title,
                "content": content,
                "link": link,
                "is_read": False,
            },
        )
        row = result.unwrap()
        logger.info("Notified %s: %s", user_id, notification_type)
        return row

    async def for_user(self, user_id: str, *, unread_only: bool = False, limit: int = 50) -> list[dict[str, Any]]:
        filters = [eq("user_id", user_id)]
        if unread_only:
            filters.append(eq("is_read", False))
        result = await self.gateway.select(
            "notifications", filters=filters, order_by="created_at", descending=True, limit=limit
        )
        return result.unwrap()

    async def unread_count(self, user_id: str) -> int:
        result = await self.gateway.count("notifications", filters=[eq("user_id", user_id), eq("is_read", False)])
        return result.unwrap()

    async def mark_read(self, notification_id: str) -> bool:
        result = await self.gateway.update("notifications", {"is_read": True}, filters=[eq("id", notification_id)])
        return bool(result.unwrap())

    async def mark_all_read(self, user_id: str) -> int:
        result = await self.gateway.update(
            "notifications", {"is_read": True}, filters=[eq("user_id", user_id), eq("is_read", False)]
        )
        return len(result.unwrap())
