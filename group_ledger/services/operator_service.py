from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from group_ledger.config import settings
from group_ledger.models.operator import GroupOperator


class OperatorService:
    """Per-group operator relation plus the global bot admin allow-list."""

    def __init__(self, db: AsyncSession, admin_ids: frozenset[str] | None = None):
        self.db = db
        self.admin_ids = settings.bot_admin_ids if admin_ids is None else admin_ids

    def is_admin(self, user_id: int | str | None) -> bool:
        return user_id is not None and str(user_id) in self.admin_ids

    async def is_operator(self, chat_id: str, user_id: int | str) -> bool:
        result = await self.db.execute(
            select(GroupOperator.id).where(
                GroupOperator.chat_id == chat_id,
                GroupOperator.user_id == str(user_id),
            )
        )
        return result.scalar_one_or_none() is not None

    async def has_permission(self, chat_id: str, user_id: int | str | None) -> bool:
        """Admins may act everywhere, operators only in their own group."""
        if user_id is None:
            return False
        if self.is_admin(user_id):
            return True
        return await self.is_operator(chat_id, user_id)

    async def list_operators(self, chat_id: str) -> list[GroupOperator]:
        result = await self.db.execute(
            select(GroupOperator)
            .where(GroupOperator.chat_id == chat_id)
            .order_by(GroupOperator.created_at)
        )
        return list(result.scalars().all())

    async def add_operator(
        self,
        chat_id: str,
        user_id: int | str,
        user_name: str | None = None,
        assigned_by: int | str | None = None,
    ) -> bool:
        """Grant operator rights. Returns False if the user already had them."""
        if await self.is_operator(chat_id, user_id):
            return False

        operator = GroupOperator(
            chat_id=chat_id,
            user_id=str(user_id),
            user_name=user_name,
            assigned_by=str(assigned_by) if assigned_by is not None else None,
        )
        self.db.add(operator)
        await self.db.flush()
        return True

    async def remove_operator(self, chat_id: str, user_id: int | str) -> bool:
        """Revoke operator rights. Returns False if there was nothing to remove."""
        result = await self.db.execute(
            delete(GroupOperator).where(
                GroupOperator.chat_id == chat_id,
                GroupOperator.user_id == str(user_id),
            )
        )
        return result.rowcount > 0
