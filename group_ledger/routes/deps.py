from fastapi import Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from group_ledger.db.database import engine, get_db
from group_ledger.services.billing_service import BillingService
from group_ledger.services.ledger_store import LedgerStore
from group_ledger.services.operator_service import OperatorService

_store: LedgerStore | None = None


def get_store() -> LedgerStore:
    global _store
    if _store is None:
        _store = LedgerStore(engine)
    return _store


def get_billing_service(store: LedgerStore = Depends(get_store)) -> BillingService:
    return BillingService(store)


def get_operator_service(db: AsyncSession = Depends(get_db)) -> OperatorService:
    return OperatorService(db)


async def require_operator(
    chat_id: str,
    actor_id: int = Query(...),
    operators: OperatorService = Depends(get_operator_service),
) -> int:
    """Allow bot admins and the group's operators; returns the actor id."""
    if not await operators.has_permission(chat_id, actor_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Not allowed to run ledger commands in this group',
        )
    return actor_id


async def require_admin(
    actor_id: int = Query(...),
    operators: OperatorService = Depends(get_operator_service),
) -> int:
    if not operators.is_admin(actor_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Admin only')
    return actor_id
