"""Per-group operator management. Bot admins only."""
from fastapi import APIRouter, Depends, HTTPException, status

from group_ledger.routes.deps import get_operator_service, require_admin
from group_ledger.schemas.ledger import OperatorCreate, OperatorResponse
from group_ledger.services.operator_service import OperatorService

router = APIRouter()


@router.get('/{chat_id}/operators', response_model=list[OperatorResponse])
async def list_operators(
    chat_id: str,
    _admin: int = Depends(require_admin),
    operators: OperatorService = Depends(get_operator_service),
):
    return await operators.list_operators(chat_id)


@router.post('/{chat_id}/operators', status_code=status.HTTP_201_CREATED)
async def add_operator(
    chat_id: str,
    data: OperatorCreate,
    admin_id: int = Depends(require_admin),
    operators: OperatorService = Depends(get_operator_service),
):
    """Grant a user operator rights in one group. Idempotent."""
    added = await operators.add_operator(
        chat_id, data.user_id, user_name=data.user_name, assigned_by=admin_id,
    )
    return {'chat_id': chat_id, 'user_id': data.user_id, 'added': added}


@router.delete('/{chat_id}/operators/{user_id}')
async def remove_operator(
    chat_id: str,
    user_id: str,
    _admin: int = Depends(require_admin),
    operators: OperatorService = Depends(get_operator_service),
):
    removed = await operators.remove_operator(chat_id, user_id)
    if not removed:
        raise HTTPException(status_code=404, detail='Operator not found')
    return {'chat_id': chat_id, 'user_id': user_id, 'removed': True}
