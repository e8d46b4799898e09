"""Group ledger endpoints: balance queries and the ledger commands."""
from fastapi import APIRouter, Depends, HTTPException, Query

from group_ledger.config import settings
from group_ledger.exceptions import (
    AccountNotFound, InsufficientPending, InvalidAmount, StoreUnavailable,
)
from group_ledger.routes.deps import get_billing_service, require_operator
from group_ledger.schemas.ledger import (
    AccountResponse, AmountRequest, HistoryResponse, OperationResponse,
    ServiceRateRequest, TransactionEntry,
)
from group_ledger.services.billing_service import BillingService, OperationResult

router = APIRouter()


def _operation_response(result: OperationResult) -> OperationResponse:
    return OperationResponse(
        account=AccountResponse.model_validate(result.state),
        amount=result.amount,
        service_fee=result.service_fee,
        total=result.total,
        recharge_principal=result.recharge_principal,
        pending_before=result.pending_before,
        reserve_delta=result.reserve_delta,
        previous_rate=result.previous_rate,
        recorded=result.recorded,
        transaction_id=result.transaction_id,
    )


async def _apply(operation, chat_id: str, value, chat_title: str | None, actor_id: int):
    try:
        result = await operation(chat_id, value, chat_title=chat_title, actor_id=actor_id)
    except InvalidAmount as e:
        raise HTTPException(status_code=422, detail=str(e))
    except InsufficientPending as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StoreUnavailable:
        raise HTTPException(status_code=503, detail='Ledger store unavailable, try again')
    return _operation_response(result)


@router.get('/{chat_id}', response_model=AccountResponse)
async def get_group(
    chat_id: str,
    billing: BillingService = Depends(get_billing_service),
):
    """Current balances of a group."""
    try:
        return await billing.get_account(chat_id)
    except AccountNotFound:
        raise HTTPException(status_code=404, detail='Group not found')


@router.get('/{chat_id}/history', response_model=HistoryResponse)
async def get_history(
    chat_id: str,
    limit: int | None = Query(None, ge=1),
    billing: BillingService = Depends(get_billing_service),
):
    """Balances plus the newest transactions, newest first."""
    limit = min(limit or settings.history_default_limit, settings.history_max_limit)
    try:
        account, records = await billing.history(chat_id, limit)
    except AccountNotFound:
        raise HTTPException(status_code=404, detail='Group not found')

    return HistoryResponse(
        chat_id=account.chat_id,
        chat_title=account.chat_title,
        reserve=account.reserve,
        pending=account.pending,
        service_rate=account.service_rate,
        transactions=[TransactionEntry.model_validate(r) for r in records],
    )


@router.get('/{chat_id}/reconcile')
async def reconcile_group(
    chat_id: str,
    billing: BillingService = Depends(get_billing_service),
):
    """Check the newest log snapshot against the live balances."""
    try:
        consistent = await billing.reconcile(chat_id)
    except AccountNotFound:
        raise HTTPException(status_code=404, detail='Group not found')
    return {'chat_id': chat_id, 'consistent': consistent}


@router.post('/{chat_id}/pending', response_model=OperationResponse)
async def credit_pending(
    chat_id: str,
    data: AmountRequest,
    actor_id: int = Depends(require_operator),
    billing: BillingService = Depends(get_billing_service),
):
    """Record a spend (positive) or adjustment (negative)."""
    return await _apply(billing.credit_pending, chat_id, data.amount, data.chat_title, actor_id)


@router.post('/{chat_id}/payments', response_model=OperationResponse)
async def reduce_pending(
    chat_id: str,
    data: AmountRequest,
    actor_id: int = Depends(require_operator),
    billing: BillingService = Depends(get_billing_service),
):
    """Record a payment against pending."""
    return await _apply(billing.reduce_pending, chat_id, data.amount, data.chat_title, actor_id)


@router.post('/{chat_id}/deposits', response_model=OperationResponse)
async def deposit_to_reserve(
    chat_id: str,
    data: AmountRequest,
    actor_id: int = Depends(require_operator),
    billing: BillingService = Depends(get_billing_service),
):
    """Deposit into reserve, clearing principal plus fee from pending."""
    return await _apply(billing.deposit_to_reserve, chat_id, data.amount, data.chat_title, actor_id)


@router.post('/{chat_id}/withdrawals', response_model=OperationResponse)
async def withdraw_from_reserve(
    chat_id: str,
    data: AmountRequest,
    actor_id: int = Depends(require_operator),
    billing: BillingService = Depends(get_billing_service),
):
    """Charge usage to reserve; any shortfall becomes pending."""
    return await _apply(billing.withdraw_from_reserve, chat_id, data.amount, data.chat_title, actor_id)


@router.post('/{chat_id}/service-rate', response_model=OperationResponse)
async def set_service_rate(
    chat_id: str,
    data: ServiceRateRequest,
    actor_id: int = Depends(require_operator),
    billing: BillingService = Depends(get_billing_service),
):
    """Change the fee rate, e.g. ``{"rate": "3%"}`` or ``{"rate": "0.03"}``."""
    return await _apply(billing.set_service_rate, chat_id, data.rate, data.chat_title, actor_id)
