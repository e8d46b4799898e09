from group_ledger.schemas.ledger import (
    AmountRequest,
    ServiceRateRequest,
    AccountResponse,
    TransactionEntry,
    HistoryResponse,
    OperationResponse,
    OperatorCreate,
    OperatorResponse,
)

__all__ = [
    'AmountRequest',
    'ServiceRateRequest',
    'AccountResponse',
    'TransactionEntry',
    'HistoryResponse',
    'OperationResponse',
    'OperatorCreate',
    'OperatorResponse',
]
