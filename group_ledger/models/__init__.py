from group_ledger.models.account import Account, AccountSnapshot
from group_ledger.models.transaction import TransactionRecord, TransactionType
from group_ledger.models.operator import GroupOperator

__all__ = [
    'Account',
    'AccountSnapshot',
    'TransactionRecord',
    'TransactionType',
    'GroupOperator',
]
