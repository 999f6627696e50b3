"""
Account Query Service Module

Read-only projections of account state for reporting. Reads take the
account lock, so a settlement in progress is seen either completely or not
at all.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .currency import Currency
from .errors import TransactionNotFound
from .ledger import LedgerStore
from .profiles import InMemoryProfileDirectory, ProfileDirectory
from .transactions import Transaction, TransactionLog, TransactionStatus


@dataclass(frozen=True)
class AccountInfo:
    """Public view of an account"""
    id: int
    verified: bool
    online: bool
    balances: Dict[Currency, Decimal]
    transaction_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "verified": self.verified,
            "online": self.online,
            "balances": {c.code: str(amount) for c, amount in self.balances.items()},
            "transaction_count": self.transaction_count
        }


class AccountQueryService:
    """Builds read-only account projections from the store and log"""

    def __init__(
        self,
        store: LedgerStore,
        transaction_log: TransactionLog,
        profiles: Optional[ProfileDirectory] = None
    ):
        self.store = store
        self.transaction_log = transaction_log
        self.profiles = profiles or InMemoryProfileDirectory()

    def get_info(self, account_id: int) -> AccountInfo:
        """
        Get the public view of an account

        Raises:
            AccountNotFound: If the account does not exist
        """
        with self.store.lock_accounts(account_id):
            balances = self.store.balances_snapshot(account_id)
            transaction_count = self.transaction_log.count_for_account(account_id)

        flags = self.profiles.get_flags(account_id)
        return AccountInfo(
            id=account_id,
            verified=flags.verified,
            online=flags.online,
            balances=balances,
            transaction_count=transaction_count
        )

    def get_transactions(
        self,
        account_id: int,
        status: Optional[TransactionStatus] = None,
        limit: Optional[int] = None
    ) -> List[Transaction]:
        """
        Get an account's transactions, most recent first

        Raises:
            AccountNotFound: If the account does not exist
        """
        with self.store.lock_accounts(account_id):
            return self.transaction_log.for_account(account_id, status=status, limit=limit)

    def get_transaction(self, transaction_id: int) -> Transaction:
        """
        Get a single transaction by id

        Raises:
            TransactionNotFound: If no transaction has this id
        """
        transaction = self.transaction_log.get(transaction_id)
        if transaction is None:
            raise TransactionNotFound(
                f"Transaction {transaction_id} not found", transaction_id=transaction_id
            )
        return transaction
