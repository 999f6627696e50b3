"""
Transaction Log Module

Records proposed transfers and their terminal status. Each transaction is
stored once in an arena keyed by its global id; both participants' indexes
reference that single record, so the sender's and the recipient's view of a
transaction can never disagree.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional
from enum import Enum
import threading

from .currency import Currency, Money
from .ledger import IdSequence
from .logging_config import get_logger


class TransactionStatus(Enum):
    """Transaction lifecycle: PENDING -> ACCEPTED | REJECTED, nothing after"""
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class RejectionReason(Enum):
    """Why a transaction ended REJECTED"""
    DECLINED = "declined"                          # Recipient said no
    RECIPIENT_INSUFFICIENT_FUNDS = "recipient_insufficient_funds"
    SENDER_INSUFFICIENT_FUNDS = "sender_insufficient_funds"


@dataclass(frozen=True)
class Settlement:
    """Conversion applied when a transaction was accepted"""
    counter_currency: Currency
    rate: Decimal
    counter_amount: Money

    def to_dict(self) -> Dict:
        return {
            "counter_currency": self.counter_currency.code,
            "rate": str(self.rate),
            "counter_amount": str(self.counter_amount.amount)
        }


@dataclass
class Transaction:
    """
    Proposed transfer between two distinct accounts
    """
    id: int
    from_account_id: int
    to_account_id: int
    amount: Money
    status: TransactionStatus = TransactionStatus.PENDING
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    processed_at: Optional[datetime] = None
    settlement: Optional[Settlement] = None
    rejection_reason: Optional[RejectionReason] = None

    def __post_init__(self):
        if self.from_account_id == self.to_account_id:
            raise ValueError("Transaction must be between two distinct accounts")
        if not self.amount.is_positive():
            raise ValueError("Transaction amount must be positive")

    @property
    def currency(self) -> Currency:
        return self.amount.currency

    @property
    def is_pending(self) -> bool:
        return self.status == TransactionStatus.PENDING

    @property
    def is_terminal(self) -> bool:
        return self.status != TransactionStatus.PENDING

    def involves(self, account_id: int) -> bool:
        return account_id in (self.from_account_id, self.to_account_id)

    def accept(self, settlement: Settlement) -> None:
        """
        Mark ACCEPTED

        Can only be done once and only for PENDING transactions
        """
        if not self.is_pending:
            raise ValueError(f"Cannot accept transaction {self.id} in {self.status.value} state")
        self.status = TransactionStatus.ACCEPTED
        self.settlement = settlement
        self.processed_at = datetime.now(timezone.utc)

    def reject(self, reason: RejectionReason) -> None:
        """
        Mark REJECTED

        Can only be done once and only for PENDING transactions
        """
        if not self.is_pending:
            raise ValueError(f"Cannot reject transaction {self.id} in {self.status.value} state")
        self.status = TransactionStatus.REJECTED
        self.rejection_reason = reason
        self.processed_at = datetime.now(timezone.utc)

    def to_dict(self) -> Dict:
        result = {
            "id": self.id,
            "from_account_id": self.from_account_id,
            "to_account_id": self.to_account_id,
            "currency": self.currency.code,
            "amount": str(self.amount.amount),
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
            "settlement": self.settlement.to_dict() if self.settlement else None,
            "rejection_reason": self.rejection_reason.value if self.rejection_reason else None
        }
        return result


class TransactionLog:
    """
    Arena of transactions plus a per-account index

    Ids come from one global sequence shared by all accounts. Readers
    receive copies; status changes go through mark_accepted/mark_rejected.
    """

    def __init__(self, transaction_ids: Optional[IdSequence] = None):
        self._transaction_ids = transaction_ids or IdSequence()
        self._transactions: Dict[int, Transaction] = {}
        self._by_account: Dict[int, List[int]] = {}
        self._lock = threading.RLock()
        self.logger = get_logger("exchange.transactions")

    def append(self, from_account_id: int, to_account_id: int, amount: Money) -> Transaction:
        """Create a PENDING transaction indexed under both participants"""
        with self._lock:
            transaction = Transaction(
                id=self._transaction_ids.next_id(),
                from_account_id=from_account_id,
                to_account_id=to_account_id,
                amount=amount
            )
            self._transactions[transaction.id] = transaction
            self._by_account.setdefault(from_account_id, []).append(transaction.id)
            self._by_account.setdefault(to_account_id, []).append(transaction.id)

        self.logger.debug(
            f"Transaction {transaction.id} logged for accounts {from_account_id} and {to_account_id}"
        )
        return replace(transaction)

    def get(self, transaction_id: int) -> Optional[Transaction]:
        with self._lock:
            transaction = self._transactions.get(transaction_id)
            return replace(transaction) if transaction else None

    def find_pending_for_receiver(self, transaction_id: int, receiver_id: int) -> Optional[Transaction]:
        """
        Find a PENDING transaction in the receiver's log addressed to the receiver
        """
        with self._lock:
            if transaction_id not in self._by_account.get(receiver_id, ()):
                return None
            transaction = self._transactions[transaction_id]
            if transaction.to_account_id != receiver_id or not transaction.is_pending:
                return None
            return replace(transaction)

    def for_account(
        self,
        account_id: int,
        status: Optional[TransactionStatus] = None,
        limit: Optional[int] = None
    ) -> List[Transaction]:
        """
        Get an account's transactions, most recent first

        Args:
            account_id: Account whose log to read
            status: Optional status filter
            limit: Optional limit on number of transactions
        """
        with self._lock:
            transactions = [
                replace(self._transactions[tid])
                for tid in reversed(self._by_account.get(account_id, []))
            ]

        if status is not None:
            transactions = [t for t in transactions if t.status == status]
        if limit is not None:
            transactions = transactions[:limit]
        return transactions

    def count_for_account(self, account_id: int) -> int:
        with self._lock:
            return len(self._by_account.get(account_id, []))

    def mark_accepted(self, transaction_id: int, settlement: Settlement) -> Transaction:
        with self._lock:
            transaction = self._transactions[transaction_id]
            transaction.accept(settlement)
            return replace(transaction)

    def mark_rejected(self, transaction_id: int, reason: RejectionReason) -> Transaction:
        with self._lock:
            transaction = self._transactions[transaction_id]
            transaction.reject(reason)
            return replace(transaction)

    def __len__(self) -> int:
        with self._lock:
            return len(self._transactions)
