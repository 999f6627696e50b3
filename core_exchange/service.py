"""
Exchange Service Module

Wires the ledger components together and exposes the operations offered to
the account-management layer. Every operation returns an OperationResult:
ledger errors are converted to values here and never propagate as exceptions
past this boundary.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, Optional, Union

from .config import ExchangeConfig, get_config
from .currency import ConversionTable, Currency
from .errors import ExchangeError, InvalidRequest
from .events import DomainEvent, EventDispatcher, create_account_event
from .ledger import IdSequence, LedgerStore
from .logging_config import get_logger, log_action
from .profiles import InMemoryProfileDirectory, ProfileDirectory
from .queries import AccountQueryService
from .transactions import TransactionLog, TransactionStatus
from .transfers import TransferEngine


REASON_PHRASES = {
    200: "OK",
    201: "Created",
    400: "Bad Request",
    404: "Not Found",
    500: "Internal Server Error",
}


@dataclass
class OperationResult:
    """
    Response envelope returned by every service operation

    ``status`` is the string-encoded HTTP-style code; ``kind`` is the stable
    error kind and is only set on failure.
    """
    status: str
    text: str
    message: str
    kind: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.kind is None

    @property
    def http_status(self) -> int:
        return int(self.status)

    @classmethod
    def success(cls, message: str, data: Optional[Dict[str, Any]] = None,
                status: int = 200) -> 'OperationResult':
        return cls(status=str(status), text=REASON_PHRASES[status], message=message, data=data)

    @classmethod
    def failure(cls, error: ExchangeError) -> 'OperationResult':
        return cls(
            status=str(error.http_status),
            text=REASON_PHRASES.get(error.http_status, "Error"),
            message=error.message,
            kind=error.kind
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {"status": self.status, "text": self.text, "message": self.message}
        if self.kind is not None:
            result["kind"] = self.kind
        if self.data is not None:
            result["data"] = self.data
        return result


def parse_status(status: Optional[Union[str, TransactionStatus]]) -> Optional[TransactionStatus]:
    """Resolve an optional status filter"""
    if status is None or isinstance(status, TransactionStatus):
        return status
    try:
        return TransactionStatus(status.strip().upper())
    except ValueError:
        raise InvalidRequest(f"Unknown transaction status: {status}", status=status) from None


def parse_limit(limit: Optional[int]) -> Optional[int]:
    if limit is not None and limit < 1:
        raise InvalidRequest(f"Limit must be at least 1, got {limit}", limit=limit)
    return limit


class ExchangeService:
    """Exchange ledger with all components initialized"""

    def __init__(
        self,
        config: Optional[ExchangeConfig] = None,
        profiles: Optional[ProfileDirectory] = None,
        event_dispatcher: Optional[EventDispatcher] = None
    ):
        self.config = config or get_config()

        self.conversion_table = ConversionTable.from_config(self.config)
        self.store = LedgerStore.from_config(self.config, account_ids=IdSequence())
        self.transaction_log = TransactionLog(transaction_ids=IdSequence())
        self.profiles = profiles or InMemoryProfileDirectory()

        if event_dispatcher is None and self.config.enable_events:
            event_dispatcher = EventDispatcher()
        self.event_dispatcher = event_dispatcher

        self.transfer_engine = TransferEngine(
            self.store, self.transaction_log, self.conversion_table,
            event_dispatcher=self.event_dispatcher
        )
        self.query_service = AccountQueryService(
            self.store, self.transaction_log, self.profiles
        )
        self.logger = get_logger("exchange.service")

    def _run(self, operation: str, call: Callable[[], OperationResult]) -> OperationResult:
        """Execute an operation, turning ledger errors into failure results"""
        try:
            return call()
        except ExchangeError as e:
            if e.is_invariant_violation:
                log_action(
                    self.logger, "error", f"{operation} failed: {e.message}",
                    action="ledger_integrity_violation", resource=operation,
                    extra=e.to_dict()
                )
            else:
                log_action(
                    self.logger, "warning", f"{operation} rejected: {e.message}",
                    action=operation, extra=e.to_dict()
                )
            return OperationResult.failure(e)

    def create_account(self) -> OperationResult:
        """Create an account funded with the starting grant"""
        def call():
            account = self.store.create_account()
            log_action(
                self.logger, "info", f"Account {account.id} created",
                action="create_account", resource=f"account:{account.id}"
            )
            if self.event_dispatcher:
                self.event_dispatcher.publish(
                    create_account_event(DomainEvent.ACCOUNT_CREATED, account)
                )
            return OperationResult.success(
                "Account created", data={"account_id": account.id}, status=201
            )
        return self._run("create_account", call)

    def propose(
        self,
        from_account_id: int,
        to_account_id: int,
        currency: Union[str, Currency],
        amount: Union[str, int, Decimal]
    ) -> OperationResult:
        """Propose a transfer to another account"""
        def call():
            transaction = self.transfer_engine.propose(
                from_account_id, to_account_id, currency, amount
            )
            return OperationResult.success(
                "Transaction proposal sent",
                data={"transaction_id": transaction.id, "status": transaction.status.value}
            )
        return self._run("propose_transaction", call)

    def receive(self, transaction_id: int, receiver_id: int, accept: bool) -> OperationResult:
        """Accept or reject a pending transaction"""
        def call():
            transaction = self.transfer_engine.receive(transaction_id, receiver_id, accept)
            message = "Transaction completed successfully" if accept else "Transaction rejected"
            return OperationResult.success(message, data=transaction.to_dict())
        return self._run("receive_transaction", call)

    def get_account_info(self, account_id: int) -> OperationResult:
        """Public view of an account"""
        def call():
            info = self.query_service.get_info(account_id)
            return OperationResult.success("Account information retrieved", data=info.to_dict())
        return self._run("get_account_info", call)

    def get_account_transactions(
        self,
        account_id: int,
        status: Optional[Union[str, TransactionStatus]] = None,
        limit: Optional[int] = None
    ) -> OperationResult:
        """An account's transactions, most recent first"""
        def call():
            status_filter = parse_status(status)
            transactions = self.query_service.get_transactions(
                account_id, status=status_filter, limit=parse_limit(limit)
            )
            return OperationResult.success(
                "Transactions retrieved",
                data={"transactions": [t.to_dict() for t in transactions]}
            )
        return self._run("get_account_transactions", call)

    def get_transaction(self, transaction_id: int) -> OperationResult:
        """A single transaction by id"""
        def call():
            transaction = self.query_service.get_transaction(transaction_id)
            return OperationResult.success("Transaction retrieved", data=transaction.to_dict())
        return self._run("get_transaction", call)
