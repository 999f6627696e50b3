"""
Transfer Engine Module

Orchestrates the peer-to-peer transfer lifecycle: a sender proposes, the
recipient accepts or rejects. Acceptance settles as a currency swap: the
sender's amount moves to the recipient and the recipient pays back the
converted amount in the counter-currency. All four legs apply together or
not at all.
"""

from decimal import Decimal
from typing import Optional, Tuple, Union

from .currency import ConversionTable, Currency, Money, parse_amount, parse_currency
from .errors import (
    AccountNotFound, ExchangeError, InsufficientFunds, InvalidAmount,
    SelfTransfer, SenderNotFound, TransactionNotFound
)
from .events import DomainEvent, EventDispatcher, create_transaction_event
from .ledger import LedgerStore
from .logging_config import get_logger, log_action
from .transactions import RejectionReason, Settlement, Transaction, TransactionLog


class TransferEngine:
    """
    Validates and applies propose/receive against the ledger store and log

    Both operations hold the locks of the two participants for the whole
    validate-then-mutate sequence.
    """

    def __init__(
        self,
        store: LedgerStore,
        transaction_log: TransactionLog,
        conversion_table: ConversionTable,
        event_dispatcher: Optional[EventDispatcher] = None
    ):
        self.store = store
        self.transaction_log = transaction_log
        self.conversion_table = conversion_table
        self.logger = get_logger("exchange.transfers")
        self._event_dispatcher = event_dispatcher

    def _publish_event(self, event_type: DomainEvent, transaction: Transaction) -> None:
        """Publish a domain event if event dispatcher is available"""
        if self._event_dispatcher:
            self._event_dispatcher.publish(create_transaction_event(event_type, transaction))

    def propose(
        self,
        from_account_id: int,
        to_account_id: int,
        currency: Union[str, Currency],
        amount: Union[str, int, Decimal]
    ) -> Transaction:
        """
        Propose a transfer; no funds move until the recipient accepts

        Args:
            from_account_id: Sender account
            to_account_id: Recipient account
            currency: Currency the sender will be debited in
            amount: Positive amount in that currency

        Returns:
            The PENDING Transaction

        Raises:
            AccountNotFound: If either account does not exist
            SelfTransfer: If sender and recipient are the same
            UnsupportedCurrency: If the currency is not USD or RUB
            InvalidAmount: If amount is not a positive number
            InsufficientFunds: If the sender's balance is below amount
        """
        for account_id in (from_account_id, to_account_id):
            if not self.store.has_account(account_id):
                raise AccountNotFound(
                    f"Account {account_id} not found", account_id=account_id
                )

        if from_account_id == to_account_id:
            raise SelfTransfer(
                "Cannot send a transaction to yourself", account_id=from_account_id
            )

        currency = parse_currency(currency)
        value = parse_amount(amount)
        if value <= 0:
            raise InvalidAmount(f"Amount must be positive, got {value}", amount=value)
        money = Money(value, currency)
        if not money.is_positive():
            raise InvalidAmount(
                f"Amount {value} is below the smallest {currency.code} unit", amount=value
            )
        required, _ = self.quote(currency, money.amount)
        if not required.is_positive():
            raise InvalidAmount(
                f"Amount {money.to_string()} converts to nothing in {required.currency.code}",
                amount=value
            )

        with self.store.lock_accounts(from_account_id, to_account_id):
            available = self.store.get_balance(from_account_id, currency)
            if available < money.amount:
                raise InsufficientFunds(
                    f"Insufficient funds to send: available {currency.code} {available}, "
                    f"requested {money.amount}",
                    account_id=from_account_id, available=available, requested=money.amount
                )

            transaction = self.transaction_log.append(from_account_id, to_account_id, money)

        log_action(
            self.logger, "info", f"Transaction {transaction.id} proposed",
            user_id=str(from_account_id), action="propose_transaction",
            resource=f"transaction:{transaction.id}",
            extra={
                "from_account": from_account_id,
                "to_account": to_account_id,
                "amount": money.to_string()
            }
        )
        self._publish_event(DomainEvent.TRANSACTION_PROPOSED, transaction)
        return transaction

    def receive(self, transaction_id: int, receiver_id: int, accept: bool) -> Transaction:
        """
        Accept or reject a pending transaction addressed to receiver_id

        On acceptance the four-leg settlement is applied atomically. If either
        party cannot fund its leg the transaction is rejected, not left pending.

        Returns:
            The transaction in its terminal state

        Raises:
            AccountNotFound: If the receiver does not exist
            TransactionNotFound: If no PENDING transaction with this id is
                addressed to the receiver
            SenderNotFound: If the transaction's sender is missing from the store
            InsufficientFunds: If acceptance could not be funded (the
                transaction is REJECTED before this is raised)
        """
        if not self.store.has_account(receiver_id):
            raise AccountNotFound(f"Receiver {receiver_id} not found", account_id=receiver_id)

        candidate = self.transaction_log.find_pending_for_receiver(transaction_id, receiver_id)
        if candidate is None:
            raise TransactionNotFound(
                f"Transaction {transaction_id} not found or already processed",
                transaction_id=transaction_id
            )

        sender_id = candidate.from_account_id
        if not self.store.has_account(sender_id):
            log_action(
                self.logger, "error",
                f"Transaction {transaction_id} references missing sender {sender_id}",
                action="ledger_integrity_violation",
                resource=f"transaction:{transaction_id}",
                extra={"sender_id": sender_id, "receiver_id": receiver_id}
            )
            raise SenderNotFound(
                f"Sender {sender_id} of transaction {transaction_id} not found",
                transaction_id=transaction_id, account_id=sender_id
            )

        failure: Optional[ExchangeError] = None
        with self.store.lock_accounts(sender_id, receiver_id):
            # Status may have changed while we were waiting for the locks
            transaction = self.transaction_log.find_pending_for_receiver(transaction_id, receiver_id)
            if transaction is None:
                raise TransactionNotFound(
                    f"Transaction {transaction_id} not found or already processed",
                    transaction_id=transaction_id
                )

            if not accept:
                transaction = self.transaction_log.mark_rejected(
                    transaction_id, RejectionReason.DECLINED
                )
            else:
                transaction, failure = self._settle(transaction)

        if failure is None and transaction.settlement is not None:
            log_action(
                self.logger, "info", f"Transaction {transaction_id} accepted",
                user_id=str(receiver_id), action="accept_transaction",
                resource=f"transaction:{transaction_id}",
                extra=transaction.settlement.to_dict()
            )
            self._publish_event(DomainEvent.TRANSACTION_ACCEPTED, transaction)
        else:
            log_action(
                self.logger, "info" if failure is None else "warning",
                f"Transaction {transaction_id} rejected",
                user_id=str(receiver_id), action="reject_transaction",
                resource=f"transaction:{transaction_id}",
                extra={"reason": transaction.rejection_reason.value}
            )
            self._publish_event(DomainEvent.TRANSACTION_REJECTED, transaction)

        if failure is not None:
            raise failure
        return transaction

    def quote(self, currency: Union[str, Currency], amount: Union[str, int, Decimal]) -> Tuple[Money, Decimal]:
        """
        Counter-currency amount a recipient would pay to accept a transfer

        Returns:
            (required counter amount, rate used)
        """
        money = Money(parse_amount(amount), parse_currency(currency))
        counter = self.conversion_table.counter_currency(money.currency)
        return (
            self.conversion_table.convert(money, counter),
            self.conversion_table.rate(money.currency, counter)
        )

    def _settle(self, transaction: Transaction) -> Tuple[Transaction, Optional[ExchangeError]]:
        """Apply the four-leg swap or auto-reject; caller holds both account locks"""
        sender_id = transaction.from_account_id
        receiver_id = transaction.to_account_id
        currency = transaction.currency
        counter = self.conversion_table.counter_currency(currency)
        rate = self.conversion_table.rate(currency, counter)
        required = self.conversion_table.convert(transaction.amount, counter)

        receiver_available = self.store.get_balance(receiver_id, counter)
        if receiver_available < required.amount:
            rejected = self.transaction_log.mark_rejected(
                transaction.id, RejectionReason.RECIPIENT_INSUFFICIENT_FUNDS
            )
            return rejected, InsufficientFunds(
                f"Insufficient funds: accepting requires {required.to_string()}, "
                f"available {counter.code} {receiver_available}",
                account_id=receiver_id, available=receiver_available, requested=required.amount
            )

        sender_available = self.store.get_balance(sender_id, currency)
        if sender_available < transaction.amount.amount:
            rejected = self.transaction_log.mark_rejected(
                transaction.id, RejectionReason.SENDER_INSUFFICIENT_FUNDS
            )
            return rejected, InsufficientFunds(
                f"Insufficient funds: sender no longer holds {transaction.amount.to_string()}",
                account_id=sender_id, available=sender_available,
                requested=transaction.amount.amount
            )

        with self.store.atomic(sender_id, receiver_id):
            self.store.debit(sender_id, currency, transaction.amount)
            self.store.debit(receiver_id, counter, required)
            self.store.credit(receiver_id, currency, transaction.amount)
            self.store.credit(sender_id, counter, required)
            accepted = self.transaction_log.mark_accepted(
                transaction.id,
                Settlement(counter_currency=counter, rate=rate, counter_amount=required)
            )
        return accepted, None

