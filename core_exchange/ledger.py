"""
Ledger Store Module

Holds every account and its multi-currency balances. The store is the sole
owner of balance fields: credit() and debit() are the only mutation
primitives, and atomic() groups several of them into an all-or-nothing unit.
Per-account locks serialise writers; readers take the same lock, so a
group applied under lock_accounts() is never seen half done.
"""

from contextlib import contextmanager, ExitStack
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterator, List, Optional, Union
import threading

from .currency import Currency, Money, parse_currency
from .errors import AccountNotFound, InsufficientFunds, InvalidAmount
from .logging_config import get_logger


class IdSequence:
    """Thread-safe monotonic id generator"""

    def __init__(self, start: int = 1):
        self._next = start
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            value = self._next
            self._next += 1
            return value

    def peek(self) -> int:
        """The id the next call to next_id() will return"""
        with self._lock:
            return self._next


@dataclass
class Account:
    """
    Account holding one balance per supported currency
    """
    id: int
    balances: Dict[Currency, Decimal]
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        missing = [c.code for c in Currency if c not in self.balances]
        if missing:
            raise ValueError(f"Account {self.id} is missing balances for {missing}")
        for currency, amount in self.balances.items():
            if amount < 0:
                raise ValueError(f"Account {self.id} cannot hold a negative {currency.code} balance")

    def balance(self, currency: Currency) -> Money:
        """Balance in one currency as Money"""
        return Money(self.balances[currency], currency)

    def copy(self) -> 'Account':
        return Account(
            id=self.id,
            balances=dict(self.balances),
            created_at=self.created_at,
            updated_at=self.updated_at
        )

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "balances": {c.code: str(amount) for c, amount in self.balances.items()},
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat()
        }


class LedgerStore:
    """
    In-memory store of accounts and balances

    Accounts are never deleted. Callers get copies; only credit()/debit()
    touch the live balance mappings.
    """

    def __init__(
        self,
        starting_balances: Dict[Currency, Union[Decimal, str]],
        account_ids: Optional[IdSequence] = None
    ):
        self.starting_balances = {
            currency: Money(Decimal(str(starting_balances.get(currency, "0"))), currency).amount
            for currency in Currency
        }
        for currency, amount in self.starting_balances.items():
            if amount < 0:
                raise ValueError(f"Starting {currency.code} balance cannot be negative")

        self._account_ids = account_ids or IdSequence()
        self._accounts: Dict[int, Account] = {}
        self._account_locks: Dict[int, threading.RLock] = {}
        self._lock = threading.RLock()
        self.logger = get_logger("exchange.ledger")

    @classmethod
    def from_config(cls, config, account_ids: Optional[IdSequence] = None) -> 'LedgerStore':
        return cls(
            starting_balances={
                Currency.USD: config.starting_usd,
                Currency.RUB: config.starting_rub,
            },
            account_ids=account_ids
        )

    def create_account(self) -> Account:
        """Create an account funded with the starting grant"""
        with self._lock:
            account = Account(
                id=self._account_ids.next_id(),
                balances=dict(self.starting_balances)
            )
            self._accounts[account.id] = account
            self._account_locks[account.id] = threading.RLock()

        self.logger.debug(f"Account {account.id} created")
        return account.copy()

    def has_account(self, account_id: int) -> bool:
        with self._lock:
            return account_id in self._accounts

    def get_account(self, account_id: int) -> Account:
        """
        Get a copy of an account

        Raises:
            AccountNotFound: If no account has this id
        """
        with self.lock_accounts(account_id), self._lock:
            return self._require(account_id).copy()

    def list_account_ids(self) -> List[int]:
        with self._lock:
            return sorted(self._accounts)

    def get_balance(self, account_id: int, currency: Union[str, Currency]) -> Decimal:
        currency = parse_currency(currency)
        with self.lock_accounts(account_id), self._lock:
            return self._require(account_id).balances[currency]

    def balances_snapshot(self, account_id: int) -> Dict[Currency, Decimal]:
        with self.lock_accounts(account_id), self._lock:
            return dict(self._require(account_id).balances)

    def credit(self, account_id: int, currency: Union[str, Currency], amount: Union[Decimal, Money]) -> Decimal:
        """
        Increase a balance

        Returns:
            The new balance
        """
        currency = parse_currency(currency)
        value = self._validate_amount(currency, amount)
        with self._lock:
            account = self._require(account_id)
            account.balances[currency] += value
            account.updated_at = datetime.now(timezone.utc)
            new_balance = account.balances[currency]

        self.logger.debug(f"Credited {currency.code} {value} to account {account_id}")
        return new_balance

    def debit(self, account_id: int, currency: Union[str, Currency], amount: Union[Decimal, Money]) -> Decimal:
        """
        Decrease a balance

        Returns:
            The new balance

        Raises:
            InsufficientFunds: If the balance would go negative
        """
        currency = parse_currency(currency)
        value = self._validate_amount(currency, amount)
        with self._lock:
            account = self._require(account_id)
            current = account.balances[currency]
            if current < value:
                raise InsufficientFunds(
                    f"Insufficient funds: account {account_id} holds {currency.code} {current}, "
                    f"requested {value}",
                    account_id=account_id, currency=currency.code,
                    available=current, requested=value
                )
            account.balances[currency] = current - value
            account.updated_at = datetime.now(timezone.utc)
            new_balance = account.balances[currency]

        self.logger.debug(f"Debited {currency.code} {value} from account {account_id}")
        return new_balance

    @contextmanager
    def atomic(self, *account_ids: int) -> Iterator[None]:
        """
        Apply a group of credits/debits fully or not at all

        Balances of the named accounts are restored if the block raises.
        Callers must hold lock_accounts() for the same ids.
        """
        with self._lock:
            snapshot = {
                account_id: dict(self._require(account_id).balances)
                for account_id in set(account_ids)
            }
        try:
            yield
        except Exception:
            with self._lock:
                for account_id, balances in snapshot.items():
                    self._accounts[account_id].balances = balances
            self.logger.warning(f"Rolled back balance changes for accounts {sorted(snapshot)}")
            raise

    @contextmanager
    def lock_accounts(self, *account_ids: int) -> Iterator[None]:
        """
        Hold the exclusive locks of the given accounts

        Locks are taken in ascending id order so two callers locking the
        same pair can never deadlock.

        Raises:
            AccountNotFound: If any id does not resolve
        """
        with self._lock:
            locks = [
                self._require_lock(account_id)
                for account_id in sorted(set(account_ids))
            ]
        with ExitStack() as stack:
            for lock in locks:
                stack.enter_context(lock)
            yield

    def _require(self, account_id: int) -> Account:
        account = self._accounts.get(account_id)
        if account is None:
            raise AccountNotFound(f"Account {account_id} not found", account_id=account_id)
        return account

    def _require_lock(self, account_id: int) -> threading.RLock:
        self._require(account_id)
        return self._account_locks[account_id]

    @staticmethod
    def _validate_amount(currency: Currency, amount: Union[Decimal, Money]) -> Decimal:
        if isinstance(amount, Money):
            if amount.currency != currency:
                raise ValueError(f"Amount is in {amount.currency.code}, expected {currency.code}")
            value = amount.amount
        else:
            value = Money(amount, currency).amount
        if value <= 0:
            raise InvalidAmount(f"Amount must be positive, got {value}")
        return value

    def __len__(self) -> int:
        with self._lock:
            return len(self._accounts)
