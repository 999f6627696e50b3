"""
Multi-Currency Support Module

Handles the closed set of supported currency codes, Money values with proper
Decimal precision, and the fixed conversion table used at settlement time.
NEVER uses float for monetary values.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext
from dataclasses import dataclass
from typing import Dict, Tuple, Union
from enum import Enum

from .errors import InvalidAmount, RateIntegrityError, UnsupportedCurrency

# Set global decimal context for financial precision
getcontext().prec = 28

# Largest accepted amount is below 10 ** MAX_AMOUNT_DIGITS, leaving headroom for rates and sums
MAX_AMOUNT_DIGITS = 18


class Currency(Enum):
    """Supported ISO 4217 currency codes with precision info"""
    USD = ("USD", 2)  # US Dollar, 2 decimal places
    RUB = ("RUB", 2)  # Russian Ruble, 2 decimal places

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision

    @property
    def quantum(self) -> Decimal:
        return Decimal('0.1') ** self.precision


@dataclass(frozen=True)
class Money:
    """
    Immutable money representation with currency and proper precision.
    """
    amount: Decimal
    currency: Currency

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))

        # Round to currency precision
        try:
            rounded = self.amount.quantize(self.currency.quantum, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            raise InvalidAmount(
                f"Amount {self.amount} cannot be represented in {self.currency.code}"
            ) from None
        object.__setattr__(self, 'amount', rounded)

    def _check_currency(self, other: 'Money', verb: str) -> None:
        if self.currency != other.currency:
            raise ValueError(f"Cannot {verb} {self.currency.code} and {other.currency.code}")

    def __add__(self, other: 'Money') -> 'Money':
        self._check_currency(other, "add")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        self._check_currency(other, "subtract")
        return Money(self.amount - other.amount, self.currency)

    def __mul__(self, multiplier: Decimal) -> 'Money':
        if not isinstance(multiplier, Decimal):
            multiplier = Decimal(str(multiplier))
        return Money(self.amount * multiplier, self.currency)

    def __lt__(self, other: 'Money') -> bool:
        self._check_currency(other, "compare")
        return self.amount < other.amount

    def __le__(self, other: 'Money') -> bool:
        self._check_currency(other, "compare")
        return self.amount <= other.amount

    def __gt__(self, other: 'Money') -> bool:
        self._check_currency(other, "compare")
        return self.amount > other.amount

    def __ge__(self, other: 'Money') -> bool:
        self._check_currency(other, "compare")
        return self.amount >= other.amount

    def is_zero(self) -> bool:
        return self.amount == Decimal('0')

    def is_positive(self) -> bool:
        return self.amount > Decimal('0')

    def is_negative(self) -> bool:
        return self.amount < Decimal('0')

    def to_string(self) -> str:
        """Format for display"""
        return f"{self.currency.code} {self.amount:,.{self.currency.precision}f}"


RateKey = Tuple[Currency, Currency]


class ConversionTable:
    """
    Fixed exchange-rate lookup between supported currencies.

    The table is the single authority for rate(from, to). It must hold every
    ordered pair of distinct currencies, and each pair's rates must be inverses:
    rate(A, B) * rate(B, A) == 1 within ``tolerance``. A table that violates
    this is a data-integrity bug and is refused at construction.
    """

    DEFAULT_TOLERANCE = Decimal('1e-9')

    def __init__(self, rates: Dict[RateKey, Union[Decimal, str]],
                 tolerance: Decimal = DEFAULT_TOLERANCE):
        self._rates: Dict[RateKey, Decimal] = {
            key: Decimal(str(value)) for key, value in rates.items()
        }
        self.tolerance = tolerance
        self.validate()

    @classmethod
    def from_config(cls, config) -> 'ConversionTable':
        """Build the USD/RUB table from configuration"""
        return cls({
            (Currency.USD, Currency.RUB): config.usd_rub_rate,
            (Currency.RUB, Currency.USD): config.rub_usd_rate,
        })

    def validate(self) -> None:
        """Check completeness, positivity and the round-trip invariant"""
        for source in Currency:
            for target in Currency:
                if source == target:
                    continue
                forward = self._rates.get((source, target))
                if forward is None:
                    raise RateIntegrityError(
                        f"No exchange rate for {source.code} -> {target.code}",
                        pair=f"{source.code}/{target.code}"
                    )
                if forward <= 0:
                    raise RateIntegrityError(
                        f"Exchange rate {source.code} -> {target.code} must be positive",
                        rate=forward
                    )
                backward = self._rates.get((target, source))
                if backward is None:
                    raise RateIntegrityError(
                        f"No exchange rate for {target.code} -> {source.code}",
                        pair=f"{target.code}/{source.code}"
                    )
                if abs(forward * backward - Decimal('1')) > self.tolerance:
                    raise RateIntegrityError(
                        f"Rates {source.code}->{target.code}={forward} and "
                        f"{target.code}->{source.code}={backward} are not inverses",
                        forward=forward, backward=backward
                    )

    def rate(self, from_currency: Currency, to_currency: Currency) -> Decimal:
        """Get the multiplier converting from_currency amounts to to_currency"""
        if from_currency == to_currency:
            return Decimal('1')
        try:
            return self._rates[(from_currency, to_currency)]
        except KeyError:
            raise RateIntegrityError(
                f"No exchange rate for {from_currency.code} -> {to_currency.code}"
            ) from None

    def counter_currency(self, currency: Currency) -> Currency:
        """The other supported currency a transfer in ``currency`` settles against"""
        others = [c for c in Currency if c != currency]
        if len(others) != 1:
            raise RateIntegrityError(
                f"Counter-currency for {currency.code} is ambiguous: "
                f"{[c.code for c in others]}"
            )
        return others[0]

    def convert(self, money: Money, to_currency: Currency) -> Money:
        """Convert money into to_currency, rounded to its precision"""
        if money.currency == to_currency:
            return money
        return Money(money.amount * self.rate(money.currency, to_currency), to_currency)

    def get_all_rates(self) -> Dict[RateKey, Decimal]:
        """Get all configured exchange rates"""
        return self._rates.copy()


def parse_currency(code: Union[str, Currency]) -> Currency:
    """
    Resolve a currency code to a supported Currency

    Raises:
        UnsupportedCurrency: If the code is not in the closed currency set
    """
    if isinstance(code, Currency):
        return code
    if not isinstance(code, str):
        raise UnsupportedCurrency(f"Unsupported currency: {code!r}", currency=code)
    try:
        return Currency[code.strip().upper()]
    except KeyError:
        raise UnsupportedCurrency(f"Unsupported currency: {code}", currency=code) from None


def parse_amount(value: Union[str, int, Decimal]) -> Decimal:
    """
    Safely convert caller input to Decimal

    Floats are refused to keep binary rounding out of the ledger.

    Raises:
        InvalidAmount: If the value is not a finite decimal number or is too large
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmount(f"Amount must be a decimal string or integer, got {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidAmount(f"Cannot convert '{value}' to an amount") from None
    else:
        raise InvalidAmount(f"Cannot convert {value!r} to an amount")
    if not result.is_finite():
        raise InvalidAmount(f"Amount must be finite, got {value}")
    if result and result.adjusted() >= MAX_AMOUNT_DIGITS:
        raise InvalidAmount(f"Amount {value} exceeds the largest supported amount")
    return result
