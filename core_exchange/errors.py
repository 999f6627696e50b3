"""
Error Kinds Module

Every failure the ledger can report carries a stable machine-readable kind,
a human-readable message and the HTTP-style status used in response
envelopes. Components raise these; the service boundary returns them as values.
"""

from typing import Any, Dict, Optional


class ExchangeError(Exception):
    """Base class for all ledger errors"""

    kind = "EXCHANGE_ERROR"
    http_status = 400
    default_message = "Operation failed"
    # Invariant violations indicate ledger corruption, not caller mistakes
    is_invariant_violation = False

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.default_message
        self.details: Dict[str, Any] = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        result = {"kind": self.kind, "message": self.message}
        if self.details:
            result["details"] = {k: str(v) for k, v in self.details.items()}
        return result


class AccountNotFound(ExchangeError):
    """Raised when an account id does not resolve"""
    kind = "ACCOUNT_NOT_FOUND"
    http_status = 404
    default_message = "Account not found"


class SelfTransfer(ExchangeError):
    """Raised when sender and recipient are the same account"""
    kind = "SELF_TRANSFER"
    default_message = "Cannot send a transaction to yourself"


class InvalidAmount(ExchangeError):
    """Raised when an amount is not a positive number"""
    kind = "INVALID_AMOUNT"
    default_message = "Amount must be positive"


class InsufficientFunds(ExchangeError):
    """Raised when a debit would leave a balance below zero"""
    kind = "INSUFFICIENT_FUNDS"
    default_message = "Insufficient funds"


class TransactionNotFound(ExchangeError):
    """Raised when no pending transaction matches (also covers already processed)"""
    kind = "TRANSACTION_NOT_FOUND"
    http_status = 404
    default_message = "Transaction not found or already processed"


class UnsupportedCurrency(ExchangeError):
    """Raised for currency codes outside the closed currency set"""
    kind = "UNSUPPORTED_CURRENCY"
    default_message = "Unsupported currency"


class SenderNotFound(ExchangeError):
    """Raised when a transaction references a sender the store does not hold"""
    kind = "SENDER_NOT_FOUND"
    http_status = 500
    default_message = "Sender not found"
    is_invariant_violation = True


class RateIntegrityError(ExchangeError):
    """Raised when the conversion table is incomplete or its rates are not inverses"""
    kind = "RATE_INTEGRITY"
    http_status = 500
    default_message = "Conversion table failed integrity check"
    is_invariant_violation = True


class InvalidRequest(ExchangeError):
    """Raised when request parameters are malformed"""
    kind = "INVALID_REQUEST"
    default_message = "Invalid request"
