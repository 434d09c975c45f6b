"""
Billing error taxonomy.

Every error is a permanent validation or lookup failure; nothing here is
retryable. They subclass ValueError so callers that only catch ValueError for
business-rule violations keep working.
"""

from typing import Optional

from .currency import Money


def _exact(money: Money) -> str:
    # Unrounded: to_string() would hide sub-unit digits of an installment
    return f"{money.currency.code} {money.amount:,f}"


class BillingError(ValueError):
    """Base class for all billing engine errors"""


class PaymentError(BillingError):
    """A payment attempt was rejected by the loan ledger"""

    def __init__(self, message: str, week_number: Optional[int] = None):
        super().__init__(message)
        self.week_number = week_number


class NegativeAmountError(PaymentError):
    """Payment amount is below zero"""

    def __init__(self, amount: Money):
        super().__init__("amount cannot be negative")
        self.amount = amount


class InvalidPaymentAmountError(PaymentError):
    """Payment amount differs from the weekly installment"""

    def __init__(self, expected: Money, actual: Money):
        super().__init__(
            f"invalid payment amount: must match the weekly payment amount "
            f"(expected {_exact(expected)}, got {_exact(actual)})"
        )
        self.expected = expected
        self.actual = actual


class LoanFullyPaidError(PaymentError):
    """Loan has no outstanding balance left"""

    def __init__(self, loan_id: Optional[str] = None):
        super().__init__("loan is already fully paid")
        self.loan_id = loan_id


class InvalidWeekNumberError(PaymentError):
    """Week number falls outside the loan term"""

    def __init__(self, week_number: int, term_weeks: int):
        super().__init__(f"invalid week number {week_number} (term is 1..{term_weeks})", week_number)
        self.term_weeks = term_weeks


class WeekAlreadyPaidError(PaymentError):
    """Installment for the week was already recorded"""

    def __init__(self, week_number: int):
        super().__init__(f"week {week_number} has already been paid", week_number)


class PaymentOutOfSequenceError(PaymentError):
    """An earlier week is still unpaid"""

    def __init__(self, week_number: int, next_due_week: int):
        super().__init__(
            f"payments must be made in sequence (cannot skip unpaid weeks): "
            f"week {next_due_week} is due, got week {week_number}",
            week_number
        )
        self.next_due_week = next_due_week


class LoanNotFoundError(BillingError):
    """No loan registered under the identifier"""

    def __init__(self, loan_id: str):
        super().__init__(f"loan with ID {loan_id} not found")
        self.loan_id = loan_id


class DuplicateLoanError(BillingError):
    """A loan is already registered under the identifier"""

    def __init__(self, loan_id: str):
        super().__init__(f"loan with ID {loan_id} already exists")
        self.loan_id = loan_id
