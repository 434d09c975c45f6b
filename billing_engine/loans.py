"""
Loan Module

Loan ledger for fixed-term weekly installment loans: flat-interest schedule
generation, strict in-order payment recording, outstanding balance and
delinquency tracking.

Time is not derived from the wall clock. Each loan carries an externally
driven ``current_week`` which callers advance through set_current_week().
"""

from decimal import Decimal, Inexact, localcontext
from datetime import datetime, timezone
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional

from .currency import Money
from .errors import (
    NegativeAmountError,
    InvalidPaymentAmountError,
    LoanFullyPaidError,
    InvalidWeekNumberError,
    WeekAlreadyPaidError,
    PaymentOutOfSequenceError,
)
from .logging_config import get_logger


LOAN_DURATION_WEEKS = 50
ANNUAL_INTEREST_RATE = Decimal('0.10')  # 10% flat, applied once on principal
DELINQUENCY_THRESHOLD = 2  # weeks behind before a borrower is delinquent

logger = get_logger("billing.loans")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ScheduleEntry:
    """Single weekly installment obligation"""
    week_number: int
    amount: Money
    is_paid: bool = False


@dataclass(frozen=True)
class Payment:
    """Record of an accepted installment payment"""
    week_number: int
    amount: Money
    paid_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "week_number": self.week_number,
            "amount": str(self.amount.amount),
            "currency": self.amount.currency.code,
            "paid_at": self.paid_at.isoformat(),
        }


@dataclass
class Loan:
    """
    Loan ledger: schedule, payment history and derived state.

    Build instances with Loan.create(). A Loan is not thread-safe on its own;
    when it is owned by a BillingService every mutation must go through the
    service so it happens under the registry lock. Mutating a Loan returned by
    the service directly is a race and is the caller's responsibility.
    """
    id: str
    borrower_id: str
    principal: Money
    interest_rate: Decimal
    term_weeks: int
    total_amount: Money
    weekly_payment: Money
    schedule: List[ScheduleEntry]
    payments: List[Payment] = field(default_factory=list)
    current_week: int = 1
    created_at: datetime = field(default_factory=_utc_now)
    clock: Callable[[], datetime] = field(default=_utc_now, repr=False, compare=False)

    @classmethod
    def create(
        cls,
        loan_id: str,
        borrower_id: str,
        principal: Money,
        annual_interest_rate: Decimal = ANNUAL_INTEREST_RATE,
        term_weeks: int = LOAN_DURATION_WEEKS,
        clock: Optional[Callable[[], datetime]] = None
    ) -> 'Loan':
        """
        Create a new loan with a generated installment schedule

        Interest is flat: principal * rate, computed once. The weekly payment
        is the total divided evenly across the term with exact Decimal
        division, so weekly_payment * term_weeks == total_amount. A term the
        total cannot be split over exactly (100 over 3 weeks) is refused;
        the standard 50-week term always divides.

        Args:
            loan_id: Loan identifier
            borrower_id: Borrower identifier
            principal: Amount lent
            annual_interest_rate: Rate fraction, e.g. Decimal('0.10') for 10%
            term_weeks: Number of weekly installments
            clock: Returns the instant used to stamp payments (UTC now by default)

        Returns:
            Loan with an unpaid schedule and current_week = 1

        Raises:
            ValueError: term_weeks is not positive, or the weekly amount
                would need rounding
        """
        if not isinstance(annual_interest_rate, Decimal):
            annual_interest_rate = Decimal(str(annual_interest_rate))

        if isinstance(term_weeks, bool) or not isinstance(term_weeks, int) or term_weeks < 1:
            raise ValueError(f"term_weeks must be a positive integer, got {term_weeks!r}")

        with localcontext() as ctx:
            ctx.clear_flags()
            interest = principal * annual_interest_rate
            total_amount = principal + interest
            weekly_payment = total_amount / Decimal(term_weeks)
            if ctx.flags[Inexact]:
                raise ValueError(
                    f"{total_amount.to_string()} cannot be split exactly over {term_weeks} weeks"
                )

        schedule = [
            ScheduleEntry(week_number=week, amount=weekly_payment)
            for week in range(1, term_weeks + 1)
        ]

        clock = clock or _utc_now
        return cls(
            id=loan_id,
            borrower_id=borrower_id,
            principal=principal,
            interest_rate=annual_interest_rate,
            term_weeks=term_weeks,
            total_amount=total_amount,
            weekly_payment=weekly_payment,
            schedule=schedule,
            created_at=clock(),
            clock=clock,
        )

    def get_total_paid(self) -> Money:
        """Sum of all recorded payments"""
        total_paid = Money.zero(self.total_amount.currency)
        for payment in self.payments:
            total_paid = total_paid + payment.amount
        return total_paid

    def get_outstanding(self) -> Money:
        """Outstanding = total amount - sum of all recorded payments"""
        return self.total_amount - self.get_total_paid()

    def get_last_paid_week(self) -> int:
        """Highest paid week number, 0 if nothing is paid"""
        last_paid_week = 0
        for entry in self.schedule:
            if entry.is_paid and entry.week_number > last_paid_week:
                last_paid_week = entry.week_number
        return last_paid_week

    def get_weeks_behind(self) -> int:
        return self.current_week - self.get_last_paid_week()

    def is_delinquent(self) -> bool:
        """
        A borrower is delinquent once current_week - last paid week reaches
        DELINQUENCY_THRESHOLD. In week 1 with nothing paid they are one week
        behind, which is not delinquent.
        """
        return self.get_weeks_behind() >= DELINQUENCY_THRESHOLD

    def set_current_week(self, week: int) -> None:
        """Move the loan's notion of "now"; out-of-range weeks are ignored"""
        if 1 <= week <= self.term_weeks:
            self.current_week = week
        else:
            logger.debug(f"Ignoring current week {week} for loan {self.id} (term is 1..{self.term_weeks})")

    def make_payment(self, amount: Money, week_number: int) -> Payment:
        """
        Record the installment for a week

        Checks run in a fixed order and the first failure is raised:
        negative amount, amount mismatch, loan already paid off, week out of
        range, week already paid, week not the next one due. Nothing is
        mutated unless every check passes.

        Args:
            amount: Must equal weekly_payment exactly
            week_number: Week being paid (1-based)

        Returns:
            The recorded Payment

        Raises:
            PaymentError subclass describing the first failed check
        """
        if amount.is_negative():
            raise NegativeAmountError(amount)

        if amount != self.weekly_payment:
            raise InvalidPaymentAmountError(self.weekly_payment, amount)

        if self.get_outstanding().is_zero():
            raise LoanFullyPaidError(self.id)

        if week_number < 1 or week_number > self.term_weeks:
            raise InvalidWeekNumberError(week_number, self.term_weeks)

        entry = self.schedule[week_number - 1]
        if entry.is_paid:
            raise WeekAlreadyPaidError(week_number)

        next_due_week = self.get_next_due_week()
        if week_number != next_due_week:
            raise PaymentOutOfSequenceError(week_number, next_due_week)

        payment = Payment(week_number=week_number, amount=amount, paid_at=self.clock())
        self.payments.append(payment)
        entry.is_paid = True

        return payment

    def get_next_due_week(self) -> int:
        """First unpaid week, 0 once every week is paid"""
        for entry in self.schedule:
            if not entry.is_paid:
                return entry.week_number
        return 0

    def is_closed(self) -> bool:
        return self.get_outstanding().is_zero()

    def get_schedule(self) -> List[ScheduleEntry]:
        """Copy of the schedule; changes to it do not reach the loan"""
        return [replace(entry) for entry in self.schedule]

    def get_payment_history(self) -> List[Payment]:
        """Copy of the payment history"""
        return list(self.payments)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly snapshot; monetary values as Decimal strings"""
        return {
            "id": self.id,
            "borrower_id": self.borrower_id,
            "currency": self.principal.currency.code,
            "principal": str(self.principal.amount),
            "interest_rate": str(self.interest_rate),
            "term_weeks": self.term_weeks,
            "total_amount": str(self.total_amount.amount),
            "weekly_payment": str(self.weekly_payment.amount),
            "outstanding": str(self.get_outstanding().amount),
            "payments_made": len(self.payments),
            "current_week": self.current_week,
            "next_due_week": self.get_next_due_week(),
            "is_delinquent": self.is_delinquent(),
            "is_closed": self.is_closed(),
            "created_at": self.created_at.isoformat(),
        }
