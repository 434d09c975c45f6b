"""
Billing Service Module

Concurrency-safe registry of loan ledgers keyed by loan ID. Queries take the
registry lock in shared mode; creation and payments take it exclusively, so
every mutation is serialized and never observed half-applied.
"""

from datetime import datetime
from typing import Callable, Dict, List, Optional

from .currency import Money
from .errors import LoanNotFoundError, DuplicateLoanError, LoanFullyPaidError, PaymentError
from .events import EventDispatcher, EventPayload, DomainEvent, create_loan_event
from .loans import Loan, Payment, ScheduleEntry, ANNUAL_INTEREST_RATE, LOAN_DURATION_WEEKS
from .locks import ReadWriteLock
from .logging_config import get_logger, log_action


class BillingService:
    """
    Owns every Loan it creates and mediates all access to them.

    The lock is registry-wide: a payment on one loan blocks reads of every
    other loan for its (short, bounded) duration. Loans handed out by
    create_loan() and get_loan() are the live instances; treat them as
    read-only and mutate only through this service.
    """

    def __init__(
        self,
        event_dispatcher: Optional[EventDispatcher] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self._loans: Dict[str, Loan] = {}
        self._lock = ReadWriteLock()
        self._event_dispatcher = event_dispatcher
        self._clock = clock
        self.logger = get_logger("billing.service")

    def _resolve(self, loan_id: str) -> Loan:
        """Look up a loan; caller must hold the lock"""
        loan = self._loans.get(loan_id)
        if loan is None:
            raise LoanNotFoundError(loan_id)
        return loan

    def _event(self, events: List[EventPayload], event_type: DomainEvent, loan: Loan, **extra) -> None:
        # Snapshot under the lock; dispatch happens after release
        if self._event_dispatcher:
            events.append(create_loan_event(event_type, loan, **extra))

    def _publish(self, events: List[EventPayload]) -> None:
        for event in events:
            self._event_dispatcher.publish(event)

    def create_loan(self, loan_id: str, borrower_id: str, principal: Money) -> Loan:
        """
        Create and register a loan on the standard terms (50 weeks, 10% flat)

        Raises:
            DuplicateLoanError: a loan with this ID is already registered
        """
        events: List[EventPayload] = []
        with self._lock.write_locked():
            if loan_id in self._loans:
                log_action(
                    self.logger, "warning", f"Duplicate loan rejected: {loan_id}",
                    action="create_loan", resource=f"loan:{loan_id}",
                    extra={"borrower_id": borrower_id}
                )
                raise DuplicateLoanError(loan_id)

            loan = Loan.create(
                loan_id, borrower_id, principal,
                annual_interest_rate=ANNUAL_INTEREST_RATE,
                term_weeks=LOAN_DURATION_WEEKS,
                clock=self._clock
            )
            self._loans[loan_id] = loan

            log_action(
                self.logger, "info", f"Loan created: {loan_id}",
                action="create_loan", resource=f"loan:{loan_id}",
                extra={
                    "borrower_id": borrower_id,
                    "principal": principal.to_string(),
                    "total_amount": loan.total_amount.to_string(),
                    "weekly_payment": loan.weekly_payment.to_string(),
                    "term_weeks": loan.term_weeks
                }
            )
            self._event(events, DomainEvent.LOAN_ORIGINATED, loan)

        self._publish(events)
        return loan

    def get_loan(self, loan_id: str) -> Loan:
        with self._lock.read_locked():
            return self._resolve(loan_id)

    def get_outstanding(self, loan_id: str) -> Money:
        with self._lock.read_locked():
            return self._resolve(loan_id).get_outstanding()

    def is_delinquent(self, loan_id: str) -> bool:
        with self._lock.read_locked():
            return self._resolve(loan_id).is_delinquent()

    def is_closed(self, loan_id: str) -> bool:
        with self._lock.read_locked():
            return self._resolve(loan_id).is_closed()

    def get_next_due_week(self, loan_id: str) -> int:
        with self._lock.read_locked():
            return self._resolve(loan_id).get_next_due_week()

    def get_schedule(self, loan_id: str) -> List[ScheduleEntry]:
        with self._lock.read_locked():
            return self._resolve(loan_id).get_schedule()

    def get_payment_history(self, loan_id: str) -> List[Payment]:
        with self._lock.read_locked():
            return self._resolve(loan_id).get_payment_history()

    def list_loan_ids(self) -> List[str]:
        """Registered loan IDs in creation order"""
        with self._lock.read_locked():
            return list(self._loans)

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._loans)

    def __contains__(self, loan_id: str) -> bool:
        with self._lock.read_locked():
            return loan_id in self._loans

    def set_current_week(self, loan_id: str, week: int) -> None:
        """Advance a loan's current week under the registry lock"""
        with self._lock.write_locked():
            self._resolve(loan_id).set_current_week(week)

    def make_payment(self, loan_id: str, amount: Money, week_number: int) -> Payment:
        """
        Pay the installment for a specific week

        Ledger errors propagate unchanged; see Loan.make_payment for the
        order in which they are checked.
        """
        events: List[EventPayload] = []
        try:
            with self._lock.write_locked():
                loan = self._resolve(loan_id)
                return self._record_payment(loan, amount, week_number, events)
        finally:
            self._publish(events)

    def make_next_payment(self, loan_id: str, amount: Money) -> Payment:
        """
        Pay the installment for the next due week

        Raises:
            LoanFullyPaidError: every week is already paid
        """
        events: List[EventPayload] = []
        try:
            with self._lock.write_locked():
                loan = self._resolve(loan_id)
                next_week = loan.get_next_due_week()
                if next_week == 0:
                    error = LoanFullyPaidError(loan_id)
                    self._reject(loan, amount, next_week, error, events)
                    raise error
                return self._record_payment(loan, amount, next_week, events)
        finally:
            self._publish(events)

    def _record_payment(self, loan: Loan, amount: Money, week_number: int,
                        events: List[EventPayload]) -> Payment:
        try:
            payment = loan.make_payment(amount, week_number)
        except PaymentError as e:
            self._reject(loan, amount, week_number, e, events)
            raise

        outstanding = loan.get_outstanding()
        log_action(
            self.logger, "info", f"Payment recorded: loan {loan.id} week {week_number}",
            action="make_payment", resource=f"loan:{loan.id}",
            extra={
                "week_number": week_number,
                "amount": amount.to_string(),
                "outstanding": outstanding.to_string(),
                "next_due_week": loan.get_next_due_week()
            }
        )
        self._event(events, DomainEvent.LOAN_PAYMENT, loan, week_number=week_number,
                    amount=str(amount.amount))

        if outstanding.is_zero():
            log_action(
                self.logger, "info", f"Loan paid off: {loan.id}",
                action="make_payment", resource=f"loan:{loan.id}"
            )
            self._event(events, DomainEvent.LOAN_PAID_OFF, loan)

        return payment

    def _reject(self, loan: Loan, amount: Money, week_number: int, error: PaymentError,
                events: List[EventPayload]) -> None:
        log_action(
            self.logger, "warning", f"Payment rejected: loan {loan.id}: {error}",
            action="make_payment", resource=f"loan:{loan.id}",
            extra={
                "week_number": week_number,
                "amount": amount.to_string(),
                "error": type(error).__name__
            }
        )
        self._event(events, DomainEvent.LOAN_PAYMENT_REJECTED, loan, week_number=week_number,
                    amount=str(amount.amount), error=type(error).__name__)
