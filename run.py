#!/usr/bin/env python3
"""
Billing Engine Demo

Walks one loan through regular payments, rejected payments and a
delinquency/catch-up cycle, printing the state after each step.
"""

import sys
from decimal import Decimal
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from billing_engine.billing_service import BillingService
from billing_engine.config import get_config
from billing_engine.currency import Money
from billing_engine.errors import BillingError
from billing_engine.events import EventDispatcher, DomainEvent
from billing_engine.loans import LOAN_DURATION_WEEKS
from billing_engine.logging_config import setup_logging


def attempt(label: str, action) -> None:
    print(label)
    try:
        action()
    except BillingError as e:
        print(f"  ✗ Error: {e}")
    else:
        print("  ✓ Payment successful")


def main() -> None:
    config = get_config()
    setup_logging(config.log_level, "billing", config.log_format, config.log_file)

    dispatcher = None
    if config.enable_events:
        dispatcher = EventDispatcher()
        dispatcher.subscribe(
            DomainEvent.LOAN_PAID_OFF,
            lambda event: print(f"  🎉 Loan {event.entity_id} paid off")
        )

    service = BillingService(event_dispatcher=dispatcher)
    currency = config.currency
    principal = Money(Decimal(config.demo_principal), currency)

    print("=== Billing Engine Demo ===\n")

    loan = service.create_loan("loan-100", "borrower-123", principal)
    weekly = loan.weekly_payment
    print(f"Loan Created: {loan.id}")
    print(f"Borrower: {loan.borrower_id}")
    print(f"Principal: {principal}")
    print(f"Total Amount (with {loan.interest_rate * 100:.0f}% interest): {loan.total_amount}")
    print(f"Weekly Payment: {weekly}")
    print(f"Duration: {LOAN_DURATION_WEEKS} weeks\n")

    print("Payment Schedule (first 5 weeks):")
    schedule = service.get_schedule(loan.id)
    for entry in schedule[:5]:
        print(f"  W{entry.week_number}: {entry.amount}")
    print(f"  ...\n  (Total {len(schedule)} weeks)\n")

    print("=== Scenario 1: Regular Payments ===")
    attempt("Paying Week 1...", lambda: service.make_payment(loan.id, weekly, 1))
    attempt("Paying next due week...", lambda: service.make_next_payment(loan.id, weekly))
    print(f"Outstanding: {service.get_outstanding(loan.id)}")
    print(f"Is Delinquent: {service.is_delinquent(loan.id)}\n")

    print("=== Scenario 2: Invalid Payment Amount ===")
    wrong_amount = weekly - Money(Decimal('10000'), currency)
    attempt(f"Paying {wrong_amount}...", lambda: service.make_next_payment(loan.id, wrong_amount))
    print()

    print("=== Scenario 3: Out of Sequence Payment ===")
    attempt("Paying Week 5 (skipping Weeks 3 and 4)...",
            lambda: service.make_payment(loan.id, weekly, 5))
    print()

    print("=== Scenario 4: Continuing Regular Payments ===")
    for _ in range(3):
        week = service.get_next_due_week(loan.id)
        attempt(f"Paying Week {week}...", lambda: service.make_next_payment(loan.id, weekly))
    history = service.get_payment_history(loan.id)
    print(f"  Outstanding: {service.get_outstanding(loan.id)}")
    print(f"  Next Due Week: {service.get_next_due_week(loan.id)}")
    print(f"  Payments Made: {len(history)} / {LOAN_DURATION_WEEKS}\n")

    print("=== Scenario 5: Delinquency ===")
    loan2 = service.create_loan("loan-101", "borrower-456", principal)
    print(f"Week 1, nothing paid -> delinquent: {service.is_delinquent(loan2.id)}")
    service.set_current_week(loan2.id, 3)
    print(f"Week 3, nothing paid -> delinquent: {service.is_delinquent(loan2.id)}")
    service.make_payment(loan2.id, weekly, 1)
    print(f"Week 3, paid week 1 -> delinquent: {service.is_delinquent(loan2.id)}")
    service.make_payment(loan2.id, weekly, 2)
    print(f"Week 3, paid weeks 1-2 -> delinquent: {service.is_delinquent(loan2.id)}\n")

    print("=== Scenario 6: Payment History ===")
    for payment in history:
        print(f"  Week {payment.week_number}: {payment.amount} "
              f"(paid at {payment.paid_at:%Y-%m-%d %H:%M:%S})")

    print("\n=== Scenario 7: Paying Off ===")
    while service.get_next_due_week(loan2.id):
        service.make_next_payment(loan2.id, weekly)
    print(f"Closed: {service.is_closed(loan2.id)}")
    attempt("Paying once more...", lambda: service.make_next_payment(loan2.id, weekly))

    print("\n=== Demo Complete ===")


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nInterrupted")
    except Exception as e:
        print(f"❌ Demo failed: {e}")
        sys.exit(1)
