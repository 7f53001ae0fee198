#!/usr/bin/env python3
"""
Example: Servicing a loan from origination to preclosure

Creates a client, originates a flat-interest loan, takes a late payment and
then closes the loan early, printing the schedule and fees along the way.
Runs against in-memory storage unless LENDBOOK_DATABASE_URL says otherwise.
"""

import os
import sys
from datetime import date

# Add the loan servicing package to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from loan_servicing.config import LendbookConfig
from loan_servicing.dates import FixedClock
from loan_servicing.models import LoanTerms, PaymentMethod, PaymentType
from loan_servicing.money import format_money
from loan_servicing.payments import PaymentRequest
from loan_servicing.system import LendingSystem


def main():
    print("Lendbook - Loan Servicing Walkthrough")
    print("=" * 60)

    config = LendbookConfig(database_url=os.environ.get("LENDBOOK_DATABASE_URL", "memory://"))
    clock = FixedClock(date(2024, 1, 1))

    with LendingSystem(config, clock=clock) as system:
        # 1. Client
        client = system.client_manager.create_client(
            name="Asha Rao", phone="+91 98450 00000", email="asha@example.com"
        )
        print(f"\n1. Client created: {client.name} ({client.id})")

        # 2. Loan
        terms = LoanTerms(
            principal_amount="12000",
            start_date=date(2024, 1, 1),
            interest_rate_percent=config.default_interest_rate_percent,
            interest_type="flat",
            term_length=12,
            term_unit="months",
            repayment_frequency="monthly",
            late_fee_percent_per_day=config.default_late_fee_percent_per_day,
            preclosure_fee_percent=config.default_preclosure_fee_percent
        )
        loan = system.loan_manager.originate_loan(client.id, terms)
        schedule = system.loan_manager.get_schedule(loan.id)
        print(f"\n2. Loan {loan.loan_number} originated, ends {loan.end_date}")
        for installment in schedule[:3]:
            print(f"   #{installment.installment_number} due {installment.due_date}: "
                  f"{format_money(installment.principal_portion)} + "
                  f"{format_money(installment.interest_portion)} = "
                  f"{format_money(installment.total_due)}")
        print(f"   ... {len(schedule)} installments in total")

        # 3. Late payment on the first installment
        first = schedule[0]
        clock.set(date(2024, 2, 6))
        quote = system.payment_processor.quote(loan.id, PaymentType.REGULAR, first.id)
        print(f"\n3. Paying installment #1 five days late, quote: "
              f"late fee {format_money(quote.late_fee)}, "
              f"total {format_money(quote.total_payable)}")
        payment = system.payment_processor.apply(PaymentRequest(
            loan_id=loan.id,
            installment_id=first.id,
            amount=first.total_due,
            payment_date=clock.today(),
            payment_type=PaymentType.REGULAR,
            payment_method=PaymentMethod.UPI
        ))
        print(f"   Payment {payment.id} recorded, late fee {format_money(payment.late_fee)}")

        # 4. Preclosure
        quote = system.payment_processor.quote(loan.id, PaymentType.PRECLOSURE)
        payment = system.payment_processor.apply(PaymentRequest(
            loan_id=loan.id,
            amount=quote.total_payable,
            payment_date=clock.today(),
            payment_type=PaymentType.PRECLOSURE,
            payment_method=PaymentMethod.BANK_TRANSFER
        ))
        loan = system.loan_manager.get_loan(loan.id)
        print(f"\n4. Preclosed with fee {format_money(payment.preclosure_fee)}, "
              f"loan is now {loan.status.value}")

        # 5. Audit
        integrity = system.audit_trail.verify_integrity()
        print(f"\n5. Audit trail: {integrity['total_events']} events, "
              f"valid={integrity['valid']}")


if __name__ == "__main__":
    main()
