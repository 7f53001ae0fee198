"""
Test suite for system wiring

Tests that LendingSystem builds its components from configuration and that
a full loan lifecycle persists across SQLite reopen.
"""

from datetime import date
from decimal import Decimal

from loan_servicing.config import LendbookConfig
from loan_servicing.dates import FixedClock
from loan_servicing.models import (
    InstallmentStatus, LateFeePolicy, LoanStatus, LoanTerms, PaymentMethod, PaymentType
)
from loan_servicing.payments import PaymentRequest
from loan_servicing.storage import InMemoryStorage, SQLiteStorage
from loan_servicing.system import LendingSystem


def make_config(**overrides) -> LendbookConfig:
    values = dict(database_url="memory://")
    values.update(overrides)
    return LendbookConfig(_env_file=None, **values)


def terms(**overrides) -> LoanTerms:
    values = dict(
        principal_amount="3000",
        start_date=date(2024, 1, 1),
        interest_rate_percent="12",
        interest_type="flat",
        term_length=3,
        term_unit="months",
        repayment_frequency="monthly",
        late_fee_percent_per_day="2",
        preclosure_fee_percent="5"
    )
    values.update(overrides)
    return LoanTerms(**values)


class TestLendingSystem:
    """Test LendingSystem"""

    def test_components_from_config(self):
        system = LendingSystem(make_config(late_fee_policy="collect_first",
                                           loan_number_digits=5))

        assert isinstance(system.storage, InMemoryStorage)
        assert system.payment_processor.late_fee_policy == LateFeePolicy.COLLECT_FIRST
        assert system.store.loan_number_digits == 5
        assert system.audit_trail.enabled

    def test_audit_can_be_disabled(self):
        system = LendingSystem(make_config(enable_audit_logging=False))
        system.client_manager.create_client("Asha", "1", "asha@example.com")
        assert system.audit_trail.verify_integrity()["total_events"] == 0

    def test_sqlite_lifecycle_survives_reopen(self, tmp_path):
        config = make_config(database_url=f"sqlite:///{tmp_path / 'lendbook.db'}")
        clock = FixedClock(date(2024, 2, 1))

        with LendingSystem(config, clock=clock) as system:
            assert isinstance(system.storage, SQLiteStorage)
            client = system.client_manager.create_client("Asha", "1", "asha@example.com")
            loan = system.loan_manager.originate_loan(client.id, terms())
            first = system.loan_manager.get_schedule(loan.id)[0]
            system.payment_processor.apply(PaymentRequest(
                loan_id=loan.id, installment_id=first.id, amount="1120.00",
                payment_date=date(2024, 2, 1), payment_type=PaymentType.REGULAR,
                payment_method=PaymentMethod.CHEQUE
            ))

        with LendingSystem(config, clock=clock) as system:
            schedule = system.loan_manager.get_schedule(loan.id)
            assert schedule[0].status == InstallmentStatus.PAID
            assert schedule[1].remaining_amount == Decimal("1120.00")

            system.payment_processor.apply(PaymentRequest(
                loan_id=loan.id, amount="2390.00", payment_date=date(2024, 2, 1),
                payment_type=PaymentType.PRECLOSURE, payment_method=PaymentMethod.CASH
            ))
            assert system.loan_manager.get_loan(loan.id).status == LoanStatus.COMPLETED
            assert system.dashboard().stats.active_loans == 0
            assert system.audit_trail.verify_integrity()["valid"]

    def test_dashboard_uses_configured_windows(self):
        system = LendingSystem(make_config(dashboard_recent_loans=1, dashboard_window_days=40),
                               clock=FixedClock(date(2024, 1, 1)))
        client = system.client_manager.create_client("Asha", "1", "asha@example.com")
        system.loan_manager.originate_loan(client.id, terms())
        system.loan_manager.originate_loan(client.id, terms())

        dashboard = system.dashboard()
        assert len(dashboard.recent_loans) == 1
        # Both loans have their first installment due 2024-02-01
        assert len(dashboard.upcoming_installments) == 2
