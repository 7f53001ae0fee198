"""
Test suite for loans module

Tests loan origination with its persisted schedule, schedule previews,
lookups, defaulting, and that a failed origination leaves nothing behind.
"""

import pytest
from datetime import date
from decimal import Decimal

from loan_servicing.audit import AuditEventType, AuditTrail
from loan_servicing.clients import ClientManager
from loan_servicing.dates import FixedClock
from loan_servicing.exceptions import (
    NotFoundError, PersistenceFailure, UnsupportedUnitError, ValidationError
)
from loan_servicing.loans import LoanManager
from loan_servicing.models import InstallmentStatus, LoanStatus, LoanTerms
from loan_servicing.storage import InMemoryStorage
from loan_servicing.store import LoanStore


class FailingStorage(InMemoryStorage):
    """In-memory storage whose Nth save into a table fails"""

    def __init__(self, table: str, fail_on: int):
        super().__init__()
        self.fail_table = table
        self.fail_on = fail_on
        self.saves = 0

    def save(self, table, record_id, data):
        if table == self.fail_table:
            self.saves += 1
            if self.saves == self.fail_on:
                raise PersistenceFailure(f"disk full writing {table}")
        super().save(table, record_id, data)


def sample_terms(**overrides) -> LoanTerms:
    values = dict(
        principal_amount="12000",
        start_date=date(2024, 1, 15),
        interest_rate_percent="12",
        interest_type="flat",
        term_length=12,
        term_unit="months",
        repayment_frequency="monthly",
        late_fee_percent_per_day="2",
        preclosure_fee_percent="5"
    )
    values.update(overrides)
    return LoanTerms(**values)


class TestLoanOrigination:
    """Test loan origination"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.clock = FixedClock(date(2024, 1, 15))
        self.store = LoanStore(self.storage, self.clock)
        self.audit_trail = AuditTrail(self.storage)
        self.clients = ClientManager(self.store, self.audit_trail)
        self.loans = LoanManager(self.store, self.audit_trail)
        self.client = self.clients.create_client("Asha Rao", "98450", "asha@example.com")

    def test_originate_persists_loan_and_schedule(self):
        loan = self.loans.originate_loan(self.client.id, sample_terms())

        assert loan.loan_number == "L-2024-0001"
        assert loan.status == LoanStatus.ACTIVE
        assert loan.end_date == date(2025, 1, 15)

        schedule = self.loans.get_schedule(loan.id)
        assert len(schedule) == 12
        assert all(i.total_due == Decimal("1120.00") for i in schedule)
        assert all(i.remaining_amount == i.total_due for i in schedule)
        assert all(i.status == InstallmentStatus.PENDING for i in schedule)
        assert schedule[0].due_date == date(2024, 2, 15)

    def test_schedule_matches_preview(self):
        terms = sample_terms(interest_type="reducing", repayment_frequency="weekly")
        preview = self.loans.preview_schedule(terms)
        loan = self.loans.originate_loan(self.client.id, terms)

        persisted = self.loans.get_schedule(loan.id)
        assert [(i.due_date, i.principal_portion, i.interest_portion) for i in persisted] == [
            (e.due_date, e.principal_portion, e.interest_portion) for e in preview
        ]

    def test_preview_writes_nothing(self):
        self.loans.preview_schedule(sample_terms())
        assert self.store.list_loans() == []
        assert self.store.list_installments() == []

    def test_unknown_client(self):
        with pytest.raises(NotFoundError):
            self.loans.originate_loan("nope", sample_terms())
        assert self.store.list_loans() == []

    def test_invalid_terms(self):
        with pytest.raises(ValidationError):
            sample_terms(principal_amount="0")
        with pytest.raises(ValidationError):
            sample_terms(term_length=0)
        with pytest.raises(ValidationError):
            sample_terms(interest_rate_percent="-1")
        with pytest.raises(UnsupportedUnitError):
            sample_terms(repayment_frequency="yearly")

    def test_audit_event(self):
        loan = self.loans.originate_loan(self.client.id, sample_terms())

        events = self.audit_trail.get_events_for_entity("loan", loan.id)
        assert len(events) == 1
        assert events[0].event_type == AuditEventType.LOAN_ORIGINATED
        assert events[0].metadata["loan_number"] == loan.loan_number
        assert events[0].metadata["installments"] == 12
        assert events[0].metadata["principal_amount"] == "12000.00"

    def test_failed_installment_write_leaves_nothing(self):
        storage = FailingStorage("installments", fail_on=5)
        store = LoanStore(storage, self.clock)
        audit_trail = AuditTrail(storage)
        client = ClientManager(store, audit_trail).create_client("B", "1", "b@example.com")
        loans = LoanManager(store, audit_trail)

        with pytest.raises(PersistenceFailure):
            loans.originate_loan(client.id, sample_terms())

        assert store.list_loans() == []
        assert store.list_installments() == []
        assert audit_trail.verify_integrity()["total_events"] == 1

    def test_loan_numbers_increase(self):
        first = self.loans.originate_loan(self.client.id, sample_terms())
        second = self.loans.originate_loan(self.client.id, sample_terms(principal_amount="500"))
        assert (first.loan_number, second.loan_number) == ("L-2024-0001", "L-2024-0002")


class TestLoanQueries:
    """Test loan lookups and lifecycle changes"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.store = LoanStore(self.storage, FixedClock(date(2024, 1, 15)))
        self.audit_trail = AuditTrail(self.storage)
        clients = ClientManager(self.store, self.audit_trail)
        self.loans = LoanManager(self.store, self.audit_trail)
        self.asha = clients.create_client("Asha", "1", "asha@example.com")
        self.ravi = clients.create_client("Ravi", "2", "ravi@example.com")
        self.loan = self.loans.originate_loan(self.asha.id, sample_terms())

    def test_get_loan(self):
        assert self.loans.get_loan(self.loan.id).loan_number == self.loan.loan_number
        assert self.loans.get_loan("nope") is None
        with pytest.raises(NotFoundError):
            self.loans.require_loan("nope")

    def test_client_loans(self):
        self.loans.originate_loan(self.ravi.id, sample_terms())
        self.loans.originate_loan(self.asha.id, sample_terms())

        assert len(self.loans.list_loans()) == 3
        assert len(self.loans.get_client_loans(self.asha.id)) == 2
        assert len(self.loans.get_client_loans(self.ravi.id)) == 1

    def test_schedule_and_payments_of_missing_loan(self):
        with pytest.raises(NotFoundError):
            self.loans.get_schedule("nope")
        with pytest.raises(NotFoundError):
            self.loans.get_payments("nope")

    def test_no_payments_yet(self):
        assert self.loans.get_payments(self.loan.id) == []

    def test_mark_defaulted(self):
        loan = self.loans.mark_defaulted(self.loan.id, reason="no contact for 90 days")

        assert loan.status == LoanStatus.DEFAULTED
        assert self.loans.get_loan(self.loan.id).status == LoanStatus.DEFAULTED
        event = self.audit_trail.get_events_for_entity("loan", self.loan.id)[-1]
        assert event.event_type == AuditEventType.LOAN_STATUS_CHANGED
        assert event.metadata["new_status"] == "defaulted"

    def test_only_active_loans_default(self):
        self.loans.mark_defaulted(self.loan.id)
        with pytest.raises(ValidationError):
            self.loans.mark_defaulted(self.loan.id)
