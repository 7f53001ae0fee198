"""
Test suite for schedule generation

Tests installment counts, due dates and the principal/interest split for
flat and reducing interest. All schedule math must be exact to the cent.
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from loan_servicing.exceptions import UnsupportedUnitError
from loan_servicing.models import (
    InstallmentStatus, InterestType, LoanTerms, RepaymentFrequency, TermUnit
)
from loan_servicing.schedule import ScheduleGenerator, total_installments


def make_terms(**overrides) -> LoanTerms:
    values = dict(
        principal_amount="12000",
        start_date=date(2024, 1, 15),
        interest_rate_percent="12",
        interest_type="flat",
        term_length=12,
        term_unit="months",
        repayment_frequency="monthly"
    )
    values.update(overrides)
    return LoanTerms(**values)


class TestInstallmentCount:
    """Test the number of installments for a term"""

    @pytest.mark.parametrize("length,unit,frequency,expected", [
        (12, "months", "monthly", 12),
        (6, "months", "monthly", 6),
        (6, "months", "weekly", 26),     # ceil(180 / 7)
        (3, "months", "daily", 90),
        (45, "days", "weekly", 7),       # ceil(45 / 7)
        (10, "days", "daily", 10),
        (2, "weeks", "weekly", 2),
        (8, "weeks", "monthly", 2),      # ceil(56 / 30)
        (1, "days", "monthly", 1),
    ])
    def test_counts(self, length, unit, frequency, expected):
        assert total_installments(length, unit, frequency) == expected

    def test_enums_accepted(self):
        assert total_installments(1, TermUnit.MONTHS, RepaymentFrequency.WEEKLY) == 5

    def test_unknown_unit(self):
        with pytest.raises(UnsupportedUnitError):
            total_installments(1, "years", "monthly")

    def test_unknown_frequency(self):
        with pytest.raises(UnsupportedUnitError):
            total_installments(1, "months", "quarterly")


class TestFlatSchedule:
    """Test flat interest schedules"""

    def setup_method(self):
        self.generator = ScheduleGenerator()

    def test_twelve_month_flat_loan(self):
        """12000 at 12% flat over 12 months: 12 equal installments of 1120.00"""
        schedule = self.generator.generate(make_terms())

        assert len(schedule) == 12
        for number, entry in enumerate(schedule, start=1):
            assert entry.installment_number == number
            assert entry.principal_portion == Decimal("1000.00")
            assert entry.interest_portion == Decimal("120.00")
            assert entry.total_due == Decimal("1120.00")
            assert entry.remaining_amount == entry.total_due
            assert entry.status == InstallmentStatus.PENDING

    def test_monthly_due_dates_follow_calendar(self):
        schedule = self.generator.generate(make_terms())
        assert schedule[0].due_date == date(2024, 2, 15)
        assert schedule[1].due_date == date(2024, 3, 15)
        assert schedule[-1].due_date == date(2025, 1, 15)

    def test_month_end_start_clamps(self):
        schedule = self.generator.generate(make_terms(start_date=date(2024, 1, 31),
                                                      term_length=3))
        assert [e.due_date for e in schedule] == [
            date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)
        ]

    def test_uneven_principal_rounds_per_installment(self):
        schedule = self.generator.generate(make_terms(principal_amount="10000",
                                                      interest_rate_percent="0",
                                                      term_length=3))
        assert [e.principal_portion for e in schedule] == [Decimal("3333.33")] * 3
        total = sum(e.principal_portion for e in schedule)
        assert abs(total - Decimal("10000")) <= Decimal("0.01") * len(schedule)

    def test_zero_interest(self):
        schedule = self.generator.generate(make_terms(interest_rate_percent="0"))
        assert all(e.interest_portion == Decimal("0.00") for e in schedule)
        assert all(e.total_due == Decimal("1000.00") for e in schedule)


class TestReducingSchedule:
    """Test reducing-balance interest schedules"""

    def setup_method(self):
        self.generator = ScheduleGenerator()

    def test_two_month_reducing_loan(self):
        """10000 at 12% reducing over 2 months: interest 100.00 then 50.00"""
        schedule = self.generator.generate(make_terms(
            principal_amount="10000", interest_type=InterestType.REDUCING, term_length=2
        ))

        assert len(schedule) == 2
        assert [e.principal_portion for e in schedule] == [Decimal("5000.00")] * 2
        assert [e.interest_portion for e in schedule] == [Decimal("100.00"), Decimal("50.00")]
        assert [e.total_due for e in schedule] == [Decimal("5100.00"), Decimal("5050.00")]

    def test_weekly_reducing_splits_monthly_rate(self):
        schedule = self.generator.generate(make_terms(
            principal_amount="1000", interest_type="reducing",
            term_length=4, term_unit="weeks", repayment_frequency="weekly"
        ))

        assert [e.interest_portion for e in schedule] == [
            Decimal("2.50"), Decimal("1.88"), Decimal("1.25"), Decimal("0.63")
        ]

    def test_interest_never_increases(self):
        schedule = self.generator.generate(make_terms(interest_type="reducing"))
        interest = [e.interest_portion for e in schedule]
        assert interest == sorted(interest, reverse=True)


class TestScheduleProperties:
    """Test invariants that hold for every schedule"""

    def setup_method(self):
        self.generator = ScheduleGenerator()

    @pytest.mark.parametrize("overrides", [
        {},
        {"interest_type": "reducing"},
        {"term_length": 45, "term_unit": "days", "repayment_frequency": "weekly"},
        {"term_length": 3, "repayment_frequency": "daily", "principal_amount": "777.77"},
        {"term_length": 7, "term_unit": "weeks", "repayment_frequency": "monthly",
         "interest_type": "reducing", "interest_rate_percent": "18.5"},
    ])
    def test_invariants(self, overrides):
        terms = make_terms(**overrides)
        schedule = self.generator.generate(terms)

        assert len(schedule) == total_installments(
            terms.term_length, terms.term_unit, terms.repayment_frequency
        )
        assert [e.installment_number for e in schedule] == list(range(1, len(schedule) + 1))
        for entry in schedule:
            assert entry.total_due == entry.principal_portion + entry.interest_portion
            assert entry.principal_portion.as_tuple().exponent == -2
        total = sum(e.principal_portion for e in schedule)
        assert abs(total - terms.principal_amount) <= Decimal("0.01") * len(schedule)

    def test_deterministic(self):
        terms = make_terms(interest_type="reducing", repayment_frequency="weekly")
        assert self.generator.generate(terms) == self.generator.generate(terms)

    def test_last_due_date_may_pass_end_date(self):
        terms = make_terms(term_length=45, term_unit="days", repayment_frequency="weekly")
        schedule = self.generator.generate(terms)

        assert terms.end_date == terms.start_date + timedelta(days=45)
        assert schedule[-1].due_date == terms.start_date + timedelta(weeks=7)
        assert schedule[-1].due_date > terms.end_date

    def test_preview_matches_generate(self):
        terms = make_terms()
        assert self.generator.preview(terms) == self.generator.generate(terms)

    def test_unsupported_unit_rejected_by_terms(self):
        with pytest.raises(UnsupportedUnitError):
            make_terms(term_unit="years")
