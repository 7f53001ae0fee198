"""
Schedule Generation Module

Builds a loan's installment schedule from its terms. Pure and
deterministic: the same terms always produce the same entries.

Two conventions differ. The number of installments is counted with 30-day
months, while due dates are placed with calendar months. A 6-month monthly
loan therefore has ceil(180 / 30) = 6 installments due on the same day of
each following calendar month, and a 45-day weekly loan gets 7 weekly
installments whose last due date falls after the loan's end date.
"""

from decimal import Decimal
from typing import List
import math

from .dates import add_periods
from .exceptions import UnsupportedUnitError
from .models import (
    InstallmentStatus, InterestType, LoanTerms, RepaymentFrequency,
    ScheduleEntry, TermUnit
)
from .money import percent_of, quantize_money


DAYS_PER_TERM_UNIT = {
    TermUnit.DAYS: 1,
    TermUnit.WEEKS: 7,
    TermUnit.MONTHS: 30,   # counting approximation, not calendar-accurate
}

DAYS_PER_PERIOD = {
    RepaymentFrequency.DAILY: 1,
    RepaymentFrequency.WEEKLY: 7,
    RepaymentFrequency.MONTHLY: 30,
}

# Reducing interest takes a monthly slice of the annual rate, then splits
# it further for shorter periods
MONTHS_PER_YEAR = Decimal('12')
PERIODS_PER_MONTH = {
    RepaymentFrequency.DAILY: Decimal('30'),
    RepaymentFrequency.WEEKLY: Decimal('4'),
    RepaymentFrequency.MONTHLY: Decimal('1'),
}


def _term_unit(value) -> TermUnit:
    try:
        return value if isinstance(value, TermUnit) else TermUnit(value)
    except ValueError:
        raise UnsupportedUnitError(f"Unsupported term unit: {value}") from None


def _frequency(value) -> RepaymentFrequency:
    try:
        return value if isinstance(value, RepaymentFrequency) else RepaymentFrequency(value)
    except ValueError:
        raise UnsupportedUnitError(f"Unsupported repayment frequency: {value}") from None


def total_installments(term_length: int, term_unit, repayment_frequency) -> int:
    """
    Number of installments for a term

    The term is converted to days (months count as 30 days) and divided by
    the period length, rounding up. Daily repayment uses the day count as is.

    Raises:
        UnsupportedUnitError: Unknown term unit or frequency
    """
    term_days = term_length * DAYS_PER_TERM_UNIT[_term_unit(term_unit)]
    frequency = _frequency(repayment_frequency)

    if frequency == RepaymentFrequency.DAILY:
        return term_days
    return math.ceil(term_days / DAYS_PER_PERIOD[frequency])


class ScheduleGenerator:
    """Generates equal-principal installment schedules"""

    def generate(self, terms: LoanTerms) -> List[ScheduleEntry]:
        """
        Generate the full schedule for a loan

        Args:
            terms: Loan terms

        Returns:
            Entries 1..N in order, amounts rounded to cents, each pending
            with remaining_amount equal to total_due
        """
        count = total_installments(
            terms.term_length, terms.term_unit, terms.repayment_frequency
        )
        principal = terms.principal_amount
        rate = terms.interest_rate_percent
        frequency = terms.repayment_frequency

        principal_share = principal / count
        flat_interest = percent_of(principal, rate) / count
        outstanding = principal

        schedule = []
        for number in range(1, count + 1):
            if terms.interest_type == InterestType.FLAT:
                interest = flat_interest
            else:
                interest = percent_of(outstanding, rate) / MONTHS_PER_YEAR
                interest = interest / PERIODS_PER_MONTH[frequency]

            principal_portion = quantize_money(principal_share)
            interest_portion = quantize_money(interest)
            total_due = principal_portion + interest_portion

            schedule.append(ScheduleEntry(
                installment_number=number,
                due_date=add_periods(terms.start_date, frequency, number),
                principal_portion=principal_portion,
                interest_portion=interest_portion,
                total_due=total_due,
                remaining_amount=total_due,
                status=InstallmentStatus.PENDING
            ))

            # Steps down by the scheduled share, not by what was actually repaid
            outstanding -= principal_share

        return schedule

    def preview(self, terms: LoanTerms) -> List[ScheduleEntry]:
        """Schedule for terms that are not (yet) a loan"""
        return self.generate(terms)
