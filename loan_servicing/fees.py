"""
Fee Calculation Module

Late and preclosure fees. Pure functions over Decimal amounts; results are
rounded to cents.
"""

from datetime import date
from decimal import Decimal

from .dates import days_between
from .money import ZERO, Numeric, parse_percent, percent_of, quantize_money, to_decimal


def days_late(due_date: date, payment_date: date) -> int:
    """Whole days a payment is past its due date, never negative"""
    return max(0, days_between(due_date, payment_date))


def late_fee(total_due: Numeric, late_fee_percent_per_day: Numeric,
             due_date: date, payment_date: date) -> Decimal:
    """
    Simple per-day penalty on the installment's original total due

    The fee does not compound and is charged on ``total_due``, not on
    whatever part of it remains unpaid.

    Args:
        total_due: Installment total due
        late_fee_percent_per_day: e.g. 2 for 2% per day
        due_date: Installment due date
        payment_date: Date the payment was made

    Returns:
        ``total_due * pct / 100 * days_late``, or 0.00 when paid on time
    """
    late_days = days_late(due_date, payment_date)
    if late_days == 0:
        return ZERO

    fee_per_day = percent_of(to_decimal(total_due), parse_percent(late_fee_percent_per_day))
    return quantize_money(fee_per_day * late_days)


def preclosure_fee(remaining_principal: Numeric, preclosure_fee_percent: Numeric) -> Decimal:
    """Percentage of the principal still scheduled on unpaid installments"""
    return quantize_money(
        percent_of(to_decimal(remaining_principal), parse_percent(preclosure_fee_percent))
    )


class FeeCalculator:
    """Object face of the fee functions, for injection into the payment processor"""

    def days_late(self, due_date: date, payment_date: date) -> int:
        return days_late(due_date, payment_date)

    def late_fee(self, total_due: Numeric, late_fee_percent_per_day: Numeric,
                 due_date: date, payment_date: date) -> Decimal:
        return late_fee(total_due, late_fee_percent_per_day, due_date, payment_date)

    def preclosure_fee(self, remaining_principal: Numeric,
                       preclosure_fee_percent: Numeric) -> Decimal:
        return preclosure_fee(remaining_principal, preclosure_fee_percent)
