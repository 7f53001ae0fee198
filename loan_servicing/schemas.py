"""
Pydantic schemas for request payloads and responses

Money and percentages travel as decimal strings; dates as ISO strings.
"""

from datetime import date
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ValidationError
from .models import Client, Installment, Loan, LoanTerms, Payment, ScheduleEntry
from .money import format_money, format_percent
from .payments import PaymentQuote, PaymentRequest
from .reporting import Dashboard, InstallmentAlert, LoanSummary, OverdueLoanSummary


SchemaT = TypeVar("SchemaT", bound=BaseModel)


def parse_payload(schema: Type[SchemaT], data: Dict[str, Any]) -> SchemaT:
    """Validate a raw payload, raising the package's ValidationError on bad input"""
    try:
        return schema.model_validate(data)
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        )
        raise ValidationError(f"Invalid {schema.__name__}: {problems}") from e


# Client schemas
class CreateClientRequest(BaseModel):
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    address: Optional[str] = None


class UpdateClientRequest(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


# Loan schemas
class CreateLoanRequest(BaseModel):
    client_id: str
    principal_amount: str = Field(..., description="Decimal amount as string")
    start_date: date
    interest_rate_percent: Optional[str] = Field(None, description="Annual rate, e.g. '12'")
    interest_type: str = Field("flat", description="flat or reducing")
    term_length: int = Field(..., ge=1)
    term_unit: str = Field("months", description="days, weeks or months")
    repayment_frequency: str = Field("monthly", description="daily, weekly or monthly")
    late_fee_percent_per_day: Optional[str] = None
    preclosure_fee_percent: Optional[str] = None

    def to_terms(self, defaults: Optional[Any] = None) -> LoanTerms:
        """
        Build loan terms, filling omitted percentages from ``defaults``

        ``defaults`` is any object with the ``default_*_percent*`` settings
        of LendbookConfig.
        """
        def pick(value: Optional[str], setting: str) -> str:
            if value is not None:
                return value
            return getattr(defaults, setting) if defaults is not None else "0"

        return LoanTerms(
            principal_amount=self.principal_amount,
            start_date=self.start_date,
            interest_rate_percent=pick(self.interest_rate_percent,
                                       "default_interest_rate_percent"),
            interest_type=self.interest_type,
            term_length=self.term_length,
            term_unit=self.term_unit,
            repayment_frequency=self.repayment_frequency,
            late_fee_percent_per_day=pick(self.late_fee_percent_per_day,
                                          "default_late_fee_percent_per_day"),
            preclosure_fee_percent=pick(self.preclosure_fee_percent,
                                        "default_preclosure_fee_percent")
        )


# Payment schemas
class CreatePaymentRequest(BaseModel):
    loan_id: str
    installment_id: Optional[str] = None
    amount: str = Field(..., description="Decimal amount as string")
    payment_date: date
    payment_type: str = Field("regular", description="regular or preclosure")
    payment_method: str = Field(..., description="cash, bank_transfer, upi or cheque")
    notes: Optional[str] = None

    def to_request(self) -> PaymentRequest:
        return PaymentRequest(
            loan_id=self.loan_id,
            installment_id=self.installment_id or None,
            amount=self.amount,
            payment_date=self.payment_date,
            payment_type=self.payment_type,
            payment_method=self.payment_method,
            notes=self.notes
        )


# Responses

def client_to_dict(client: Client) -> Dict[str, Any]:
    return {
        "id": client.id,
        "name": client.name,
        "phone": client.phone,
        "email": client.email,
        "address": client.address,
        "created_at": client.created_at.isoformat()
    }


def loan_to_dict(loan: Loan, client_name: Optional[str] = None) -> Dict[str, Any]:
    terms = loan.terms
    result = {
        "id": loan.id,
        "loan_number": loan.loan_number,
        "client_id": loan.client_id,
        "principal_amount": format_money(terms.principal_amount),
        "interest_rate_percent": format_percent(terms.interest_rate_percent),
        "interest_type": terms.interest_type.value,
        "term_length": terms.term_length,
        "term_unit": terms.term_unit.value,
        "repayment_frequency": terms.repayment_frequency.value,
        "late_fee_percent_per_day": format_percent(terms.late_fee_percent_per_day),
        "preclosure_fee_percent": format_percent(terms.preclosure_fee_percent),
        "start_date": terms.start_date.isoformat(),
        "end_date": loan.end_date.isoformat(),
        "status": loan.status.value,
        "created_at": loan.created_at.isoformat()
    }
    if client_name is not None:
        result["client_name"] = client_name
    return result


def schedule_entry_to_dict(entry: ScheduleEntry) -> Dict[str, Any]:
    return {
        "installment_number": entry.installment_number,
        "due_date": entry.due_date.isoformat(),
        "principal": format_money(entry.principal_portion),
        "interest": format_money(entry.interest_portion),
        "total_due": format_money(entry.total_due),
        "remaining_amount": format_money(entry.remaining_amount),
        "status": entry.status.value
    }


def installment_to_dict(installment: Installment, as_of: Optional[date] = None) -> Dict[str, Any]:
    """Serialize an installment; with ``as_of`` the status is the effective one"""
    status = installment.effective_status(as_of) if as_of else installment.status
    return {
        "id": installment.id,
        "loan_id": installment.loan_id,
        "installment_number": installment.installment_number,
        "due_date": installment.due_date.isoformat(),
        "principal": format_money(installment.principal_portion),
        "interest": format_money(installment.interest_portion),
        "total_due": format_money(installment.total_due),
        "remaining_amount": format_money(installment.remaining_amount),
        "status": status.value
    }


def payment_to_dict(payment: Payment) -> Dict[str, Any]:
    return {
        "id": payment.id,
        "loan_id": payment.loan_id,
        "installment_id": payment.installment_id,
        "amount": format_money(payment.amount),
        "payment_date": payment.payment_date.isoformat(),
        "payment_type": payment.payment_type.value,
        "payment_method": payment.payment_method.value,
        "late_fee": format_money(payment.late_fee),
        "preclosure_fee": format_money(payment.preclosure_fee),
        "notes": payment.notes,
        "created_at": payment.created_at.isoformat()
    }


def quote_to_dict(quote: PaymentQuote) -> Dict[str, str]:
    return {
        "late_fee": format_money(quote.late_fee),
        "preclosure_fee": format_money(quote.preclosure_fee),
        "outstanding_amount": format_money(quote.outstanding_amount),
        "total_payable": format_money(quote.total_payable)
    }


def _summaries(summaries: List[LoanSummary]) -> List[Dict[str, Any]]:
    return [loan_to_dict(s.loan, s.client_name) for s in summaries]


def _alerts(alerts: List[InstallmentAlert], as_of: date) -> List[Dict[str, Any]]:
    result = []
    for alert in alerts:
        item = installment_to_dict(alert.installment, as_of)
        item["loan_number"] = alert.loan.loan_number if alert.loan else None
        item["client_name"] = alert.client_name
        result.append(item)
    return result


def dashboard_to_dict(dashboard: Dashboard) -> Dict[str, Any]:
    return {
        "as_of": dashboard.as_of.isoformat(),
        "stats": {
            "active_loans": dashboard.stats.active_loans,
            "total_disbursed": format_money(dashboard.stats.total_disbursed),
            "overdue_payments": dashboard.stats.overdue_payments
        },
        "recent_loans": _summaries(dashboard.recent_loans),
        "overdue_installments": _alerts(dashboard.overdue_installments, dashboard.as_of),
        "upcoming_installments": _alerts(dashboard.upcoming_installments, dashboard.as_of),
        "loans_ending_soon": _summaries(dashboard.loans_ending_soon)
    }


def overdue_loan_to_dict(summary: OverdueLoanSummary, as_of: date) -> Dict[str, Any]:
    result = loan_to_dict(summary.loan, summary.client_name)
    result["overdue_count"] = summary.overdue_count
    result["overdue_amount"] = format_money(summary.overdue_amount)
    result["overdue_installments"] = [
        installment_to_dict(i, as_of) for i in summary.overdue_installments
    ]
    return result
