"""
Reporting Module

Read-only aggregates for the back-office dashboard: portfolio counts and
totals, recent loans, installment alerts and overdue loans. "Today" comes
from the clock.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from .dates import Clock, SystemClock
from .models import Installment, Loan, LoanStatus
from .money import ZERO
from .store import LoanStore


UNKNOWN_CLIENT = "Unknown Client"


@dataclass(frozen=True)
class LoanSummary:
    """A loan with its borrower's name"""
    loan: Loan
    client_name: str


@dataclass(frozen=True)
class InstallmentAlert:
    """An installment needing attention, with its loan and borrower"""
    installment: Installment
    loan: Optional[Loan]
    client_name: str


@dataclass(frozen=True)
class OverdueLoanSummary:
    """An active loan with the installments it has fallen behind on"""
    loan: Loan
    client_name: str
    overdue_installments: List[Installment]

    @property
    def overdue_count(self) -> int:
        return len(self.overdue_installments)

    @property
    def overdue_amount(self) -> Decimal:
        return sum((i.remaining_amount for i in self.overdue_installments), ZERO)


@dataclass(frozen=True)
class DashboardStats:
    active_loans: int
    total_disbursed: Decimal
    overdue_payments: int


@dataclass(frozen=True)
class Dashboard:
    """
    Everything the dashboard shows

    Each section is read separately, so a write landing mid-build can show
    up in one section and not another.
    """
    as_of: date
    stats: DashboardStats
    recent_loans: List[LoanSummary] = field(default_factory=list)
    overdue_installments: List[InstallmentAlert] = field(default_factory=list)
    upcoming_installments: List[InstallmentAlert] = field(default_factory=list)
    loans_ending_soon: List[LoanSummary] = field(default_factory=list)


class ReportAggregator:
    """Computes dashboard statistics and alert lists"""

    def __init__(self, store: LoanStore, clock: Optional[Clock] = None):
        self.store = store
        self.clock = clock or SystemClock()

    def _client_names(self) -> Dict[str, str]:
        return {client.id: client.name for client in self.store.list_clients()}

    @staticmethod
    def _name_for(names: Dict[str, str], client_id: str) -> str:
        return names.get(client_id, UNKNOWN_CLIENT)

    def _unpaid_installments(self) -> List[Installment]:
        return [i for i in self.store.list_installments() if not i.is_paid]

    def _alerts(self, installments: List[Installment]) -> List[InstallmentAlert]:
        loans = {loan.id: loan for loan in self.store.list_loans()}
        names = self._client_names()

        alerts = []
        for installment in sorted(installments, key=lambda i: (i.due_date, i.installment_number)):
            loan = loans.get(installment.loan_id)
            client_name = self._name_for(names, loan.client_id) if loan else UNKNOWN_CLIENT
            alerts.append(InstallmentAlert(installment, loan, client_name))
        return alerts

    # Statistics

    def active_loan_count(self) -> int:
        return sum(1 for loan in self.store.list_loans() if loan.status == LoanStatus.ACTIVE)

    def total_disbursed_amount(self) -> Decimal:
        """Sum of principal over every loan, whatever its status"""
        return sum((loan.principal_amount for loan in self.store.list_loans()), ZERO)

    def overdue_payments_count(self) -> int:
        """Installments not paid and past their due date"""
        today = self.clock.today()
        return sum(1 for i in self.store.list_installments() if i.is_overdue(today))

    # Lists

    def recent_loans(self, limit: int = 5) -> List[LoanSummary]:
        """The newest loans by creation time, newest first"""
        loans = sorted(self.store.list_loans(), key=lambda loan: loan.created_at, reverse=True)
        names = self._client_names()
        return [
            LoanSummary(loan, self._name_for(names, loan.client_id))
            for loan in loans[:max(limit, 0)]
        ]

    def loans_ending_soon(self, days: int = 7) -> List[LoanSummary]:
        """Active loans whose end date falls within the next ``days`` days"""
        today = self.clock.today()
        horizon = today + timedelta(days=days)
        names = self._client_names()

        loans = [
            loan for loan in self.store.list_loans()
            if loan.status == LoanStatus.ACTIVE and today <= loan.end_date <= horizon
        ]
        loans.sort(key=lambda loan: loan.end_date)
        return [LoanSummary(loan, self._name_for(names, loan.client_id)) for loan in loans]

    def overdue_installments(self) -> List[InstallmentAlert]:
        today = self.clock.today()
        return self._alerts([i for i in self._unpaid_installments() if i.due_date < today])

    def upcoming_installments(self, days: int = 7) -> List[InstallmentAlert]:
        """Unpaid installments due between today and ``days`` days from now"""
        today = self.clock.today()
        horizon = today + timedelta(days=days)
        return self._alerts([
            i for i in self._unpaid_installments() if today <= i.due_date <= horizon
        ])

    def overdue_loans(self) -> List[OverdueLoanSummary]:
        """
        Active loans with at least one overdue installment

        Each summary carries the loan's overdue installments, oldest due
        first. Loans are ordered by loan number.
        """
        today = self.clock.today()
        names = self._client_names()

        overdue_by_loan: Dict[str, List[Installment]] = {}
        for installment in self.store.list_installments():
            if installment.is_overdue(today):
                overdue_by_loan.setdefault(installment.loan_id, []).append(installment)

        summaries = []
        for loan in sorted(self.store.list_loans(), key=lambda loan: loan.loan_number):
            overdue = overdue_by_loan.get(loan.id)
            if loan.status != LoanStatus.ACTIVE or not overdue:
                continue
            overdue.sort(key=lambda i: i.installment_number)
            summaries.append(OverdueLoanSummary(
                loan, self._name_for(names, loan.client_id), overdue
            ))
        return summaries

    def dashboard(self, recent_limit: int = 5, window_days: int = 7) -> Dashboard:
        stats = DashboardStats(
            active_loans=self.active_loan_count(),
            total_disbursed=self.total_disbursed_amount(),
            overdue_payments=self.overdue_payments_count()
        )
        return Dashboard(
            as_of=self.clock.today(),
            stats=stats,
            recent_loans=self.recent_loans(recent_limit),
            overdue_installments=self.overdue_installments(),
            upcoming_installments=self.upcoming_installments(window_days),
            loans_ending_soon=self.loans_ending_soon(window_days)
        )
