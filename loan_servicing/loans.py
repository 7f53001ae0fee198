"""
Loan Module

Handles loan origination with its amortization schedule, schedule
previews, lookups and manual lifecycle changes.
"""

from typing import List, Optional

from .audit import AuditEventType, AuditTrail
from .exceptions import NotFoundError, ValidationError
from .logging_config import get_logger, log_action
from .models import Installment, Loan, LoanStatus, LoanTerms, Payment, ScheduleEntry
from .money import format_money
from .schedule import ScheduleGenerator
from .store import LoanStore


logger = get_logger("lendbook.loans")


class LoanManager:
    """
    Manages loan lifecycle from origination through completion
    """

    def __init__(self, store: LoanStore, audit_trail: AuditTrail,
                 schedule_generator: Optional[ScheduleGenerator] = None):
        self.store = store
        self.audit_trail = audit_trail
        self.schedule_generator = schedule_generator or ScheduleGenerator()

    def originate_loan(self, client_id: str, terms: LoanTerms) -> Loan:
        """
        Create a loan and persist its full installment schedule

        The loan and every installment are written in one transaction; if
        any write fails nothing is left behind.

        Args:
            client_id: Borrower
            terms: Validated loan terms

        Returns:
            The new active loan

        Raises:
            NotFoundError: Client does not exist
            UnsupportedUnitError: Unknown term unit or frequency
            PersistenceFailure: Storage failed; nothing was written
        """
        if not self.store.get_client(client_id):
            raise NotFoundError("client", client_id)

        # Generate before touching storage so bad terms never reach it
        schedule = self.schedule_generator.generate(terms)

        with self.store.atomic():
            loan = self.store.create_loan(client_id, terms)
            for entry in schedule:
                self.store.create_installment(loan.id, entry)

            self.audit_trail.log_event(
                event_type=AuditEventType.LOAN_ORIGINATED,
                entity_type="loan",
                entity_id=loan.id,
                metadata={
                    "loan_number": loan.loan_number,
                    "client_id": client_id,
                    "principal_amount": format_money(terms.principal_amount),
                    "interest_rate_percent": str(terms.interest_rate_percent),
                    "interest_type": terms.interest_type.value,
                    "term": f"{terms.term_length} {terms.term_unit.value}",
                    "repayment_frequency": terms.repayment_frequency.value,
                    "installments": len(schedule)
                }
            )

        log_action(
            logger, "info", f"Loan {loan.loan_number} originated",
            action="loan.originate", resource=f"loan:{loan.id}",
            extra={"installments": len(schedule),
                   "principal_amount": format_money(terms.principal_amount)}
        )
        return loan

    def preview_schedule(self, terms: LoanTerms) -> List[ScheduleEntry]:
        """Schedule the given terms would produce, without persisting anything"""
        return self.schedule_generator.preview(terms)

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        """Get loan by ID"""
        return self.store.get_loan(loan_id)

    def require_loan(self, loan_id: str) -> Loan:
        loan = self.store.get_loan(loan_id)
        if not loan:
            raise NotFoundError("loan", loan_id)
        return loan

    def list_loans(self) -> List[Loan]:
        return self.store.list_loans()

    def get_client_loans(self, client_id: str) -> List[Loan]:
        """Get all loans for a client"""
        return self.store.get_loans_for_client(client_id)

    def get_schedule(self, loan_id: str) -> List[Installment]:
        """Persisted installments of a loan in order"""
        self.require_loan(loan_id)
        return self.store.get_installments(loan_id)

    def get_payments(self, loan_id: str) -> List[Payment]:
        """Payment history of a loan, most recent first"""
        self.require_loan(loan_id)
        return self.store.get_payments(loan_id)

    def mark_defaulted(self, loan_id: str, reason: Optional[str] = None) -> Loan:
        """
        Move an active loan to defaulted

        Raises:
            NotFoundError: Loan does not exist
            ValidationError: Loan is not active
        """
        with self.store.loan_lock(loan_id):
            loan = self.require_loan(loan_id)
            if loan.status != LoanStatus.ACTIVE:
                raise ValidationError(
                    f"Only active loans can be defaulted, loan is {loan.status.value}"
                )

            with self.store.atomic():
                loan = self.store.update_loan(loan_id, {'status': LoanStatus.DEFAULTED})
                self.audit_trail.log_event(
                    event_type=AuditEventType.LOAN_STATUS_CHANGED,
                    entity_type="loan",
                    entity_id=loan_id,
                    metadata={"old_status": LoanStatus.ACTIVE.value,
                              "new_status": LoanStatus.DEFAULTED.value,
                              "reason": reason}
                )

        log_action(logger, "warning", f"Loan {loan.loan_number} marked defaulted",
                   action="loan.default", resource=f"loan:{loan_id}")
        return loan
