"""
Payment Processing Module

Applies payments to loans: computes late and preclosure fees, records the
payment and updates installment balances and loan status. Also quotes what
a payment would cost before it is taken.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from .audit import AuditEventType, AuditTrail
from .dates import Clock, SystemClock, to_date
from .exceptions import InvalidReferenceError, NotFoundError, ValidationError
from .fees import FeeCalculator
from .logging_config import get_logger, log_action
from .models import (
    Installment, InstallmentStatus, LateFeePolicy, Loan, LoanStatus, Payment,
    PaymentMethod, PaymentType, coerce_enum
)
from .money import ZERO, format_money, parse_money, quantize_money
from .store import LoanStore


logger = get_logger("lendbook.payments")


@dataclass
class PaymentRequest:
    """A payment event as received from the outside"""
    loan_id: str
    amount: Decimal
    payment_date: date
    payment_type: PaymentType
    payment_method: PaymentMethod
    installment_id: Optional[str] = None
    notes: Optional[str] = None

    def __post_init__(self):
        self.amount = parse_money(self.amount)
        if self.amount <= 0:
            raise ValidationError("Payment amount must be positive")
        if not isinstance(self.payment_date, date):
            raise ValidationError("Payment date must be a date")
        self.payment_date = to_date(self.payment_date)
        self.payment_type = coerce_enum(PaymentType, self.payment_type)
        self.payment_method = coerce_enum(PaymentMethod, self.payment_method)
        if self.notes is not None and not self.notes.strip():
            self.notes = None


@dataclass(frozen=True)
class PaymentQuote:
    """Fees and amount owed if a payment were made on a given date"""
    late_fee: Decimal
    preclosure_fee: Decimal
    outstanding_amount: Decimal

    @property
    def total_payable(self) -> Decimal:
        return self.outstanding_amount + self.late_fee + self.preclosure_fee


def _unpaid(installments: List[Installment]) -> List[Installment]:
    # A legacy stored "overdue" status still counts as unpaid
    return [i for i in installments if i.status != InstallmentStatus.PAID]


class PaymentProcessor:
    """
    Applies payments against loan installments

    Each payment is applied under the loan's lock, and the payment record,
    installment updates and loan status change are written in a single
    transaction.
    """

    def __init__(
        self,
        store: LoanStore,
        audit_trail: AuditTrail,
        fee_calculator: Optional[FeeCalculator] = None,
        late_fee_policy: LateFeePolicy = LateFeePolicy.LEDGER_ONLY,
        clock: Optional[Clock] = None
    ):
        self.store = store
        self.audit_trail = audit_trail
        self.fee_calculator = fee_calculator or FeeCalculator()
        self.late_fee_policy = coerce_enum(LateFeePolicy, late_fee_policy)
        self.clock = clock or SystemClock()

    def _resolve(self, loan_id: str,
                 installment_id: Optional[str]) -> Tuple[Loan, Optional[Installment]]:
        loan = self.store.get_loan(loan_id)
        if not loan:
            raise NotFoundError("loan", loan_id)

        installment = None
        if installment_id:
            installment = self.store.get_installment(installment_id)
            if not installment:
                raise InvalidReferenceError(f"Installment {installment_id} not found")
            if installment.loan_id != loan.id:
                raise InvalidReferenceError(
                    f"Installment {installment_id} does not belong to loan {loan.loan_number}"
                )
        return loan, installment

    def _fees(self, loan: Loan, installment: Optional[Installment],
              payment_type: PaymentType, payment_date: date,
              unpaid: List[Installment]) -> Tuple[Decimal, Decimal]:
        late_fee = ZERO
        preclosure_fee = ZERO

        if payment_type == PaymentType.PRECLOSURE:
            remaining_principal = sum((i.principal_portion for i in unpaid), ZERO)
            preclosure_fee = self.fee_calculator.preclosure_fee(
                remaining_principal, loan.terms.preclosure_fee_percent
            )
        elif installment is not None:
            late_fee = self.fee_calculator.late_fee(
                installment.total_due,
                loan.terms.late_fee_percent_per_day,
                installment.due_date,
                payment_date
            )
        return late_fee, preclosure_fee

    def quote(self, loan_id: str, payment_type: PaymentType = PaymentType.REGULAR,
              installment_id: Optional[str] = None,
              payment_date: Optional[date] = None) -> PaymentQuote:
        """
        Fees and outstanding amount for a prospective payment

        Nothing is written. Regular payments quote the targeted
        installment's remaining balance; preclosure quotes the remaining
        balance of every unpaid installment.

        Raises:
            NotFoundError: Loan does not exist
            InvalidReferenceError: Installment missing or on another loan
        """
        payment_type = coerce_enum(PaymentType, payment_type)
        payment_date = to_date(payment_date) if payment_date else self.clock.today()
        loan, installment = self._resolve(loan_id, installment_id)
        unpaid = _unpaid(self.store.get_installments(loan.id))

        late_fee, preclosure_fee = self._fees(
            loan, installment, payment_type, payment_date, unpaid
        )

        if payment_type == PaymentType.PRECLOSURE:
            outstanding = sum((i.remaining_amount for i in unpaid), ZERO)
        elif installment is not None:
            outstanding = max(installment.remaining_amount, ZERO)
        else:
            outstanding = ZERO

        return PaymentQuote(
            late_fee=late_fee,
            preclosure_fee=preclosure_fee,
            outstanding_amount=quantize_money(outstanding)
        )

    def apply(self, request: PaymentRequest) -> Payment:
        """
        Record a payment and apply it to the loan

        Regular payments against an installment reduce its remaining
        balance; regular payments without an installment are only recorded.
        A preclosure payment settles every unpaid installment and completes
        the loan.

        Args:
            request: Validated payment request

        Returns:
            The persisted payment, with the fees charged on it

        Raises:
            NotFoundError: Loan does not exist
            InvalidReferenceError: Installment missing or on another loan
            ValidationError: Loan is already completed
            PersistenceFailure: Storage failed; nothing was written
        """
        with self.store.loan_lock(request.loan_id):
            loan, installment = self._resolve(request.loan_id, request.installment_id)
            if loan.status == LoanStatus.COMPLETED:
                raise ValidationError(
                    f"Loan {loan.loan_number} is completed and accepts no further payments"
                )

            unpaid = _unpaid(self.store.get_installments(loan.id))
            late_fee, preclosure_fee = self._fees(
                loan, installment, request.payment_type, request.payment_date, unpaid
            )

            with self.store.atomic():
                payment = self.store.create_payment(
                    loan_id=loan.id,
                    installment_id=request.installment_id,
                    amount=request.amount,
                    payment_date=request.payment_date,
                    payment_type=request.payment_type,
                    payment_method=request.payment_method,
                    late_fee=late_fee,
                    preclosure_fee=preclosure_fee,
                    notes=request.notes
                )

                if request.payment_type == PaymentType.PRECLOSURE:
                    self._preclose(loan, unpaid, payment)
                elif installment is not None:
                    self._apply_to_installment(installment, request.amount, late_fee)

                self.audit_trail.log_event(
                    event_type=AuditEventType.PAYMENT_RECORDED,
                    entity_type="payment",
                    entity_id=payment.id,
                    metadata={
                        "loan_id": loan.id,
                        "installment_id": payment.installment_id,
                        "amount": format_money(payment.amount),
                        "payment_type": payment.payment_type.value,
                        "payment_method": payment.payment_method.value,
                        "late_fee": format_money(late_fee),
                        "preclosure_fee": format_money(preclosure_fee)
                    }
                )

        log_action(
            logger, "info", f"Payment recorded on loan {loan.loan_number}",
            action="payment.apply", resource=f"loan:{loan.id}",
            extra={"payment_id": payment.id, "amount": format_money(payment.amount),
                   "payment_type": payment.payment_type.value}
        )
        return payment

    def _apply_to_installment(self, installment: Installment, amount: Decimal,
                              late_fee: Decimal) -> Installment:
        applied = amount
        if self.late_fee_policy == LateFeePolicy.COLLECT_FIRST:
            applied = max(amount - late_fee, ZERO)

        remaining = installment.remaining_amount - applied
        return self.store.update_installment(installment.id, {
            'remaining_amount': remaining,
            'status': installment.status_for_remaining(remaining)
        })

    def _preclose(self, loan: Loan, unpaid: List[Installment], payment: Payment) -> None:
        for installment in unpaid:
            self.store.update_installment(installment.id, {
                'remaining_amount': ZERO,
                'status': InstallmentStatus.PAID
            })
        self.store.update_loan(loan.id, {'status': LoanStatus.COMPLETED})

        self.audit_trail.log_event(
            event_type=AuditEventType.LOAN_PRECLOSED,
            entity_type="loan",
            entity_id=loan.id,
            metadata={
                "payment_id": payment.id,
                "old_status": loan.status.value,
                "installments_settled": len(unpaid),
                "preclosure_fee": format_money(payment.preclosure_fee)
            }
        )
