"""
Domain Records Module

Clients, loans, installments and payments as dataclass records, plus the
enumerations they use. Records serialize to plain JSON-friendly dicts:
Decimal as string, dates as ISO strings, enums as their values.
"""

from dataclasses import dataclass, fields, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Union, get_args, get_origin, get_type_hints
import re

from .dates import add_term
from .exceptions import UnsupportedUnitError, ValidationError
from .money import ZERO, parse_money, parse_percent


class InterestType(Enum):
    """How interest is spread across installments"""
    FLAT = "flat"            # Computed once on the original principal
    REDUCING = "reducing"    # Recomputed on the declining principal


class TermUnit(Enum):
    """Unit of a loan's term length"""
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"


class RepaymentFrequency(Enum):
    """How often installments fall due"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class LoanStatus(Enum):
    """Loan lifecycle states"""
    ACTIVE = "active"
    COMPLETED = "completed"    # Settled in full by preclosure
    DEFAULTED = "defaulted"    # Set manually


class InstallmentStatus(Enum):
    """Installment repayment states"""
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


class PaymentType(Enum):
    """Kinds of payment"""
    REGULAR = "regular"
    PRECLOSURE = "preclosure"


class PaymentMethod(Enum):
    """How the money was received"""
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    UPI = "upi"
    CHEQUE = "cheque"


class LateFeePolicy(Enum):
    """What a computed late fee does to the installment balance"""
    LEDGER_ONLY = "ledger_only"      # Fee recorded on the payment only
    COLLECT_FIRST = "collect_first"  # Payment settles the fee before the installment


def coerce_enum(enum_type: type, value: Any, error_type: type = ValidationError) -> Enum:
    """Convert a raw value to ``enum_type``, raising ``error_type`` when unknown"""
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        raise error_type(
            f"Unsupported {enum_type.__name__} '{value}' (expected one of: {allowed})"
        ) from None


def to_primitive(value: Any) -> Any:
    """Recursively convert a value to its JSON-friendly form"""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_primitive(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, dict):
        return {k: to_primitive(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_primitive(v) for v in value]
    return value


def _from_primitive(target: Any, value: Any) -> Any:
    """Convert a stored primitive back to the annotated type"""
    if value is None:
        return None

    if get_origin(target) is Union:
        # Optional[X] -> X
        candidates = [arg for arg in get_args(target) if arg is not type(None)]
        target = candidates[0] if len(candidates) == 1 else Any

    if target is Decimal:
        return Decimal(str(value))
    if target is datetime:
        return datetime.fromisoformat(value) if isinstance(value, str) else value
    if target is date:
        return date.fromisoformat(value) if isinstance(value, str) else value
    if isinstance(target, type) and issubclass(target, Enum):
        return target(value)
    if is_dataclass(target) and isinstance(value, dict):
        hints = get_type_hints(target)
        return target(**{
            f.name: _from_primitive(hints[f.name], value[f.name])
            for f in fields(target) if f.name in value
        })
    return value


@dataclass
class StorageRecord:
    """Base class for all stored records"""
    id: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return {f.name: to_primitive(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StorageRecord':
        """Create instance from a stored dictionary"""
        hints = get_type_hints(cls)
        kwargs = {
            f.name: _from_primitive(hints[f.name], data[f.name])
            for f in fields(cls) if f.name in data
        }
        return cls(**kwargs)


EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


@dataclass
class Client(StorageRecord):
    """Borrower identity record"""
    name: str
    phone: str
    email: str
    address: Optional[str] = None

    def __post_init__(self):
        for attr in ('name', 'phone', 'email'):
            value = getattr(self, attr)
            if not value or not str(value).strip():
                raise ValidationError(f"Client {attr} is required")
            setattr(self, attr, str(value).strip())

        if not EMAIL_PATTERN.match(self.email):
            raise ValidationError(f"Invalid email format: {self.email}")

        if self.address is not None and not self.address.strip():
            self.address = None


@dataclass
class LoanTerms:
    """Contractual terms a loan's schedule is generated from"""
    principal_amount: Decimal
    start_date: date
    interest_rate_percent: Decimal          # Annual, e.g. 12 for 12%
    interest_type: InterestType
    term_length: int
    term_unit: TermUnit
    repayment_frequency: RepaymentFrequency
    late_fee_percent_per_day: Decimal = ZERO
    preclosure_fee_percent: Decimal = ZERO

    def __post_init__(self):
        self.principal_amount = parse_money(self.principal_amount)
        if self.principal_amount <= 0:
            raise ValidationError("Principal amount must be positive")

        if not isinstance(self.start_date, date):
            raise ValidationError("Start date must be a date")
        if isinstance(self.start_date, datetime):
            self.start_date = self.start_date.date()

        if isinstance(self.term_length, bool) or not isinstance(self.term_length, int):
            raise ValidationError("Term length must be an integer")
        if self.term_length < 1:
            raise ValidationError("Term length must be at least 1")

        self.interest_rate_percent = parse_percent(self.interest_rate_percent)
        self.late_fee_percent_per_day = parse_percent(self.late_fee_percent_per_day)
        self.preclosure_fee_percent = parse_percent(self.preclosure_fee_percent)

        self.interest_type = coerce_enum(InterestType, self.interest_type)
        self.term_unit = coerce_enum(TermUnit, self.term_unit, UnsupportedUnitError)
        self.repayment_frequency = coerce_enum(
            RepaymentFrequency, self.repayment_frequency, UnsupportedUnitError
        )

    @property
    def end_date(self) -> date:
        """start_date + term_length term units"""
        return add_term(self.start_date, self.term_length, self.term_unit)


@dataclass
class Loan(StorageRecord):
    """A loan and its current lifecycle state"""
    loan_number: str
    client_id: str
    terms: LoanTerms
    end_date: date
    status: LoanStatus = LoanStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == LoanStatus.ACTIVE

    @property
    def principal_amount(self) -> Decimal:
        return self.terms.principal_amount


@dataclass(frozen=True)
class ScheduleEntry:
    """One generated installment before it is persisted"""
    installment_number: int
    due_date: date
    principal_portion: Decimal
    interest_portion: Decimal
    total_due: Decimal
    remaining_amount: Decimal
    status: InstallmentStatus = InstallmentStatus.PENDING

    def __post_init__(self):
        if self.total_due != self.principal_portion + self.interest_portion:
            raise ValueError(
                f"Total due {self.total_due} does not equal principal "
                f"{self.principal_portion} + interest {self.interest_portion}"
            )


@dataclass
class Installment(StorageRecord):
    """One scheduled repayment unit of a loan"""
    loan_id: str
    installment_number: int
    due_date: date
    principal_portion: Decimal
    interest_portion: Decimal
    total_due: Decimal
    remaining_amount: Decimal
    status: InstallmentStatus = InstallmentStatus.PENDING

    @property
    def is_paid(self) -> bool:
        return self.status == InstallmentStatus.PAID

    def is_overdue(self, as_of: date) -> bool:
        """Unpaid and past its due date"""
        return not self.is_paid and self.due_date < as_of

    def effective_status(self, as_of: date) -> InstallmentStatus:
        """Stored status, with unpaid past-due installments reported as overdue"""
        if self.is_overdue(as_of):
            return InstallmentStatus.OVERDUE
        return self.status

    def status_for_remaining(self, remaining_amount: Decimal) -> InstallmentStatus:
        """Status after the balance moves to ``remaining_amount``"""
        if remaining_amount <= 0:
            return InstallmentStatus.PAID
        if remaining_amount < self.total_due:
            return InstallmentStatus.PARTIAL
        return self.status


@dataclass
class Payment(StorageRecord):
    """Append-only record of money received against a loan"""
    loan_id: str
    amount: Decimal
    payment_date: date
    payment_type: PaymentType
    payment_method: PaymentMethod
    installment_id: Optional[str] = None
    late_fee: Decimal = ZERO
    preclosure_fee: Decimal = ZERO
    notes: Optional[str] = None

    @property
    def total_fees(self) -> Decimal:
        return self.late_fee + self.preclosure_fee


def installment_from_entry(entry: ScheduleEntry, installment_id: str, loan_id: str,
                           created_at: datetime) -> Installment:
    """Materialize a schedule entry as an installment of ``loan_id``"""
    return Installment(
        id=installment_id,
        created_at=created_at,
        updated_at=created_at,
        loan_id=loan_id,
        installment_number=entry.installment_number,
        due_date=entry.due_date,
        principal_portion=entry.principal_portion,
        interest_portion=entry.interest_portion,
        total_due=entry.total_due,
        remaining_amount=entry.remaining_amount,
        status=entry.status
    )
