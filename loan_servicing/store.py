"""
Loan Store Module

The record-level store the servicing core talks to: clients, loans,
installments and payments on top of any StorageInterface backend. Also
hands out per-loan locks and allocates loan numbers.
"""

from contextlib import contextmanager
from dataclasses import fields, replace
from typing import Any, Dict, Iterator, List, Optional
import threading
import uuid

from .dates import Clock, SystemClock
from .exceptions import NotFoundError, ValidationError
from .models import (
    Client, Installment, Loan, LoanTerms, Payment, ScheduleEntry,
    installment_from_entry
)
from .storage import StorageInterface


IMMUTABLE_FIELDS = frozenset({'id', 'created_at', 'updated_at'})


class LoanStore:
    """
    Typed CRUD over a storage backend

    Lookups return None for missing records; updates of missing records
    raise NotFoundError. Payments are append-only: there is no update or
    delete path for them.
    """

    def __init__(self, storage: StorageInterface, clock: Optional[Clock] = None,
                 loan_number_digits: int = 4):
        self.storage = storage
        self.clock = clock or SystemClock()
        self.loan_number_digits = loan_number_digits

        self.clients_table = "clients"
        self.loans_table = "loans"
        self.installments_table = "installments"
        self.payments_table = "payments"

        self._loan_locks: Dict[str, threading.RLock] = {}
        self._loan_locks_guard = threading.Lock()

    # Transactions and locking

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """All writes in the block commit together or not at all"""
        with self.storage.atomic():
            yield

    def loan_lock(self, loan_id: str) -> threading.RLock:
        """The mutex serializing balance updates on one loan"""
        with self._loan_locks_guard:
            lock = self._loan_locks.get(loan_id)
            if lock is None:
                lock = self._loan_locks[loan_id] = threading.RLock()
            return lock

    def _patched(self, record, patch: Dict[str, Any]):
        allowed = {f.name for f in fields(record)} - IMMUTABLE_FIELDS
        unknown = set(patch) - allowed
        if unknown:
            raise ValidationError(
                f"Cannot update {', '.join(sorted(unknown))} on {type(record).__name__}"
            )
        return replace(record, updated_at=self.clock.now(), **patch)

    # Clients

    def create_client(self, name: str, phone: str, email: str,
                      address: Optional[str] = None) -> Client:
        now = self.clock.now()
        client = Client(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            name=name,
            phone=phone,
            email=email,
            address=address
        )
        self.storage.save(self.clients_table, client.id, client.to_dict())
        return client

    def get_client(self, client_id: str) -> Optional[Client]:
        data = self.storage.load(self.clients_table, client_id)
        return Client.from_dict(data) if data else None

    def update_client(self, client_id: str, patch: Dict[str, Any]) -> Client:
        client = self.get_client(client_id)
        if not client:
            raise NotFoundError("client", client_id)
        client = self._patched(client, patch)
        self.storage.save(self.clients_table, client.id, client.to_dict())
        return client

    def list_clients(self) -> List[Client]:
        return [Client.from_dict(data) for data in self.storage.load_all(self.clients_table)]

    # Loans

    def next_loan_number(self) -> str:
        """``L-<year>-<sequence>``; the sequence runs across years"""
        highest = 0
        for data in self.storage.load_all(self.loans_table):
            suffix = data.get('loan_number', '').rsplit('-', 1)[-1]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        year = self.clock.today().year
        return f"L-{year}-{highest + 1:0{self.loan_number_digits}d}"

    def create_loan(self, client_id: str, terms: LoanTerms) -> Loan:
        """Persist a new active loan with a freshly allocated loan number"""
        now = self.clock.now()
        with self.atomic():
            loan = Loan(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                loan_number=self.next_loan_number(),
                client_id=client_id,
                terms=terms,
                end_date=terms.end_date
            )
            self.storage.save(self.loans_table, loan.id, loan.to_dict())
        return loan

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        data = self.storage.load(self.loans_table, loan_id)
        return Loan.from_dict(data) if data else None

    def get_loan_by_number(self, loan_number: str) -> Optional[Loan]:
        found = self.storage.find(self.loans_table, {'loan_number': loan_number})
        return Loan.from_dict(found[0]) if found else None

    def update_loan(self, loan_id: str, patch: Dict[str, Any]) -> Loan:
        loan = self.get_loan(loan_id)
        if not loan:
            raise NotFoundError("loan", loan_id)
        loan = self._patched(loan, patch)
        self.storage.save(self.loans_table, loan.id, loan.to_dict())
        return loan

    def list_loans(self) -> List[Loan]:
        return [Loan.from_dict(data) for data in self.storage.load_all(self.loans_table)]

    def get_loans_for_client(self, client_id: str) -> List[Loan]:
        found = self.storage.find(self.loans_table, {'client_id': client_id})
        return [Loan.from_dict(data) for data in found]

    # Installments

    def create_installment(self, loan_id: str, entry: ScheduleEntry) -> Installment:
        installment = installment_from_entry(
            entry, str(uuid.uuid4()), loan_id, self.clock.now()
        )
        self.storage.save(self.installments_table, installment.id, installment.to_dict())
        return installment

    def get_installment(self, installment_id: str) -> Optional[Installment]:
        data = self.storage.load(self.installments_table, installment_id)
        return Installment.from_dict(data) if data else None

    def get_installments(self, loan_id: str) -> List[Installment]:
        """A loan's installments ordered by installment number"""
        found = self.storage.find(self.installments_table, {'loan_id': loan_id})
        installments = [Installment.from_dict(data) for data in found]
        installments.sort(key=lambda i: i.installment_number)
        return installments

    def update_installment(self, installment_id: str, patch: Dict[str, Any]) -> Installment:
        installment = self.get_installment(installment_id)
        if not installment:
            raise NotFoundError("installment", installment_id)
        installment = self._patched(installment, patch)
        self.storage.save(self.installments_table, installment.id, installment.to_dict())
        return installment

    def list_installments(self) -> List[Installment]:
        return [
            Installment.from_dict(data)
            for data in self.storage.load_all(self.installments_table)
        ]

    # Payments

    def create_payment(self, **values: Any) -> Payment:
        now = self.clock.now()
        payment = Payment(id=str(uuid.uuid4()), created_at=now, updated_at=now, **values)
        self.storage.save(self.payments_table, payment.id, payment.to_dict())
        return payment

    def get_payment(self, payment_id: str) -> Optional[Payment]:
        data = self.storage.load(self.payments_table, payment_id)
        return Payment.from_dict(data) if data else None

    def get_payments(self, loan_id: str) -> List[Payment]:
        """A loan's payments, most recent payment date first"""
        found = self.storage.find(self.payments_table, {'loan_id': loan_id})
        payments = [Payment.from_dict(data) for data in found]
        payments.sort(key=lambda p: (p.payment_date, p.created_at), reverse=True)
        return payments
