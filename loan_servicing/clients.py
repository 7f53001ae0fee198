"""
Client Management Module

Creates, edits and looks up borrowers. Clients are never deleted.
"""

from typing import List, Optional

from .audit import AuditEventType, AuditTrail
from .exceptions import NotFoundError
from .logging_config import get_logger, log_action
from .models import Client
from .store import LoanStore


logger = get_logger("lendbook.clients")


class ClientManager:
    """Manages borrower records"""

    def __init__(self, store: LoanStore, audit_trail: AuditTrail):
        self.store = store
        self.audit_trail = audit_trail

    def create_client(self, name: str, phone: str, email: str,
                      address: Optional[str] = None) -> Client:
        """
        Create a new client

        Raises:
            ValidationError: Missing name/phone/email or malformed email
        """
        with self.store.atomic():
            client = self.store.create_client(name=name, phone=phone, email=email,
                                              address=address)
            self.audit_trail.log_event(
                event_type=AuditEventType.CLIENT_CREATED,
                entity_type="client",
                entity_id=client.id,
                metadata={"name": client.name, "email": client.email}
            )

        log_action(logger, "info", "Client created", action="client.create",
                   resource=f"client:{client.id}")
        return client

    def get_client(self, client_id: str) -> Optional[Client]:
        """Get client by ID"""
        return self.store.get_client(client_id)

    def require_client(self, client_id: str) -> Client:
        client = self.store.get_client(client_id)
        if not client:
            raise NotFoundError("client", client_id)
        return client

    def list_clients(self) -> List[Client]:
        return self.store.list_clients()

    def update_client(
        self,
        client_id: str,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        email: Optional[str] = None,
        address: Optional[str] = None
    ) -> Client:
        """Update the provided fields; fields left as None are unchanged"""
        client = self.require_client(client_id)
        values = {'name': name, 'phone': phone, 'email': email, 'address': address}
        patch = {k: v for k, v in values.items() if v is not None}
        if not patch:
            return client

        old_data = {k: getattr(client, k) for k in patch}
        with self.store.atomic():
            client = self.store.update_client(client_id, patch)
            self.audit_trail.log_event(
                event_type=AuditEventType.CLIENT_UPDATED,
                entity_type="client",
                entity_id=client.id,
                metadata={"old_data": old_data, "new_data": patch}
            )
        return client
