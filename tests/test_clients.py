"""
Test suite for client management

Tests client creation, partial updates, lookups and the audit events they
leave behind.
"""

import pytest

from loan_servicing.audit import AuditEventType, AuditTrail
from loan_servicing.clients import ClientManager
from loan_servicing.exceptions import NotFoundError, ValidationError
from loan_servicing.storage import InMemoryStorage
from loan_servicing.store import LoanStore


class TestClientManager:
    """Test ClientManager"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.audit_trail = AuditTrail(self.storage)
        self.manager = ClientManager(LoanStore(self.storage), self.audit_trail)

    def test_create_client(self):
        client = self.manager.create_client(
            name=" Asha Rao ", phone="98450 00000", email="asha@example.com", address="  "
        )

        assert client.name == "Asha Rao"
        assert client.address is None
        assert self.manager.get_client(client.id) == client

        events = self.audit_trail.get_events_for_entity("client", client.id)
        assert [e.event_type for e in events] == [AuditEventType.CLIENT_CREATED]

    @pytest.mark.parametrize("name,phone,email", [
        ("", "1", "a@example.com"),
        ("A", "", "a@example.com"),
        ("A", "1", ""),
        ("A", "1", "a@example"),
    ])
    def test_invalid_clients_are_not_stored(self, name, phone, email):
        with pytest.raises(ValidationError):
            self.manager.create_client(name=name, phone=phone, email=email)

        assert self.manager.list_clients() == []
        assert self.storage.count("audit_events") == 0

    def test_partial_update(self):
        client = self.manager.create_client("Asha", "1", "asha@example.com")
        updated = self.manager.update_client(client.id, phone="2", address="Bengaluru")

        assert updated.name == "Asha"
        assert updated.phone == "2"
        assert updated.address == "Bengaluru"
        assert updated.updated_at >= client.updated_at

        events = self.audit_trail.get_events_for_entity("client", client.id)
        assert events[-1].event_type == AuditEventType.CLIENT_UPDATED
        assert events[-1].metadata["old_data"] == {"phone": "1", "address": None}
        assert events[-1].metadata["new_data"] == {"phone": "2", "address": "Bengaluru"}

    def test_update_without_changes(self):
        client = self.manager.create_client("Asha", "1", "asha@example.com")
        assert self.manager.update_client(client.id) == client
        assert len(self.audit_trail.get_events_for_entity("client", client.id)) == 1

    def test_update_with_invalid_email(self):
        client = self.manager.create_client("Asha", "1", "asha@example.com")
        with pytest.raises(ValidationError):
            self.manager.update_client(client.id, email="broken")
        assert self.manager.get_client(client.id).email == "asha@example.com"

    def test_missing_client(self):
        assert self.manager.get_client("nope") is None
        with pytest.raises(NotFoundError):
            self.manager.require_client("nope")
        with pytest.raises(NotFoundError):
            self.manager.update_client("nope", name="X")

    def test_list_clients(self):
        self.manager.create_client("A", "1", "a@example.com")
        self.manager.create_client("B", "2", "b@example.com")
        assert [c.name for c in self.manager.list_clients()] == ["A", "B"]
