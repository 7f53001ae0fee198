"""
Audit Trail Module

Hash-chained immutable audit log with SHA-256 for tamper detection.
Every client, loan and payment state change is recorded here.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import hashlib
import json
import threading
import uuid

from .models import StorageRecord, to_primitive
from .storage import StorageInterface


class AuditEventType(Enum):
    """Types of audit events"""
    CLIENT_CREATED = "client_created"
    CLIENT_UPDATED = "client_updated"
    LOAN_ORIGINATED = "loan_originated"
    LOAN_STATUS_CHANGED = "loan_status_changed"
    PAYMENT_RECORDED = "payment_recorded"
    LOAN_PRECLOSED = "loan_preclosed"


@dataclass
class AuditEvent(StorageRecord):
    """Audit event chained to its predecessor by hash"""
    event_type: AuditEventType
    entity_type: str
    entity_id: str
    previous_hash: str
    current_hash: str
    metadata: Dict[str, Any]

    def __post_init__(self):
        self.metadata = to_primitive(self.metadata or {})

    def calculate_hash(self) -> str:
        """SHA-256 over every field except current_hash"""
        hash_data = {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'event_type': self.event_type.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'previous_hash': self.previous_hash,
            'metadata': self.metadata
        }
        json_data = json.dumps(hash_data, sort_keys=True, separators=(',', ':'))
        return hashlib.sha256(json_data.encode('utf-8')).hexdigest()

    def verify_hash(self) -> bool:
        return self.current_hash == self.calculate_hash()


class AuditTrail:
    """
    Hash-chained audit trail

    Events are written through the same storage as the records they
    describe, so an event logged inside ``storage.atomic()`` rolls back
    together with the change.

    The latest hash and sequence live in a one-row head table written in
    the same transaction as each event, so appending never scans the log.
    """

    HEAD_ID = "head"

    def __init__(self, storage: StorageInterface, table_name: str = "audit_events",
                 enabled: bool = True):
        self.storage = storage
        self.table_name = table_name
        self.head_table = f"{table_name}_head"
        self.enabled = enabled
        self._lock = threading.Lock()

    def _chain_head(self) -> Tuple[str, int]:
        """Hash and sequence of the latest event, or ``("", -1)`` for an empty chain"""
        head = self.storage.load(self.head_table, self.HEAD_ID)
        if head is not None:
            return head['current_hash'], head['sequence']

        if self.storage.count(self.table_name) == 0:
            return "", -1

        # Logs written before the head record existed
        events = self.storage.load_all(self.table_name)
        last = max(events, key=lambda e: (e.get('sequence', 0), e['created_at']))
        return last['current_hash'], max(last.get('sequence', 0), len(events) - 1)

    def log_event(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Optional[AuditEvent]:
        """
        Append an event to the chain

        Returns:
            The stored AuditEvent, or None when auditing is disabled
        """
        if not self.enabled:
            return None

        # Lock order: storage transaction, then the chain lock
        with self.storage.atomic(), self._lock:
            previous_hash, sequence = self._chain_head()
            now = datetime.now(timezone.utc)
            event = AuditEvent(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                previous_hash=previous_hash,
                current_hash="",
                metadata=metadata or {}
            )
            event.current_hash = event.calculate_hash()

            record = event.to_dict()
            # Chain position; timestamps can collide
            record['sequence'] = sequence + 1
            self.storage.save(self.table_name, event.id, record)
            self.storage.save(self.head_table, self.HEAD_ID, {
                'event_id': event.id,
                'current_hash': event.current_hash,
                'sequence': sequence + 1
            })
            return event

    def _ordered_events(self, records: List[Dict[str, Any]]) -> List[AuditEvent]:
        records = sorted(records, key=lambda e: (e.get('sequence', 0), e['created_at']))
        return [AuditEvent.from_dict(record) for record in records]

    def get_events_for_entity(self, entity_type: str, entity_id: str) -> List[AuditEvent]:
        """All events for one entity, oldest first"""
        return self._ordered_events(self.storage.find(
            self.table_name, {'entity_type': entity_type, 'entity_id': entity_id}
        ))

    def verify_integrity(self) -> Dict[str, Any]:
        """
        Recompute every hash and check chain continuity

        Returns:
            ``{'valid', 'total_events', 'hash_errors', 'chain_breaks'}``
        """
        events = self._ordered_events(self.storage.load_all(self.table_name))
        result = {
            'valid': True,
            'total_events': len(events),
            'hash_errors': [],
            'chain_breaks': []
        }

        previous_hash = ""
        for position, event in enumerate(events):
            if not event.verify_hash():
                result['valid'] = False
                result['hash_errors'].append({'event_id': event.id, 'position': position})
            if event.previous_hash != previous_hash:
                result['valid'] = False
                result['chain_breaks'].append({'event_id': event.id, 'position': position})
            previous_hash = event.current_hash

        return result
