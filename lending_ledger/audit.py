"""
Audit Trail Module

Hash-chained immutable audit log with SHA-256 for tamper detection.
Every customer, loan and payment state change is logged here.
"""

import hashlib
import json
import threading
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from enum import Enum
from decimal import Decimal
import uuid

from .storage import StorageInterface, StorageRecord


class AuditEventType(Enum):
    """Types of audit events"""
    CUSTOMER_CREATED = "customer_created"

    LOAN_CREATED = "loan_created"
    LOAN_PAYMENT_RECORDED = "loan_payment_recorded"
    LOAN_PAID_OFF = "loan_paid_off"
    LOAN_RECONCILED = "loan_reconciled"


def _json_safe(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    elif isinstance(value, datetime):
        return value.isoformat()
    elif isinstance(value, Enum):
        return value.value
    elif isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_json_safe(v) for v in value]
    return value


@dataclass
class AuditEvent(StorageRecord):
    """
    Immutable audit event with hash chaining for tamper detection
    """
    event_type: AuditEventType
    entity_type: str  # customer, loan, payment
    entity_id: str
    previous_hash: str  # Hash of previous audit event for chaining
    current_hash: str   # SHA-256 hash of this event
    metadata: Dict[str, Any]

    def __post_init__(self):
        if self.metadata:
            self.metadata = {k: _json_safe(v) for k, v in self.metadata.items()}

    def calculate_hash(self) -> str:
        """
        Calculate SHA-256 hash of this event
        Hash includes all fields except current_hash to prevent circular reference
        """
        hash_data = {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'event_type': self.event_type.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'previous_hash': self.previous_hash,
            'metadata': self.metadata
        }

        # Create deterministic JSON string
        json_data = json.dumps(hash_data, sort_keys=True, separators=(',', ':'))
        return hashlib.sha256(json_data.encode('utf-8')).hexdigest()

    def verify_hash(self) -> bool:
        """Verify that the current hash is correct"""
        return self.current_hash == self.calculate_hash()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditEvent':
        """Create AuditEvent from dictionary with proper enum deserialization"""
        data = dict(data)
        if isinstance(data.get('event_type'), str):
            data['event_type'] = AuditEventType(data['event_type'])
        return super().from_dict(data)


class AuditTrail:
    """
    Hash-chained audit trail for tamper detection
    """

    def __init__(self, storage: StorageInterface, table_name: str = "audit_events"):
        self.storage = storage
        self.table_name = table_name
        self._last_hash: Optional[str] = None
        self._sequence = 0
        self._lock = threading.Lock()
        self._load_last_hash()

    def _ordered_events(self) -> List[Dict[str, Any]]:
        events = self.storage.load_all(self.table_name)
        return sorted(events, key=lambda x: (x.get('created_at', ''), x.get('sequence', 0)))

    def _load_last_hash(self) -> None:
        """Load the hash of the most recent audit event"""
        events = self._ordered_events()
        if events:
            self._last_hash = events[-1].get('current_hash')
            self._sequence = events[-1].get('sequence', 0)

    def log_event(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> AuditEvent:
        """
        Log an audit event with hash chaining

        Args:
            event_type: Type of audit event
            entity_type: Type of entity being audited
            entity_id: ID of the entity
            metadata: Additional event-specific data

        Returns:
            Created AuditEvent
        """
        with self._lock:
            now = datetime.now(timezone.utc)

            # Re-load last hash so rolled-back events do not poison the chain
            self._load_last_hash()

            event = AuditEvent(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                previous_hash=self._last_hash or "",
                current_hash="",
                metadata=metadata or {}
            )
            event.current_hash = event.calculate_hash()

            self._sequence += 1
            record = event.to_dict()
            # Events logged within one clock tick still sort in write order
            record['sequence'] = self._sequence
            self.storage.save(self.table_name, event.id, record)

            self._last_hash = event.current_hash
            return event

    def _event_from_record(self, record: Dict[str, Any]) -> AuditEvent:
        record = dict(record)
        record.pop('sequence', None)
        return AuditEvent.from_dict(record)

    def get_events_for_entity(
        self,
        entity_type: str,
        entity_id: str,
        limit: Optional[int] = None
    ) -> List[AuditEvent]:
        """
        Get all audit events for a specific entity, oldest first

        Args:
            entity_type: Type of entity
            entity_id: ID of entity
            limit: Maximum number of (most recent) events to return
        """
        events = [
            self._event_from_record(data) for data in self._ordered_events()
            if data.get('entity_type') == entity_type and data.get('entity_id') == entity_id
        ]
        if limit:
            events = events[-limit:]
        return events

    def get_all_events(self, limit: Optional[int] = None) -> List[AuditEvent]:
        """Every audit event, oldest first, optionally only the most recent limit"""
        events = [self._event_from_record(data) for data in self._ordered_events()]
        if limit:
            events = events[-limit:]
        return events

    def verify_integrity(self) -> Dict[str, Any]:
        """
        Verify the integrity of the entire audit chain

        Returns:
            Dictionary with integrity check results
        """
        result = {
            'valid': True,
            'total_events': 0,
            'hash_errors': [],
            'chain_breaks': []
        }

        events = [self._event_from_record(data) for data in self._ordered_events()]
        result['total_events'] = len(events)

        previous_hash = ""
        for i, event in enumerate(events):
            if not event.verify_hash():
                result['valid'] = False
                result['hash_errors'].append({
                    'event_id': event.id,
                    'position': i,
                    'expected_hash': event.calculate_hash(),
                    'actual_hash': event.current_hash
                })
            if event.previous_hash != previous_hash:
                result['valid'] = False
                result['chain_breaks'].append({
                    'event_id': event.id,
                    'position': i,
                    'expected_previous_hash': previous_hash,
                    'actual_previous_hash': event.previous_hash
                })
            previous_hash = event.current_hash

        return result

    def count_events(self) -> int:
        """Get total number of audit events"""
        return self.storage.count(self.table_name)
