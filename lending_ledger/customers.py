"""
Customer Management Module

Borrower identity records. Customers are created once and never mutated by
the loan accounting engine, which does not read them in its calculations.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import List, Optional
import uuid
import re

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .errors import CustomerNotFound, DuplicateRecord
from .logging_config import get_logger, log_action


logger = get_logger(__name__)

EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'


@dataclass
class Customer(StorageRecord):
    """
    Customer identity record
    """
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("Customer name is required")

        if self.email and not re.match(EMAIL_PATTERN, self.email):
            raise ValueError("Invalid email format")

    @property
    def customer_id(self) -> str:
        return self.id

    def to_dict(self):
        result = super().to_dict()
        result['customer_id'] = self.id
        return result

    @classmethod
    def from_dict(cls, data) -> 'Customer':
        data = dict(data)
        data.pop('customer_id', None)
        return super().from_dict(data)


class CustomerManager:
    """
    Creates and looks up customers
    """

    def __init__(self, storage: StorageInterface, audit_trail: Optional[AuditTrail] = None):
        self.storage = storage
        self.audit_trail = audit_trail
        self.table_name = "customers"

    def create_customer(
        self,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        address: Optional[str] = None,
        customer_id: Optional[str] = None
    ) -> Customer:
        """
        Create a new customer

        Args:
            name: Customer's full name
            email: Optional email address
            phone: Optional phone number
            address: Optional postal address
            customer_id: Externally issued id; generated when omitted

        Returns:
            Created Customer object

        Raises:
            DuplicateRecord: If customer_id is already in use
            ValueError: If name is blank or email is malformed
        """
        now = datetime.now(timezone.utc)
        customer_id = customer_id or f"CUST_{uuid.uuid4().hex}"

        if self.storage.exists(self.table_name, customer_id):
            raise DuplicateRecord(f"Customer {customer_id} already exists")

        customer = Customer(
            id=customer_id,
            created_at=now,
            updated_at=now,
            name=name.strip() if name else name,
            email=email or None,
            phone=phone or None,
            address=address or None
        )

        with self.storage.atomic():
            self.storage.save(self.table_name, customer.id, customer.to_dict())

            if self.audit_trail:
                self.audit_trail.log_event(
                    event_type=AuditEventType.CUSTOMER_CREATED,
                    entity_type="customer",
                    entity_id=customer.id,
                    metadata={"name": customer.name}
                )

        log_action(logger, "info", f"Customer {customer.id} created",
                   action="create_customer", resource="customer", resource_id=customer.id)
        return customer

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        """Get customer by ID"""
        data = self.storage.load(self.table_name, customer_id)
        if data:
            return Customer.from_dict(data)
        return None

    def require_customer(self, customer_id: str) -> Customer:
        """Get customer by ID, raising CustomerNotFound if absent"""
        customer = self.get_customer(customer_id)
        if not customer:
            raise CustomerNotFound(f"Customer {customer_id} not found")
        return customer

    def list_customers(self) -> List[Customer]:
        """All customers, newest first"""
        customers = [Customer.from_dict(data) for data in self.storage.load_all(self.table_name)]
        customers.sort(key=lambda c: c.created_at, reverse=True)
        return customers
