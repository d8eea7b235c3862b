"""
Ledger system wiring and shared endpoint dependencies
"""

from typing import Optional
from fastapi import HTTPException, status

from ..config import LedgerConfig, get_config
from ..storage import StorageInterface, create_storage
from ..audit import AuditTrail
from ..customers import CustomerManager
from ..loans import LoanManager
from ..reporting import ReportingEngine
from ..errors import (
    DuplicateRecord, LoanAlreadyPaidOff, OverpaymentRejected, RecordNotFound
)


class LedgerSystem:
    """Lending ledger with all components initialized"""

    def __init__(
        self,
        storage: Optional[StorageInterface] = None,
        config: Optional[LedgerConfig] = None
    ):
        self.config = config or get_config()
        self.storage = storage or create_storage(self.config)

        self.audit_trail = AuditTrail(self.storage) if self.config.enable_audit_logging else None
        self.customer_manager = CustomerManager(self.storage, self.audit_trail)
        self.loan_manager = LoanManager(
            self.storage, self.customer_manager, self.audit_trail, self.config
        )
        self.reporting_engine = ReportingEngine(self.loan_manager, self.customer_manager)


_ledger_system: Optional[LedgerSystem] = None


def get_ledger_system() -> LedgerSystem:
    """Dependency returning the process-wide ledger system"""
    global _ledger_system
    if _ledger_system is None:
        _ledger_system = LedgerSystem()
    return _ledger_system


def http_error(error: ValueError) -> HTTPException:
    """Translate a ledger validation failure into an HTTP error"""
    if isinstance(error, RecordNotFound):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, DuplicateRecord):
        code = status.HTTP_409_CONFLICT
    elif isinstance(error, (OverpaymentRejected, LoanAlreadyPaidOff)):
        code = 422  # Well-formed request refused by a business rule
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(error))
