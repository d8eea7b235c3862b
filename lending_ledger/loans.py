"""
Loan Module

Handles loan creation under simple-interest terms, payment recording, and
re-derivation of each loan's balance, remaining EMIs and status from its full
payment history after every payment.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Union
from enum import Enum
import threading
import uuid

from .config import LedgerConfig, get_config
from .money import AmountLike, ZERO, to_decimal, quantize_amount, round_up_amount
from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .customers import CustomerManager
from .terms import TermsQuote, compute_loan_terms
from .reconciler import LoanStatus, Reconciliation, reconcile
from .errors import (
    DuplicateRecord, InvalidPayment, LoanAlreadyPaidOff, LoanNotFound,
    LoanStateError, OverpaymentRejected
)
from .logging_config import get_logger, log_action


logger = get_logger(__name__)


class PaymentType(Enum):
    """How a payment was made; both reduce the balance identically"""
    EMI = "EMI"              # Regular monthly installment
    LUMP_SUM = "LUMP_SUM"    # Ad-hoc payment outside the EMI schedule


@dataclass
class Loan(StorageRecord):
    """Loan with fixed terms and derived repayment state"""
    customer_id: str
    principal_amount: Decimal
    interest_rate_yearly: Decimal       # Percent, e.g. 10 for 10%
    period_years: Decimal

    # Fixed at creation
    total_amount: Decimal
    monthly_emi: Decimal

    # Derived, written only by apply_reconciliation
    amount_paid: Decimal
    balance_amount: Decimal
    emis_left: int

    @property
    def loan_id(self) -> str:
        return self.id

    @property
    def status(self) -> LoanStatus:
        """Derived from the balance so the two can never disagree"""
        return LoanStatus.for_balance(self.balance_amount)

    @property
    def is_active(self) -> bool:
        return self.status == LoanStatus.ACTIVE

    @property
    def is_paid_off(self) -> bool:
        return self.status == LoanStatus.PAID_OFF

    @property
    def total_interest(self) -> Decimal:
        return self.total_amount - self.principal_amount

    def payable_balance(self, places: int = 2) -> Decimal:
        """Balance rounded up to the payment precision; paying it clears the loan"""
        return round_up_amount(self.balance_amount, places)

    @property
    def suggested_installment(self) -> Decimal:
        """EMI rounded to cents, capped at what is still owed"""
        return min(quantize_amount(self.monthly_emi), self.payable_balance())

    def apply_reconciliation(self, result: Reconciliation) -> None:
        """
        Overwrite the derived fields with a reconciler result

        Raises:
            LoanStateError: If the result would reopen a PAID_OFF loan
        """
        if self.is_paid_off and result.status != LoanStatus.PAID_OFF:
            raise LoanStateError(
                f"Loan {self.id} is PAID_OFF and cannot return to {result.status.value}"
            )

        self.amount_paid = result.amount_paid
        self.balance_amount = result.balance_amount
        self.emis_left = result.emis_left
        self.updated_at = datetime.now(timezone.utc)

    def to_dict(self):
        result = super().to_dict()
        result['loan_id'] = self.id
        result['status'] = self.status.value
        return result

    @classmethod
    def from_dict(cls, data) -> 'Loan':
        data = dict(data)
        data.pop('loan_id', None)
        data.pop('status', None)
        for field in ['principal_amount', 'interest_rate_yearly', 'period_years',
                      'total_amount', 'monthly_emi', 'amount_paid', 'balance_amount']:
            data[field] = Decimal(data[field])
        return super().from_dict(data)


@dataclass
class Payment(StorageRecord):
    """Immutable record of a payment against a loan"""
    loan_id: str
    amount: Decimal
    payment_type: PaymentType
    payment_date: datetime

    @property
    def payment_id(self) -> str:
        return self.id

    def to_dict(self):
        result = super().to_dict()
        result['payment_id'] = self.id
        return result

    @classmethod
    def from_dict(cls, data) -> 'Payment':
        data = dict(data)
        data.pop('payment_id', None)
        data['amount'] = Decimal(data['amount'])
        data['payment_type'] = PaymentType(data['payment_type'])
        data['payment_date'] = datetime.fromisoformat(data['payment_date'])
        return super().from_dict(data)


class LoanManager:
    """
    Creates loans and applies payments to them.

    This is the calling layer around the pure term calculator and reconciler:
    it rejects payments the reconciler would otherwise clamp, serializes
    updates per loan, and persists the derived state atomically.
    """

    def __init__(
        self,
        storage: StorageInterface,
        customer_manager: CustomerManager,
        audit_trail: Optional[AuditTrail] = None,
        config: Optional[LedgerConfig] = None
    ):
        self.storage = storage
        self.customer_manager = customer_manager
        self.audit_trail = audit_trail
        self.config = config or get_config()

        self.loans_table = "loans"
        self.payments_table = "payments"

        self._loan_locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def _loan_lock(self, loan_id: str) -> threading.RLock:
        """Per-loan critical section for read-reconcile-write"""
        with self._locks_guard:
            lock = self._loan_locks.get(loan_id)
            if lock is None:
                lock = threading.RLock()
                self._loan_locks[loan_id] = lock
            return lock

    def _audit(self, event_type: AuditEventType, entity_type: str, entity_id: str, metadata: Dict) -> None:
        if self.audit_trail:
            self.audit_trail.log_event(
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                metadata=metadata
            )

    def quote(
        self,
        principal_amount: AmountLike,
        period_years: AmountLike,
        interest_rate_yearly: AmountLike
    ) -> TermsQuote:
        """Compute terms without creating a loan"""
        return compute_loan_terms(principal_amount, period_years, interest_rate_yearly)

    def create_loan(
        self,
        customer_id: str,
        principal_amount: AmountLike,
        period_years: AmountLike,
        interest_rate_yearly: AmountLike,
        loan_id: Optional[str] = None
    ) -> Loan:
        """
        Create a new loan

        Args:
            customer_id: Borrower customer ID
            principal_amount: Amount borrowed
            period_years: Loan period in years
            interest_rate_yearly: Simple interest rate, percent per year
            loan_id: Externally issued id; generated when omitted

        Returns:
            Created Loan, ACTIVE with the full total outstanding

        Raises:
            CustomerNotFound: If the customer does not exist
            InvalidTerms: If principal, period or rate is out of range
            DuplicateRecord: If loan_id is already in use
        """
        self.customer_manager.require_customer(customer_id)

        quote = compute_loan_terms(principal_amount, period_years, interest_rate_yearly)

        loan_id = loan_id or f"LOAN_{uuid.uuid4().hex}"
        if self.storage.exists(self.loans_table, loan_id):
            raise DuplicateRecord(f"Loan {loan_id} already exists")

        # Initial derived state is the reconciliation of an empty payment set
        initial = reconcile(quote, [])

        now = datetime.now(timezone.utc)
        loan = Loan(
            id=loan_id,
            created_at=now,
            updated_at=now,
            customer_id=customer_id,
            principal_amount=to_decimal(principal_amount),
            interest_rate_yearly=to_decimal(interest_rate_yearly),
            period_years=to_decimal(period_years),
            total_amount=quote.total_amount,
            monthly_emi=quote.monthly_emi,
            amount_paid=initial.amount_paid,
            balance_amount=initial.balance_amount,
            emis_left=initial.emis_left
        )

        with self.storage.atomic():
            self._save_loan(loan)
            self._audit(AuditEventType.LOAN_CREATED, "loan", loan.id, {
                "customer_id": customer_id,
                "principal_amount": loan.principal_amount,
                "interest_rate_yearly": loan.interest_rate_yearly,
                "period_years": loan.period_years,
                "total_amount": loan.total_amount,
                "monthly_emi": loan.monthly_emi
            })

        log_action(logger, "info", f"Loan {loan.id} created for customer {customer_id}",
                   action="create_loan", resource="loan", resource_id=loan.id,
                   extra={"total_amount": str(loan.total_amount), "emis_left": loan.emis_left})
        return loan

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        """Get loan by ID"""
        data = self.storage.load(self.loans_table, loan_id)
        if data:
            return Loan.from_dict(data)
        return None

    def require_loan(self, loan_id: str) -> Loan:
        """Get loan by ID, raising LoanNotFound if absent"""
        loan = self.get_loan(loan_id)
        if not loan:
            raise LoanNotFound(f"Loan {loan_id} not found")
        return loan

    def list_loans(
        self,
        customer_id: Optional[str] = None,
        status: Optional[LoanStatus] = None
    ) -> List[Loan]:
        """Loans, newest first, optionally filtered by customer and status"""
        filters = {}
        if customer_id:
            filters['customer_id'] = customer_id
        if status:
            filters['status'] = status.value

        loans = [Loan.from_dict(data) for data in self.storage.find(self.loans_table, filters)]
        loans.sort(key=lambda loan: loan.created_at, reverse=True)
        return loans

    def _load_payments(self, loan_id: str) -> List[Payment]:
        return [
            Payment.from_dict(data)
            for data in self.storage.find(self.payments_table, {'loan_id': loan_id})
        ]

    def get_payments(self, loan_id: str) -> List[Payment]:
        """Payment history for a loan, most recent payment_date first"""
        payments = self._load_payments(loan_id)
        payments.sort(key=lambda p: (p.payment_date, p.created_at), reverse=True)
        return payments

    def _validate_amount(self, amount: AmountLike) -> Decimal:
        try:
            value = quantize_amount(to_decimal(amount), self.config.amount_places)
        except ValueError as e:
            raise InvalidPayment(str(e)) from e
        if value <= ZERO:
            raise InvalidPayment(f"Payment amount must be greater than 0, got {amount}")
        return value

    def _log_rejection(self, loan_id: str, reason: str) -> None:
        log_action(logger, "warning", f"Payment against loan {loan_id} rejected: {reason}",
                   action="record_payment", resource="loan", resource_id=loan_id)

    def record_payment(
        self,
        loan_id: str,
        amount: AmountLike,
        payment_type: Union[PaymentType, str] = PaymentType.EMI,
        payment_date: Optional[datetime] = None,
        payment_id: Optional[str] = None
    ) -> Payment:
        """
        Record a payment and re-derive the loan's repayment state

        Args:
            loan_id: Loan being paid
            amount: Payment amount, rounded to configured decimal places
            payment_type: EMI or LUMP_SUM
            payment_date: When the payment was made (defaults to now)
            payment_id: Externally issued id; generated when omitted

        Returns:
            The recorded Payment

        Raises:
            LoanNotFound: If the loan does not exist
            LoanAlreadyPaidOff: If the loan is already PAID_OFF
            InvalidPayment: If the amount is not positive or the type is unknown
            OverpaymentRejected: If the amount exceeds the current balance
            DuplicateRecord: If payment_id is already in use
        """
        try:
            payment_type = PaymentType(payment_type)
        except ValueError as e:
            raise InvalidPayment(f"Unknown payment type {payment_type!r}") from e

        with self._loan_lock(loan_id):
            loan = self.require_loan(loan_id)

            if loan.is_paid_off:
                self._log_rejection(loan_id, "loan is paid off")
                raise LoanAlreadyPaidOff(f"Loan {loan_id} is already paid off")

            try:
                value = self._validate_amount(amount)
            except InvalidPayment as e:
                self._log_rejection(loan_id, str(e))
                raise

            # A sub-cent balance is settled by the smallest payable amount
            payable = loan.payable_balance(self.config.amount_places)
            if value > payable and not self.config.allow_overpayment:
                self._log_rejection(loan_id, "amount exceeds balance")
                raise OverpaymentRejected(
                    f"Payment amount {value} exceeds the remaining balance {payable}"
                )

            if payment_date is None:
                payment_date = datetime.now(timezone.utc)
            elif payment_date.tzinfo is None:
                payment_date = payment_date.replace(tzinfo=timezone.utc)

            payment_id = payment_id or f"PAY_{uuid.uuid4().hex}"
            if self.storage.exists(self.payments_table, payment_id):
                raise DuplicateRecord(f"Payment {payment_id} already exists")

            now = datetime.now(timezone.utc)
            payment = Payment(
                id=payment_id,
                created_at=now,
                updated_at=now,
                loan_id=loan_id,
                amount=value,
                payment_type=payment_type,
                payment_date=payment_date
            )

            with self.storage.atomic():
                self.storage.save(self.payments_table, payment.id, payment.to_dict())

                # Always re-fold the full stored history, never a running total
                result = reconcile(loan, self._load_payments(loan_id))
                loan.apply_reconciliation(result)
                self._save_loan(loan)

                self._audit(AuditEventType.LOAN_PAYMENT_RECORDED, "loan", loan_id, {
                    "payment_id": payment.id,
                    "amount": payment.amount,
                    "payment_type": payment.payment_type,
                    "amount_paid": loan.amount_paid,
                    "balance_amount": loan.balance_amount,
                    "emis_left": loan.emis_left
                })
                if loan.is_paid_off:
                    self._audit(AuditEventType.LOAN_PAID_OFF, "loan", loan_id, {
                        "amount_paid": loan.amount_paid
                    })

        log_action(logger, "info", f"Payment {payment.id} of {payment.amount} recorded against loan {loan_id}",
                   action="record_payment", resource="loan", resource_id=loan_id,
                   extra={"balance_amount": str(loan.balance_amount),
                          "emis_left": loan.emis_left,
                          "status": loan.status.value})
        return payment

    def reconcile_loan(self, loan_id: str) -> Loan:
        """
        Re-derive a loan's state from its stored payments

        Idempotent: with an unchanged payment set the loan is rewritten with
        identical derived values.
        """
        with self._loan_lock(loan_id):
            loan = self.require_loan(loan_id)
            with self.storage.atomic():
                loan.apply_reconciliation(reconcile(loan, self._load_payments(loan_id)))
                self._save_loan(loan)
                self._audit(AuditEventType.LOAN_RECONCILED, "loan", loan_id, {
                    "amount_paid": loan.amount_paid,
                    "balance_amount": loan.balance_amount,
                    "emis_left": loan.emis_left
                })
        return loan

    def _save_loan(self, loan: Loan) -> None:
        """Save loan to storage"""
        self.storage.save(self.loans_table, loan.id, loan.to_dict())
