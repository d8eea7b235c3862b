"""
Pydantic schemas for API requests and responses
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from ..audit import AuditEvent
from ..customers import Customer
from ..loans import Loan, Payment
from ..terms import TermsQuote


# Customer schemas
class CreateCustomerRequest(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    customer_id: Optional[str] = Field(None, description="Externally issued id; generated when omitted")


class CustomerResponse(BaseModel):
    customer_id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    created_at: str

    @classmethod
    def from_customer(cls, customer: Customer) -> 'CustomerResponse':
        return cls(
            customer_id=customer.id,
            name=customer.name,
            email=customer.email,
            phone=customer.phone,
            address=customer.address,
            created_at=customer.created_at.isoformat()
        )


# Loan schemas
class LoanTermsRequest(BaseModel):
    principal_amount: str = Field(..., description="Decimal amount as string")
    period_years: str = Field(..., description="Loan period in years")
    interest_rate_yearly: str = Field(..., description="Simple interest, percent per year")


class CreateLoanRequest(LoanTermsRequest):
    customer_id: str
    loan_id: Optional[str] = Field(None, description="Externally issued id; generated when omitted")


class QuoteResponse(BaseModel):
    total_interest: str
    total_amount: str
    monthly_emi: str
    suggested_installment: str

    @classmethod
    def from_quote(cls, quote: TermsQuote) -> 'QuoteResponse':
        return cls(
            total_interest=str(quote.total_interest),
            total_amount=str(quote.total_amount),
            monthly_emi=str(quote.monthly_emi),
            suggested_installment=str(quote.suggested_installment)
        )


class LoanResponse(BaseModel):
    loan_id: str
    customer_id: str
    principal_amount: str
    interest_rate_yearly: str
    period_years: str
    total_interest: str
    total_amount: str
    monthly_emi: str
    suggested_installment: str
    amount_paid: str
    balance_amount: str
    emis_left: int
    status: str
    created_at: str

    @classmethod
    def from_loan(cls, loan: Loan) -> 'LoanResponse':
        return cls(
            loan_id=loan.id,
            customer_id=loan.customer_id,
            principal_amount=str(loan.principal_amount),
            interest_rate_yearly=str(loan.interest_rate_yearly),
            period_years=str(loan.period_years),
            total_interest=str(loan.total_interest),
            total_amount=str(loan.total_amount),
            monthly_emi=str(loan.monthly_emi),
            suggested_installment=str(loan.suggested_installment),
            amount_paid=str(loan.amount_paid),
            balance_amount=str(loan.balance_amount),
            emis_left=loan.emis_left,
            status=loan.status.value,
            created_at=loan.created_at.isoformat()
        )


# Payment schemas
class PaymentRequest(BaseModel):
    amount: str = Field(..., description="Decimal amount as string")
    payment_type: str = Field("EMI", description="EMI or LUMP_SUM")
    payment_date: Optional[datetime] = None
    payment_id: Optional[str] = Field(None, description="Externally issued id; generated when omitted")


class PaymentResponse(BaseModel):
    payment_id: str
    loan_id: str
    amount: str
    payment_type: str
    payment_date: str

    @classmethod
    def from_payment(cls, payment: Payment) -> 'PaymentResponse':
        return cls(
            payment_id=payment.id,
            loan_id=payment.loan_id,
            amount=str(payment.amount),
            payment_type=payment.payment_type.value,
            payment_date=payment.payment_date.isoformat()
        )


class RecordPaymentResponse(BaseModel):
    payment: PaymentResponse
    loan: LoanResponse


class LoanStatementResponse(BaseModel):
    loan: LoanResponse
    payments: List[PaymentResponse]
    payment_progress: str


# Audit schemas
class AuditEventResponse(BaseModel):
    event_id: str
    event_type: str
    entity_type: str
    entity_id: str
    created_at: str
    metadata: Dict[str, Any]

    @classmethod
    def from_event(cls, event: AuditEvent) -> 'AuditEventResponse':
        return cls(
            event_id=event.id,
            event_type=event.event_type.value,
            entity_type=event.entity_type,
            entity_id=event.entity_id,
            created_at=event.created_at.isoformat(),
            metadata=event.metadata
        )
