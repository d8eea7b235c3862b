"""
Loan and payment endpoints
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, Query, status

from .dependencies import LedgerSystem, get_ledger_system, http_error
from .schemas import (
    CreateLoanRequest,
    LoanResponse,
    LoanStatementResponse,
    LoanTermsRequest,
    PaymentRequest,
    PaymentResponse,
    QuoteResponse,
    RecordPaymentResponse
)
from ..reconciler import LoanStatus


router = APIRouter()


@router.post("/quote")
async def quote_loan(
    request: LoanTermsRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Compute simple-interest terms without creating a loan"""
    try:
        quote = system.loan_manager.quote(
            request.principal_amount,
            request.period_years,
            request.interest_rate_yearly
        )
    except ValueError as e:
        raise http_error(e)

    return QuoteResponse.from_quote(quote).model_dump()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_loan(
    request: CreateLoanRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Create a loan for an existing customer"""
    try:
        loan = system.loan_manager.create_loan(
            customer_id=request.customer_id,
            principal_amount=request.principal_amount,
            period_years=request.period_years,
            interest_rate_yearly=request.interest_rate_yearly,
            loan_id=request.loan_id
        )
    except ValueError as e:
        raise http_error(e)

    return LoanResponse.from_loan(loan).model_dump()


@router.get("")
async def list_loans(
    customer_id: Optional[str] = None,
    loan_status: Optional[str] = Query(None, alias="status"),
    system: LedgerSystem = Depends(get_ledger_system)
):
    """List loans, optionally filtered by customer and status"""
    status_filter = None
    if loan_status:
        try:
            status_filter = LoanStatus(loan_status.upper())
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown loan status '{loan_status}'")

    loans = system.loan_manager.list_loans(customer_id=customer_id, status=status_filter)
    return {"loans": [LoanResponse.from_loan(loan).model_dump() for loan in loans]}


@router.get("/{loan_id}")
async def get_loan(
    loan_id: str,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Get loan details"""
    loan = system.loan_manager.get_loan(loan_id)
    if not loan:
        raise HTTPException(status_code=404, detail="Loan not found")

    return LoanResponse.from_loan(loan).model_dump()


@router.get("/{loan_id}/statement")
async def get_loan_statement(
    loan_id: str,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Loan details with full payment history"""
    try:
        statement = system.reporting_engine.loan_statement(loan_id)
    except ValueError as e:
        raise http_error(e)

    return LoanStatementResponse(
        loan=LoanResponse.from_loan(statement.loan),
        payments=[PaymentResponse.from_payment(p) for p in statement.payments],
        payment_progress=str(statement.payment_progress)
    ).model_dump()


@router.post("/{loan_id}/payments", status_code=status.HTTP_201_CREATED)
async def record_payment(
    loan_id: str,
    request: PaymentRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Record an EMI or lump sum payment against a loan"""
    try:
        payment = system.loan_manager.record_payment(
            loan_id=loan_id,
            amount=request.amount,
            payment_type=request.payment_type.upper(),
            payment_date=request.payment_date,
            payment_id=request.payment_id
        )
        loan = system.loan_manager.require_loan(loan_id)
    except ValueError as e:
        raise http_error(e)

    return RecordPaymentResponse(
        payment=PaymentResponse.from_payment(payment),
        loan=LoanResponse.from_loan(loan)
    ).model_dump()


@router.get("/{loan_id}/payments")
async def list_payments(
    loan_id: str,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Payment history for a loan, most recent first"""
    try:
        system.loan_manager.require_loan(loan_id)
    except ValueError as e:
        raise http_error(e)

    payments = system.loan_manager.get_payments(loan_id)
    return {"payments": [PaymentResponse.from_payment(p).model_dump() for p in payments]}
