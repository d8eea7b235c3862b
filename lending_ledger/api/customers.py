"""
Customer endpoints
"""

from fastapi import APIRouter, HTTPException, Depends, status

from .dependencies import LedgerSystem, get_ledger_system, http_error
from .schemas import CreateCustomerRequest, CustomerResponse


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_customer(
    request: CreateCustomerRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Create a new customer"""
    try:
        customer = system.customer_manager.create_customer(
            name=request.name,
            email=request.email,
            phone=request.phone,
            address=request.address,
            customer_id=request.customer_id
        )
    except ValueError as e:
        raise http_error(e)

    return {"customer_id": customer.id, "message": "Customer created successfully"}


@router.get("")
async def list_customers(system: LedgerSystem = Depends(get_ledger_system)):
    """List customers, newest first"""
    customers = system.customer_manager.list_customers()
    return {"customers": [CustomerResponse.from_customer(c).model_dump() for c in customers]}


@router.get("/{customer_id}")
async def get_customer(
    customer_id: str,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Get customer by ID"""
    customer = system.customer_manager.get_customer(customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")

    return CustomerResponse.from_customer(customer).model_dump()


@router.get("/{customer_id}/portfolio")
async def get_customer_portfolio(
    customer_id: str,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Loan portfolio summary for a customer"""
    try:
        summary = system.reporting_engine.customer_portfolio(customer_id)
    except ValueError as e:
        raise http_error(e)

    return summary.to_dict()
