"""
Ledger Reconciler Module

Recomputes a loan's amortization state from its complete payment history.
The result depends only on the loan's fixed terms and the set of payment
amounts, never on payment order or any stored running total.
"""

from decimal import Decimal, ROUND_CEILING, localcontext
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Protocol, Union

from .errors import InvalidLoanTerms, InvalidPayment
from .money import AmountLike, ZERO, to_decimal


# Working precision for installment counts; wide enough for any balance/EMI ratio
RATIO_PRECISION = 60

# Overshoot above a whole installment count that is division residue, not a due EMI
EMI_RATIO_TOLERANCE = Decimal('1e-12')
RELATIVE_RATIO_TOLERANCE = Decimal('1e-25')
MAX_RATIO_TOLERANCE = Decimal('0.001')


class LoanStatus(Enum):
    """Loan lifecycle states"""
    ACTIVE = "ACTIVE"        # Balance outstanding
    PAID_OFF = "PAID_OFF"    # Terminal, balance reached zero

    @classmethod
    def for_balance(cls, balance_amount: Decimal) -> "LoanStatus":
        """Status implied by a (clamped) balance"""
        return cls.PAID_OFF if balance_amount == ZERO else cls.ACTIVE


class LoanTermsLike(Protocol):
    total_amount: Decimal
    monthly_emi: Decimal


class PaymentLike(Protocol):
    amount: Decimal


@dataclass(frozen=True)
class Reconciliation:
    """Derived loan state after folding in every recorded payment"""
    amount_paid: Decimal
    balance_amount: Decimal
    emis_left: int
    status: LoanStatus


def _payment_amount(payment: Union[PaymentLike, AmountLike]) -> Decimal:
    try:
        amount = to_decimal(getattr(payment, "amount", payment))
    except ValueError as e:
        raise InvalidPayment(str(e)) from e
    if amount <= ZERO:
        raise InvalidPayment(f"Payment amount must be positive, got {amount}")
    return amount


def remaining_installments(raw_balance: Decimal, monthly_emi: Decimal) -> int:
    """Number of EMIs needed to clear raw_balance, zero when nothing is owed"""
    if raw_balance <= ZERO:
        return 0
    with localcontext() as ctx:
        ctx.prec = RATIO_PRECISION
        ratio = raw_balance / monthly_emi
        tolerance = min(
            max(EMI_RATIO_TOLERANCE, ratio * RELATIVE_RATIO_TOLERANCE),
            MAX_RATIO_TOLERANCE
        )
        installments = (ratio - tolerance).to_integral_value(rounding=ROUND_CEILING)
    # Any positive balance needs at least one more payment
    return max(1, int(installments))


def reconcile(
    terms: LoanTermsLike,
    payments: Iterable[Union[PaymentLike, AmountLike]]
) -> Reconciliation:
    """
    Derive amount paid, balance, EMIs left and status for a loan.

    Overpayment is clamped to a zero balance rather than rejected; callers
    that must refuse overpayment do so before recording the payment.

    Args:
        terms: Object exposing total_amount and monthly_emi
        payments: The loan's complete payment set (objects with .amount,
            or bare amounts: Decimal, int, str or float)

    Returns:
        Reconciliation for the given payment set

    Raises:
        InvalidLoanTerms: If monthly_emi <= 0 or total_amount < 0
        InvalidPayment: If any payment amount <= 0
    """
    total_amount = terms.total_amount
    monthly_emi = terms.monthly_emi

    if monthly_emi <= ZERO:
        raise InvalidLoanTerms(f"Monthly EMI must be positive, got {monthly_emi}")
    if total_amount < ZERO:
        raise InvalidLoanTerms(f"Total amount cannot be negative, got {total_amount}")

    amount_paid = sum((_payment_amount(p) for p in payments), ZERO)

    raw_balance = total_amount - amount_paid
    balance_amount = max(ZERO, raw_balance)

    return Reconciliation(
        amount_paid=amount_paid,
        balance_amount=balance_amount,
        emis_left=remaining_installments(raw_balance, monthly_emi),
        status=LoanStatus.for_balance(balance_amount)
    )
