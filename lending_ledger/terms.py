"""
Loan Terms Module

Simple-interest term calculation. Runs once when a loan is created; the
resulting total amount and monthly EMI are fixed for the life of the loan.
"""

from decimal import Decimal, DecimalException
from dataclasses import dataclass

from .errors import InvalidTerms
from .money import AmountLike, ZERO, to_decimal, quantize_amount


MONTHS_PER_YEAR = Decimal('12')


@dataclass(frozen=True)
class TermsQuote:
    """Derived terms for a principal/period/rate triple"""
    total_interest: Decimal
    total_amount: Decimal
    monthly_emi: Decimal  # Unrounded quotient at context precision

    @property
    def suggested_installment(self) -> Decimal:
        """Monthly EMI rounded to cents, the amount a payer is offered"""
        return quantize_amount(self.monthly_emi)


def _as_term_input(name: str, value: AmountLike) -> Decimal:
    try:
        return to_decimal(value)
    except ValueError as e:
        raise InvalidTerms(f"{name}: {e}") from e


def compute_loan_terms(
    principal: AmountLike,
    period_years: AmountLike,
    yearly_rate_percent: AmountLike
) -> TermsQuote:
    """
    Compute simple-interest loan terms.

    total_interest = principal * years * rate / 100
    total_amount   = principal + total_interest
    monthly_emi    = total_amount / (years * 12)

    Args:
        principal: Amount borrowed, must be positive
        period_years: Loan period in years, must be positive
        yearly_rate_percent: Yearly rate in percent (10 means 10%), non-negative

    Returns:
        TermsQuote with the derived amounts

    Raises:
        InvalidTerms: If any input is out of range or not a number
    """
    principal = _as_term_input("principal", principal)
    period_years = _as_term_input("period_years", period_years)
    rate = _as_term_input("yearly_rate_percent", yearly_rate_percent)

    if principal <= ZERO:
        raise InvalidTerms(f"Principal must be positive, got {principal}")
    if period_years <= ZERO:
        raise InvalidTerms(f"Loan period must be positive, got {period_years}")
    if rate < ZERO:
        raise InvalidTerms(f"Interest rate cannot be negative, got {rate}")

    try:
        total_interest = principal * period_years * (rate / Decimal('100'))
        total_amount = principal + total_interest
        monthly_emi = total_amount / (period_years * MONTHS_PER_YEAR)
    except DecimalException as e:
        raise InvalidTerms(f"Loan terms out of range: {e!r}") from e

    # Both figures are later rounded to cents for payers
    for name, amount in (("Total amount", total_amount), ("Monthly EMI", monthly_emi)):
        try:
            quantize_amount(amount)
        except ValueError as e:
            raise InvalidTerms(f"{name} {amount} is too large") from e

    return TermsQuote(
        total_interest=total_interest,
        total_amount=total_amount,
        monthly_emi=monthly_emi
    )
