"""
Reporting Module

Read-only views over the ledger: a customer's loan portfolio and a single
loan's statement with its payment history.
"""

from decimal import Decimal
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .money import ZERO, percentage
from .customers import CustomerManager
from .loans import Loan, LoanManager, Payment, PaymentType
from .reconciler import LoanStatus


@dataclass
class PortfolioSummary:
    """Totals across every loan held by one customer"""
    customer_id: str
    total_loans: int = 0
    active_loans: int = 0
    paid_off_loans: int = 0
    total_principal: Decimal = ZERO
    total_amount: Decimal = ZERO
    total_paid: Decimal = ZERO
    total_balance: Decimal = ZERO
    loans: List[Loan] = field(default_factory=list)

    @property
    def total_interest(self) -> Decimal:
        return self.total_amount - self.total_principal

    @property
    def payment_progress(self) -> Decimal:
        """Percent of the total repayable amount paid so far"""
        return percentage(self.total_paid, self.total_amount)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'customer_id': self.customer_id,
            'total_loans': self.total_loans,
            'active_loans': self.active_loans,
            'paid_off_loans': self.paid_off_loans,
            'total_principal': str(self.total_principal),
            'total_interest': str(self.total_interest),
            'total_amount': str(self.total_amount),
            'total_paid': str(self.total_paid),
            'total_balance': str(self.total_balance),
            'payment_progress': str(self.payment_progress)
        }


@dataclass
class LoanStatement:
    """A loan together with its payment history, newest payment first"""
    loan: Loan
    payments: List[Payment]

    @property
    def payment_progress(self) -> Decimal:
        return percentage(self.loan.amount_paid, self.loan.total_amount)

    @property
    def emi_payments(self) -> int:
        return sum(1 for p in self.payments if p.payment_type == PaymentType.EMI)

    @property
    def lump_sum_payments(self) -> int:
        return len(self.payments) - self.emi_payments


class ReportingEngine:
    """
    Builds portfolio and statement views from the loan and customer managers
    """

    def __init__(self, loan_manager: LoanManager, customer_manager: CustomerManager):
        self.loan_manager = loan_manager
        self.customer_manager = customer_manager

    def customer_portfolio(self, customer_id: str) -> PortfolioSummary:
        """
        Summarize every loan held by a customer

        Raises:
            CustomerNotFound: If the customer does not exist
        """
        self.customer_manager.require_customer(customer_id)

        summary = PortfolioSummary(customer_id=customer_id)
        for loan in self.loan_manager.list_loans(customer_id=customer_id):
            summary.loans.append(loan)
            summary.total_loans += 1
            if loan.status == LoanStatus.ACTIVE:
                summary.active_loans += 1
            else:
                summary.paid_off_loans += 1
            summary.total_principal += loan.principal_amount
            summary.total_amount += loan.total_amount
            summary.total_paid += loan.amount_paid
            summary.total_balance += loan.balance_amount

        return summary

    def loan_statement(self, loan_id: str) -> LoanStatement:
        """
        Loan details plus full payment history

        Raises:
            LoanNotFound: If the loan does not exist
        """
        loan = self.loan_manager.require_loan(loan_id)
        return LoanStatement(loan=loan, payments=self.loan_manager.get_payments(loan_id))
