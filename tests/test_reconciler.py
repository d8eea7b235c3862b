"""
Test suite for the ledger reconciler

Covers the derivation of amount paid, balance, EMIs left and status from a
loan's payment set, plus order-independence, idempotence and monotonicity.
"""

import random
import pytest
from decimal import Decimal
from types import SimpleNamespace
from hypothesis import given, settings
from hypothesis import strategies as st

from lending_ledger.errors import InvalidLoanTerms, InvalidPayment
from lending_ledger.reconciler import (
    LoanStatus, Reconciliation, reconcile, remaining_installments
)
from lending_ledger.terms import compute_loan_terms


def payments_of(*amounts):
    """Payment-like objects for the given amounts"""
    return [SimpleNamespace(amount=Decimal(str(a))) for a in amounts]


class TestReferenceScenarios:
    """Reference loan: 500000 over 3 years at 10%"""

    def setup_method(self):
        self.terms = compute_loan_terms("500000", "3", "10")

    def test_no_payments(self):
        """A fresh loan owes everything over all 36 installments"""
        result = reconcile(self.terms, [])

        assert result.amount_paid == Decimal('0')
        assert result.balance_amount == Decimal('650000')
        assert result.emis_left == 36
        assert result.status == LoanStatus.ACTIVE

    def test_partial_repayment(self):
        """Three payments leave 32 EMIs outstanding"""
        result = reconcile(self.terms, payments_of('18055.56', '18055.56', '36111.12'))

        assert result.amount_paid == Decimal('72222.24')
        assert result.balance_amount == Decimal('577777.76')
        assert result.emis_left == 32
        assert result.status == LoanStatus.ACTIVE

    def test_exact_payoff(self):
        """Payments summing to the total amount pay the loan off"""
        result = reconcile(self.terms, payments_of('600000', '49999.99', '0.01'))

        assert result.amount_paid == Decimal('650000')
        assert result.balance_amount == Decimal('0')
        assert result.emis_left == 0
        assert result.status == LoanStatus.PAID_OFF

    def test_overpayment_is_clamped(self):
        """Overpayment never drives the balance negative"""
        result = reconcile(self.terms, payments_of('700000'))

        assert result.amount_paid == Decimal('700000')
        assert result.balance_amount == Decimal('0')
        assert result.emis_left == 0
        assert result.status == LoanStatus.PAID_OFF

    def test_bare_decimal_amounts(self):
        """Payments may be given as bare Decimal amounts"""
        result = reconcile(self.terms, [Decimal('18055.56'), Decimal('18055.56')])

        assert result.amount_paid == Decimal('36111.12')
        assert result.emis_left == 34

    def test_bare_int_str_and_float_amounts(self):
        """Bare amounts of any numeric type count like Decimals"""
        result = reconcile(self.terms, [100, "50.25", 0.1])

        assert result.amount_paid == Decimal('150.35')
        assert result.balance_amount == Decimal('649849.65')

    def test_float_amount_attribute(self):
        """A float .amount is read through its repr, not binary expansion"""
        result = reconcile(self.terms, [SimpleNamespace(amount=0.1), SimpleNamespace(amount=0.2)])

        assert result.amount_paid == Decimal('0.3')

    def test_generator_input(self):
        """Any iterable of payments is accepted"""
        result = reconcile(self.terms, (p for p in payments_of('100', '200')))

        assert result.amount_paid == Decimal('300')


class TestRemainingInstallments:
    """Test the EMI ceiling"""

    def test_exact_multiple(self):
        assert remaining_installments(Decimal('900'), Decimal('100')) == 9

    def test_partial_installment_rounds_up(self):
        assert remaining_installments(Decimal('950'), Decimal('100')) == 10

    def test_tiny_remainder_rounds_up(self):
        assert remaining_installments(Decimal('0.01'), Decimal('100')) == 1

    def test_nothing_owed(self):
        assert remaining_installments(Decimal('0'), Decimal('100')) == 0
        assert remaining_installments(Decimal('-50'), Decimal('100')) == 0

    def test_very_large_ratio(self):
        """Counts beyond the 28-digit context still come out exact"""
        assert remaining_installments(Decimal('1e18'), Decimal('1')) == 10 ** 18
        assert remaining_installments(Decimal('1e30'), Decimal('100')) == 10 ** 28
        assert remaining_installments(Decimal('1' + '0' * 25 + '.5'), Decimal('1')) == 10 ** 25 + 1

    def test_reconcile_huge_total_against_small_emi(self):
        terms = SimpleNamespace(total_amount=Decimal('1e18'), monthly_emi=Decimal('1'))

        result = reconcile(terms, payments_of('0.5'))

        assert result.emis_left == 10 ** 18
        assert result.status == LoanStatus.ACTIVE

    def test_sub_cent_balance_still_owes_one_installment(self):
        assert remaining_installments(Decimal('0.005'), Decimal('64.35')) == 1
        assert remaining_installments(Decimal('1e-15'), Decimal('1000000')) == 1

    def test_long_period_loan(self):
        """A 10^15 year loan still counts every remaining month"""
        terms = compute_loan_terms("1000", "1e15", "10")

        assert reconcile(terms, []).emis_left == 12 * 10 ** 15

    def test_repeating_emi_division_residue(self):
        """100 over 12 months is 12 EMIs even though 100/12 does not terminate"""
        terms = compute_loan_terms("100", "1", "0")

        assert reconcile(terms, []).emis_left == 12


class TestReconcilerValidation:
    """Test defensive re-validation of inputs"""

    def test_zero_emi(self):
        terms = SimpleNamespace(total_amount=Decimal('1000'), monthly_emi=Decimal('0'))

        with pytest.raises(InvalidLoanTerms, match="EMI must be positive"):
            reconcile(terms, [])

    def test_negative_emi(self):
        terms = SimpleNamespace(total_amount=Decimal('1000'), monthly_emi=Decimal('-10'))

        with pytest.raises(InvalidLoanTerms):
            reconcile(terms, [])

    def test_negative_total(self):
        terms = SimpleNamespace(total_amount=Decimal('-1'), monthly_emi=Decimal('10'))

        with pytest.raises(InvalidLoanTerms, match="cannot be negative"):
            reconcile(terms, [])

    def test_zero_payment(self):
        terms = compute_loan_terms("1200", "1", "0")

        with pytest.raises(InvalidPayment):
            reconcile(terms, payments_of('100', '0'))

    @pytest.mark.parametrize("bad_amount", ["abc", None, float("nan"), True])
    def test_unreadable_bare_amount(self, bad_amount):
        terms = compute_loan_terms("1200", "1", "0")

        with pytest.raises(InvalidPayment):
            reconcile(terms, [Decimal('100'), bad_amount])

    def test_negative_payment(self):
        terms = compute_loan_terms("1200", "1", "0")

        with pytest.raises(InvalidPayment, match="must be positive"):
            reconcile(terms, payments_of('-100'))


class TestLoanStatus:
    """Test status derivation from balance"""

    def test_zero_balance_is_paid_off(self):
        assert LoanStatus.for_balance(Decimal('0')) == LoanStatus.PAID_OFF
        assert LoanStatus.for_balance(Decimal('0.00')) == LoanStatus.PAID_OFF

    def test_positive_balance_is_active(self):
        assert LoanStatus.for_balance(Decimal('0.01')) == LoanStatus.ACTIVE

    def test_status_values(self):
        assert LoanStatus.ACTIVE.value == "ACTIVE"
        assert LoanStatus.PAID_OFF.value == "PAID_OFF"


amounts = st.decimals(
    min_value=Decimal('0.01'), max_value=Decimal('250000'),
    places=2, allow_nan=False, allow_infinity=False
)
payment_lists = st.lists(amounts, max_size=25)
loan_terms = st.builds(
    compute_loan_terms,
    st.decimals(min_value=Decimal('1000'), max_value=Decimal('5000000'), places=2,
                allow_nan=False, allow_infinity=False),
    st.integers(min_value=1, max_value=30),
    st.decimals(min_value=Decimal('0'), max_value=Decimal('25'), places=2,
                allow_nan=False, allow_infinity=False)
)


class TestReconcilerProperties:
    """Properties that must hold for every payment set"""

    @settings(max_examples=150, deadline=None)
    @given(terms=loan_terms, payments=payment_lists, seed=st.integers())
    def test_order_independent(self, terms, payments, seed):
        shuffled = list(payments)
        random.Random(seed).shuffle(shuffled)

        original = reconcile(terms, payments)

        assert original.amount_paid == sum(payments, Decimal('0'))
        assert reconcile(terms, shuffled) == original
        assert reconcile(terms, list(reversed(payments))) == original

    @settings(max_examples=100, deadline=None)
    @given(terms=loan_terms, payments=payment_lists)
    def test_idempotent(self, terms, payments):
        first = reconcile(terms, payments)
        second = reconcile(terms, payments)

        assert isinstance(first, Reconciliation)
        assert first == second

    @settings(max_examples=150, deadline=None)
    @given(terms=loan_terms, payments=payment_lists, extra=st.lists(amounts, min_size=1, max_size=5))
    def test_monotonic(self, terms, payments, extra):
        before = reconcile(terms, payments)
        after = reconcile(terms, payments + extra)

        assert after.amount_paid > before.amount_paid
        assert after.balance_amount <= before.balance_amount
        assert after.emis_left <= before.emis_left
        if before.status == LoanStatus.PAID_OFF:
            assert after.status == LoanStatus.PAID_OFF

    @settings(max_examples=150, deadline=None)
    @given(terms=loan_terms, payments=payment_lists)
    def test_balance_never_negative_and_status_agrees(self, terms, payments):
        result = reconcile(terms, payments)

        assert result.balance_amount >= Decimal('0')
        assert result.emis_left >= 0
        assert (result.status == LoanStatus.PAID_OFF) == (result.balance_amount == Decimal('0'))
        assert (result.emis_left == 0) == (result.balance_amount == Decimal('0'))

    @settings(max_examples=100, deadline=None)
    @given(terms=loan_terms, data=st.data())
    def test_exact_payoff_boundary(self, terms, data):
        first = data.draw(st.decimals(
            min_value=Decimal('0.01'), max_value=terms.total_amount - Decimal('0.01'),
            places=2, allow_nan=False, allow_infinity=False
        ))
        result = reconcile(terms, [first, terms.total_amount - first])

        assert result.balance_amount == Decimal('0')
        assert result.emis_left == 0
        assert result.status == LoanStatus.PAID_OFF
