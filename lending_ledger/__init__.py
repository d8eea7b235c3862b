"""
Lending Ledger

Customer loans under simple-interest terms, with every payment reconciled
against the loan's full payment history. All monetary math uses Decimal.
"""

__version__ = "1.0.0"
