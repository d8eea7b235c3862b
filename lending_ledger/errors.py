"""Exception hierarchy for the lending ledger."""


class LedgerError(ValueError):
    """Base exception for all ledger validation failures."""


class InvalidTerms(LedgerError):
    """Raised when principal, period or rate cannot produce loan terms."""


class InvalidLoanTerms(LedgerError):
    """Raised when stored loan terms are corrupt (zero EMI, negative total)."""


class InvalidPayment(LedgerError):
    """Raised when a payment amount is not strictly positive."""


class OverpaymentRejected(LedgerError):
    """Raised when a payment exceeds the loan's current balance."""


class LoanAlreadyPaidOff(LedgerError):
    """Raised when a payment is submitted against a PAID_OFF loan."""


class LoanStateError(LedgerError):
    """Raised when a status change would leave the PAID_OFF terminal state."""


class RecordNotFound(LedgerError):
    """Raised when a referenced record does not exist."""


class CustomerNotFound(RecordNotFound):
    """Raised when a customer id does not resolve."""


class LoanNotFound(RecordNotFound):
    """Raised when a loan id does not resolve."""


class DuplicateRecord(LedgerError):
    """Raised when a caller-supplied identifier is already in use."""
