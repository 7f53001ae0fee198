"""
Error taxonomy for the loan servicing core.

Every error raised by the core derives from LendbookError. Validation and
lookup errors also subclass the matching built-in so callers that only know
about ValueError/LookupError keep working.
"""


class LendbookError(Exception):
    """Base exception for all loan servicing errors"""


class ValidationError(LendbookError, ValueError):
    """Malformed, missing or out-of-range input. Nothing was persisted."""


class InvalidReferenceError(ValidationError):
    """A referenced installment is missing or belongs to another loan"""


class NotFoundError(LendbookError, LookupError):
    """A referenced client, loan, installment or payment does not exist"""

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type.capitalize()} {entity_id} not found")


class UnsupportedUnitError(LendbookError, ValueError):
    """Unknown term unit or repayment frequency"""


class PersistenceFailure(LendbookError):
    """
    Storage I/O failed during a write. The enclosing transaction has been
    rolled back; the operation can be retried.
    """

    retryable = True
