"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InputError(DomainException):
    """Caller supplied invalid data; rejected immediately, never retried"""

    pass


class InvalidTermError(InputError):
    """Contract term is not a positive number of months"""

    pass


class InvalidPrincipalError(InputError):
    """Principal is not positive or the interest rate is negative"""

    pass


class SlipValidationError(InputError):
    """Slip image payload is malformed, oversized or not an accepted image"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ContractNotFoundError(DomainException):
    """No contract exists with the requested id"""

    pass


class ScheduleEntryNotFoundError(DomainException):
    """No schedule entry with the requested id on this contract"""

    pass


class ProviderError(DomainException):
    """External provider failed or is unavailable"""

    pass


class SlipExtractionError(ProviderError):
    """OCR provider returned an error, timed out, or sent a malformed response"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ConflictError(DomainException):
    """Concurrent write lost a compare-and-set"""

    pass


class BindConflictError(ConflictError):
    """Schedule entry changed since it was read; binding must be re-evaluated"""

    pass


class DuplicateSubmissionError(DomainException):
    """Slip transaction id is already bound on this contract"""

    pass
