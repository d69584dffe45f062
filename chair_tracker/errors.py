"""Error types raised by the clinic ledger."""


class ClinicError(Exception):
    """Base class for clinic ledger errors."""
    pass


class ValidationError(ClinicError):
    """Raised when patient form input fails validation.

    `errors` maps each offending field name to a user-facing message.
    """

    def __init__(self, errors: dict[str, str]):
        self.errors = errors
        fields = ", ".join(sorted(errors))
        super().__init__(f"Invalid fields: {fields}")


class NotFoundError(ClinicError):
    """Raised when an operation references an unknown patient or chair."""
    pass


class InvariantViolation(ClinicError):
    """Raised when an operation would break chair/patient consistency."""
    pass


class PersistenceError(ClinicError):
    """Raised when the key-value store cannot be read or written."""
    pass


class ImportFormatError(ClinicError):
    """Raised when an import payload is malformed."""
    pass
