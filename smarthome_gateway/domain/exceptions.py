"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidArgumentError(DomainException):
    """Operation invoked with the wrong number of arguments or an unusable identifier"""

    pass


class UnknownOperationError(DomainException):
    """Invoked function name is not part of the operation surface"""

    pass


class MalformedInputError(DomainException):
    """Argument could not be parsed (non-integer floor, unknown endorsement status)"""

    pass


class NotFoundError(DomainException):
    """Referenced home or tower does not exist on the ledger"""

    pass


class RecordDecodeError(DomainException):
    """Stored bytes are not a well-formed record"""

    pass


class VerificationRejectedError(DomainException):
    """Bank endorsement blocks the verified transition"""

    pass


class StoreError(DomainException):
    """Ledger store I/O failure"""

    pass


class StoreConflictError(StoreError):
    """A key changed between read and write (optimistic version mismatch)"""

    pass


class OperationCancelledError(DomainException):
    """Request was cancelled before its staged writes were committed"""

    pass
