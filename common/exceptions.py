"""Exception taxonomy shared by the producer and consumer pipelines."""

from typing import Optional, Sequence


class MessengerError(Exception):
    """
    Base exception class for all image-messaging errors.
    """
    pass


class ValidationError(MessengerError):
    """
    Raised when input is oversized or malformed before processing.
    """
    pass


class ServiceError(MessengerError):
    """
    Raised when the signing/encryption service fails.
    """
    pass


class UserCancelledError(ServiceError):
    """
    Raised when the wallet owner rejects an encrypt or decrypt request.
    """
    pass


class ServiceUnavailableError(ServiceError):
    """
    Raised when the signing service cannot be reached.
    """
    pass


class WrongRecipientError(ServiceError):
    """
    Raised when the ciphertext was not encrypted for the decrypting account.
    """
    pass


class BroadcastError(MessengerError):
    """
    Raised when the ledger refuses a broadcast.
    """
    pass


class BroadcastCancelledError(BroadcastError):
    """
    Raised when the wallet owner rejects the broadcast request.
    """
    pass


class InsufficientResourceBudgetError(BroadcastError):
    """
    Raised when the sender lacks resource credits for the operation(s).
    """
    pass


class RelayRejectedError(BroadcastError):
    """
    Raised when the node or relay rejects the transaction.
    """
    pass


class RetrievalError(MessengerError):
    """
    Raised when a history page cannot be fetched. Retryable.
    """
    pass


class ParseError(MessengerError):
    """
    Raised when a historical record or compact payload is malformed.
    """
    pass


class IncompleteSessionError(MessengerError):
    """
    Raised when a chunk session does not yet hold every fragment.

    Informational: a wider history scan may still supply the missing indices.
    """

    def __init__(self, session_id: str, missing: Sequence[int], total: int):
        self.session_id = session_id
        self.missing = tuple(missing)
        self.total = total
        super().__init__(
            f"Session {session_id} incomplete: missing {len(self.missing)}/{total} fragments"
        )


class IntegrityError(MessengerError):
    """
    Raised when the recomputed content hash does not match the transmitted one.
    """

    def __init__(self, message: str, expected: Optional[str] = None, actual: Optional[str] = None):
        self.expected = expected
        self.actual = actual
        super().__init__(message)
