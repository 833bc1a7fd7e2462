from __future__ import annotations


class PrivWealthError(Exception):
    """Base for every error a controller surfaces to the user."""
    code = "error"
    status_code = 400
    default_message = "Something went wrong."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(PrivWealthError):
    code = "validation_error"
    status_code = 422
    default_message = "Please enter a valid amount greater than 0."


class NotConnected(PrivWealthError):
    code = "not_connected"
    status_code = 401
    default_message = "Please connect your wallet first."


class OperationInProgress(PrivWealthError):
    code = "in_progress"
    status_code = 409
    default_message = "Another request for this action is still running."


class EncryptionFailure(PrivWealthError):
    code = "encryption_failed"
    status_code = 502
    default_message = "Failed to encrypt the value."


class RevealFailure(PrivWealthError):
    code = "reveal_failed"
    status_code = 502
    default_message = "Failed to decrypt the value."


class NotAuthorized(PrivWealthError):
    code = "not_authorized"
    status_code = 403
    default_message = "This account is not allowed to view that value."


class AlreadySubmitted(PrivWealthError):
    code = "already_submitted"
    status_code = 409
    default_message = "You have already submitted your wealth. Each address can only submit once."


class SignerRejected(PrivWealthError):
    code = "signer_rejected"
    status_code = 400
    default_message = "Transaction was rejected. Please try again."


class InsufficientResources(PrivWealthError):
    code = "insufficient_funds"
    status_code = 402
    default_message = "Insufficient funds to complete the transaction."


class TransactionFailed(PrivWealthError):
    code = "transaction_failed"
    status_code = 502
    default_message = "Transaction failed. Please try again."


class TransportError(PrivWealthError):
    code = "transport_error"
    status_code = 503
    default_message = "The network could not be reached."


class LedgerRejected(Exception):
    """Raw rejection reported by the ledger or the signer before confirmation."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


# Reported when a write timed out after it may already have reached the node.
UNCONFIRMED_BROADCAST = "the transaction may still have been broadcast"

# Ordered: first match wins.
_REJECTION_REASONS: list[tuple[str, type[PrivWealthError]]] = [
    ("already amount added", AlreadySubmitted),
    ("user rejected", SignerRejected),
    ("user denied", SignerRejected),
    ("insufficient funds", InsufficientResources),
]


def classify_rejection(reason: str | None) -> PrivWealthError:
    """Map a ledger rejection reason onto the user-facing taxonomy."""
    text = (reason or "").lower()
    if UNCONFIRMED_BROADCAST in text:
        return TransactionFailed("The transaction may still have been broadcast. Check the ledger before retrying.")
    for needle, exc_type in _REJECTION_REASONS:
        if needle in text:
            return exc_type()
    return TransactionFailed()
