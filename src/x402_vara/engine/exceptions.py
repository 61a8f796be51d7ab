"""
Exception and Error Definitions Module

Defines the exception hierarchy for the payment protocol: chain access,
signing, evidence decoding, verification, sessions and the client retry.
Every class carries a machine-readable ``code`` that servers put into 402
bodies and session responses.

Exception Hierarchy:
    X402Error (root)
    ├── ChainUnavailableError
    ├── UnsupportedAssetError
    ├── PaymentSignatureError
    │   ├── SignerUnavailableError
    │   └── UserRejectedError
    ├── MalformedEvidenceError
    ├── MalformedChallengeError
    ├── VerificationFailedError
    │   └── TransactionRejectedError
    ├── SessionError
    │   ├── SessionNotFoundError
    │   ├── SessionExpiredError
    │   └── SessionAlreadyUsedError
    ├── RetryExhaustedError
    ├── ConfigurationError
    └── InvalidTransition
"""

from typing import Any, Optional


class X402Error(Exception):
    """
    Root exception class for all project-specific exceptions.

    Attributes:
        code: Stable identifier of the failure kind (e.g. ``"ChainUnavailable"``).
        payment_flow: Client flow the error ended, when raised by ``Http402Client``.
    """
    code: str = "X402Error"
    payment_flow: Any = None


class ChainUnavailableError(X402Error):
    """
    Raised when the ledger cannot be reached or answered incompletely.

    This includes scenarios such as:
    - RPC endpoint unreachable or connection dropped
    - Chain head or account nonce could not be fetched
    - Finalization wait timed out
    """
    code = "ChainUnavailable"


class UnsupportedAssetError(X402Error):
    """
    Raised when an asset has no encodable transfer call on the target chain.
    """
    code = "UnsupportedAsset"


class PaymentSignatureError(X402Error):
    """
    Base exception for signing failures on the client side.
    """
    code = "PaymentSignatureError"


class SignerUnavailableError(PaymentSignatureError):
    """
    Raised when no signing agent is registered for the payer address,
    or the agent cannot be reached.
    """
    code = "SignerUnavailable"


class UserRejectedError(PaymentSignatureError):
    """
    Raised when a signing agent declines to sign the payload.
    """
    code = "UserRejected"


class MalformedEvidenceError(X402Error):
    """
    Raised when a payment header fails to decode or validate.

    This includes scenarios such as:
    - Invalid base64 or non UTF-8 content
    - Invalid JSON
    - Schema mismatch (missing fields, wrong types, unknown network)
    """
    code = "MalformedEvidence"


class MalformedChallengeError(X402Error):
    """
    Raised by the client when a 402 response carries no usable requirement.
    """
    code = "MalformedChallenge"


class VerificationFailedError(X402Error):
    """
    Raised when payment evidence does not satisfy a requirement.

    Attributes:
        reason: Human-readable failure reason.
    """
    code = "VerificationFailed"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class TransactionRejectedError(VerificationFailedError):
    """
    Raised when the ledger refuses a submitted extrinsic before inclusion
    (stale nonce, dead mortality window, bad signature, ...).
    """
    code = "TransactionRejected"


class SessionError(X402Error):
    """
    Base exception for session lookup and validation failures.

    Attributes:
        session_id: Identifier of the session involved.
    """
    code = "SessionError"
    reason: str = "Invalid"

    def __init__(self, session_id: str, message: Optional[str] = None):
        super().__init__(message or f"Session {session_id}: {self.reason}")
        self.session_id = session_id


class SessionNotFoundError(SessionError):
    code = "SessionNotFound"
    reason = "NotFound"


class SessionExpiredError(SessionError):
    code = "SessionExpired"
    reason = "Expired"


class SessionAlreadyUsedError(SessionError):
    code = "SessionAlreadyUsed"
    reason = "AlreadyUsed"


class RetryExhaustedError(X402Error):
    """
    Raised by the client when the paid retry was answered with another 402.

    Attributes:
        reason: The server's error message, verbatim.
        response: The final HTTP response.
    """
    code = "RetryExhausted"

    def __init__(self, reason: str, response: Any = None):
        super().__init__(reason)
        self.reason = reason
        self.response = response


class ConfigurationError(X402Error):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - Missing pay-to address
    - Unknown network identifier
    - Missing signing key material
    """
    code = "ConfigurationError"


class InvalidTransition(X402Error):
    """
    Raised when the client payment state machine is asked to move along an
    edge it does not have.

    Attributes:
        current_state: State the flow was in
        target_state: State that was requested
    """
    code = "InvalidTransition"

    def __init__(self, current_state: Any, target_state: Any):
        super().__init__(f"Invalid transition: {current_state} -> {target_state}")
        self.current_state = current_state
        self.target_state = target_state
