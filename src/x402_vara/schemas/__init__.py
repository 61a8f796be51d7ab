from .bases import CanonicalModel, VerificationStatus, VerificationOutcome
from .transactions import MortalEra, UnsignedTransaction
from .https import (
    X_PAYMENT_HEADER,
    X_PAYMENT_RESPONSE_HEADER,
    X_SESSION_ID_HEADER,
    Price,
    PaymentRequirement,
    Server402ResponsePayload,
    PaymentEvidence,
    FacilitatorVerifyRequest,
    FacilitatorSupportedResponse,
)
from .codec import encode_payment_header, decode_payment_header
from .versions import ProtocolVersion

__all__ = [
    "CanonicalModel",
    "VerificationStatus",
    "VerificationOutcome",
    "MortalEra",
    "UnsignedTransaction",
    "X_PAYMENT_HEADER",
    "X_PAYMENT_RESPONSE_HEADER",
    "X_SESSION_ID_HEADER",
    "Price",
    "PaymentRequirement",
    "Server402ResponsePayload",
    "PaymentEvidence",
    "FacilitatorVerifyRequest",
    "FacilitatorSupportedResponse",
    "encode_payment_header",
    "decode_payment_header",
    "ProtocolVersion",
]
