"""
Payment evidence codec.

Evidence travels in the ``X-PAYMENT`` header as base64 of its canonical JSON.
Decoding re-validates the full schema in strict mode; anything that does not
validate is rejected with ``MalformedEvidenceError``.
"""

import base64
import binascii

from pydantic import ValidationError

from ..engine.exceptions import MalformedEvidenceError
from .https import PaymentEvidence


def _b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _b64decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.b64decode(data + padding, validate=True)


def encode_payment_header(evidence: PaymentEvidence) -> str:
    """
    Encode payment evidence into an ``X-PAYMENT`` header value.

    The encoding is deterministic: the same evidence always yields the same
    header string.

    Args:
        evidence: Validated payment evidence.

    Returns:
        Base64 text of the canonical JSON document.
    """
    return _b64encode(evidence.to_canonical_json().encode("utf-8"))


def decode_payment_header(header: str) -> PaymentEvidence:
    """
    Decode and validate an ``X-PAYMENT`` header value.

    Args:
        header: Base64 text produced by :func:`encode_payment_header`.

    Returns:
        PaymentEvidence: The validated evidence.

    Raises:
        MalformedEvidenceError: On empty input, invalid base64, invalid UTF-8,
            invalid JSON, or any schema/type mismatch.
    """
    if not header or not header.strip():
        raise MalformedEvidenceError("Empty payment header")

    try:
        raw = _b64decode(header.strip())
    except (binascii.Error, ValueError) as e:
        raise MalformedEvidenceError(f"Payment header is not valid base64: {e}") from e

    try:
        document = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedEvidenceError("Payment header is not UTF-8 JSON") from e

    try:
        return PaymentEvidence.model_validate_json(document, strict=True)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        raise MalformedEvidenceError(f"Invalid payment evidence: {errors}") from e
