"""
Client module for x402 payments.

Provides an httpx client that pays for protected resources automatically.
"""

from .http_client import Http402Client, PAYMENT_FLOW_EXTENSION
from .flows import PaymentFlow, PaymentState

__all__ = ["Http402Client", "PAYMENT_FLOW_EXTENSION", "PaymentFlow", "PaymentState"]
