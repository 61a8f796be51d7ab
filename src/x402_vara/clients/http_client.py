"""
HTTP 402 Payment Flow Client

Provides a transparent layer over httpx that answers 402 Payment Required
responses by paying on Vara and retrying the request once with the payment
evidence in the ``X-PAYMENT`` header.
"""

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from ..adapters.adapters_hub import AdapterHub
from ..adapters.substrate.signers import Signer
from ..engine.exceptions import MalformedChallengeError, RetryExhaustedError, X402Error
from ..schemas.codec import encode_payment_header
from ..schemas.https import PaymentRequirement, Server402ResponsePayload, X_PAYMENT_HEADER
from .flows import PaymentFlow, PaymentState

logger = logging.getLogger(__name__)

#: Response extension holding the PaymentFlow of the call that produced it.
PAYMENT_FLOW_EXTENSION = "x402_payment_flow"


class Http402Client(httpx.AsyncClient):
    """
    Extended httpx.AsyncClient with automatic 402 payment handling.

    On a 402 the client:
    1. Parses the offers and takes the first one
    2. Builds an unsigned mortal transfer for it
    3. Signs it and encodes the evidence
    4. Resends a copy of the original request with ``X-PAYMENT``

    At most two requests are sent per call. A second 402 raises
    ``RetryExhaustedError`` with the server's reason.

    Each call tracks its own ``PaymentFlow``. It is stored in
    ``response.extensions[PAYMENT_FLOW_EXTENSION]`` and, when the call fails
    with an ``X402Error``, in the error's ``payment_flow``.

    Fully compatible with httpx.AsyncClient - supports all methods, properties,
    and can be used as an async context manager.

    Usage:
        ```python
        signer = LocalKeypairSigner.from_uri("//Alice")
        async with Http402Client(signer=signer) as client:
            response = await client.get("http://localhost:3001/api/pay/hello")
            print(response.headers["X-PAYMENT-RESPONSE"])
        ```
    """

    def __init__(
        self,
        signer: Optional[Signer] = None,
        adapter_hub: Optional[AdapterHub] = None,
        **kwargs
    ):
        """
        Initialize client.

        Args:
            signer: Signer paying for requests (ignored when adapter_hub is given)
            adapter_hub: Optional AdapterHub; a new one using ``signer`` otherwise
            **kwargs: All standard httpx.AsyncClient arguments (timeout, headers, etc.)
        """
        super().__init__(**kwargs)
        self._owns_hub = adapter_hub is None
        self._hub = adapter_hub if adapter_hub is not None else AdapterHub(signer=signer)

    # =========================================================================
    # Override httpx.AsyncClient.request to add 402 handling
    # =========================================================================

    async def request(
        self,
        method: str,
        url: httpx._types.URLTypes,
        **kwargs
    ) -> httpx.Response:
        """
        Execute HTTP request with automatic 402 handling.

        Overrides httpx.AsyncClient.request() to intercept 402 responses.
        All other httpx methods (get, post, etc.) automatically use this.

        Raises:
            MalformedChallengeError: The 402 carried no usable offer.
            RetryExhaustedError: The paid retry was answered with 402.
            Build and signing errors (ChainUnavailableError, SignerUnavailableError, ...).
        """
        auth = kwargs.pop("auth", httpx.USE_CLIENT_DEFAULT)
        follow_redirects = kwargs.pop("follow_redirects", httpx.USE_CLIENT_DEFAULT)
        request = self.build_request(method, url, **kwargs)
        return await self._execute_with_402_handling(request, auth=auth, follow_redirects=follow_redirects)

    # =========================================================================
    # Core 402 Handling Logic
    # =========================================================================

    async def _execute_with_402_handling(self, request: httpx.Request, **send_kwargs) -> httpx.Response:
        # One flow per call; concurrent calls never share state.
        flow = PaymentFlow()

        # The body is needed again for the retry.
        await request.aread()

        flow.transition(PaymentState.AWAITING_RESPONSE)
        response = await self._send(flow, request, **send_kwargs)
        if response.status_code != 402:
            return self._finish(flow, response)

        flow.transition(PaymentState.BUILDING_EVIDENCE)
        try:
            await response.aread()
            await response.aclose()
            requirement = self._parse_402_payload(response)
            flow.requirement = requirement
            unsigned = await self._hub.build_transaction(requirement)

            flow.transition(PaymentState.SIGNING)
            evidence = await self._hub.sign_transaction(requirement, unsigned)
            flow.evidence = evidence
            header = encode_payment_header(evidence)
        except Exception as e:
            logger.warning("Payment for %s failed before retry: %s", request.url, e)
            self._fail(flow, e)
            raise

        flow.transition(PaymentState.RETRYING)
        response = await self._send(flow, self._clone_with_payment(request, header), **send_kwargs)

        if response.status_code == 402:
            await response.aread()
            response.extensions[PAYMENT_FLOW_EXTENSION] = flow
            error = RetryExhaustedError(self._error_reason(response), response=response)
            self._fail(flow, error)
            raise error

        return self._finish(flow, response)

    async def _send(self, flow: PaymentFlow, request: httpx.Request, **send_kwargs) -> httpx.Response:
        flow.requests_sent += 1
        try:
            return await self.send(request, **send_kwargs)
        except httpx.HTTPError as e:
            self._fail(flow, e)
            raise

    @staticmethod
    def _finish(flow: PaymentFlow, response: httpx.Response) -> httpx.Response:
        flow.transition(PaymentState.DONE)
        response.extensions[PAYMENT_FLOW_EXTENSION] = flow
        return response

    @staticmethod
    def _fail(flow: PaymentFlow, error: Exception) -> None:
        flow.fail(error)
        if isinstance(error, X402Error):
            error.payment_flow = flow

    def _parse_402_payload(self, response: httpx.Response) -> PaymentRequirement:
        """
        Pick the requirement to pay from a 402 response (the first offer).

        Raises:
            MalformedChallengeError: If the body does not parse or offers nothing.
        """
        try:
            payload = Server402ResponsePayload.model_validate_json(response.content)
        except ValidationError as e:
            raise MalformedChallengeError(f"Unparseable 402 body: {e.error_count()} errors") from e
        if not payload.accepts:
            raise MalformedChallengeError(payload.error or "402 response offers no payment requirement")
        return payload.accepts[0]

    # =========================================================================
    # Utility Methods
    # =========================================================================

    @staticmethod
    def _clone_with_payment(request: httpx.Request, header: str) -> httpx.Request:
        """Copy of ``request`` (method, URL, headers, body) with ``X-PAYMENT`` set."""
        headers = request.headers.copy()
        headers[X_PAYMENT_HEADER] = header
        return httpx.Request(
            request.method,
            request.url,
            headers=headers,
            content=request.content,
            extensions=request.extensions,
        )

    @staticmethod
    def _error_reason(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return response.text

    async def aclose(self) -> None:
        await super().aclose()
        if self._owns_hub:
            await self._hub.close()

    async def __aexit__(self, exc_type=None, exc_value=None, traceback=None) -> None:
        await super().__aexit__(exc_type, exc_value, traceback)
        if self._owns_hub:
            await self._hub.close()
