import asyncio
import logging
import sys

import httpx

from x402_vara.adapters import LocalKeypairSigner
from x402_vara.clients import Http402Client
from x402_vara.engine.exceptions import RetryExhaustedError
from x402_vara.schemas import X_SESSION_ID_HEADER

logging.basicConfig(level=logging.INFO)

BASE_URL = "http://localhost:3001"


async def main():
    # VARA_MNEMONIC holds the payer's mnemonic or secret URI (e.g. //Alice on a dev node)
    signer = LocalKeypairSigner.from_env("vara-testnet")

    async with Http402Client(
        signer=signer,
        base_url=BASE_URL,
        timeout=httpx.Timeout(30.0, read=180.0),
    ) as client:
        paid = await client.get("/api/pay/session")
        body = paid.json()
        print("Paid:", body, "tx:", paid.headers.get("X-PAYMENT-RESPONSE"))

        # Later requests present the session instead of paying again
        again = await client.get("/api/pay/session", headers={X_SESSION_ID_HEADER: body["sessionId"]})
        print("Session reuse:", again.status_code, again.json())

        active = await client.get("/api/sessions")
        print("Active sessions:", active.json())


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except RetryExhaustedError as e:
        print("Payment rejected:", e.reason)
        sys.exit(1)
