import logging

from x402_vara.adapters import SessionPolicy
from x402_vara.engine.events import AuthorizationSuccessEvent, VerifyFailedEvent
from x402_vara.servers import Http402Server, PaymentContext, ServerConfig
from x402_vara.sessions import SessionKind

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("server_example")

# ADDRESS, NETWORK, PORT and FACILITATOR_URL come from the environment / .env
config = ServerConfig.from_env()

# Facilitator endpoints are served at /api/facilitator/supported and /api/facilitator/verify
app = Http402Server.from_config(
    config,
    title="x402 Vara Payment Template",
    facilitator_prefix="/api/facilitator",
)

app.add_protected_resource(
    "/api/pay/session",
    amount="1.00",
    description="24-hour access to premium content",
    session=SessionPolicy(kind=SessionKind.TIME_BOUNDED, ttl_seconds=24 * 60 * 60),
)
app.add_protected_resource(
    "/api/pay/onetime",
    amount="0.10",
    description="One-time access to premium content",
    session=SessionPolicy(kind=SessionKind.SINGLE_USE, ttl_seconds=5 * 60),
)


@app.hook(AuthorizationSuccessEvent)
async def on_authorized(event, deps):
    logger.info("Access granted to %s", event.payer or event.session.id)


@app.hook(VerifyFailedEvent)
async def on_failed(event, deps):
    logger.warning("Payment rejected: %s", event.error_message)


@app.get("/api/pay/session")
@app.payment_required("/api/pay/session")
async def buy_session(payment: PaymentContext):
    if not payment.paid:
        # Presented through X-SESSION-ID
        return {"success": True, "sessionId": payment.session.id, "session": payment.session.to_dict()}
    session = await payment.issue_session()
    return {
        "success": True,
        "sessionId": session.id,
        "txHash": payment.tx_hash,
        "message": "24-hour access granted!",
        "session": session.view().to_dict(),
    }


@app.get("/api/pay/onetime")
@app.payment_required("/api/pay/onetime")
async def buy_onetime(payment: PaymentContext):
    if not payment.paid:
        return {"success": True, "sessionId": payment.session.id, "access": payment.session.to_dict()}
    session = await payment.issue_session()
    return {
        "success": True,
        "sessionId": session.id,
        "txHash": payment.tx_hash,
        "message": "One-time access granted!",
        "access": session.view().to_dict(),
    }


@app.get("/api/pay/hello")
@app.payment_required(
    "/api/pay/hello",
    amount="0.10",
    description="Example paid access to a GET endpoint",
)
async def hello(payment: PaymentContext):
    return {"hello": "world", "txHash": payment.tx_hash}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.port)
