"""
Shared fixtures: an in-memory ledger implementing ChainHandle, real sr25519
keypairs, and wiring helpers for hubs and servers.

The fake ledger encodes calls as hex JSON and uses the unsigned transaction's
canonical JSON as signature payload, so signing and signature checks run
through the real Keypair code without a node.
"""

import hashlib
import json
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import Request
from substrateinterface import Keypair
from substrateinterface.utils.ss58 import ss58_decode, ss58_encode

from x402_vara.adapters import AdapterHub, ChainHandle, ConnectionPool, LocalKeypairSigner, SessionPolicy
from x402_vara.adapters.schemas import ChainHead, RuntimeInfo, DecodedTransfer, FinalizationResult
from x402_vara.adapters.substrate.chain import classify_finalized_events
from x402_vara.engine.exceptions import (
    ChainUnavailableError,
    TransactionRejectedError,
    UnsupportedAssetError,
    VerificationFailedError,
)
from x402_vara.servers import Http402Server, PaymentContext
from x402_vara.sessions import InMemorySessionStore

VARA_SS58 = 137
NETWORK = "vara-testnet"
GENESIS_HASH = "0x" + "ab" * 32


class FakeChain(ChainHandle):
    """In-memory ledger for one network."""

    def __init__(self, network: str = NETWORK, head_number: int = 1000):
        self.network = network
        self.head_number = head_number
        self.genesis_hash = GENESIS_HASH
        self.nonces = {}
        self.submissions = []
        self.unavailable = False
        self.dispatch_error = None
        self.closed = False

    def _check(self):
        if self.unavailable:
            raise ChainUnavailableError(f"{self.network} is down")

    async def head(self) -> ChainHead:
        self._check()
        return ChainHead(number=self.head_number, hash="0x" + f"{self.head_number:064x}")

    async def account_nonce(self, address: str) -> int:
        self._check()
        return self.nonces.get(self.normalize_address(address), 0)

    async def runtime(self) -> RuntimeInfo:
        self._check()
        return RuntimeInfo(spec_version=1050, transaction_version=1, genesis_hash=self.genesis_hash)

    async def encode_transfer(self, asset: str, dest: str, value: int) -> str:
        if asset != "VARA":
            raise UnsupportedAssetError(asset)
        call = {"module": "Balances", "function": "transfer_keep_alive", "dest": dest, "value": value}
        return "0x" + json.dumps(call, sort_keys=True).encode().hex()

    async def decode_transfer(self, method: str) -> DecodedTransfer:
        try:
            call = json.loads(bytes.fromhex(method[2:]))
        except ValueError as e:
            raise VerificationFailedError(f"Undecodable call: {e}") from e
        if call.get("module") != "Balances":
            raise VerificationFailedError(f"Not a balance transfer: {call.get('module')}")
        return DecodedTransfer(
            module=call["module"], function=call["function"], dest=call["dest"], value=call["value"]
        )

    async def signature_payload(self, unsigned) -> bytes:
        return unsigned.to_canonical_json().encode()

    async def submit_and_watch(self, unsigned, signature: str, signer: str) -> FinalizationResult:
        self._check()
        sender = self.normalize_address(signer)
        if unsigned.nonce != self.nonces.get(sender, 0):
            raise TransactionRejectedError("Invalid Transaction: Stale")
        if not unsigned.era.is_open(self.head_number):
            raise TransactionRejectedError("Invalid Transaction: AncientBirthBlock")

        tx_hash = "0x" + hashlib.blake2b(signature.encode(), digest_size=32).hexdigest()
        block_hash = "0x" + f"{self.head_number + 2:064x}"
        self.nonces[sender] = unsigned.nonce + 1
        self.submissions.append(unsigned)

        if self.dispatch_error is not None:
            events = [{
                "module_id": "System",
                "event_id": "ExtrinsicFailed",
                "attributes": {"dispatch_error": self.dispatch_error},
            }]
        else:
            events = [
                {"module_id": "Balances", "event_id": "Transfer", "attributes": {}},
                {"module_id": "System", "event_id": "ExtrinsicSuccess", "attributes": {}},
            ]
        return classify_finalized_events(events, tx_hash=tx_hash, block_hash=block_hash)

    def normalize_address(self, address: str) -> str:
        if address.startswith("0x"):
            return ss58_encode(address, ss58_format=VARA_SS58)
        return ss58_encode(ss58_decode(address), ss58_format=VARA_SS58)

    async def close(self) -> None:
        self.closed = True


class FakeClock:
    """Settable UTC clock."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def pool_for(chain: FakeChain) -> ConnectionPool:
    async def connect(network: str):
        return chain

    return ConnectionPool(connector=connect)


@pytest.fixture
def alice() -> Keypair:
    return Keypair.create_from_uri("//Alice", ss58_format=VARA_SS58)


@pytest.fixture
def bob() -> Keypair:
    return Keypair.create_from_uri("//Bob", ss58_format=VARA_SS58)


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def client_hub(chain, alice) -> AdapterHub:
    """Hub paying as Alice."""
    return AdapterHub(pool=pool_for(chain), signer=LocalKeypairSigner(alice))


@pytest.fixture
def server_hub(chain) -> AdapterHub:
    """Verify-only hub."""
    return AdapterHub(pool=pool_for(chain))


@pytest.fixture
def session_store(clock) -> InMemorySessionStore:
    return InMemorySessionStore(clock=clock)


@pytest.fixture
def app(server_hub, session_store, bob) -> Http402Server:
    """Server receiving payments on Bob's address with the session, one-time and echo routes."""
    server = Http402Server(
        pay_to=bob.ss58_address,
        network=NETWORK,
        adapter_hub=server_hub,
        session_store=session_store,
        facilitator_prefix="/api/facilitator",
    )
    install_routes(server)
    return server


def install_routes(server: Http402Server) -> None:
    server.add_protected_resource(
        "/api/pay/session",
        amount="1.00",
        description="24-hour access to premium content",
        session=SessionPolicy(kind="time-bounded", ttl_seconds=24 * 60 * 60),
    )
    server.add_protected_resource(
        "/api/pay/onetime",
        amount="0.10",
        description="One-time access to premium content",
        session=SessionPolicy(kind="single-use", ttl_seconds=5 * 60),
    )

    async def grant(payment: PaymentContext) -> dict:
        if payment.paid:
            session = await payment.issue_session()
        else:
            session = payment.session
        return {"success": True, "sessionId": session.id, "kind": session.kind.value, "txHash": payment.tx_hash}

    @server.get("/api/pay/session")
    @server.payment_required("/api/pay/session")
    async def buy_session(payment: PaymentContext):
        return await grant(payment)

    @server.get("/api/pay/onetime")
    @server.payment_required("/api/pay/onetime")
    async def buy_onetime(payment: PaymentContext):
        return await grant(payment)

    @server.post("/api/pay/echo")
    @server.payment_required("/api/pay/echo", amount="0.10")
    async def echo(payment: PaymentContext, request: Request):
        return {
            "body": (await request.json()),
            "header": request.headers.get("x-trace"),
            "session": payment.session.id if payment.session else None,
        }
