"""
Substrate Chain Handle

``ChainHandle`` implementation backed by ``substrate-interface``.

``SubstrateInterface`` is a blocking websocket client, so every call runs in a
worker thread via ``asyncio.to_thread``. The shared read connection is guarded
by a lock; extrinsic submissions borrow a separate watcher connection so a
long finalization wait never holds the read connection.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from scalecodec.base import ScaleBytes
from scalecodec.exceptions import RemainingScaleBytesNotEmptyException
from substrateinterface import SubstrateInterface, Keypair
from substrateinterface.exceptions import SubstrateRequestException
from substrateinterface.utils.ss58 import ss58_decode, ss58_encode
from websocket import WebSocketException

from ...engine.exceptions import (
    ChainUnavailableError,
    ConfigurationError,
    TransactionRejectedError,
    UnsupportedAssetError,
    VerificationFailedError,
)
from ...schemas.transactions import UnsignedTransaction
from ..bases import ChainHandle
from ..schemas import ChainHead, RuntimeInfo, DecodedTransfer, FinalizationResult
from .constants import (
    ACCEPTED_TRANSFER_FUNCTIONS,
    TRANSFER_FUNCTION,
    TRANSFER_MODULE,
    get_asset_config,
    get_network_config,
    get_rpc_url,
)

logger = logging.getLogger(__name__)

#: Seconds to wait for an extrinsic to reach a finalized block.
DEFAULT_FINALIZATION_TIMEOUT: float = 120.0

_CONNECTION_ERRORS = (ConnectionError, OSError, WebSocketException)


def classify_finalized_events(
    events: Iterable[Dict[str, Any]],
    tx_hash: Optional[str] = None,
    block_hash: Optional[str] = None,
) -> FinalizationResult:
    """
    Classify the events emitted by an extrinsic in its finalized block.

    ``System.ExtrinsicSuccess`` means the transfer was applied.
    ``System.ExtrinsicFailed`` carries a dispatch error; module errors are
    reported with their pallet index and error code.

    Args:
        events: Event dicts with ``module_id``, ``event_id`` and ``attributes``
            (optionally nested under ``event`` as in raw event records).

    Returns:
        FinalizationResult; unsuccessful when no terminal system event is found.
    """
    for record in events:
        event = record.get("event", record)
        if event.get("module_id") != "System":
            continue

        if event.get("event_id") == "ExtrinsicSuccess":
            return FinalizationResult(
                success=True,
                tx_hash=tx_hash,
                block_hash=block_hash,
                message="Extrinsic finalized",
            )

        if event.get("event_id") == "ExtrinsicFailed":
            return FinalizationResult(
                success=False,
                tx_hash=tx_hash,
                block_hash=block_hash,
                message=_describe_dispatch_error(event.get("attributes")),
            )

    return FinalizationResult(
        success=False,
        tx_hash=tx_hash,
        block_hash=block_hash,
        message="No ExtrinsicSuccess or ExtrinsicFailed event found",
    )


def _describe_dispatch_error(attributes: Any) -> str:
    # Newer runtimes name the field; older ones emit a positional list.
    if isinstance(attributes, dict):
        dispatch_error = attributes.get("dispatch_error", attributes)
    elif isinstance(attributes, (list, tuple)) and attributes:
        dispatch_error = attributes[0]
    else:
        return "Dispatch error: unknown"

    if isinstance(dispatch_error, dict) and "Module" in dispatch_error:
        module = dispatch_error["Module"]
        if isinstance(module, dict):
            return f"Module error: index {module.get('index')}, error {module.get('error')}"
        return f"Module error: {module}"

    return f"Dispatch error: {dispatch_error}"


def _call_args(value: Dict[str, Any]) -> Dict[str, Any]:
    args = value.get("call_args", {})
    if isinstance(args, list):
        return {arg["name"]: arg["value"] for arg in args}
    return dict(args)


class SubstrateChain(ChainHandle):
    """
    Connection to one Substrate network.

    Attributes:
        network: Network identifier (e.g. ``"vara-testnet"``).
        url: WebSocket RPC endpoint.
        ss58_format: Address prefix of the network.
        finalization_timeout: Seconds ``submit_and_watch`` waits for finality.
    """

    def __init__(
        self,
        network: str,
        substrate: SubstrateInterface,
        url: str,
        ss58_format: int,
        finalization_timeout: float = DEFAULT_FINALIZATION_TIMEOUT,
    ):
        self.network = network
        self.url = url
        self.ss58_format = ss58_format
        self.finalization_timeout = finalization_timeout
        self._substrate = substrate
        self._lock = asyncio.Lock()
        self._watchers: List[SubstrateInterface] = []
        self._closed = False

    @classmethod
    async def connect(
        cls,
        network: str,
        finalization_timeout: float = DEFAULT_FINALIZATION_TIMEOUT,
    ) -> "SubstrateChain":
        """
        Open the read connection of a supported network.

        Raises:
            ConfigurationError: If the network is unknown.
            ChainUnavailableError: If the endpoint cannot be reached.
        """
        config = get_network_config(network)
        url = get_rpc_url(network)
        if config is None or url is None:
            raise ConfigurationError(f"Unsupported network: {network}")

        substrate = await cls._open(url, config.ss58_format)
        logger.info("Connected to %s at %s", network, url)
        return cls(network, substrate, url, config.ss58_format, finalization_timeout)

    @staticmethod
    async def _open(url: str, ss58_format: int) -> SubstrateInterface:
        try:
            return await asyncio.to_thread(SubstrateInterface, url=url, ss58_format=ss58_format)
        except _CONNECTION_ERRORS as e:
            raise ChainUnavailableError(f"Cannot connect to {url}: {e}") from e

    async def _run(self, func, *args, **kwargs):
        """Run a blocking call on the read connection."""
        if self._closed:
            raise ChainUnavailableError(f"Connection to {self.network} is closed")
        async with self._lock:
            try:
                return await asyncio.to_thread(func, *args, **kwargs)
            except _CONNECTION_ERRORS as e:
                raise ChainUnavailableError(f"{self.network}: {e}") from e
            except SubstrateRequestException as e:
                raise ChainUnavailableError(f"{self.network} RPC error: {e}") from e

    # =========================================================================
    # Queries
    # =========================================================================

    async def head(self) -> ChainHead:
        def _head():
            block_hash = self._substrate.get_chain_head()
            return ChainHead(number=self._substrate.get_block_number(block_hash), hash=block_hash)

        return await self._run(_head)

    async def account_nonce(self, address: str) -> int:
        return await self._run(self._substrate.get_account_nonce, address)

    async def runtime(self) -> RuntimeInfo:
        def _runtime():
            self._substrate.init_runtime()
            return RuntimeInfo(
                spec_version=self._substrate.runtime_version,
                transaction_version=self._substrate.transaction_version,
                genesis_hash=self._substrate.get_block_hash(0),
            )

        return await self._run(_runtime)

    # =========================================================================
    # Call encoding
    # =========================================================================

    async def encode_transfer(self, asset: str, dest: str, value: int) -> str:
        if get_asset_config(self.network, asset) is None:
            raise UnsupportedAssetError(f"{asset} has no transfer call on {self.network}")

        def _encode():
            call = self._substrate.compose_call(
                call_module=TRANSFER_MODULE,
                call_function=TRANSFER_FUNCTION,
                call_params={"dest": dest, "value": value},
            )
            return call.data.to_hex()

        return await self._run(_encode)

    def _decode_call(self, substrate: SubstrateInterface, method: str):
        call = substrate.create_scale_object("Call", data=ScaleBytes(method))
        call.decode()
        return call

    async def decode_transfer(self, method: str) -> DecodedTransfer:
        def _decode():
            try:
                return self._decode_call(self._substrate, method).value
            except (ValueError, NotImplementedError, RemainingScaleBytesNotEmptyException) as e:
                raise VerificationFailedError(f"Undecodable call: {e}") from e

        value = await self._run(_decode)
        module = value.get("call_module")
        function = value.get("call_function")
        if module != TRANSFER_MODULE or function not in ACCEPTED_TRANSFER_FUNCTIONS:
            raise VerificationFailedError(f"Not a balance transfer: {module}.{function}")

        args = _call_args(value)
        dest = args.get("dest")
        if isinstance(dest, dict):
            dest = dest.get("Id") or next(iter(dest.values()), None)
        if not dest:
            raise VerificationFailedError("Transfer has no destination")

        return DecodedTransfer(module=module, function=function, dest=str(dest), value=int(args.get("value", 0)))

    async def signature_payload(self, unsigned: UnsignedTransaction) -> bytes:
        def _payload():
            call = self._decode_call(self._substrate, unsigned.method)
            payload = self._substrate.generate_signature_payload(
                call=call,
                era=unsigned.era.to_scale_era(),
                nonce=unsigned.nonce,
                tip=unsigned.tip,
            )
            return bytes(payload.data)

        return await self._run(_payload)

    # =========================================================================
    # Submission
    # =========================================================================

    async def _borrow_watcher(self) -> SubstrateInterface:
        if self._watchers:
            return self._watchers.pop()
        return await self._open(self.url, self.ss58_format)

    def _submit_blocking(
        self,
        substrate: SubstrateInterface,
        unsigned: UnsignedTransaction,
        signature: str,
        signer: str,
    ) -> FinalizationResult:
        call = self._decode_call(substrate, unsigned.method)
        keypair = Keypair(ss58_address=signer, ss58_format=self.ss58_format)
        # A 65-byte signature carries its MultiSignature type prefix; substrate-interface strips it.
        extrinsic = substrate.create_signed_extrinsic(
            call=call,
            keypair=keypair,
            era=unsigned.era.to_scale_era(),
            nonce=unsigned.nonce,
            tip=unsigned.tip,
            signature=signature,
        )
        receipt = substrate.submit_extrinsic(extrinsic, wait_for_finalization=True)
        events = [record.value for record in receipt.triggered_events]
        return classify_finalized_events(events, tx_hash=receipt.extrinsic_hash, block_hash=receipt.block_hash)

    async def submit_and_watch(
        self,
        unsigned: UnsignedTransaction,
        signature: str,
        signer: str,
    ) -> FinalizationResult:
        if self._closed:
            raise ChainUnavailableError(f"Connection to {self.network} is closed")

        watcher = await self._borrow_watcher()
        # Only a connection that answered cleanly goes back to the pool.
        reusable = False
        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(self._submit_blocking, watcher, unsigned, signature, signer),
                timeout=self.finalization_timeout,
            )
            reusable = True
            return result
        except asyncio.TimeoutError as e:
            raise ChainUnavailableError(
                f"Finalization not observed within {self.finalization_timeout}s"
            ) from e
        except SubstrateRequestException as e:
            reusable = True
            raise TransactionRejectedError(f"Extrinsic rejected: {e}") from e
        except _CONNECTION_ERRORS as e:
            raise ChainUnavailableError(f"{self.network}: {e}") from e
        finally:
            if reusable and not self._closed:
                self._watchers.append(watcher)
            else:
                await asyncio.to_thread(watcher.close)

    # =========================================================================
    # Addresses and lifecycle
    # =========================================================================

    def normalize_address(self, address: str) -> str:
        if address.startswith("0x"):
            return ss58_encode(address, ss58_format=self.ss58_format)
        return ss58_encode(ss58_decode(address), ss58_format=self.ss58_format)

    async def close(self) -> None:
        self._closed = True
        watchers, self._watchers = self._watchers, []
        for substrate in [self._substrate, *watchers]:
            await asyncio.to_thread(substrate.close)
        logger.info("Closed connections to %s", self.network)
