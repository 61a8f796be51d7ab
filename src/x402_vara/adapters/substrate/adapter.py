"""
Substrate Payment Adapter

Client role: build a mortal ``Balances.transfer_keep_alive`` for a payment
requirement, sign it and wrap it as ``PaymentEvidence``.

Server role: check evidence against a requirement, submit it and wait for the
block containing it to be finalized.

Verification order:
    1. Evidence network equals the requirement network
    2. Asset matches the requirement and is supported on the network
    3. Connection to the network (pool)
    4. Signer equals the transaction sender
    5. Genesis hash equals the connected chain's genesis hash
    6. Mortality window still open at the current head
    7. Signature is valid over the chain's signature payload
    8. Decoded call is a balance transfer to ``payTo``
    9. Decoded value covers the price
    10. Submit and watch until finalized; classify the finalized events
"""

import logging
from typing import Optional

from substrateinterface import Keypair

from ...engine.exceptions import (
    ChainUnavailableError,
    SignerUnavailableError,
    TransactionRejectedError,
    VerificationFailedError,
    X402Error,
)
from ...schemas.bases import VerificationOutcome, VerificationStatus
from ...schemas.https import PaymentEvidence, PaymentRequirement
from ...schemas.transactions import UnsignedTransaction
from ..bases import AdapterFactory, ChainHandle
from .constants import (
    DEFAULT_ERA_PERIOD,
    amount_to_value,
    get_asset_config,
    get_network_config,
    value_to_amount,
)
from .pool import ConnectionPool
from .signers import Signer
from .transactions import build_unsigned_transaction

logger = logging.getLogger(__name__)


def verify_payload_signature(payload: bytes, signature: str, signer: str, ss58_format: int) -> bool:
    """
    Check an sr25519 signature over a signature payload.

    A 65-byte signature is a MultiSignature whose first byte is the crypto
    type; it is stripped before verification.
    """
    try:
        raw = bytes.fromhex(signature[2:] if signature.startswith("0x") else signature)
        if len(raw) == 65:
            raw = raw[1:]
        keypair = Keypair(ss58_address=signer, ss58_format=ss58_format)
        return bool(keypair.verify(payload, raw))
    except (ValueError, TypeError):
        return False


class SubstrateAdapter(AdapterFactory):
    """
    Payment adapter for Substrate networks.

    Attributes:
        pool: Connection pool the adapter borrows chains from.
        signer: Signer used in the client role; None for verify-only adapters.
        era_period: Mortality window length of built transactions.
    """

    def __init__(
        self,
        pool: Optional[ConnectionPool] = None,
        signer: Optional[Signer] = None,
        era_period: int = DEFAULT_ERA_PERIOD,
    ):
        self.pool = pool if pool is not None else ConnectionPool()
        self.signer = signer
        self.era_period = era_period

    # =========================================================================
    # Client role
    # =========================================================================

    async def build_transaction(self, requirement: PaymentRequirement) -> UnsignedTransaction:
        if self.signer is None:
            raise SignerUnavailableError("No signer configured")

        chain = await self.pool.acquire(requirement.network)
        return await build_unsigned_transaction(
            chain,
            payer=self.signer.address,
            payee=requirement.pay_to,
            amount=requirement.price.amount,
            asset=requirement.price.asset,
            era_period=self.era_period,
        )

    async def sign_transaction(
        self,
        requirement: PaymentRequirement,
        unsigned: UnsignedTransaction,
    ) -> PaymentEvidence:
        if self.signer is None:
            raise SignerUnavailableError("No signer configured")

        chain = await self.pool.acquire(requirement.network)
        signature = await self.signer.sign(unsigned, chain)
        logger.info(
            "Signed %s %s transfer to %s (nonce %d)",
            requirement.price.amount, requirement.price.asset, requirement.pay_to, unsigned.nonce,
        )
        return PaymentEvidence(
            unsigned_transaction=unsigned,
            signature=signature,
            signer=self.signer.address,
            network=requirement.network,
        )

    # =========================================================================
    # Server role
    # =========================================================================

    async def verify_evidence(
        self,
        evidence: PaymentEvidence,
        requirement: PaymentRequirement,
    ) -> VerificationOutcome:
        try:
            return await self._verify(evidence, requirement)
        except X402Error as e:
            logger.warning("Verification failed: %s", e)
            return VerificationOutcome.failure(VerificationStatus.UNKNOWN_ERROR, str(e), payer=evidence.signer)
        except Exception as e:
            logger.exception("Unexpected error during verification")
            return VerificationOutcome.failure(
                VerificationStatus.UNKNOWN_ERROR,
                f"Unexpected error: {e}",
                payer=evidence.signer,
            )

    async def _verify(
        self,
        evidence: PaymentEvidence,
        requirement: PaymentRequirement,
    ) -> VerificationOutcome:
        unsigned = evidence.unsigned_transaction
        payer = evidence.signer

        def fail(status: VerificationStatus, reason: str) -> VerificationOutcome:
            logger.info("Rejected evidence from %s: %s", payer, reason)
            return VerificationOutcome.failure(status, reason, payer=payer)

        if evidence.network != requirement.network:
            return fail(
                VerificationStatus.NETWORK_MISMATCH,
                f"Network mismatch: evidence targets {evidence.network}, expected {requirement.network}",
            )

        asset_config = get_asset_config(requirement.network, requirement.price.asset)
        if asset_config is None:
            return fail(
                VerificationStatus.UNSUPPORTED_ASSET,
                f"Unsupported asset {requirement.price.asset} on {requirement.network}",
            )
        if unsigned.asset.upper() != asset_config.symbol:
            return fail(
                VerificationStatus.UNSUPPORTED_ASSET,
                f"Asset mismatch: got {unsigned.asset}, expected {asset_config.symbol}",
            )

        try:
            chain = await self.pool.acquire(requirement.network)
        except ChainUnavailableError as e:
            return fail(VerificationStatus.CHAIN_UNAVAILABLE, str(e))

        try:
            return await self._verify_on_chain(chain, evidence, requirement, fail)
        except ChainUnavailableError as e:
            logger.warning("Chain unavailable while verifying: %s", e)
            return fail(VerificationStatus.CHAIN_UNAVAILABLE, str(e))

    async def _verify_on_chain(self, chain: ChainHandle, evidence, requirement, fail) -> VerificationOutcome:
        unsigned = evidence.unsigned_transaction
        ss58_format = get_network_config(requirement.network).ss58_format

        try:
            signer = chain.normalize_address(evidence.signer)
            sender = chain.normalize_address(unsigned.address)
        except ValueError:
            return fail(VerificationStatus.INVALID_SIGNATURE, "Malformed signer address")
        if signer != sender:
            return fail(VerificationStatus.INVALID_SIGNATURE, "Signer does not match transaction sender")

        runtime = await chain.runtime()
        if unsigned.genesis_hash.lower() != runtime.genesis_hash.lower():
            return fail(VerificationStatus.NETWORK_MISMATCH, "Genesis hash mismatch")

        head = await chain.head()
        if not unsigned.era.is_open(head.number):
            return fail(
                VerificationStatus.EXPIRED,
                f"Transaction expired at block {unsigned.era.expires_at} (head {head.number})",
            )

        payload = await chain.signature_payload(unsigned)
        if not verify_payload_signature(payload, evidence.signature, signer, ss58_format):
            return fail(VerificationStatus.INVALID_SIGNATURE, "Invalid signature")

        try:
            transfer = await chain.decode_transfer(unsigned.method)
        except VerificationFailedError as e:
            return fail(VerificationStatus.WRONG_RECIPIENT, e.reason)

        try:
            dest = chain.normalize_address(transfer.dest)
            pay_to = chain.normalize_address(requirement.pay_to)
        except ValueError:
            return fail(VerificationStatus.WRONG_RECIPIENT, "Malformed recipient address")
        if dest != pay_to:
            return fail(VerificationStatus.WRONG_RECIPIENT, f"Wrong recipient: {dest}")

        asset = requirement.price.asset
        decimals = get_asset_config(requirement.network, asset).decimals
        required = amount_to_value(amount=requirement.price.amount, decimals=decimals)
        if transfer.value < required:
            paid = value_to_amount(value=transfer.value, decimals=decimals)
            return fail(
                VerificationStatus.INSUFFICIENT_AMOUNT,
                f"Insufficient amount: got {paid} {asset}, required {requirement.price.amount} {asset}",
            )

        try:
            result = await chain.submit_and_watch(unsigned, evidence.signature, evidence.signer)
        except TransactionRejectedError as e:
            return fail(VerificationStatus.REJECTED, e.reason)

        if not result.success:
            return VerificationOutcome.failure(
                VerificationStatus.DISPATCH_ERROR,
                result.message or "Extrinsic failed",
                tx_hash=result.tx_hash,
                block_hash=result.block_hash,
                payer=evidence.signer,
            )

        logger.info("Payment %s finalized in %s", result.tx_hash, result.block_hash)
        return VerificationOutcome(
            success=True,
            status=VerificationStatus.SUCCESS,
            tx_hash=result.tx_hash,
            block_hash=result.block_hash,
            reason=result.message,
            payer=evidence.signer,
        )

    async def close(self) -> None:
        await self.pool.close()
