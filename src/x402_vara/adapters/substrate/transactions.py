"""
Unsigned transfer construction.
"""

from decimal import Decimal
from typing import Union

from ...engine.exceptions import ChainUnavailableError, UnsupportedAssetError
from ...schemas.transactions import MortalEra, UnsignedTransaction
from ..bases import ChainHandle
from .constants import DEFAULT_ERA_PERIOD, amount_to_value, get_asset_config


async def build_unsigned_transaction(
    chain: ChainHandle,
    payer: str,
    payee: str,
    amount: Union[Decimal, str, int],
    asset: str,
    era_period: int = DEFAULT_ERA_PERIOD,
    tip: int = 0,
) -> UnsignedTransaction:
    """
    Assemble an unsigned, mortal balance transfer from ``payer`` to ``payee``.

    The mortality window is anchored at the current chain head and lasts
    ``era_period`` blocks.

    Args:
        chain: Connection to the target network.
        payer: Sender SS58 address.
        payee: Recipient SS58 address.
        amount: Amount in whole asset units.
        asset: Asset symbol.
        era_period: Mortality window length in blocks (power of two).
        tip: Tip in smallest units.

    Returns:
        UnsignedTransaction ready to be signed.

    Raises:
        UnsupportedAssetError: If ``asset`` is not transferable on the network.
        ChainUnavailableError: If the head, nonce or runtime cannot be fetched.
    """
    asset_config = get_asset_config(chain.network, asset)
    if asset_config is None:
        raise UnsupportedAssetError(f"{asset} is not supported on {chain.network}")

    value = amount_to_value(amount=amount, decimals=asset_config.decimals)

    try:
        head = await chain.head()
        nonce = await chain.account_nonce(payer)
        runtime = await chain.runtime()
    except ChainUnavailableError:
        raise
    except Exception as e:
        raise ChainUnavailableError(f"Cannot read chain state of {chain.network}: {e}") from e

    method = await chain.encode_transfer(asset_config.symbol, payee, value)

    return UnsignedTransaction(
        spec_version=runtime.spec_version,
        transaction_version=runtime.transaction_version,
        address=payer,
        dest=payee,
        value=str(value),
        asset=asset_config.symbol,
        nonce=nonce,
        era=MortalEra(current=head.number, period=era_period),
        block_hash=head.hash,
        block_number=head.number,
        genesis_hash=runtime.genesis_hash,
        method=method,
        tip=tip,
    )
