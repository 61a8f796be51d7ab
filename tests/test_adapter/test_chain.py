"""
Tests for the connection pool, finalized-event classification and the
substrate-interface backed chain handle (with a mocked SubstrateInterface).
"""

import asyncio
import time
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from scalecodec.exceptions import RemainingScaleBytesNotEmptyException
from substrateinterface.exceptions import SubstrateRequestException

from conftest import FakeChain
from x402_vara.adapters import ConnectionPool, SubstrateChain
from x402_vara.adapters.substrate.chain import classify_finalized_events
from x402_vara.engine.exceptions import (
    ChainUnavailableError,
    ConfigurationError,
    TransactionRejectedError,
    VerificationFailedError,
)
from x402_vara.schemas.transactions import MortalEra, UnsignedTransaction


# ========================================================================
# Event classification
# ========================================================================

def test_extrinsic_success():
    result = classify_finalized_events(
        [
            {"event": {"module_id": "Balances", "event_id": "Transfer", "attributes": {}}},
            {"event": {"module_id": "System", "event_id": "ExtrinsicSuccess", "attributes": {}}},
        ],
        tx_hash="0x01",
        block_hash="0x02",
    )
    assert result.success
    assert (result.tx_hash, result.block_hash) == ("0x01", "0x02")


def test_module_error():
    result = classify_finalized_events([
        {"module_id": "System", "event_id": "ExtrinsicFailed",
         "attributes": {"dispatch_error": {"Module": {"index": 4, "error": "0x02000000"}}}},
    ])
    assert not result.success
    assert result.message == "Module error: index 4, error 0x02000000"


def test_positional_dispatch_error():
    result = classify_finalized_events([
        {"module_id": "System", "event_id": "ExtrinsicFailed", "attributes": ["BadOrigin"]},
    ])
    assert result.message == "Dispatch error: BadOrigin"


def test_no_terminal_event():
    result = classify_finalized_events([{"module_id": "Balances", "event_id": "Transfer", "attributes": {}}])
    assert not result.success
    assert result.message == "No ExtrinsicSuccess or ExtrinsicFailed event found"


# ========================================================================
# Connection pool
# ========================================================================

@pytest.mark.asyncio
async def test_concurrent_acquire_connects_once():
    calls = []

    async def connect(network):
        calls.append(network)
        await asyncio.sleep(0.01)
        return FakeChain(network)

    pool = ConnectionPool(connector=connect)
    chains = await asyncio.gather(*(pool.acquire("vara-testnet") for _ in range(10)))

    assert calls == ["vara-testnet"]
    assert all(chain is chains[0] for chain in chains)


@pytest.mark.asyncio
async def test_networks_get_separate_connections():
    pool = ConnectionPool(connector=lambda network: asyncio.sleep(0, result=FakeChain(network)))

    testnet = await pool.acquire("vara-testnet")
    mainnet = await pool.acquire("vara")

    assert testnet is not mainnet
    assert mainnet.network == "vara"


@pytest.mark.asyncio
async def test_failed_connect_is_not_cached():
    attempts = []

    async def connect(network):
        attempts.append(network)
        if len(attempts) == 1:
            raise ChainUnavailableError("refused")
        return FakeChain(network)

    pool = ConnectionPool(connector=connect)
    with pytest.raises(ChainUnavailableError):
        await pool.acquire("vara-testnet")
    assert (await pool.acquire("vara-testnet")).network == "vara-testnet"


@pytest.mark.asyncio
async def test_closed_pool_refuses_acquire():
    chain = FakeChain()
    pool = ConnectionPool(connector=lambda network: asyncio.sleep(0, result=chain))
    await pool.acquire("vara-testnet")

    await pool.close()

    assert chain.closed
    with pytest.raises(ChainUnavailableError):
        await pool.acquire("vara-testnet")


@pytest.mark.asyncio
async def test_pool_closed_while_connecting():
    chain = FakeChain()
    connecting = asyncio.Event()

    async def connect(network):
        connecting.set()
        await asyncio.sleep(0.05)
        return chain

    pool = ConnectionPool(connector=connect)
    acquire = asyncio.create_task(pool.acquire("vara-testnet"))
    await connecting.wait()
    await pool.close()

    with pytest.raises(ChainUnavailableError, match="closed"):
        await acquire
    assert chain.closed
    assert pool._connections == {}


# ========================================================================
# SubstrateChain
# ========================================================================

def make_unsigned() -> UnsignedTransaction:
    return UnsignedTransaction(
        spec_version=1050,
        transaction_version=1,
        address="kGpayer",
        dest="kGpayee",
        value="1",
        asset="VARA",
        nonce=0,
        era=MortalEra(current=10, period=64),
        block_hash="0x00",
        block_number=10,
        genesis_hash="0x00",
        method="0x0503",
    )


def substrate_chain(substrate, timeout: float = 5.0) -> SubstrateChain:
    return SubstrateChain("vara-testnet", substrate, "ws://node", 137, finalization_timeout=timeout)


@pytest.mark.asyncio
async def test_connect_unknown_network():
    with pytest.raises(ConfigurationError):
        await SubstrateChain.connect("polkadot")


@pytest.mark.asyncio
async def test_head_and_runtime():
    substrate = MagicMock()
    substrate.get_chain_head.return_value = "0xaa"
    substrate.get_block_number.return_value = 42
    substrate.runtime_version = 1050
    substrate.transaction_version = 2
    substrate.get_block_hash.return_value = "0xgenesis"
    chain = substrate_chain(substrate)

    head = await chain.head()
    runtime = await chain.runtime()

    assert (head.number, head.hash) == (42, "0xaa")
    assert (runtime.spec_version, runtime.transaction_version, runtime.genesis_hash) == (1050, 2, "0xgenesis")
    substrate.get_block_hash.assert_called_with(0)


@pytest.mark.asyncio
async def test_connection_error_is_chain_unavailable():
    substrate = MagicMock()
    substrate.get_account_nonce.side_effect = ConnectionResetError("reset by peer")

    with pytest.raises(ChainUnavailableError, match="reset by peer"):
        await substrate_chain(substrate).account_nonce("kGpayer")


@pytest.mark.asyncio
async def test_decode_transfer_reads_call_args():
    substrate = MagicMock()
    substrate.create_scale_object.return_value.value = {
        "call_module": "Balances",
        "call_function": "transfer_keep_alive",
        "call_args": [
            {"name": "dest", "type": "AccountIdLookupOf", "value": {"Id": "0x" + "8e" * 32}},
            {"name": "value", "type": "Balance", "value": 100},
        ],
    }

    transfer = await substrate_chain(substrate).decode_transfer("0x0503")

    assert transfer.dest == "0x" + "8e" * 32
    assert transfer.value == 100


@pytest.mark.asyncio
async def test_decode_rejects_other_calls():
    substrate = MagicMock()
    substrate.create_scale_object.return_value.value = {
        "call_module": "System",
        "call_function": "remark",
        "call_args": {"remark": "0x00"},
    }

    with pytest.raises(VerificationFailedError, match="Not a balance transfer"):
        await substrate_chain(substrate).decode_transfer("0x0001")


@pytest.mark.asyncio
async def test_decode_rejects_trailing_bytes():
    substrate = MagicMock()
    substrate.create_scale_object.return_value.decode.side_effect = RemainingScaleBytesNotEmptyException(
        "Decoding <Call> - Current offset: 2 / length: 4"
    )

    with pytest.raises(VerificationFailedError, match="Undecodable call"):
        await substrate_chain(substrate).decode_transfer("0x05030000")


@pytest.mark.asyncio
async def test_submit_classifies_receipt(alice):
    watcher = MagicMock()
    watcher.submit_extrinsic.return_value = SimpleNamespace(
        extrinsic_hash="0xtx",
        block_hash="0xblock",
        triggered_events=[SimpleNamespace(value={"module_id": "System", "event_id": "ExtrinsicSuccess"})],
    )
    chain = substrate_chain(MagicMock())
    chain._watchers.append(watcher)

    result = await chain.submit_and_watch(make_unsigned(), "0x" + "00" * 64, alice.ss58_address)

    assert result.success
    assert result.tx_hash == "0xtx"
    assert watcher.submit_extrinsic.call_args.kwargs["wait_for_finalization"] is True
    assert chain._watchers == [watcher]


@pytest.mark.asyncio
async def test_submit_rejection(alice):
    watcher = MagicMock()
    watcher.submit_extrinsic.side_effect = SubstrateRequestException({"message": "Transaction is outdated"})
    chain = substrate_chain(MagicMock())
    chain._watchers.append(watcher)

    with pytest.raises(TransactionRejectedError, match="outdated"):
        await chain.submit_and_watch(make_unsigned(), "0x" + "00" * 64, alice.ss58_address)
    assert chain._watchers == [watcher]
    watcher.close.assert_not_called()


@pytest.mark.asyncio
async def test_unexpected_submit_error_closes_watcher(alice):
    watcher = MagicMock()
    watcher.create_signed_extrinsic.side_effect = ValueError("bad signature length")
    chain = substrate_chain(MagicMock())
    chain._watchers.append(watcher)

    with pytest.raises(ValueError, match="bad signature length"):
        await chain.submit_and_watch(make_unsigned(), "0x" + "00" * 64, alice.ss58_address)
    assert chain._watchers == []
    watcher.close.assert_called_once()


@pytest.mark.asyncio
async def test_finalization_timeout(alice):
    watcher = MagicMock()
    watcher.submit_extrinsic.side_effect = lambda *args, **kwargs: time.sleep(0.5)
    chain = substrate_chain(MagicMock(), timeout=0.05)
    chain._watchers.append(watcher)

    with pytest.raises(ChainUnavailableError, match="Finalization"):
        await chain.submit_and_watch(make_unsigned(), "0x" + "00" * 64, alice.ss58_address)
    watcher.close.assert_called_once()


@pytest.mark.asyncio
async def test_closed_chain_refuses_calls():
    chain = substrate_chain(MagicMock())
    await chain.close()

    with pytest.raises(ChainUnavailableError):
        await chain.head()
