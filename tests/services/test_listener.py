import asyncio
from unittest.mock import AsyncMock

import pytest
from eth_abi import encode as abi_encode
from hexbytes import HexBytes
from web3 import Web3

from trap_oracle.services.chain import VERIFICATION_REQUESTED_TOPIC, ChainClient, ChainError
from trap_oracle.services.listener import (
    EventDecodeError,
    EventListener,
    decode_bytes32_string,
    decode_request,
    encode_bytes32_string,
)

REQUEST_ID = bytes.fromhex("0a" * 32)
VERIFIER = "0x" + "ab" * 20


def make_event(user_id="alice", block=12, request_id=REQUEST_ID, **overrides):
    args = {
        "requestId": request_id,
        "requester": "0x" + "12" * 20,
        "userId": encode_bytes32_string(user_id) if isinstance(user_id, str) else user_id,
        "createdAt": 1_000,
        "expiryAt": 1_300,
    }
    args.update(overrides)
    return {"args": args, "blockNumber": block}


def test_bytes32_string_round_trip():
    packed = encode_bytes32_string("alice")
    assert len(packed) == 32
    assert decode_bytes32_string(packed) == "alice"


@pytest.mark.parametrize(
    "value",
    [b"alice", b"a" * 32, b"\xff" + b"\x00" * 31],
)
def test_decode_bytes32_string_rejects_bad_input(value):
    with pytest.raises(EventDecodeError):
        decode_bytes32_string(value)


def test_encode_bytes32_string_length_limit():
    encode_bytes32_string("x" * 31)
    with pytest.raises(ValueError):
        encode_bytes32_string("x" * 32)


def test_decode_request():
    request = decode_request(make_event())
    assert request.request_id == "0x" + "0a" * 32
    assert request.user_id == "alice"
    assert (request.created_at, request.expiry_at, request.block_number) == (1_000, 1_300, 12)


@pytest.mark.parametrize(
    "event",
    [
        {"blockNumber": 1},
        make_event(request_id=b"\x01" * 31),
        make_event(user_id=b"bad"),
        make_event(expiryAt="soon"),
    ],
)
def test_decode_request_rejects_malformed_events(event):
    with pytest.raises(EventDecodeError):
        decode_request(event)


@pytest.fixture
def mock_client():
    client = AsyncMock(spec=ChainClient)
    client.latest_block_number.return_value = 20
    client.get_request_logs.return_value = []
    # Logs in these tests are already shaped like decoded events.
    client.decode_request_log.side_effect = lambda log: log
    return client


async def test_first_poll_starts_at_latest_block(mock_client):
    listener = EventListener(mock_client)

    assert await listener.poll_once() == []
    mock_client.get_request_logs.assert_not_awaited()
    assert listener.last_block == 20


async def test_poll_scans_from_start_block_in_batches(mock_client):
    mock_client.get_request_logs.return_value = [make_event(block=10), make_event(user_id=b"bad")]
    listener = EventListener(mock_client, start_block=10, batch_size=5)

    requests = await listener.poll_once()

    mock_client.get_request_logs.assert_awaited_once_with(10, 14)
    assert [r.user_id for r in requests] == ["alice"]
    assert listener.last_block == 14


async def test_cursor_is_persisted_and_resumed(mock_client, cursor_repo):
    await cursor_repo.put(15)
    listener = EventListener(mock_client, cursor_store=cursor_repo, start_block=1)

    await listener.poll_once()

    mock_client.get_request_logs.assert_awaited_once_with(16, 20)
    assert await cursor_repo.get() == 20


async def test_stream_yields_requests_and_advances_after_consumption(mock_client, cursor_repo):
    mock_client.get_request_logs.return_value = [make_event(), make_event(user_id="bob")]
    listener = EventListener(mock_client, cursor_store=cursor_repo, start_block=18, poll_interval=0)

    stream = listener.stream()
    first = await anext(stream)
    assert first.user_id == "alice"
    assert await cursor_repo.get() is None

    second = await anext(stream)
    assert second.user_id == "bob"
    await stream.aclose()


async def test_stream_survives_rpc_failures(mock_client):
    mock_client.latest_block_number.side_effect = [ChainError("down"), 20, 20]
    mock_client.get_request_logs.return_value = [make_event()]
    listener = EventListener(mock_client, start_block=19, poll_interval=0)

    stream = listener.stream()
    request = await asyncio.wait_for(anext(stream), timeout=1)

    assert request.user_id == "alice"
    await stream.aclose()


def _raw_log(topics, data=b"", block=10, index=0):
    return {
        "address": VERIFIER,
        "topics": [HexBytes(topic) for topic in topics],
        "data": HexBytes(data),
        "blockNumber": block,
        "blockHash": HexBytes("0x" + "bb" * 32),
        "transactionHash": HexBytes("0x" + f"{index + 1:064x}"),
        "transactionIndex": index,
        "logIndex": index,
        "removed": False,
    }


async def test_malformed_log_does_not_block_its_range(mocker, cursor_repo):
    w3 = Web3()
    client = ChainClient(w3, verifier_address=VERIFIER, private_key="0x" + "4c" * 32)
    mocker.patch.object(client, "latest_block_number", AsyncMock(return_value=10))

    requester = "0x" + "12" * 20
    good = _raw_log(
        [
            VERIFICATION_REQUESTED_TOPIC,
            REQUEST_ID,
            bytes(12) + bytes.fromhex(requester[2:]),
            encode_bytes32_string("alice"),
        ],
        data=abi_encode(["uint64", "uint64"], [1_000, 1_300]),
        index=1,
    )
    # Topic matches the event but the indexed arguments are missing.
    bad = _raw_log([VERIFICATION_REQUESTED_TOPIC], index=0)
    get_logs = mocker.patch.object(w3.eth, "get_logs", return_value=[bad, good])

    listener = EventListener(client, cursor_store=cursor_repo, start_block=9)
    requests = await listener.poll_once()

    assert [r.user_id for r in requests] == ["alice"]
    assert requests[0].request_id == "0x" + "0a" * 32
    assert requests[0].block_number == 10
    assert await cursor_repo.get() == 10
    filter_params = get_logs.call_args.args[0]
    assert filter_params["topics"] == [VERIFICATION_REQUESTED_TOPIC]
    assert (filter_params["fromBlock"], filter_params["toBlock"]) == (9, 10)


def test_decode_request_log_maps_abi_errors():
    client = ChainClient(Web3(), verifier_address=VERIFIER, private_key="0x" + "4c" * 32)

    with pytest.raises(EventDecodeError):
        client.decode_request_log(_raw_log([VERIFICATION_REQUESTED_TOPIC]))
