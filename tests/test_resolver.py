"""
Tests for UTxO resolution: the concurrent fan-out and the Blockfrost service
(driven through httpx.MockTransport).
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from builders import KEY_HASH, TX_A, TX_B, TX_C, FakeResolutionService, encode_tx, enterprise_address, make_body
from nawi.config.env import Network
from nawi.config.settings import Settings
from nawi.core.exceptions import (
    MissingUtxoError,
    OutputIndexOutOfRangeError,
    ResolutionError,
    ResolutionTransportError,
    ResolvedOutputDecodingError,
    ServiceError,
    TransactionNotFoundError,
)
from nawi.ledger.models import InputReference
from nawi.resolver import BlockfrostService, UtxoSet, resolve_utxos

REF_A = InputReference(TX_A, 0)
REF_B = InputReference(TX_B, 1)
REF_C = InputReference(TX_C, 0)
BASE_URL = "https://blockfrost.test/api/v0"


def test_resolves_every_distinct_reference(key_output, script_output_inline):
    service = FakeResolutionService({REF_A: key_output, REF_B: script_output_inline})
    utxos = asyncio.run(resolve_utxos(service, [REF_B, REF_A, REF_B]))
    assert sorted(service.calls) == [REF_A, REF_B]
    assert list(utxos) == [REF_A, REF_B]
    assert utxos[REF_B] is script_output_inline
    assert len(utxos) == 2


def test_lookups_run_concurrently(key_output):
    outputs = {InputReference(TX_A, i): key_output for i in range(5)}
    delays = {ref: 0.2 for ref in outputs}
    service = FakeResolutionService(outputs, delays=delays)

    async def timed() -> float:
        loop = asyncio.get_running_loop()
        start = loop.time()
        await resolve_utxos(service, list(outputs))
        return loop.time() - start

    # sequential lookups would take a full second
    assert asyncio.run(timed()) < 0.8


def test_first_failure_cancels_the_rest(key_output):
    service = FakeResolutionService(
        {REF_B: key_output},
        failures={REF_A: TransactionNotFoundError(REF_A)},
        delays={REF_B: 30},
    )
    with pytest.raises(TransactionNotFoundError) as excinfo:
        asyncio.run(resolve_utxos(service, [REF_A, REF_B]))
    assert excinfo.value.reference == REF_A
    assert service.cancelled == [REF_B]


def test_empty_reference_list():
    utxos = asyncio.run(resolve_utxos(FakeResolutionService(), []))
    assert len(utxos) == 0


def test_utxo_set_must_cover_declared(key_output):
    with pytest.raises(MissingUtxoError, match=str(REF_C)):
        UtxoSet.covering([REF_A, REF_C], {REF_A: key_output})


# --- Blockfrost ----------------------------------------------------------


def _tx_hex(outputs: int = 2) -> str:
    return encode_tx(
        make_body(outputs=[{0: enterprise_address(KEY_HASH), 1: 1_000_000 * (i + 1)} for i in range(outputs)])
    ).hex()


def _service(handler) -> BlockfrostService:
    return BlockfrostService(BASE_URL, "projectKey", transport=httpx.MockTransport(handler))


def _fetch(handler, reference: InputReference):
    async def go():
        async with _service(handler) as service:
            return await service.fetch_output(reference)

    return asyncio.run(go())


def test_blockfrost_fetches_indexed_output():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"cbor": _tx_hex()})

    output = _fetch(handler, REF_B)
    assert output.value.coin == 2_000_000
    assert seen[0].url.path == f"/api/v0/txs/{TX_B.hex()}/cbor"
    assert seen[0].headers["project_id"] == "projectKey"


def test_blockfrost_not_found():
    def handler(request):
        return httpx.Response(404, json={"status_code": 404, "error": "Not Found", "message": "missing"})

    with pytest.raises(TransactionNotFoundError, match="not found"):
        _fetch(handler, REF_A)


def test_blockfrost_server_error():
    def handler(request):
        return httpx.Response(403, json={"status_code": 403, "error": "Forbidden", "message": "Invalid project token."})

    with pytest.raises(ResolutionTransportError, match="HTTP 403.*Invalid project token"):
        _fetch(handler, REF_A)


def test_blockfrost_network_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ResolutionTransportError, match="connection refused"):
        _fetch(handler, REF_A)


def test_blockfrost_bad_hex_and_bad_cbor():
    with pytest.raises(ResolvedOutputDecodingError, match="invalid CBOR hex"):
        _fetch(lambda request: httpx.Response(200, json={"cbor": "zz"}), REF_A)
    with pytest.raises(ResolvedOutputDecodingError, match="failed to decode"):
        _fetch(lambda request: httpx.Response(200, json={"cbor": "0102"}), REF_A)


def test_blockfrost_output_index_out_of_range():
    ref = InputReference(TX_A, 3)
    with pytest.raises(OutputIndexOutOfRangeError, match="Transaction has 2 output") as excinfo:
        _fetch(lambda request: httpx.Response(200, json={"cbor": _tx_hex(2)}), ref)
    assert excinfo.value.output_count == 2
    assert isinstance(excinfo.value, ResolutionError)


def test_blockfrost_latest_slot():
    def handler(request):
        assert request.url.path == "/api/v0/blocks/latest"
        return httpx.Response(200, json={"slot": 123456, "height": 10})

    async def go():
        async with _service(handler) as service:
            return await service.latest_slot()

    assert asyncio.run(go()) == 123456


def test_blockfrost_latest_slot_failure():
    async def go():
        async with _service(lambda request: httpx.Response(500, text="boom")) as service:
            return await service.latest_slot()

    with pytest.raises(ServiceError, match="failed to get tip"):
        asyncio.run(go())


def test_resolve_through_blockfrost():
    def handler(request):
        return httpx.Response(200, json={"cbor": _tx_hex(3)})

    async def go():
        settings = Settings(Network("preview"), "k", BASE_URL, request_timeout_sec=5.0)
        async with BlockfrostService.from_settings(settings, transport=httpx.MockTransport(handler)) as service:
            return await resolve_utxos(service, [REF_A, REF_B])

    utxos = asyncio.run(go())
    assert utxos[REF_A].value.coin == 1_000_000
    assert utxos[REF_B].value.coin == 2_000_000
