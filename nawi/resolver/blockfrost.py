"""
Blockfrost-backed output resolution service.

Fetches the CBOR of the transaction an input reference points to
(GET /txs/{hash}/cbor), decodes its outputs and returns the indexed one.
Also exposes the chain tip slot (GET /blocks/latest) so a run can default its
"current time" to the tip.
"""

from __future__ import annotations

from types import TracebackType
from typing import Any

import httpx

from nawi.config.settings import Settings
from nawi.core.exceptions import (
    DecodingError,
    OutputIndexOutOfRangeError,
    ResolutionTransportError,
    ResolvedOutputDecodingError,
    ServiceError,
    TransactionNotFoundError,
)
from nawi.ledger.models import InputReference, ResolvedOutput
from nawi.ledger.parser import decode_transaction_outputs
from nawi.nawi_logging import get_logger

logger = get_logger(__name__)


def _error_detail(resp: httpx.Response) -> str:
    """Blockfrost error bodies look like {"status_code": 403, "error": "...", "message": "..."}."""
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)[:200]


class BlockfrostService:
    """
    Output resolution service over the Blockfrost HTTP API.

    Use as an async context manager so the underlying httpx client is closed:

        async with BlockfrostService.from_settings(settings) as service:
            utxos = await resolve_utxos(service, tx.declared_inputs())
    """

    def __init__(
        self,
        base_url: str,
        project_id: str,
        *,
        request_timeout_sec: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url: API root, e.g. https://cardano-mainnet.blockfrost.io/api/v0.
            project_id: Blockfrost project id, sent as the `project_id` header.
            request_timeout_sec: HTTP timeout for each request.
            transport: Optional httpx transport (tests pass httpx.MockTransport).
        """
        if not base_url.strip():
            raise ValueError("base_url must be non-empty")
        if not project_id.strip():
            raise ValueError("project_id must be non-empty")
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"project_id": project_id},
            timeout=httpx.Timeout(request_timeout_sec),
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "BlockfrostService":
        return cls(
            settings.blockfrost_url,
            settings.blockfrost_key,
            request_timeout_sec=settings.request_timeout_sec,
            **kwargs,
        )

    async def __aenter__(self) -> "BlockfrostService":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_transaction_cbor(self, reference: InputReference) -> bytes:
        """Raw CBOR of the transaction the reference points to."""
        tx_hash = reference.transaction_id.hex()
        try:
            resp = await self._client.get(f"/txs/{tx_hash}/cbor")
        except httpx.HTTPError as e:
            raise ResolutionTransportError(reference, f"failed to fetch transaction {tx_hash}: {e}") from e
        if resp.status_code == 404:
            raise TransactionNotFoundError(reference)
        if resp.is_error:
            raise ResolutionTransportError(
                reference,
                f"Blockfrost returned HTTP {resp.status_code} for transaction {tx_hash}: {_error_detail(resp)}",
            )
        try:
            return bytes.fromhex(resp.json()["cbor"])
        except (ValueError, KeyError, TypeError) as e:
            raise ResolvedOutputDecodingError(
                reference, f"invalid CBOR hex from Blockfrost for transaction {tx_hash}"
            ) from e

    async def fetch_output(self, reference: InputReference) -> ResolvedOutput:
        raw = await self.fetch_transaction_cbor(reference)
        try:
            outputs = decode_transaction_outputs(raw)
        except DecodingError as e:
            raise ResolvedOutputDecodingError(
                reference,
                f"failed to decode transaction CBOR for {reference.transaction_id.hex()}: {e}",
            ) from e
        if reference.index >= len(outputs):
            raise OutputIndexOutOfRangeError(reference, len(outputs))
        return outputs[reference.index]

    async def latest_slot(self) -> int:
        """Slot of the latest block (the chain tip)."""
        try:
            resp = await self._client.get("/blocks/latest")
            resp.raise_for_status()
            slot = resp.json().get("slot")
        except (httpx.HTTPError, ValueError) as e:
            raise ServiceError(f"failed to get tip: {e}") from e
        if slot is None:
            raise ServiceError("no tip found for latest block")
        logger.info("blockfrost_tip", slot=int(slot))
        return int(slot)
