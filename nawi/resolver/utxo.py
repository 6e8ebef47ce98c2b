"""
UTxO resolution: concurrent fan-out over an output resolution service.

One lookup per distinct input reference, all in flight at once, joined with a
first-failure-wins policy: the first failing lookup cancels the rest and the
whole resolution fails. No partial UtxoSet is ever returned.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Iterator, Mapping
from typing import Protocol

from nawi.core.exceptions import MissingUtxoError, ResolutionError
from nawi.ledger.models import InputReference, ResolvedOutput
from nawi.nawi_logging import get_logger

logger = get_logger(__name__)


class OutputResolutionService(Protocol):
    """Anything that can turn an input reference into the output it points to."""

    async def fetch_output(self, reference: InputReference) -> ResolvedOutput:
        """Return the output or raise a ResolutionError naming the reference."""
        ...


class UtxoSet(Mapping[InputReference, ResolvedOutput]):
    """
    Read-only mapping from input reference to resolved output, iterated in
    ledger order (by transaction id, then output index).
    """

    def __init__(self, entries: Mapping[InputReference, ResolvedOutput]) -> None:
        self._entries = {ref: entries[ref] for ref in sorted(entries)}

    @classmethod
    def covering(
        cls,
        declared: Iterable[InputReference],
        resolved: Mapping[InputReference, ResolvedOutput],
    ) -> "UtxoSet":
        """Build a set that must cover every declared reference; MissingUtxoError otherwise."""
        declared = list(dict.fromkeys(declared))
        for ref in declared:
            if ref not in resolved:
                raise MissingUtxoError(ref)
        return cls({ref: resolved[ref] for ref in declared})

    def __getitem__(self, reference: InputReference) -> ResolvedOutput:
        return self._entries[reference]

    def __iter__(self) -> Iterator[InputReference]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"UtxoSet({len(self._entries)} output(s))"


async def _fetch(
    service: OutputResolutionService, reference: InputReference
) -> tuple[InputReference, ResolvedOutput]:
    output = await service.fetch_output(reference)
    logger.debug("utxo_fetched", input_ref=str(reference))
    return reference, output


async def resolve_utxos(
    service: OutputResolutionService,
    references: Iterable[InputReference],
) -> UtxoSet:
    """
    Resolve every distinct reference concurrently and assemble the UtxoSet.

    Raises the first ResolutionError (or any other failure) raised by the
    service; outstanding lookups are cancelled.
    """
    distinct = list(dict.fromkeys(references))
    logger.info("utxo_resolution_started", inputs=len(distinct))
    tasks = [asyncio.create_task(_fetch(service, ref)) for ref in distinct]
    try:
        results = await asyncio.gather(*tasks)
    except ResolutionError as e:
        logger.warning("utxo_resolution_failed", input_ref=str(e.reference), error=e.reason)
        raise
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        # let cancelled lookups unwind before the caller moves on
        await asyncio.gather(*tasks, return_exceptions=True)
    logger.info("utxo_resolution_done", inputs=len(distinct))
    return UtxoSet.covering(distinct, dict(results))
