"""
Plutus data: the structured value every script context is made of.

An explicit tagged-variant tree: Constr (tag + ordered fields), PlutusMap
(ordered key/value pairs), PlutusList, PlutusInt and PlutusBytes. All nodes are
frozen so values can be shared and used as map keys.

Encoding follows the canonical form validators receive:
- constructor 0..6 -> tag 121..127, 7..127 -> tag 1280..1400, otherwise tag 102 [alt, fields]
- non-empty lists and constructor fields -> indefinite arrays, empty -> 0x80
- maps -> definite length
- byte strings over 64 bytes -> indefinite byte string of 64-byte chunks
- integers beyond 64 bits -> bignums (tags 2 / 3, handled by cbor2)

Decoding walks the encoded bytes rather than cbor2 values: a Plutus map is a
list of pairs that may repeat a key, which a Python dict would collapse.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Union

import cbor2

from nawi.core.exceptions import DecodingError
from nawi.ledger import cbor

BYTES_CHUNK_SIZE = 64
_INDEFINITE_ARRAY = b"\x9f"
_INDEFINITE_BYTES = b"\x5f"
_EMPTY_ARRAY = b"\x80"
_BREAK = b"\xff"


@dataclass(frozen=True)
class Constr:
    tag: int
    fields: tuple["PlutusData", ...] = ()


@dataclass(frozen=True)
class PlutusMap:
    pairs: tuple[tuple["PlutusData", "PlutusData"], ...] = ()


@dataclass(frozen=True)
class PlutusList:
    items: tuple["PlutusData", ...] = ()


@dataclass(frozen=True)
class PlutusInt:
    value: int


@dataclass(frozen=True)
class PlutusBytes:
    value: bytes


PlutusData = Union[Constr, PlutusMap, PlutusList, PlutusInt, PlutusBytes]


def constr(tag: int, *fields: PlutusData) -> Constr:
    return Constr(tag, tuple(fields))


def plist(items: Iterable[PlutusData]) -> PlutusList:
    return PlutusList(tuple(items))


def pmap(pairs: Iterable[tuple[PlutusData, PlutusData]]) -> PlutusMap:
    return PlutusMap(tuple(pairs))


def just(value: PlutusData) -> Constr:
    return Constr(0, (value,))


NOTHING = Constr(1)
FALSE = Constr(0)
TRUE = Constr(1)


def boolean(flag: bool) -> Constr:
    return TRUE if flag else FALSE


def constr_tag(alternative: int) -> int | None:
    """CBOR tag for a constructor index; None when only the general form (tag 102) applies."""
    if 0 <= alternative < 7:
        return 121 + alternative
    if 7 <= alternative < 128:
        return 1280 + (alternative - 7)
    return None


_BIGNUM_TAGS = (2, 3)
_GENERAL_CONSTR_TAG = 102


def _constr_alternative(tag: int) -> int | None:
    if 121 <= tag <= 127:
        return tag - 121
    if 1280 <= tag <= 1400:
        return tag - 1280 + 7
    return None


def _decode_fields(raw: bytes, pos: int, alternative: int) -> tuple[PlutusData, ...]:
    major, _, _ = cbor.read_head(raw, pos)
    if major != cbor.MAJOR_ARRAY:
        raise DecodingError(f"Constructor {alternative} fields must be an array")
    return tuple(_decode_item(raw, start) for start, _ in cbor.array_spans(raw, pos))


def _decode_item(raw: bytes, pos: int) -> PlutusData:
    """Decode the item at pos; containers are walked over their encoded spans."""
    major, arg, after = cbor.read_head(raw, pos)
    if major in (cbor.MAJOR_UNSIGNED, cbor.MAJOR_NEGATIVE):
        return PlutusInt(cbor.loads(raw[pos:cbor.item_end(raw, pos)]))
    if major == cbor.MAJOR_BYTES:
        return PlutusBytes(bytes(cbor.loads(raw[pos:cbor.item_end(raw, pos)])))
    if major == cbor.MAJOR_ARRAY:
        return PlutusList(tuple(_decode_item(raw, start) for start, _ in cbor.array_spans(raw, pos)))
    if major == cbor.MAJOR_MAP:
        return PlutusMap(
            tuple(
                (_decode_item(raw, key[0]), _decode_item(raw, value[0]))
                for key, value in cbor.map_spans(raw, pos)
            )
        )
    if major == cbor.MAJOR_TEXT:
        raise DecodingError("Unexpected text string in Plutus data")
    if major == cbor.MAJOR_SIMPLE:
        raise DecodingError(f"Unexpected CBOR simple value at offset {pos} in Plutus data")

    if arg in _BIGNUM_TAGS:
        return PlutusInt(cbor.loads(raw[pos:cbor.item_end(raw, pos)]))
    if arg == _GENERAL_CONSTR_TAG:
        spans = cbor.array_spans(raw, after)
        if len(spans) != 2:
            raise DecodingError("Tag 102 constructor must wrap [alternative, fields]")
        alternative = cbor.loads(raw[slice(*spans[0])])
        if isinstance(alternative, bool) or not isinstance(alternative, int):
            raise DecodingError("Tag 102 constructor alternative must be an integer")
        return Constr(alternative, _decode_fields(raw, spans[1][0], alternative))
    alternative = _constr_alternative(arg)
    if alternative is None:
        raise DecodingError(f"Unexpected CBOR tag {arg} in Plutus data")
    return Constr(alternative, _decode_fields(raw, after, alternative))


def decode_plutus_data(raw: bytes) -> PlutusData:
    """Decode one encoded Plutus data item; trailing bytes are an error."""
    raw = bytes(raw)
    data = _decode_item(raw, 0)
    end = cbor.item_end(raw, 0)
    if end != len(raw):
        raise DecodingError(f"Trailing bytes after Plutus data: {len(raw) - end} byte(s)")
    return data
