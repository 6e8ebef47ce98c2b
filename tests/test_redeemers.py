"""
Tests for redeemer normalization and selection by CLI index.
"""

from __future__ import annotations

import itertools

import pytest

from builders import constr_data, encode_tx, make_body
from nawi.core.exceptions import NoRedeemersError, RedeemerIndexError
from nawi.ledger.models import ExUnits, Redeemer, RedeemerTag
from nawi.ledger.parser import decode_transaction
from nawi.plutus.data import PlutusInt
from nawi.plutus.redeemers import normalize_redeemers, select_redeemer


def _redeemer(tag: RedeemerTag, index: int, value: int = 0) -> Redeemer:
    return Redeemer(tag, index, PlutusInt(value), ExUnits(mem=1, steps=1))


REDEEMERS = [
    _redeemer(RedeemerTag.REWARD, 0),
    _redeemer(RedeemerTag.SPEND, 1),
    _redeemer(RedeemerTag.MINT, 0),
    _redeemer(RedeemerTag.SPEND, 0),
]


def test_normalize_sorts_by_tag_then_index():
    keys = [(r.tag, r.index) for r in normalize_redeemers(REDEEMERS)]
    assert keys == [
        (RedeemerTag.SPEND, 0),
        (RedeemerTag.SPEND, 1),
        (RedeemerTag.MINT, 0),
        (RedeemerTag.REWARD, 0),
    ]


def test_normalize_is_idempotent():
    once = normalize_redeemers(REDEEMERS)
    assert normalize_redeemers(once) == once


def test_normalize_ignores_input_order():
    expected = normalize_redeemers(REDEEMERS)
    for permutation in itertools.permutations(REDEEMERS):
        assert normalize_redeemers(permutation) == expected


def test_duplicate_keys_keep_first_occurrence():
    first = _redeemer(RedeemerTag.SPEND, 0, value=1)
    second = _redeemer(RedeemerTag.SPEND, 0, value=2)
    assert normalize_redeemers([first, second]) == (first,)


def test_select_from_transaction_same_for_both_encodings():
    data = constr_data(0)
    legacy = decode_transaction(encode_tx(make_body(), {5: [[3, 0, data, [1, 1]], [0, 0, data, [1, 1]]]}))
    conway = decode_transaction(encode_tx(make_body(), {5: {(0, 0): [data, [1, 1]], (3, 0): [data, [1, 1]]}}))
    for position in (0, 1):
        assert select_redeemer(legacy, position) == select_redeemer(conway, position)
    assert select_redeemer(legacy, 0).tag is RedeemerTag.SPEND
    assert select_redeemer(legacy, 1).tag is RedeemerTag.REWARD


def test_select_out_of_range():
    with pytest.raises(RedeemerIndexError, match="requested 4, available 4") as excinfo:
        select_redeemer(REDEEMERS, 4)
    assert excinfo.value.requested == 4
    assert excinfo.value.available == 4


def test_select_without_redeemers():
    tx = decode_transaction(encode_tx(make_body()))
    with pytest.raises(NoRedeemersError, match="no redeemers"):
        select_redeemer(tx, 0)
    empty = decode_transaction(encode_tx(make_body(), {5: []}))
    with pytest.raises(NoRedeemersError):
        select_redeemer(empty, 0)
