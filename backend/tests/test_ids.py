"""Tests for point identities."""

import pytest

from bundestag_index.utils.ids import (
    identity_for,
    point_id,
    point_key,
    record_identity_for,
    record_point_id,
    string_hash32,
    wide_point_id,
)


def test_point_id_matches_existing_collections() -> None:
    assert point_id("protocol", 100, 0, 0) == 385619835
    assert point_id("protocol", 100, 1, 0) == 385620796
    assert point_id("document", 12345, 0, 0) == 63034368


def test_point_id_accepts_string_source_ids() -> None:
    assert point_id("protocol", "100", 0, 0) == point_id("protocol", 100, 0, 0)
    assert point_key("protocol", 100, 2, 1) == "protocol:100:2:1"


def test_string_hash_wraps_to_signed_32_bit() -> None:
    assert string_hash32("") == 0
    assert string_hash32("a") == 97
    value = string_hash32("x" * 50)
    assert -(2**31) <= value < 2**31


def test_parts_and_indexes_get_distinct_ids() -> None:
    ids = {point_id("document", 7, index, part) for index in range(20) for part in range(3)}
    assert len(ids) == 60


def test_wide_scheme_is_separate_and_63_bit() -> None:
    wide = wide_point_id("protocol", 100, 0, 0)
    assert 0 <= wide < 2**63
    assert wide != point_id("protocol", 100, 0, 0)
    assert identity_for("wide", "protocol", 100, 0, 0) == wide
    assert identity_for("legacy", "protocol", 100, 0, 0) == 385619835


def test_unknown_scheme_rejected() -> None:
    with pytest.raises(ValueError):
        identity_for("v3", "protocol", 100, 0, 0)


def test_record_id_uses_two_part_key() -> None:
    assert record_point_id("drucksache", "123") == 947204389
    assert record_point_id("vorgang", 300) == 739052901
    assert record_point_id("drucksache", 1) == abs(string_hash32("drucksache:1"))
    assert record_point_id("drucksache", 1) != point_id("drucksache", 1, 0, 0)
    assert record_identity_for("legacy", "drucksache", "123") == 947204389
    assert record_identity_for("wide", "drucksache", "123") == wide_point_id("drucksache", "123", 0, 0)
    with pytest.raises(ValueError):
        record_identity_for("v3", "drucksache", "123")
