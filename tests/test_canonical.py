"""Tests for fact record construction, canonical form and content hashing."""

import json

from etl.canonical import build_transaction, canonicalize, content_hash
from etl.headers import REQUIRED_HEADERS, fill_defaults, remap_row
from factories import sample_row


def _record(row, source="a.csv"):
    return build_transaction(fill_defaults(remap_row(row)), source)


def test_record_fields_are_coerced():
    record = _record(sample_row(1))
    assert record.date_iso == "2024-07-05"
    assert record.item_code == "0070000000001"
    assert record.subdept_no == 12
    assert record.amount_sum == 5.0
    assert record.bl_margin == 12.5
    assert record.prop_ratio == -0.25
    assert len(record.content_hash) == 64


def test_canonical_form_is_ordered_and_fixed_precision():
    canonical = json.loads(canonicalize(_record(sample_row(1))))
    assert list(canonical.keys()) == REQUIRED_HEADERS
    assert canonical["Amount-Sum"] == "5.000000"
    assert canonical["Sub-department-Number"] == "12"
    assert canonical["Proportion-Ratio"] == "-0.250000"
    assert canonical["Weight/Volume-Sum"] == "0.000000"


def test_source_file_does_not_affect_hash():
    assert _record(sample_row(1), "a.csv").content_hash == _record(sample_row(1), "b.xlsb").content_hash


def test_equivalent_formatting_hashes_identically():
    plain = sample_row(3)
    fancy = dict(plain)
    fancy["Amount-Sum"] = " 10.000 "
    fancy["Item-Brand"] = "  ACME "
    fancy["Item-Code"] = "070000000003"
    fancy["Date"] = "07/05/2024"
    plain["Amount-Sum"] = "10"
    assert _record(plain).content_hash == _record(fancy).content_hash


def test_column_order_does_not_affect_hash():
    row = sample_row(4)
    reversed_row = {k: row[k] for k in reversed(list(row))}
    assert _record(row).content_hash == _record(reversed_row).content_hash


def test_different_values_hash_differently():
    assert _record(sample_row(1)).content_hash != _record(sample_row(2)).content_hash
    other_day = sample_row(1, date="2024-07-06")
    assert _record(sample_row(1)).content_hash != _record(other_day).content_hash


def test_negative_zero_matches_zero():
    a = sample_row(5)
    b = dict(a)
    a["Weight/Volume-Sum"] = "(0)"
    b["Weight/Volume-Sum"] = "0"
    assert _record(a).content_hash == _record(b).content_hash


def test_unparseable_date_yields_no_record():
    assert _record(sample_row(1, date="someday")) is None


def test_content_hash_is_sha256_hex():
    assert content_hash("") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
