import hashlib
from decimal import Decimal

import pytest

from gateways.base import build_reference, order_id_from_reference, order_number
from gateways.currency import currency_for, json_amount, normalise_msisdn, to_minor_units
from gateways.korapay import sign_payload
from gateways.signing import signatures_match, sorted_query, sorted_values


def test_sorted_values_orders_by_key_and_skips_signature_field():
    fields = {"REFERENCE": "mg_1_2", "AMOUNT": "100000", "CHECKSUM": "ignored", "CURRENCY": "ZAR"}
    assert sorted_values(fields, exclude="CHECKSUM") == "100000ZARmg_1_2"


def test_sorted_query_form_encodes_and_drops_empty_values():
    fields = {"name_last": "", "item_name": "Order #AB12", "amount": "10.00", "signature": "x"}
    assert sorted_query(fields, exclude="signature") == "amount=10.00&item_name=Order+%23AB12"


def test_signatures_match_is_case_insensitive_and_rejects_missing():
    digest = hashlib.md5(b"abc").hexdigest()
    assert signatures_match(digest.upper(), digest)
    assert not signatures_match(None, digest)
    assert not signatures_match("", digest)
    assert not signatures_match("0" * 32, digest)


def test_kora_signature_covers_compact_json_of_data():
    a = sign_payload("secret", {"reference": "r", "amount": 10})
    b = sign_payload("secret", {"reference": "r", "amount": 11})
    assert len(a) == 128
    assert a != b
    assert a == sign_payload("secret", {"reference": "r", "amount": 10})


def test_reference_round_trips_order_ids_with_underscores():
    reference = build_reference("ord_7f3a_9c21", 1718000000000)
    assert reference == "mg_ord_7f3a_9c21_1718000000000"
    assert order_id_from_reference(reference) == "ord_7f3a_9c21"


@pytest.mark.parametrize("reference", ["", "mg_", "mg_abc", "xx_abc_123", "mg_abc_12a"])
def test_malformed_references_yield_no_order(reference):
    assert order_id_from_reference(reference) is None


def test_order_number_is_last_eight_upper():
    assert order_number("d1c7e3a0-5b2f-4c1e-9f00-12ab34cd56ef") == "34CD56EF"


def test_currency_table_and_adapter_fallback():
    assert currency_for("za", "USD") == "ZAR"
    assert currency_for("CI", "XAF") == "XOF"
    assert currency_for("US", "USD") == "USD"
    assert currency_for(None, "ZAR") == "ZAR"


def test_amount_units():
    assert to_minor_units(Decimal("1000.00")) == 100000
    assert to_minor_units(Decimal("19.995")) == 2000
    assert json_amount(Decimal("5000.40"), "XAF") == 5000
    assert json_amount(Decimal("12.5"), "ZAR") == 12.5


@pytest.mark.parametrize(
    "phone, country, expected",
    [
        ("677 12 34 56", "CM", "237677123456"),
        ("+237 677-123-456", "CM", "237677123456"),
        ("0244123456", "GH", "233244123456"),
        ("0821234567", "ZA", "0821234567"),
    ],
)
def test_msisdn_normalisation(phone, country, expected):
    assert normalise_msisdn(phone, country) == expected
