import pytest

from gateways.errors import UnknownWebhookSource, UnsupportedMethod


def _ids(methods):
    return [method.id for method in methods]


def test_methods_per_country(registry):
    assert _ids(registry.list_available_methods("ZA")) == ["paygate", "payfast", "kora"]
    assert _ids(registry.list_available_methods("CM")) == ["orange", "mtn", "kora"]
    assert _ids(registry.list_available_methods("SN")) == ["orange"]
    assert _ids(registry.list_available_methods("UG")) == ["mtn"]
    assert registry.list_available_methods("FR") == []
    assert registry.list_available_methods(None) == []


def test_shared_methods_are_only_those_in_both_tables(registry):
    za = set(_ids(registry.list_available_methods("ZA")))
    gh = set(_ids(registry.list_available_methods("GH")))
    assert za & gh == {"kora"}


def test_country_lookup_is_case_insensitive(registry):
    assert registry.resolve("paygate", "za").method_id == "paygate"


@pytest.mark.parametrize(
    "method_id, country",
    [("mtn", "ZA"), ("orange", "GH"), ("paygate", "CM"), ("payfast", "NG"), ("kora", "SN"), ("bitcoin", "ZA")],
)
def test_resolve_rejects_pairs_outside_the_table(registry, method_id, country):
    with pytest.raises(UnsupportedMethod):
        registry.resolve(method_id, country)


def test_descriptors_carry_display_data(registry):
    (mtn,) = [m for m in registry.list_available_methods("UG")]
    assert mtn.name == "MTN Mobile Money"
    assert mtn.type.value == "mobile_money"
    assert mtn.fee_description


@pytest.mark.parametrize(
    "header, method_id",
    [
        ("X-Kora-Signature", "kora"),
        ("x-paygate-signature", "paygate"),
        ("x-payfast-signature", "payfast"),
        ("x-mtn-signature", "mtn"),
        ("X-Orange-Signature", "orange"),
    ],
)
def test_webhook_source_from_marker_header(registry, header, method_id):
    assert registry.for_webhook({header: "sig", "content-type": "application/json"}).method_id == method_id


def test_webhook_without_marker_is_unknown(registry):
    with pytest.raises(UnknownWebhookSource):
        registry.for_webhook({"content-type": "application/json"})
