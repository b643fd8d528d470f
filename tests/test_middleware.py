import pytest

from storefront.middleware.metrics import route_label


@pytest.mark.parametrize(
    "path, status_code, expected",
    [
        ("/payments/status/mg_ord_7f3a9c21_1718000000000", 200, "/payments/status/{payment_id}"),
        ("/payments/webhook", 400, "/payments/webhook"),
        ("/payments/initialize/", 200, "/payments/initialize"),
        ("/wp-login.php", 404, "unmatched"),
        ("/docs", 200, "other"),
    ],
)
def test_route_labels_stay_bounded(path, status_code, expected):
    assert route_label(path, status_code) == expected
