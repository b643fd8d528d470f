import re
from decimal import ROUND_HALF_UP, Decimal

COUNTRY_CURRENCIES = {
    "ZA": "ZAR",
    "NG": "NGN",
    "KE": "KES",
    "GH": "GHS",
    "CM": "XAF",
    "SN": "XOF",
    "ML": "XOF",
    "BF": "XOF",
    "CI": "XOF",
    "NE": "XOF",
    "MG": "MGA",
    "UG": "UGX",
    "RW": "RWF",
    "ZM": "ZMW",
}

DIALLING_CODES = {
    "CM": "237",
    "GH": "233",
    "UG": "256",
    "RW": "250",
    "ZM": "260",
    "SN": "221",
    "ML": "223",
    "BF": "226",
    "CI": "225",
    "NE": "227",
    "MG": "261",
}

ZERO_DECIMAL_CURRENCIES = frozenset({"XAF", "XOF", "UGX", "RWF", "MGA"})

_NON_DIGITS = re.compile(r"\D")


def currency_for(country: str | None, default: str) -> str:
    if not country:
        return default
    return COUNTRY_CURRENCIES.get(country.upper(), default)


def to_minor_units(amount: Decimal) -> int:
    """Cents, rounded half-up."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_decimal(amount: Decimal) -> str:
    return str(Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def json_amount(amount: Decimal, currency: str) -> int | float:
    if currency in ZERO_DECIMAL_CURRENCIES:
        return int(Decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return float(format_decimal(amount))


def normalise_msisdn(phone_number: str, country: str | None) -> str:
    """Digits only, with the country dialling code prefixed when missing."""
    cleaned = _NON_DIGITS.sub("", phone_number)
    code = DIALLING_CODES.get((country or "").upper())
    if code and not cleaned.startswith(code):
        cleaned = code + cleaned.removeprefix("0")
    return cleaned
