import pytest

from invoice_export.codes import (
    COUNTRY_CODES,
    currency_token,
    get_country_code,
    get_currency_code,
)


@pytest.mark.parametrize(
    "name,code",
    [
        ("Germany", "DE"),
        ("Deutschland", "DE"),
        ("Österreich", "AT"),
        ("Schweiz", "CH"),
        ("United Kingdom", "GB"),
        ("United States", "US"),
    ],
)
def test_known_countries(name, code):
    assert get_country_code(name) == code


def test_unknown_country_falls_back_to_first_two_letters():
    assert get_country_code("Spain") == "SP"
    assert get_country_code("pl") == "PL"


def test_missing_country_is_empty():
    assert get_country_code(None) == ""
    assert get_country_code("") == ""


def test_country_table_is_read_only():
    with pytest.raises(TypeError):
        COUNTRY_CODES["Spain"] = "ES"


def test_currency_token():
    assert currency_token("EUR - Euro") == "EUR"
    assert currency_token("usd") == "USD"
    assert currency_token(None) == ""


def test_currency_code_falls_back_to_eur():
    assert get_currency_code("CHF - Swiss Franc") == "CHF"
    assert get_currency_code("Euro") == "EUR"
    assert get_currency_code("") == "EUR"
