"""
Static code lookups shared by the export formats.

- Country names (English and German) to ISO 3166-1 alpha-2 codes
- Currency labels such as "EUR - Euro" to ISO 4217 codes
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional

COUNTRY_CODES: Mapping[str, str] = MappingProxyType(
    {
        "Germany": "DE",
        "Deutschland": "DE",
        "Austria": "AT",
        "Österreich": "AT",
        "Switzerland": "CH",
        "Schweiz": "CH",
        "France": "FR",
        "Frankreich": "FR",
        "Italy": "IT",
        "Italien": "IT",
        "Netherlands": "NL",
        "Niederlande": "NL",
        "Belgium": "BE",
        "Belgien": "BE",
        "United Kingdom": "GB",
        "United States": "US",
    }
)

DEFAULT_CURRENCY = "EUR"


def get_country_code(country: Optional[str]) -> str:
    """
    Map a country name to its alpha-2 code.

    Unmapped names fall back to their first two characters, upper-cased.
    """
    if not country:
        return ""
    name = country.strip()
    return COUNTRY_CODES.get(name) or name[:2].upper()


def currency_token(label: Optional[str]) -> str:
    """
    Return the token before the first space of a currency label, upper-cased.

    >>> currency_token("EUR - Euro")
    'EUR'
    """
    if not label:
        return ""
    return label.split(" ")[0].upper()


def get_currency_code(label: Optional[str]) -> str:
    """
    Currency code for XML exports; anything that is not a 3-letter token
    becomes EUR.
    """
    code = currency_token(label)
    return code if len(code) == 3 else DEFAULT_CURRENCY
