from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from invoice_export.schema import Invoice, InvoiceDetails, InvoiceItem, parse_maybe_date


def test_invoice_accepts_camel_case(invoice):
    assert invoice.sender.zip_code == "10115"
    assert invoice.receiver.buyer_reference == "04011000-12345-67"
    assert invoice.details.payment_information.account_name == "Muster GmbH Konto"


def test_invoice_accepts_snake_case(invoice):
    copy = Invoice.model_validate(invoice.model_dump())
    assert copy == invoice


def test_iso_datetime_is_parsed_to_date(invoice):
    assert invoice.details.invoice_date == date(2024, 3, 1)
    assert invoice.details.due_date == date(2024, 3, 31)


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2024-03-01", date(2024, 3, 1)),
        ("01.03.2024", date(2024, 3, 1)),
        ("01/03/2024", date(2024, 3, 1)),
        ("2024/03/01", date(2024, 3, 1)),
        ("", None),
        (None, None),
    ],
)
def test_parse_maybe_date(value, expected):
    assert parse_maybe_date(value) == expected


def test_unparseable_date_is_rejected():
    with pytest.raises(PydanticValidationError):
        InvoiceDetails(invoice_date="next tuesday")


def test_item_total_is_computed():
    item = InvoiceItem(name="Travel", quantity=3, unit_price="12.5")
    assert item.total == Decimal("37.5")


def test_explicit_item_total_is_kept():
    item = InvoiceItem(name="Travel", quantity=3, unit_price=10, total=25)
    assert item.total == Decimal("25")


def test_percentage_tax(invoice):
    assert invoice.details.tax_rate == Decimal("19")
    assert invoice.details.tax_amount == Decimal("190")


def test_fixed_tax_amount(invoice_data):
    invoice_data["details"]["taxDetails"] = {"amount": 50, "amountType": "amount"}
    details = Invoice.model_validate(invoice_data).details

    assert details.tax_rate == Decimal("0")
    assert details.tax_amount == Decimal("50")


def test_missing_tax_details(invoice_data):
    del invoice_data["details"]["taxDetails"]
    details = Invoice.model_validate(invoice_data).details

    assert details.tax_rate == Decimal("0")
    assert details.tax_amount == Decimal("0")
