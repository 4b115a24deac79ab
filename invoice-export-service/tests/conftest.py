import io

import pytest
from pypdf import PdfWriter

from invoice_export.schema import Invoice, PaymentPayload

IBAN = "DE89370400440532013000"


@pytest.fixture
def payment() -> PaymentPayload:
    return PaymentPayload(
        name="Jane Doe",
        iban="DE89 3704 0044 0532 0130 00",
        bic="COBADEFFXXX",
        amount="12.5",
        reference="RF18539007547034",
        message="Invoice 2024-001",
    )


@pytest.fixture
def invoice_data() -> dict:
    """Invoice as posted by the web form (camelCase keys)."""
    return {
        "sender": {
            "name": "Muster GmbH",
            "address": "Hauptstraße 1",
            "zipCode": "10115",
            "city": "Berlin",
            "country": "Deutschland",
            "email": "billing@muster.example",
            "phone": "+49 30 123456",
            "vatId": "DE123456789",
        },
        "receiver": {
            "name": "Kunde AG",
            "address": "Ringstraße 5",
            "zipCode": "1010",
            "city": "Wien",
            "country": "Österreich",
            "email": "ap@kunde.example",
            "phone": "+43 1 987654",
            "buyerReference": "04011000-12345-67",
        },
        "details": {
            "invoiceNumber": "2024-001",
            "invoiceDate": "2024-03-01T00:00:00.000Z",
            "dueDate": "2024-03-31",
            "currency": "EUR - Euro",
            "items": [
                {
                    "name": "Consulting",
                    "description": "Workshop, 2 days",
                    "quantity": 2,
                    "unitPrice": 400,
                    "total": 800,
                },
                {"name": "Travel", "quantity": 1, "unitPrice": 200},
            ],
            "taxDetails": {"amount": 19, "amountType": "percentage"},
            "subTotal": 1000,
            "totalAmount": 1190,
            "paymentInformation": {
                "bankName": "Commerzbank",
                "accountName": "Muster GmbH Konto",
                "iban": "DE89 3704 0044 0532 0130 00",
                "bic": "COBADEFFXXX",
            },
            "paymentTerms": "Payable within 30 days",
            "additionalNotes": "Thank you for your business.",
        },
    }


@pytest.fixture
def invoice(invoice_data) -> Invoice:
    return Invoice.model_validate(invoice_data)


@pytest.fixture
def base_pdf() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=595, height=842)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()
