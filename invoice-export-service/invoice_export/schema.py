"""
Data models and schema definitions for invoices and payment payloads.

All external components (encoder, XML builders, API, CLI) should use these
Pydantic models to ensure a consistent contract. Invoice JSON coming from the
web form uses camelCase keys; snake_case is accepted as well.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DATE_FORMATS = ("%Y-%m-%d", "%d.%m.%Y", "%d/%m/%Y", "%Y/%m/%d")
CENT = Decimal("0.01")


def to_money(value: Decimal) -> Decimal:
    """Round a monetary value to cents, half up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_maybe_date(value):
    """
    Best-effort parser for date-like values.
    Accepts date/datetime objects, ISO dates and datetimes, and a few common
    string formats. Anything else is handed to pydantic unchanged.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return value

    text = value.strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return value


# --- EPC / GiroCode ---


class PaymentPayload(BaseModel):
    """
    Input of the EPC-QR encoder.

    Nothing is enforced here: lengths are truncated and formats checked by
    `epc_qr.encode`, so the model can carry raw form input.
    """

    name: Optional[str] = Field(
        default=None, description="Beneficiary name (max 70 characters)."
    )
    iban: Optional[str] = Field(
        default=None, description="Beneficiary IBAN, spaces allowed."
    )
    bic: Optional[str] = Field(
        default=None, description="BIC of the beneficiary bank (8 or 11 characters)."
    )
    amount: Optional[Decimal] = Field(
        default=None, description="Amount in EUR (max 999999999.99)."
    )
    reference: Optional[str] = Field(
        default=None, description="Structured remittance reference (max 140)."
    )
    message: Optional[str] = Field(
        default=None, description="Unstructured remittance message (max 140)."
    )


class QrOutputFormat(str, Enum):
    BASE64 = "base64"
    DATA_URL = "dataUrl"
    SVG = "svg"


class QrRenderOptions(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    size: int = Field(default=200, gt=0, description="Width of the symbol in pixels.")
    error_correction_level: str = Field(
        default="M", description="One of L, M, Q, H."
    )
    format: QrOutputFormat = Field(default=QrOutputFormat.DATA_URL)


class QrImageRequest(BaseModel):
    payment: PaymentPayload
    options: QrRenderOptions = Field(default_factory=QrRenderOptions)


# --- Invoice record ---


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Party(_CamelModel):
    """
    Sender or receiver of an invoice.
    """

    name: str = Field(..., description="Legal name of the party.")
    address: Optional[str] = Field(default=None, description="Street and number.")
    zip_code: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = Field(
        default=None, description="Country name, e.g. 'Germany' or 'Deutschland'."
    )
    email: Optional[str] = None
    phone: Optional[str] = None
    vat_id: Optional[str] = Field(default=None, description="VAT identifier.")
    buyer_reference: Optional[str] = Field(
        default=None,
        description="Buyer reference / Leitweg-ID (receiver only).",
    )


class InvoiceItem(_CamelModel):
    name: str
    description: Optional[str] = None
    quantity: Decimal = Field(default=Decimal("1"))
    unit_price: Decimal = Field(default=Decimal("0"))
    total: Optional[Decimal] = Field(
        default=None,
        validate_default=True,
        description="Line total (quantity * unit_price).",
    )

    @field_validator("total", mode="after")
    @classmethod
    def compute_total(cls, v, info):
        """
        If total is missing, compute it from quantity and unit_price.
        """
        if v is not None:
            return v
        qty = info.data.get("quantity")
        price = info.data.get("unit_price")
        if qty is not None and price is not None:
            return qty * price
        return None


class TaxDetails(_CamelModel):
    amount: Decimal = Field(default=Decimal("0"))
    amount_type: Literal["percentage", "amount"] = "amount"


class PaymentInformation(_CamelModel):
    bank_name: Optional[str] = None
    account_name: Optional[str] = None
    account_number: Optional[str] = None
    iban: Optional[str] = None
    bic: Optional[str] = None


class InvoiceDetails(_CamelModel):
    invoice_number: Optional[str] = Field(
        default=None, description="Invoice identifier as shown on the document."
    )
    invoice_date: date = Field(..., description="Invoice issue date.")
    due_date: Optional[date] = Field(default=None, description="Payment due date.")
    currency: str = Field(
        default="EUR", description="Currency label, e.g. 'EUR' or 'EUR - Euro'."
    )
    items: List[InvoiceItem] = Field(default_factory=list)
    tax_details: Optional[TaxDetails] = None
    sub_total: Decimal = Field(default=Decimal("0"), description="Net total.")
    total_amount: Decimal = Field(default=Decimal("0"), description="Gross total.")
    payment_information: Optional[PaymentInformation] = None
    payment_terms: Optional[str] = None
    additional_notes: Optional[str] = None
    show_epc_qr_code: bool = False

    @field_validator("invoice_date", "due_date", mode="before")
    @classmethod
    def parse_dates(cls, v):
        return parse_maybe_date(v)

    @property
    def tax_rate(self) -> Decimal:
        """VAT rate in percent; fixed tax amounts carry no rate."""
        if self.tax_details and self.tax_details.amount_type == "percentage":
            return self.tax_details.amount
        return Decimal("0")

    @property
    def tax_amount(self) -> Decimal:
        if not self.tax_details:
            return Decimal("0")
        if self.tax_details.amount_type == "percentage":
            return self.sub_total * self.tax_details.amount / 100
        return self.tax_details.amount


class Invoice(_CamelModel):
    """
    Core invoice record used by every export format.
    """

    sender: Party
    receiver: Party
    details: InvoiceDetails
