"""
EPC-QR-Code (GiroCode) encoder for SEPA Credit Transfers.

Builds the EPC069-12 (version 002) text payload and renders it as a QR
symbol. Banking apps in Germany, Austria, Belgium, Finland and the
Netherlands scan the symbol to pre-fill a transfer.

Payload lines:
    1  BCD      service tag
    2  002      version
    3  1        character set (UTF-8)
    4  SCT      SEPA Credit Transfer
    5  BIC      (may be empty)
    6  beneficiary name, max 70
    7  IBAN
    8  EUR amount, e.g. EUR12.50 (may be empty)
    9  purpose code, always empty here
    10 structured reference, max 140
    11 unstructured message, max 140
"""

from __future__ import annotations

import base64
import io
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Optional

import qrcode
from lxml import etree
from PIL import Image
from qrcode.exceptions import DataOverflowError
from qrcode.image.svg import SvgPathImage

from .codes import currency_token
from .exceptions import RenderError, ValidationError
from .schema import (
    Invoice,
    PaymentPayload,
    QrOutputFormat,
    QrRenderOptions,
    to_money,
)

logger = logging.getLogger(__name__)

SERVICE_TAG = "BCD"
VERSION = "002"
CHARACTER_SET = "1"
IDENTIFICATION = "SCT"

MAX_NAME_LENGTH = 70
MAX_REFERENCE_LENGTH = 140
MAX_MESSAGE_LENGTH = 140
MAX_AMOUNT = Decimal("999999999.99")

QR_MARGIN = 1
DATA_URL_PREFIX = "data:image/png;base64,"

IBAN_PATTERN = re.compile(r"^[A-Z]{2}[0-9]{2}[A-Z0-9]{4,30}$")
BIC_PATTERN = re.compile(r"^[A-Z]{4}[A-Z]{2}[A-Z0-9]{2}([A-Z0-9]{3})?$")
WHITESPACE = re.compile(r"\s")

ERROR_CORRECTION_LEVELS = {
    "L": qrcode.constants.ERROR_CORRECT_L,
    "M": qrcode.constants.ERROR_CORRECT_M,
    "Q": qrcode.constants.ERROR_CORRECT_Q,
    "H": qrcode.constants.ERROR_CORRECT_H,
}


def _clean(value: str) -> str:
    return WHITESPACE.sub("", value).upper()


def validate_iban(iban: str) -> bool:
    """
    Structural IBAN check: country code, check digits, 4-30 alphanumerics.
    Check digits are not verified.
    """
    return bool(IBAN_PATTERN.match(_clean(iban)))


def validate_bic(bic: Optional[str]) -> bool:
    if not bic:
        return True
    return bool(BIC_PATTERN.match(_clean(bic)))


def format_amount(amount: Optional[Decimal]) -> str:
    """
    Format an amount as `EUR<amount>` with two decimals.

    Amounts are rounded half up to cents first; a rounded amount outside
    (0, 999999999.99] yields an empty field instead of an error.
    """
    if amount is None:
        return ""
    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError, ValueError):
        return ""
    if not value.is_finite():
        return ""
    value = to_money(value)
    if value <= 0 or value > MAX_AMOUNT:
        return ""
    return f"EUR{value}"


def truncate(text: Optional[str], max_length: int) -> str:
    if not text:
        return ""
    return text[:max_length]


def encode(payload: PaymentPayload) -> str:
    """
    Build the EPC069-12 payload text for a payment.

    Raises
    ------
    ValidationError
        If name or IBAN is missing, or IBAN / BIC are malformed.
    """
    if not payload.name or not payload.iban:
        raise ValidationError("Name and IBAN are required")

    if not validate_iban(payload.iban):
        raise ValidationError("Invalid IBAN format", {"iban": payload.iban})

    if payload.bic and not validate_bic(payload.bic):
        raise ValidationError("Invalid BIC format", {"bic": payload.bic})

    lines = [
        SERVICE_TAG,
        VERSION,
        CHARACTER_SET,
        IDENTIFICATION,
        _clean(payload.bic) if payload.bic else "",
        truncate(payload.name, MAX_NAME_LENGTH),
        _clean(payload.iban),
        format_amount(payload.amount),
        "",  # purpose code
        truncate(payload.reference, MAX_REFERENCE_LENGTH),
        truncate(payload.message, MAX_MESSAGE_LENGTH),
    ]
    return "\n".join(lines)


def _build_qr(text: str, options: QrRenderOptions) -> qrcode.QRCode:
    level = ERROR_CORRECTION_LEVELS.get(str(options.error_correction_level).upper())
    if level is None:
        raise RenderError(
            f"Unsupported error correction level: {options.error_correction_level}",
            {"supported": sorted(ERROR_CORRECTION_LEVELS)},
        )

    qr = qrcode.QRCode(version=None, error_correction=level, border=QR_MARGIN)
    qr.add_data(text)
    try:
        qr.make(fit=True)
    except DataOverflowError as exc:
        raise RenderError("Payload does not fit into a QR code") from exc

    # Largest whole box size that fits the requested width.
    qr.box_size = max(1, options.size // (qr.modules_count + 2 * QR_MARGIN))
    return qr


def _render_png(qr: qrcode.QRCode, size: int) -> bytes:
    buffer = io.BytesIO()
    qr.make_image(fill_color="black", back_color="white").save(buffer)
    buffer.seek(0)

    image = Image.open(buffer)
    if image.size != (size, size):
        image = image.resize((size, size), Image.NEAREST)

    out = io.BytesIO()
    image.save(out, format="PNG")
    return out.getvalue()


def _render_svg(qr: qrcode.QRCode, size: int) -> str:
    buffer = io.BytesIO()
    qr.make_image(image_factory=SvgPathImage).save(buffer)

    root = etree.fromstring(buffer.getvalue())
    root.set("width", str(size))
    root.set("height", str(size))
    return etree.tostring(root, encoding="unicode")


def render_image(
    payload: PaymentPayload, options: Optional[QrRenderOptions] = None
) -> str:
    """
    Encode a payment and render it as a QR symbol.

    Parameters
    ----------
    payload:
        Payment to encode. Validation errors from `encode` propagate unchanged.
    options:
        Size, error-correction level and output format. Defaults to a
        200px, level-M data URL.

    Returns
    -------
    str
        A `data:image/png;base64,` URL, the bare base64 PNG, or SVG markup.

    Raises
    ------
    RenderError
        If the QR library rejects the options or the payload.
    """
    options = options or QrRenderOptions()
    text = encode(payload)

    try:
        qr = _build_qr(text, options)
        if options.format == QrOutputFormat.SVG:
            return _render_svg(qr, options.size)
        png = _render_png(qr, options.size)
    except RenderError as exc:
        logger.error(f"QR rendering failed: {exc.message}")
        raise
    except (OSError, ValueError, etree.XMLSyntaxError) as exc:
        logger.error(f"QR rendering failed: {exc}")
        raise RenderError("Failed to render QR code", {"reason": str(exc)}) from exc

    data_url = DATA_URL_PREFIX + base64.b64encode(png).decode("ascii")
    if options.format == QrOutputFormat.BASE64:
        return data_url[len(DATA_URL_PREFIX):]
    return data_url


def can_encode(iban: Optional[str], currency: Optional[str] = None) -> bool:
    """
    True if a GiroCode can be produced: an IBAN is present and structurally
    valid, and the currency label (if any) denotes EUR.
    """
    if not iban:
        return False

    code = currency_token(currency)
    if code and code != "EUR":
        return False

    return validate_iban(iban)


def payload_from_invoice(invoice: Invoice) -> PaymentPayload:
    """
    Extract the GiroCode input from an invoice record.

    The beneficiary is the payment account holder, falling back to the
    sender. The invoice number goes into the unstructured message; the
    structured reference is reserved for RF creditor references.
    """
    details = invoice.details
    payment = details.payment_information
    number = details.invoice_number

    return PaymentPayload(
        name=(payment.account_name if payment else None) or invoice.sender.name,
        iban=payment.iban if payment else None,
        bic=payment.bic if payment else None,
        amount=details.total_amount,
        message=f"Invoice {number}" if number else None,
    )
