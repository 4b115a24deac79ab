"""
ZUGFeRD / Factur-X export.

The invoice record is mapped onto a drafthorse CII document, serialized and
validated against the Factur-X schema of the chosen profile, and embedded
into an existing PDF as a PDF/A-3 attachment. Rendering the visible invoice
page is not done here: callers supply the base PDF.
"""

from __future__ import annotations

import io
import logging
from decimal import Decimal
from enum import Enum

import pdfplumber
from drafthorse.models.accounting import ApplicableTradeTax
from drafthorse.models.document import Document
from drafthorse.models.note import IncludedNote
from drafthorse.models.party import TaxRegistration
from drafthorse.models.payment import PaymentMeans, PaymentTerms
from drafthorse.models.tradelines import LineItem
from drafthorse.pdf import attach_xml

from .codes import get_country_code, get_currency_code
from .exceptions import RenderError, ValidationError
from .schema import Invoice, Party, to_money

logger = logging.getLogger(__name__)

TYPE_CODE = "380"  # commercial invoice
TAX_TYPE = "VAT"
TAX_CATEGORY_STANDARD = "S"
PAYMENT_MEANS_SEPA = "58"
UNIT_CODE = "C62"
VAT_SCHEME = "VA"


class ZugferdProfile(str, Enum):
    BASIC = "BASIC"
    EN16931 = "EN16931"
    EXTENDED = "EXTENDED"

    @property
    def guideline(self) -> str:
        return _GUIDELINES[self]

    @property
    def schema(self) -> str:
        return f"FACTUR-X_{self.value}"

    @property
    def detailed(self) -> bool:
        """Contacts, account names, BICs and item descriptions need EN 16931 or above."""
        return self is not ZugferdProfile.BASIC


_GUIDELINES = {
    ZugferdProfile.BASIC: "urn:cen.eu:en16931:2017#compliant#urn:factur-x.eu:1p0:basic",
    ZugferdProfile.EN16931: "urn:cen.eu:en16931:2017",
    ZugferdProfile.EXTENDED: "urn:cen.eu:en16931:2017#conformant#urn:factur-x.eu:1p0:extended",
}


def resolve_profile(name: str) -> ZugferdProfile:
    """
    Look up a profile by name, e.g. the configured default profile.

    Raises
    ------
    ValidationError
        If `name` is not a known profile.
    """
    try:
        return ZugferdProfile(str(name).strip().upper())
    except ValueError as exc:
        raise ValidationError(
            f"Unknown ZUGFeRD profile: {name}",
            {"supported": [p.value for p in ZugferdProfile]},
        ) from exc


def _fill_party(trade_party, party: Party, profile: ZugferdProfile) -> None:
    trade_party.name = party.name
    if party.vat_id:
        trade_party.tax_registrations.add(TaxRegistration(id=(VAT_SCHEME, party.vat_id)))
    if party.address:
        trade_party.address.line_one = party.address
    if party.zip_code:
        trade_party.address.postcode = party.zip_code
    if party.city:
        trade_party.address.city_name = party.city
    trade_party.address.country_id = get_country_code(party.country)

    if profile.detailed:
        if party.email:
            trade_party.contact.email.address = party.email
        if party.phone:
            trade_party.contact.telephone.number = party.phone


def build_zugferd_document(
    invoice: Invoice, profile: ZugferdProfile = ZugferdProfile.BASIC
) -> Document:
    """
    Convert an invoice record into a drafthorse document for `profile`.

    Raises
    ------
    ValidationError
        If the invoice has no line items (every Factur-X profile from
        BASIC upwards requires at least one).
    """
    details = invoice.details
    if not details.items:
        raise ValidationError("ZUGFeRD invoices need at least one line item")

    currency = get_currency_code(details.currency)
    tax_rate = to_money(details.tax_rate)

    doc = Document()
    doc.context.guideline_parameter.id = profile.guideline

    doc.header.id = details.invoice_number or "invoice"  # BT-1
    doc.header.type_code = TYPE_CODE  # BT-3
    doc.header.issue_date_time = details.invoice_date  # BT-2
    if details.additional_notes:
        doc.header.notes.add(IncludedNote(content=details.additional_notes))  # BT-22

    agreement = doc.trade.agreement
    if invoice.receiver.buyer_reference:
        agreement.buyer_reference = invoice.receiver.buyer_reference  # BT-10
    _fill_party(agreement.seller, invoice.sender, profile)
    _fill_party(agreement.buyer, invoice.receiver, profile)

    doc.trade.delivery.event.occurrence = details.invoice_date  # BT-72

    settlement = doc.trade.settlement
    settlement.currency_code = currency  # BT-5
    if details.invoice_number:
        settlement.payment_reference = details.invoice_number  # BT-83

    payment = details.payment_information
    if payment and (payment.iban or payment.account_number):
        means = PaymentMeans()
        means.type_code = PAYMENT_MEANS_SEPA  # BT-81
        means.payee_account.iban = payment.iban or payment.account_number  # BT-84
        if profile.detailed:
            if payment.account_name:
                means.payee_account.account_name = payment.account_name  # BT-85
            if payment.bic:
                means.payee_institution.bic = payment.bic  # BT-86
        settlement.payment_means.add(means)

    if details.payment_terms or details.due_date:
        terms = PaymentTerms()
        if details.payment_terms:
            terms.description = details.payment_terms  # BT-20
        if details.due_date:
            terms.due = details.due_date  # BT-9
        settlement.terms.add(terms)

    trade_tax = ApplicableTradeTax()
    trade_tax.calculated_amount = to_money(details.tax_amount)  # BT-117
    trade_tax.basis_amount = to_money(details.sub_total)  # BT-116
    trade_tax.type_code = TAX_TYPE
    trade_tax.category_code = TAX_CATEGORY_STANDARD  # BT-118
    trade_tax.rate_applicable_percent = tax_rate  # BT-119
    settlement.trade_tax.add(trade_tax)

    summation = settlement.monetary_summation
    summation.line_total = to_money(details.sub_total)  # BT-106
    summation.tax_basis_total = to_money(details.sub_total)  # BT-109
    summation.tax_total = (to_money(details.tax_amount), currency)  # BT-110
    summation.grand_total = to_money(details.total_amount)  # BT-112
    summation.due_amount = to_money(details.total_amount)  # BT-115

    for index, item in enumerate(details.items, start=1):
        li = LineItem()
        li.document.line_id = str(index)  # BT-126
        li.product.name = item.name  # BT-153
        if profile.detailed and item.description:
            li.product.description = item.description  # BT-154
        li.agreement.net.amount = to_money(item.unit_price)  # BT-146
        li.delivery.billed_quantity = (Decimal(item.quantity), UNIT_CODE)  # BT-129
        li.settlement.trade_tax.type_code = TAX_TYPE
        li.settlement.trade_tax.category_code = TAX_CATEGORY_STANDARD  # BT-151
        li.settlement.trade_tax.rate_applicable_percent = tax_rate  # BT-152
        li.settlement.monetary_summation.total_amount = to_money(
            item.total or Decimal("0")
        )  # BT-131
        doc.trade.items.add(li)

    return doc


def generate_zugferd_xml(
    invoice: Invoice, profile: ZugferdProfile = ZugferdProfile.BASIC
) -> bytes:
    """
    Serialize the CII XML for an invoice, validated against the profile schema.
    """
    doc = build_zugferd_document(invoice, profile)
    try:
        return doc.serialize(schema=profile.schema)
    except Exception as exc:
        logger.error(f"ZUGFeRD XML does not validate against {profile.schema}: {exc}")
        raise RenderError(
            "Failed to generate ZUGFeRD XML", {"profile": profile.value, "reason": str(exc)}
        ) from exc


def _check_base_pdf(pdf_bytes: bytes) -> int:
    """
    Make sure the base PDF is readable and return its page count.
    """
    try:
        with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
            page_count = len(pdf.pages)
    except Exception as exc:
        logger.warning(f"Rejected unreadable base PDF: {exc}")
        raise ValidationError("Base PDF could not be read") from exc

    if page_count == 0:
        raise ValidationError("Base PDF has no pages")
    return page_count


def embed_zugferd(
    invoice: Invoice,
    pdf_bytes: bytes,
    profile: ZugferdProfile = ZugferdProfile.BASIC,
) -> bytes:
    """
    Produce a ZUGFeRD PDF: the base PDF with the invoice XML attached.

    Parameters
    ----------
    invoice:
        Invoice to export.
    pdf_bytes:
        Already rendered, human-readable invoice PDF.
    profile:
        Factur-X profile of the embedded XML.

    Returns
    -------
    bytes
        PDF/A-3 document with `factur-x.xml` attached.
    """
    page_count = _check_base_pdf(pdf_bytes)
    xml = generate_zugferd_xml(invoice, profile)

    number = invoice.details.invoice_number or ""
    metadata = {
        "title": f"Invoice {number}".strip(),
        "author": invoice.sender.name,
        "subject": f"Invoice for {invoice.receiver.name}",
        "keywords": "Factur-X, ZUGFeRD, Invoice",
    }
    try:
        result = attach_xml(pdf_bytes, xml, metadata=metadata)
    except Exception as exc:
        logger.error(f"Embedding ZUGFeRD XML failed: {exc}")
        raise RenderError("Failed to embed ZUGFeRD XML into PDF", {"reason": str(exc)}) from exc

    logger.info(
        f"Generated ZUGFeRD {profile.value} PDF for invoice {number or '<unnumbered>'} "
        f"({page_count} pages)"
    )
    return result


def zugferd_filename(invoice: Invoice) -> str:
    return f"zugferd-{invoice.details.invoice_number or 'invoice'}.pdf"
