"""
XRechnung (UBL 2.1, EN 16931 / XRechnung 3.0) export.

The invoice record is mapped element by element onto an UBL `Invoice`
document. Business term numbers (BT-/BG-) follow EN 16931.
"""

from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Dict, Optional

from lxml import etree

from .codes import get_country_code, get_currency_code
from .schema import Invoice, Party, to_money

logger = logging.getLogger(__name__)

NS_UBL = "urn:oasis:names:specification:ubl:schema:xsd:Invoice-2"
NS_CAC = "urn:oasis:names:specification:ubl:schema:xsd:CommonAggregateComponents-2"
NS_CBC = "urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2"
NSMAP = {"ubl": NS_UBL, "cac": NS_CAC, "cbc": NS_CBC}

CUSTOMIZATION_ID = (
    "urn:cen.eu:en16931:2017#compliant#urn:xeinkauf.de:kosit:xrechnung_3.0"
)
PROFILE_ID = "urn:fdc:peppol.eu:2017:poacc:billing:01:1.0"
INVOICE_TYPE_CODE = "380"  # commercial invoice
PAYMENT_MEANS_SEPA = "58"
TAX_CATEGORY_STANDARD = "S"
UNIT_CODE = "C62"  # one / unit


def _qname(tag: str) -> str:
    prefix, local = tag.split(":")
    return f"{{{NSMAP[prefix]}}}{local}"


def _el(
    parent: etree._Element,
    tag: str,
    text: Optional[str] = None,
    attrib: Optional[Dict[str, str]] = None,
) -> etree._Element:
    element = etree.SubElement(parent, _qname(tag), attrib or {})
    if text is not None:
        element.text = text
    return element


def _opt(parent: etree._Element, tag: str, text: Optional[str]) -> None:
    """Add a leaf element only when it has content."""
    if text:
        _el(parent, tag, text)


def _amount(parent: etree._Element, tag: str, value: Decimal, currency: str) -> None:
    _el(parent, tag, str(to_money(value)), {"currencyID": currency})


def _number(value: Decimal) -> str:
    return format(Decimal(value).normalize(), "f")


def generate_invoice_id(invoice_number: Optional[str]) -> str:
    return invoice_number or f"INV-{int(time.time() * 1000)}"


def _tax_scheme(parent: etree._Element) -> None:
    scheme = _el(parent, "cac:TaxScheme")
    _el(scheme, "cbc:ID", "VAT")


def _party(parent: etree._Element, tag: str, party: Party, seller: bool) -> None:
    wrapper = _el(parent, tag)
    node = _el(wrapper, "cac:Party")

    # BT-29 / BT-46
    ident = _el(node, "cac:PartyIdentification")
    _el(ident, "cbc:ID", party.vat_id or "")

    # BT-27 / BT-44
    name = _el(node, "cac:PartyName")
    _el(name, "cbc:Name", party.name)

    # BG-5 / BG-8
    address = _el(node, "cac:PostalAddress")
    _opt(address, "cbc:StreetName", party.address)
    _opt(address, "cbc:CityName", party.city)
    _opt(address, "cbc:PostalZone", party.zip_code)
    country = _el(address, "cac:Country")
    _el(country, "cbc:IdentificationCode", get_country_code(party.country))

    # BT-31 / BT-48; the seller always carries a tax scheme.
    if seller or party.vat_id:
        tax = _el(node, "cac:PartyTaxScheme")
        _el(tax, "cbc:CompanyID", party.vat_id or "")
        _tax_scheme(tax)

    # BG-6 / BG-9
    if party.phone or party.email:
        contact = _el(node, "cac:Contact")
        _opt(contact, "cbc:Telephone", party.phone)
        _opt(contact, "cbc:ElectronicMail", party.email)


def build_xrechnung_tree(invoice: Invoice) -> etree._Element:
    """
    Convert an invoice record into an UBL `Invoice` element tree.
    """
    details = invoice.details
    currency = get_currency_code(details.currency)
    tax_rate = _number(details.tax_rate)
    tax_amount = details.tax_amount

    root = etree.Element(_qname("ubl:Invoice"), nsmap=NSMAP)
    _el(root, "cbc:CustomizationID", CUSTOMIZATION_ID)  # BT-24
    _el(root, "cbc:ProfileID", PROFILE_ID)  # BT-23
    _el(root, "cbc:ID", generate_invoice_id(details.invoice_number))  # BT-1
    _el(root, "cbc:IssueDate", details.invoice_date.isoformat())  # BT-2
    if details.due_date:
        _el(root, "cbc:DueDate", details.due_date.isoformat())  # BT-9
    _el(root, "cbc:InvoiceTypeCode", INVOICE_TYPE_CODE)  # BT-3
    _opt(root, "cbc:Note", details.additional_notes)  # BT-22
    _el(root, "cbc:DocumentCurrencyCode", currency)  # BT-5
    _el(root, "cbc:BuyerReference", invoice.receiver.buyer_reference or "N/A")  # BT-10

    _party(root, "cac:AccountingSupplierParty", invoice.sender, seller=True)
    _party(root, "cac:AccountingCustomerParty", invoice.receiver, seller=False)

    # BG-16 payment means
    means = _el(root, "cac:PaymentMeans")
    _el(means, "cbc:PaymentMeansCode", PAYMENT_MEANS_SEPA)  # BT-81
    _opt(means, "cbc:PaymentID", details.invoice_number)  # BT-83
    payment = details.payment_information
    if payment and (payment.iban or payment.account_number):
        account = _el(means, "cac:PayeeFinancialAccount")  # BG-17
        _el(account, "cbc:ID", payment.iban or payment.account_number)  # BT-84
        _opt(account, "cbc:Name", payment.account_name)  # BT-85
        if payment.bic:
            branch = _el(account, "cac:FinancialInstitutionBranch")
            _el(branch, "cbc:ID", payment.bic)  # BT-86

    if details.payment_terms:
        terms = _el(root, "cac:PaymentTerms")
        _el(terms, "cbc:Note", details.payment_terms)  # BT-20

    # BG-23 VAT breakdown
    tax_total = _el(root, "cac:TaxTotal")
    _amount(tax_total, "cbc:TaxAmount", tax_amount, currency)  # BT-110
    subtotal = _el(tax_total, "cac:TaxSubtotal")
    _amount(subtotal, "cbc:TaxableAmount", details.sub_total, currency)  # BT-116
    _amount(subtotal, "cbc:TaxAmount", tax_amount, currency)  # BT-117
    category = _el(subtotal, "cac:TaxCategory")
    _el(category, "cbc:ID", TAX_CATEGORY_STANDARD)  # BT-118
    _el(category, "cbc:Percent", tax_rate)  # BT-119
    _tax_scheme(category)

    # BG-22 document totals
    totals = _el(root, "cac:LegalMonetaryTotal")
    _amount(totals, "cbc:LineExtensionAmount", details.sub_total, currency)  # BT-106
    _amount(totals, "cbc:TaxExclusiveAmount", details.sub_total, currency)  # BT-109
    _amount(totals, "cbc:TaxInclusiveAmount", details.total_amount, currency)  # BT-112
    _amount(totals, "cbc:PayableAmount", details.total_amount, currency)  # BT-115

    # BG-25 invoice lines
    for index, item in enumerate(details.items, start=1):
        line = _el(root, "cac:InvoiceLine")
        _el(line, "cbc:ID", str(index))  # BT-126
        _el(
            line,
            "cbc:InvoicedQuantity",
            _number(item.quantity),
            {"unitCode": UNIT_CODE},
        )  # BT-129
        _amount(line, "cbc:LineExtensionAmount", item.total or Decimal("0"), currency)  # BT-131
        product = _el(line, "cac:Item")
        _el(product, "cbc:Description", item.description or item.name)  # BT-154
        _el(product, "cbc:Name", item.name)  # BT-153
        classified = _el(product, "cac:ClassifiedTaxCategory")
        _el(classified, "cbc:ID", TAX_CATEGORY_STANDARD)  # BT-151
        _el(classified, "cbc:Percent", tax_rate)  # BT-152
        _tax_scheme(classified)
        price = _el(line, "cac:Price")
        _amount(price, "cbc:PriceAmount", item.unit_price, currency)  # BT-146

    return root


def generate_xrechnung_xml(invoice: Invoice) -> bytes:
    """
    Generate the XRechnung XML document for an invoice.

    Returns
    -------
    bytes
        Pretty-printed UTF-8 XML including the XML declaration.
    """
    root = build_xrechnung_tree(invoice)
    xml = etree.tostring(
        root, xml_declaration=True, encoding="UTF-8", pretty_print=True
    )
    logger.info(
        f"Generated XRechnung for invoice {invoice.details.invoice_number or '<unnumbered>'} "
        f"({len(invoice.details.items)} lines)"
    )
    return xml


def xrechnung_filename(invoice: Invoice) -> str:
    return f"xrechnung-{invoice.details.invoice_number or 'invoice'}.xml"
