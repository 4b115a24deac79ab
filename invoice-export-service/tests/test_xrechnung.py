from lxml import etree

from invoice_export.xrechnung import (
    CUSTOMIZATION_ID,
    NSMAP,
    build_xrechnung_tree,
    generate_xrechnung_xml,
    xrechnung_filename,
)


def _text(root, path):
    return root.findtext(path, namespaces=NSMAP)


def test_header_fields(invoice):
    root = build_xrechnung_tree(invoice)

    assert etree.QName(root).localname == "Invoice"
    assert _text(root, "cbc:CustomizationID") == CUSTOMIZATION_ID
    assert _text(root, "cbc:ID") == "2024-001"
    assert _text(root, "cbc:IssueDate") == "2024-03-01"
    assert _text(root, "cbc:DueDate") == "2024-03-31"
    assert _text(root, "cbc:InvoiceTypeCode") == "380"
    assert _text(root, "cbc:DocumentCurrencyCode") == "EUR"
    assert _text(root, "cbc:BuyerReference") == "04011000-12345-67"
    assert _text(root, "cbc:Note") == "Thank you for your business."


def test_parties_use_iso_country_codes(invoice):
    root = build_xrechnung_tree(invoice)

    seller = root.find("cac:AccountingSupplierParty/cac:Party", NSMAP)
    buyer = root.find("cac:AccountingCustomerParty/cac:Party", NSMAP)
    assert _text(seller, "cac:PartyName/cbc:Name") == "Muster GmbH"
    assert _text(seller, "cac:PostalAddress/cac:Country/cbc:IdentificationCode") == "DE"
    assert _text(seller, "cac:PartyTaxScheme/cbc:CompanyID") == "DE123456789"
    assert _text(buyer, "cac:PostalAddress/cac:Country/cbc:IdentificationCode") == "AT"
    assert _text(buyer, "cac:Contact/cbc:ElectronicMail") == "ap@kunde.example"


def test_buyer_without_vat_id_has_no_tax_scheme(invoice):
    root = build_xrechnung_tree(invoice)
    buyer = root.find("cac:AccountingCustomerParty/cac:Party", NSMAP)
    assert buyer.find("cac:PartyTaxScheme", NSMAP) is None


def test_payment_means(invoice):
    root = build_xrechnung_tree(invoice)
    means = root.find("cac:PaymentMeans", NSMAP)

    assert _text(means, "cbc:PaymentMeansCode") == "58"
    assert _text(means, "cbc:PaymentID") == "2024-001"
    assert _text(means, "cac:PayeeFinancialAccount/cbc:ID") == "DE89 3704 0044 0532 0130 00"
    assert _text(means, "cac:PayeeFinancialAccount/cac:FinancialInstitutionBranch/cbc:ID") == "COBADEFFXXX"


def test_account_number_fallback(invoice):
    payment = invoice.details.payment_information
    payment.iban = None
    payment.bic = None
    payment.account_number = "0532013000"

    means = build_xrechnung_tree(invoice).find("cac:PaymentMeans", NSMAP)
    assert _text(means, "cac:PayeeFinancialAccount/cbc:ID") == "0532013000"
    assert means.find("cac:PayeeFinancialAccount/cac:FinancialInstitutionBranch", NSMAP) is None


def test_percentage_tax_and_totals(invoice):
    root = build_xrechnung_tree(invoice)

    tax_amount = root.find("cac:TaxTotal/cbc:TaxAmount", NSMAP)
    assert tax_amount.text == "190.00"
    assert tax_amount.get("currencyID") == "EUR"
    assert _text(root, "cac:TaxTotal/cac:TaxSubtotal/cac:TaxCategory/cbc:Percent") == "19"
    assert _text(root, "cac:LegalMonetaryTotal/cbc:TaxExclusiveAmount") == "1000.00"
    assert _text(root, "cac:LegalMonetaryTotal/cbc:PayableAmount") == "1190.00"


def test_fixed_tax_amount_has_zero_rate(invoice):
    invoice.details.tax_details.amount_type = "amount"
    invoice.details.tax_details.amount = 42

    root = build_xrechnung_tree(invoice)
    assert _text(root, "cac:TaxTotal/cbc:TaxAmount") == "42.00"
    assert _text(root, "cac:TaxTotal/cac:TaxSubtotal/cac:TaxCategory/cbc:Percent") == "0"


def test_invoice_lines(invoice):
    lines = build_xrechnung_tree(invoice).findall("cac:InvoiceLine", NSMAP)

    assert [_text(line, "cbc:ID") for line in lines] == ["1", "2"]
    first, second = lines
    quantity = first.find("cbc:InvoicedQuantity", NSMAP)
    assert quantity.text == "2"
    assert quantity.get("unitCode") == "C62"
    assert _text(first, "cbc:LineExtensionAmount") == "800.00"
    assert _text(first, "cac:Item/cbc:Description") == "Workshop, 2 days"
    assert _text(first, "cac:Price/cbc:PriceAmount") == "400.00"
    # description falls back to the item name, total to quantity * price
    assert _text(second, "cac:Item/cbc:Description") == "Travel"
    assert _text(second, "cbc:LineExtensionAmount") == "200.00"


def test_defaults_for_missing_values(invoice):
    invoice.details.invoice_number = None
    invoice.details.currency = "Euro"
    invoice.receiver.buyer_reference = None

    root = build_xrechnung_tree(invoice)
    assert _text(root, "cbc:ID").startswith("INV-")
    assert _text(root, "cbc:DocumentCurrencyCode") == "EUR"
    assert _text(root, "cbc:BuyerReference") == "N/A"
    assert xrechnung_filename(invoice) == "xrechnung-invoice.xml"


def test_generate_xml_document(invoice):
    xml = generate_xrechnung_xml(invoice)

    assert xml.startswith(b"<?xml version='1.0' encoding='UTF-8'?>")
    root = etree.fromstring(xml)
    assert root.nsmap["cbc"] == NSMAP["cbc"]
    assert xrechnung_filename(invoice) == "xrechnung-2024-001.xml"
