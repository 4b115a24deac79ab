"""
Command-line interface for the Invoice Export Service.

Usage examples:
    invoice-export epc --name "Jane Doe" --iban "DE89 3704 0044 0532 0130 00" --amount 12.50
    invoice-export qr --name "Jane Doe" --iban DE89370400440532013000 --output output/girocode.png
    invoice-export xrechnung --input invoice.json --output output/xrechnung.xml
    invoice-export zugferd --input invoice.json --pdf invoice.pdf --output output/zugferd.pdf
"""

from __future__ import annotations

import base64
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError as PydanticValidationError

from .config import configure_logging, load_settings
from .epc_qr import encode, render_image
from .exceptions import InvoiceExportError
from .schema import Invoice, PaymentPayload, QrOutputFormat, QrRenderOptions
from .xrechnung import generate_xrechnung_xml
from .zugferd import ZugferdProfile, embed_zugferd, resolve_profile

app = typer.Typer(help="GiroCode, XRechnung and ZUGFeRD export CLI.")


def _ensure_parent_directory(path: Path) -> None:
    """
    Ensure the parent directory for a file path exists.
    """
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)


def _fail(message: str) -> None:
    typer.echo(message, err=True)
    raise typer.Exit(code=1)


def _load_invoice(input: str) -> Invoice:
    input_path = Path(input)
    if not input_path.exists():
        _fail(f"Input JSON not found: {input_path}")
    try:
        return Invoice.model_validate_json(input_path.read_text(encoding="utf-8"))
    except PydanticValidationError as exc:
        _fail(f"Invalid invoice JSON in {input_path}:\n{exc}")


def _build_payment(
    name: str, iban: str, bic: Optional[str], amount: Optional[str],
    reference: Optional[str], message: Optional[str],
) -> PaymentPayload:
    try:
        value = Decimal(amount) if amount else None
    except InvalidOperation:
        _fail(f"Invalid amount: {amount}")
    return PaymentPayload(
        name=name,
        iban=iban,
        bic=bic,
        amount=value,
        reference=reference,
        message=message,
    )


@app.callback()
def main_callback() -> None:
    configure_logging()


@app.command()
def epc(
    name: str = typer.Option(..., "--name", help="Beneficiary name."),
    iban: str = typer.Option(..., "--iban", help="Beneficiary IBAN."),
    bic: Optional[str] = typer.Option(None, "--bic", help="Beneficiary BIC."),
    amount: Optional[str] = typer.Option(None, "--amount", help="Amount in EUR, e.g. 12.50."),
    reference: Optional[str] = typer.Option(None, "--reference", help="Structured reference."),
    message: Optional[str] = typer.Option(None, "--message", help="Remittance message."),
) -> None:
    """
    Print the EPC069-12 (GiroCode) payload for a payment.
    """
    payload = _build_payment(name, iban, bic, amount, reference, message)
    try:
        typer.echo(encode(payload))
    except InvoiceExportError as exc:
        _fail(exc.message)


@app.command()
def qr(
    name: str = typer.Option(..., "--name", help="Beneficiary name."),
    iban: str = typer.Option(..., "--iban", help="Beneficiary IBAN."),
    bic: Optional[str] = typer.Option(None, "--bic", help="Beneficiary BIC."),
    amount: Optional[str] = typer.Option(None, "--amount", help="Amount in EUR, e.g. 12.50."),
    reference: Optional[str] = typer.Option(None, "--reference", help="Structured reference."),
    message: Optional[str] = typer.Option(None, "--message", help="Remittance message."),
    output: str = typer.Option(
        "output/girocode.png",
        "--output",
        help="Target file; a .svg suffix writes SVG, anything else PNG.",
    ),
    size: int = typer.Option(200, "--size", help="Width in pixels."),
    level: str = typer.Option("M", "--level", help="Error correction level (L, M, Q, H)."),
) -> None:
    """
    Render a GiroCode QR symbol to a PNG or SVG file.
    """
    payload = _build_payment(name, iban, bic, amount, reference, message)
    output_path = Path(output)
    svg = output_path.suffix.lower() == ".svg"
    options = QrRenderOptions(
        size=size,
        error_correction_level=level,
        format=QrOutputFormat.SVG if svg else QrOutputFormat.BASE64,
    )

    try:
        image = render_image(payload, options)
    except InvoiceExportError as exc:
        _fail(exc.message)

    _ensure_parent_directory(output_path)
    if svg:
        output_path.write_text(image, encoding="utf-8")
    else:
        output_path.write_bytes(base64.b64decode(image))
    typer.echo(f"GiroCode written to {output_path}")


@app.command()
def xrechnung(
    input: str = typer.Option(..., "--input", help="Invoice JSON file."),
    output: str = typer.Option(
        "output/xrechnung.xml",
        "--output",
        help="Path to write the XRechnung XML.",
    ),
) -> None:
    """
    Export an invoice JSON file as XRechnung (UBL) XML.
    """
    invoice = _load_invoice(input)
    try:
        xml = generate_xrechnung_xml(invoice)
    except InvoiceExportError as exc:
        _fail(exc.message)

    output_path = Path(output)
    _ensure_parent_directory(output_path)
    output_path.write_bytes(xml)
    typer.echo(f"XRechnung written to {output_path}")


@app.command()
def zugferd(
    input: str = typer.Option(..., "--input", help="Invoice JSON file."),
    pdf: str = typer.Option(..., "--pdf", help="Rendered invoice PDF to embed into."),
    output: str = typer.Option(
        "output/zugferd.pdf",
        "--output",
        help="Path to write the ZUGFeRD PDF.",
    ),
    profile: Optional[ZugferdProfile] = typer.Option(
        None, "--profile", help="Factur-X profile (default from INVOICE_EXPORT_ZUGFERD_PROFILE)."
    ),
) -> None:
    """
    Embed ZUGFeRD XML for an invoice JSON file into an existing PDF.
    """
    if profile is None:
        try:
            profile = resolve_profile(load_settings().zugferd_profile)
        except InvoiceExportError as exc:
            _fail(exc.message)
    invoice = _load_invoice(input)
    pdf_path = Path(pdf)
    if not pdf_path.exists():
        _fail(f"PDF not found: {pdf_path}")

    try:
        result = embed_zugferd(invoice, pdf_path.read_bytes(), profile)
    except InvoiceExportError as exc:
        _fail(exc.message)

    output_path = Path(output)
    _ensure_parent_directory(output_path)
    output_path.write_bytes(result)
    typer.echo(f"ZUGFeRD PDF ({profile.value}) written to {output_path}")


def main() -> None:
    """
    Entrypoint used when executing as a module.
    """
    app()


if __name__ == "__main__":
    main()
