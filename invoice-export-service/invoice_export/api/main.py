"""
FastAPI application for the Invoice Export Service.

Endpoints
---------
- GET  /health
- POST /epc-qr/payload
- POST /epc-qr/image
- GET  /epc-qr/availability
- POST /invoice/epc-qr
- POST /invoice/xrechnung
- POST /invoice/zugferd  (multipart: invoice JSON + base PDF)
"""

from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import quote

from fastapi import FastAPI, File, Form, Query, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError as PydanticValidationError

from ..config import configure_logging, load_settings
from ..epc_qr import can_encode, encode, payload_from_invoice, render_image
from ..exceptions import RenderError, ValidationError
from ..schema import (
    Invoice,
    PaymentPayload,
    QrImageRequest,
    QrOutputFormat,
    QrRenderOptions,
)
from ..xrechnung import generate_xrechnung_xml, xrechnung_filename
from ..zugferd import ZugferdProfile, embed_zugferd, resolve_profile, zugferd_filename

settings = load_settings()
configure_logging(settings)
logger = logging.getLogger(__name__)

UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")

app = FastAPI(title="Invoice Export Service", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    logger.warning(f"{request.url.path}: {exc.message}")
    return JSONResponse(status_code=422, content={"error": exc.message})


@app.exception_handler(RenderError)
async def render_error_handler(request: Request, exc: RenderError) -> JSONResponse:
    logger.error(f"{request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=500, content={"error": exc.message, "details": exc.details}
    )


def _attachment(filename: str) -> str:
    """
    Content-Disposition for a download: an ASCII-safe `filename` plus the
    exact name as RFC 5987 `filename*`.
    """
    fallback = UNSAFE_FILENAME_CHARS.sub("_", filename)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def _image_response(image: str, options: QrRenderOptions):
    if options.format == QrOutputFormat.SVG:
        return Response(content=image, media_type="image/svg+xml")
    return {"image": image}


@app.get("/health")
async def health() -> dict:
    """
    Simple health-check endpoint.
    """
    return {"status": "ok"}


@app.post("/epc-qr/payload")
async def epc_payload(payment: PaymentPayload) -> dict:
    """
    Return the raw EPC069-12 text for a payment.
    """
    return {"payload": encode(payment)}


@app.post("/epc-qr/image")
async def epc_image(body: QrImageRequest):
    """
    Render a GiroCode. SVG is returned as `image/svg+xml`, PNG variants as
    JSON `{"image": ...}`.
    """
    image = await run_in_threadpool(render_image, body.payment, body.options)
    return _image_response(image, body.options)


@app.get("/epc-qr/availability")
async def epc_availability(
    iban: Optional[str] = Query(default=None),
    currency: Optional[str] = Query(default=None),
) -> dict:
    """
    Tell the form whether a GiroCode can be offered for this IBAN/currency.
    """
    return {"available": can_encode(iban, currency)}


@app.post("/invoice/epc-qr")
async def invoice_epc_qr(invoice: Invoice) -> dict:
    """
    Build the GiroCode for an invoice's payment information.
    """
    payment = invoice.details.payment_information
    if not can_encode(payment.iban if payment else None, invoice.details.currency):
        raise ValidationError("EPC-QR-Code requires a valid IBAN and EUR currency")

    payload = payload_from_invoice(invoice)
    options = QrRenderOptions()
    image = await run_in_threadpool(render_image, payload, options)
    return {"payload": encode(payload), "image": image}


@app.post("/invoice/xrechnung")
async def invoice_xrechnung(invoice: Invoice) -> Response:
    """
    Export an invoice as XRechnung (UBL) XML attachment.
    """
    xml = generate_xrechnung_xml(invoice)
    return Response(
        content=xml,
        media_type="application/xml; charset=utf-8",
        headers={
            "Content-Disposition": _attachment(xrechnung_filename(invoice))
        },
    )


@app.post("/invoice/zugferd")
async def invoice_zugferd(
    invoice: str = Form(..., description="Invoice JSON following the Invoice schema."),
    pdf: UploadFile = File(..., description="Rendered invoice PDF to embed into."),
    profile: Optional[ZugferdProfile] = Query(default=None),
) -> Response:
    """
    Attach ZUGFeRD XML to an uploaded invoice PDF.
    """
    try:
        invoice_obj = Invoice.model_validate_json(invoice)
    except PydanticValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc

    selected = profile or resolve_profile(settings.zugferd_profile)
    content = await pdf.read()
    result = await run_in_threadpool(embed_zugferd, invoice_obj, content, selected)
    return Response(
        content=result,
        media_type="application/pdf",
        headers={
            "Content-Disposition": _attachment(zugferd_filename(invoice_obj)),
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
        },
    )


# For local development convenience:
#   uvicorn invoice_export.api.main:app --reload
