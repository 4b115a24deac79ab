"""
Top-level package for the Invoice Export Service.

This package exposes:
- EPC-QR-Code (GiroCode) payload encoding and rendering
- XRechnung (UBL) XML export
- ZUGFeRD / Factur-X PDF embedding
- CLI entrypoints
- HTTP API (FastAPI)
"""

__all__ = [
    "schema",
    "codes",
    "epc_qr",
    "xrechnung",
    "zugferd",
]

__version__ = "1.0.0"
