"""
Exceptions raised by the export pipeline.

Hierarchy:
    InvoiceExportError (base)
    ├── ValidationError   bad or missing input, never retried
    └── RenderError       failure inside a QR / XML / PDF library
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class InvoiceExportError(Exception):
    """
    Base class for all errors raised by this package.

    Attributes:
        message: Human-readable error message.
        details: Optional dictionary with additional context.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(InvoiceExportError):
    """
    Raised for missing mandatory fields or structurally invalid input
    (IBAN, BIC, base PDF).
    """


class RenderError(InvoiceExportError):
    """
    Raised when an external rendering collaborator fails.

    The original library exception is available as ``__cause__``.
    """
