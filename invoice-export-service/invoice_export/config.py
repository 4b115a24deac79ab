"""
Runtime configuration for the Invoice Export Service.

Values come from environment variables, optionally loaded from a `.env`
file in the working directory.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


@dataclass(frozen=True)
class Settings:
    log_level: str = "INFO"
    cors_origins: Tuple[str, ...] = ("*",)
    zugferd_profile: str = "BASIC"


def load_settings() -> Settings:
    """
    Read settings from the environment (and `.env`, if present).
    """
    load_dotenv()

    origins = os.environ.get("INVOICE_EXPORT_CORS_ORIGINS", "*")
    return Settings(
        log_level=os.environ.get("INVOICE_EXPORT_LOG_LEVEL", "INFO").upper(),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()) or ("*",),
        zugferd_profile=os.environ.get("INVOICE_EXPORT_ZUGFERD_PROFILE", "BASIC").upper(),
    )


def configure_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure root logging once for the CLI and the HTTP app.
    """
    settings = settings or load_settings()
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
