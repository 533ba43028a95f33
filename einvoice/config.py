"""
Runtime settings for e-invoice generation.

Values come from the environment (optionally a ``.env`` file) so the host
application can change them without code changes.
"""
from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class EInvoiceConfig:
    standard: str = "zugferd"
    pdf_lang: str = "de"  # RFC 3066 tag written into the PDF/A catalog
    check_xsd: bool = False


def get_config() -> EInvoiceConfig:
    """Build the configuration from the current environment.

    A ``.env`` file in the working directory (or above it) is read first;
    variables already set in the environment win.
    """
    load_dotenv(find_dotenv(usecwd=True))
    return EInvoiceConfig(
        standard=os.getenv("EINVOICE_STANDARD", "zugferd").strip() or "zugferd",
        pdf_lang=os.getenv("EINVOICE_PDF_LANG", "de").strip() or "de",
        check_xsd=_env_flag("EINVOICE_CHECK_XSD", False),
    )
