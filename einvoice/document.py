"""
One-call e-invoice PDF assembly: XML generation plus PDF/A-3 embedding.

Errors are not swallowed here; a caller that wants to fall back to a
plain PDF has to catch ``EInvoiceError`` itself and decide to do so.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from einvoice.base import BuyerInfo, EInvoiceStandard, Invoice, SellerInfo
from einvoice.config import EInvoiceConfig, get_config
from einvoice.embed import embed_xml_in_pdf
from einvoice.errors import FormattingDegraded

logger = logging.getLogger(__name__)


@dataclass
class EInvoiceDocument:
    pdf: bytes
    xml: bytes
    diagnostics: list[FormattingDegraded] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def build_pdf_metadata(invoice: Invoice, seller: SellerInfo) -> dict:
    """PDF info dictionary entries for the Factur-X output."""
    return {
        "author": seller.name or "",
        "title": f"{seller.name}: Invoice {invoice.invoice_number}",
        "subject": f"Invoice {invoice.invoice_number}",
        "keywords": "Factur-X, Invoice, ZUGFeRD",
    }


def build_einvoice_pdf(
    pdf_bytes: bytes,
    invoice: Invoice,
    seller: SellerInfo,
    buyer: BuyerInfo,
    *,
    standard: EInvoiceStandard | None = None,
    config: EInvoiceConfig | None = None,
) -> EInvoiceDocument:
    """Turn a rendered invoice PDF into a Factur-X/ZUGFeRD PDF/A-3.

    Raises:
        LineItemFormattingFault: If a line amount is not numeric.
        ContainerParseFailure: If *pdf_bytes* is not a readable PDF.
        EmbeddingFailure: If the XML could not be embedded.
    """
    from einvoice import get_standard

    config = config or get_config()
    standard = standard or get_standard(config.standard)

    warnings = standard.validate_data(invoice, seller, buyer)
    for message in warnings:
        logger.warning("E-invoice %s: %s", invoice.invoice_number, message)

    serialized = standard.generate(invoice, seller, buyer)
    if serialized.degraded:
        logger.warning(
            "E-invoice %s generated with %d zeroed header value(s)",
            invoice.invoice_number, len(serialized.diagnostics),
        )

    pdf = embed_xml_in_pdf(
        pdf_bytes, serialized.xml,
        pdf_metadata=build_pdf_metadata(invoice, seller),
        config=config,
    )
    return EInvoiceDocument(
        pdf=pdf,
        xml=serialized.xml,
        diagnostics=serialized.diagnostics,
        warnings=warnings,
    )
