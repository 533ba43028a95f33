"""
Modular e-invoice generation package.

Supports pluggable standards (ZUGFeRD/Factur-X, XRechnung, etc.)
with a common interface for XML generation and PDF embedding.
"""
import logging

from einvoice.base import (
    BuyerInfo,
    EInvoiceStandard,
    Invoice,
    LineItem,
    PartyInfo,
    SellerInfo,
    SerializedInvoice,
)
from einvoice.config import EInvoiceConfig, get_config
from einvoice.errors import (
    ContainerParseFailure,
    EInvoiceError,
    EmbeddingFailure,
    FormattingDegraded,
    LineItemFormattingFault,
)
from einvoice.zugferd import ZUGFeRDStandard
from einvoice.document import EInvoiceDocument, build_einvoice_pdf
from einvoice.embed import embed_xml_in_pdf, embed_xml_in_pdf_async, extract_xml_from_pdf

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Registry of available e-invoice standards
STANDARDS: dict[str, type[EInvoiceStandard]] = {
    "zugferd": ZUGFeRDStandard,
}


def get_standard(name: str | None = None) -> EInvoiceStandard:
    """Get an e-invoice standard instance by name.

    Args:
        name: Standard identifier (e.g. 'zugferd'). Uses the configured
            default (``EINVOICE_STANDARD``) if None.

    Returns:
        Instantiated standard object.

    Raises:
        ValueError: If the standard name is not registered.
    """
    name = name or get_config().standard
    cls = STANDARDS.get(name)
    if cls is None:
        raise ValueError(
            f"Unknown e-invoice standard '{name}'. "
            f"Available: {', '.join(STANDARDS.keys())}"
        )
    return cls()


def serialize(invoice: Invoice, seller: SellerInfo, buyer: BuyerInfo) -> bytes:
    """Invoice + parties -> Factur-X BASIC XML bytes."""
    return ZUGFeRDStandard().generate_xml(invoice, seller, buyer)


__all__ = [
    "BuyerInfo",
    "ContainerParseFailure",
    "EInvoiceConfig",
    "EInvoiceDocument",
    "EInvoiceError",
    "EInvoiceStandard",
    "EmbeddingFailure",
    "FormattingDegraded",
    "Invoice",
    "LineItem",
    "LineItemFormattingFault",
    "PartyInfo",
    "STANDARDS",
    "SellerInfo",
    "SerializedInvoice",
    "ZUGFeRDStandard",
    "build_einvoice_pdf",
    "embed_xml_in_pdf",
    "embed_xml_in_pdf_async",
    "extract_xml_from_pdf",
    "get_config",
    "get_standard",
    "serialize",
]
