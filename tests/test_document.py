"""Tests for the one-call e-invoice PDF pipeline."""

from io import BytesIO

import pytest
from pypdf import PdfReader

from einvoice import (
    ContainerParseFailure,
    EInvoiceDocument,
    LineItemFormattingFault,
    ZUGFeRDStandard,
    build_einvoice_pdf,
    extract_xml_from_pdf,
)
from einvoice.document import build_pdf_metadata


class TestBuildEInvoicePdf:
    def test_embeds_serialized_xml(self, container_pdf, invoice, seller, buyer, config) -> None:
        document = build_einvoice_pdf(container_pdf, invoice, seller, buyer, config=config)
        assert isinstance(document, EInvoiceDocument)
        assert extract_xml_from_pdf(document.pdf) == document.xml
        assert document.xml == ZUGFeRDStandard().generate_xml(invoice, seller, buyer)
        assert document.diagnostics == []
        assert document.warnings == []

    def test_pdf_info_from_invoice(self, container_pdf, invoice, seller, buyer, config) -> None:
        document = build_einvoice_pdf(container_pdf, invoice, seller, buyer, config=config)
        info = PdfReader(BytesIO(document.pdf)).metadata
        assert info.subject == "Invoice INV-2025-0042"

    def test_diagnostics_are_returned(self, container_pdf, invoice, seller, buyer, config, caplog) -> None:
        invoice.tax_amount = "??"
        with caplog.at_level("WARNING", logger="einvoice"):
            document = build_einvoice_pdf(container_pdf, invoice, seller, buyer, config=config)
        assert [d.field for d in document.diagnostics] == ["tax_amount"]
        assert "zeroed header value" in caplog.text

    def test_warnings_are_returned(self, container_pdf, invoice, seller, buyer, config) -> None:
        seller.iban = None
        document = build_einvoice_pdf(container_pdf, invoice, seller, buyer, config=config)
        assert document.warnings == ["Seller BIC is ignored because no IBAN is set."]

    def test_line_fault_propagates(self, container_pdf, invoice, seller, buyer, config) -> None:
        invoice.items[0].total_price = None
        with pytest.raises(LineItemFormattingFault):
            build_einvoice_pdf(container_pdf, invoice, seller, buyer, config=config)

    def test_no_fallback_to_plain_pdf(self, invoice, seller, buyer, config) -> None:
        with pytest.raises(ContainerParseFailure):
            build_einvoice_pdf(b"broken", invoice, seller, buyer, config=config)

    def test_explicit_standard(self, container_pdf, invoice, seller, buyer, config) -> None:
        document = build_einvoice_pdf(
            container_pdf, invoice, seller, buyer, standard=ZUGFeRDStandard(), config=config,
        )
        assert extract_xml_from_pdf(document.pdf) == document.xml


class TestPdfMetadata:
    def test_fields(self, invoice, seller) -> None:
        assert build_pdf_metadata(invoice, seller) == {
            "author": "Muster Consulting GmbH",
            "title": "Muster Consulting GmbH: Invoice INV-2025-0042",
            "subject": "Invoice INV-2025-0042",
            "keywords": "Factur-X, Invoice, ZUGFeRD",
        }
