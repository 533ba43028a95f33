"""Shared pytest fixtures and test helpers for einvoice tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from io import BytesIO

import pytest
from lxml import etree
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from einvoice import BuyerInfo, EInvoiceConfig, Invoice, LineItem, SellerInfo
from einvoice.zugferd import NS


def parse_xml(xml_bytes: bytes) -> etree._Element:
    """Parse generated XML into an lxml tree for XPath assertions."""
    return etree.fromstring(xml_bytes)


def xpath(root: etree._Element, path: str) -> list:
    return root.xpath(path, namespaces=NS)


def xtext(root: etree._Element, path: str) -> str | None:
    """Text of the single element at *path* (None if it does not exist)."""
    found = xpath(root, path)
    assert len(found) <= 1, f"{path} matched {len(found)} elements"
    if not found:
        return None
    return found[0].text or ""


@pytest.fixture
def seller() -> SellerInfo:
    return SellerInfo(
        name="Muster Consulting GmbH",
        street="Hauptstraße 1",
        postal_code="10115",
        city="Berlin",
        country="DE",
        tax_id="DE123456789",
        iban="DE89370400440532013000",
        bic="COBADEFFXXX",
    )


@pytest.fixture
def buyer() -> BuyerInfo:
    return BuyerInfo(
        name="Client SARL",
        street="1 Rue de la Paix",
        postal_code="75002",
        city="Paris",
        country="FR",
        tax_id="FR12345678901",
    )


@pytest.fixture
def invoice() -> Invoice:
    return Invoice(
        invoice_number="INV-2025-0042",
        issue_date=date(2025, 10, 31),
        due_date=date(2025, 11, 14),
        currency="EUR",
        sub_total=Decimal("1250.00"),
        tax_amount=Decimal("237.50"),
        total_amount=Decimal("1487.50"),
        tax_rate=Decimal("0.19"),
        items=[
            LineItem(
                description="Consulting",
                quantity=Decimal("10"),
                unit_price=Decimal("100"),
                total_price=Decimal("1000"),
                id="b7c1",
            ),
            LineItem(
                description="Workshop preparation",
                quantity=2.5,
                unit_price=100.0,
                total_price=250.0,
                id="a002",
            ),
        ],
    )


@pytest.fixture
def config() -> EInvoiceConfig:
    return EInvoiceConfig(standard="zugferd", pdf_lang="en", check_xsd=False)


@pytest.fixture
def container_pdf() -> bytes:
    """A small rendered invoice PDF, standing in for the visual layer."""
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    c.setFont("Helvetica-Bold", 16)
    c.drawString(20 * mm, 270 * mm, "Invoice INV-2025-0042")
    c.setFont("Helvetica", 10)
    c.drawString(20 * mm, 260 * mm, "Muster Consulting GmbH - Hauptstrasse 1 - 10115 Berlin")
    c.drawString(20 * mm, 250 * mm, "Total: 1.487,50 EUR")
    c.showPage()
    c.save()
    return buf.getvalue()
