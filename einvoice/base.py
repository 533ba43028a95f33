"""
Abstract base classes and data structures for e-invoice generation.

The dataclasses mirror what the invoicing layer already holds: an invoice
with its line items plus seller and buyer details. They are built per
request by the caller and are never modified here.

To add a new e-invoice standard:
1. Subclass ``EInvoiceStandard``
2. Implement ``generate()`` and ``xml_filename`` / ``profile_name``
3. Register it in ``einvoice/__init__.py`` STANDARDS dict
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Union

from einvoice.errors import FormattingDegraded

# Amounts arrive from the database layer as numbers or numeric strings.
Amount = Union[Decimal, float, int, str, None]
DateLike = Union[date, str, None]


@dataclass
class LineItem:
    """A single invoice position."""
    description: str
    quantity: Amount
    unit_price: Amount
    total_price: Amount  # passed through as given, never recomputed
    id: str | None = None  # caller-side id; not used for the emitted LineID


@dataclass
class PartyInfo:
    """Name, postal address and VAT id of an invoice party."""
    name: str
    street: str | None = None
    postal_code: str | None = None
    city: str | None = None
    country: str | None = None  # ISO 3166-1 alpha-2
    tax_id: str | None = None  # VAT id, e.g. DE123456789


@dataclass
class SellerInfo(PartyInfo):
    """The issuing company, including its payment routing."""
    iban: str | None = None
    bic: str | None = None


@dataclass
class BuyerInfo(PartyInfo):
    """The invoiced client."""


@dataclass
class Invoice:
    """Already-computed invoice data (amounts are trusted as given)."""
    invoice_number: str
    issue_date: DateLike
    due_date: DateLike
    currency: str = "EUR"
    sub_total: Amount = 0
    tax_amount: Amount = 0
    total_amount: Amount = 0
    tax_rate: Amount = 0  # fraction of 1, e.g. 0.19
    items: list[LineItem] = field(default_factory=list)


@dataclass
class SerializedInvoice:
    """Generated XML plus the header fields that had to be zeroed."""
    xml: bytes
    diagnostics: list[FormattingDegraded] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.diagnostics)


class EInvoiceStandard(ABC):
    """Abstract base for an e-invoice standard (ZUGFeRD, XRechnung, …)."""

    @property
    @abstractmethod
    def standard_name(self) -> str:
        """Human-readable name, e.g. 'ZUGFeRD 2.x / Factur-X'."""

    @property
    @abstractmethod
    def xml_filename(self) -> str:
        """Filename of the embedded XML (e.g. 'factur-x.xml')."""

    @property
    @abstractmethod
    def profile_name(self) -> str:
        """Profile/level name (e.g. 'BASIC', 'EN 16931')."""

    @abstractmethod
    def generate(self, invoice: Invoice, seller: SellerInfo, buyer: BuyerInfo) -> SerializedInvoice:
        """Generate the standards-compliant XML from invoice data.

        Raises:
            LineItemFormattingFault: If a line amount is not numeric.
        """

    def generate_xml(self, invoice: Invoice, seller: SellerInfo, buyer: BuyerInfo) -> bytes:
        """Like ``generate()`` but returns only the UTF-8 encoded XML bytes."""
        return self.generate(invoice, seller, buyer).xml

    def validate_data(self, invoice: Invoice, seller: SellerInfo, buyer: BuyerInfo) -> list[str]:
        """Optional: check data before XML generation.

        Returns:
            List of warning messages (empty = OK). Warnings never block
            generation.
        """
        warnings = []
        if not invoice.invoice_number:
            warnings.append("Invoice number is missing.")
        if not seller.name:
            warnings.append("Seller name is missing.")
        if not buyer.name:
            warnings.append("Buyer name is missing.")
        return warnings
