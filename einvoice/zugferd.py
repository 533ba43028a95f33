"""
ZUGFeRD 2.x / Factur-X implementation.

Generates UN/CEFACT Cross Industry Invoice (CII) XML
conforming to the Factur-X / ZUGFeRD BASIC profile.

The document is assembled from small block builders, each a pure function
of its inputs, concatenated in the order the CII schema prescribes.
Optional blocks are guarded by ``has_*`` predicates and collapse to an
empty string when absent.

Amounts follow two different policies:

- header/settlement amounts go through ``format_amount`` / ``format_percent``
  which substitute ``0.00`` for unreadable values and record a
  ``FormattingDegraded`` diagnostic;
- line amounts go through ``format_line_amount`` which raises
  ``LineItemFormattingFault`` instead, because receivers reconcile line
  totals against the header.

References:
- ZUGFeRD Spec: https://www.ferd-net.de/standards/zugferd
- Factur-X: https://fnfe-mpe.org/factur-x/
- CII D16B/D22B schema: UN/CEFACT CrossIndustryInvoice
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from einvoice.base import (
    BuyerInfo,
    EInvoiceStandard,
    Invoice,
    LineItem,
    PartyInfo,
    SellerInfo,
    SerializedInvoice,
)
from einvoice.errors import FormattingDegraded, LineItemFormattingFault

logger = logging.getLogger(__name__)

# ── XML Namespaces (CII D16B, compatible with D22B) ─────────────
NS = {
    "rsm": "urn:un:unece:uncefact:data:standard:CrossIndustryInvoice:100",
    "qdt": "urn:un:unece:uncefact:data:standard:QualifiedDataType:100",
    "ram": "urn:un:unece:uncefact:data:standard:ReusableAggregateBusinessInformationEntity:100",
    "udt": "urn:un:unece:uncefact:data:standard:UnqualifiedDataType:100",
}

GUIDELINE_ID = "urn:cen.eu:en16931:2017#compliant#urn:factur-x.eu:1p0:basic"
TYPE_CODE_INVOICE = "380"  # commercial invoice
UNIT_CODE = "HUR"  # UN/ECE Rec 20: hour
TAX_TYPE_CODE = "VAT"
TAX_CATEGORY_STANDARD = "S"
PAYMENT_MEANS_SEPA_TRANSFER = "58"
DATE_FORMAT_102 = "102"  # YYYYMMDD

_CENT = Decimal("0.01")
_HUNDRED = Decimal(100)
_ZERO = "0.00"

# Anything outside the XML 1.0 Char production
_INVALID_XML_CHARS = re.compile(r"[^\x09\x0A\x0D\x20-\uD7FF\uE000-\uFFFD\U00010000-\U0010FFFF]")


# ── Text helpers ────────────────────────────────────────────────
def escape_xml(value: str | None) -> str:
    """Escape text for element content and attribute values.

    ``&`` has to go first, otherwise the entities produced for the other
    characters would be escaped a second time. Control characters that XML
    1.0 cannot represent at all are dropped.
    """
    if not value:
        return ""
    return (
        _INVALID_XML_CHARS.sub("", str(value))
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )


def compact_date(value) -> str:
    """ISO calendar date -> YYYYMMDD (format 102).

    Only strips the separators of the date part; no timezone conversion
    is applied to strings.
    """
    if value is None or value == "":
        return ""
    if isinstance(value, date):
        iso = value.isoformat()
    else:
        iso = str(value).strip()
    return iso.split("T", 1)[0][:10].replace("-", "")


def _el(tag: str, *children: str, **attribs: str) -> str:
    """Wrap already-built child markup in an element."""
    attrs = "".join(f' {k}="{escape_xml(v)}"' for k, v in attribs.items())
    return f"<{tag}{attrs}>{''.join(children)}</{tag}>"


def _text(tag: str, value, **attribs: str) -> str:
    """Element holding escaped caller text (empty when value is absent)."""
    return _el(tag, escape_xml(value), **attribs)


def _date_time(tag: str, value) -> str:
    return _el(tag, _text("udt:DateTimeString", compact_date(value), format=DATE_FORMAT_102))


# ── Amount formatting ───────────────────────────────────────────
def _quantize(number: Decimal) -> str:
    """Round half-up to cents, without a sign on zero.

    Raises ``InvalidOperation`` when the result has more digits than the
    decimal context holds.
    """
    result = number.quantize(_CENT, rounding=ROUND_HALF_UP)
    if result.is_zero():
        result = result.copy_abs()
    return str(result)


def _parse_header_number(value) -> Decimal | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        if isinstance(value, Decimal):
            number = value
        elif isinstance(value, int):
            number = Decimal(value)
        elif isinstance(value, float):
            number = Decimal(repr(value))
        elif isinstance(value, str):
            number = Decimal(value.strip())
        else:
            return None
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def format_amount(value, field: str, diagnostics: list[FormattingDegraded]) -> str:
    """Format a header amount with 2 decimals; unreadable values become 0.00."""
    number = _parse_header_number(value)
    if number is None:
        _degrade(field, value, diagnostics)
        return _ZERO
    try:
        return _quantize(number)
    except InvalidOperation:
        _degrade(field, value, diagnostics)
        return _ZERO


def format_percent(rate, field: str, diagnostics: list[FormattingDegraded]) -> str:
    """Fraction of 1 -> percent with 2 decimals (0.19 -> 19.00)."""
    number = _parse_header_number(rate)
    if number is None:
        _degrade(field, rate, diagnostics)
        return _ZERO
    try:
        return _quantize(number * _HUNDRED)
    except InvalidOperation:
        _degrade(field, rate, diagnostics)
        return _ZERO


def _degrade(field: str, value, diagnostics: list[FormattingDegraded]) -> None:
    record = FormattingDegraded(field=field, value=value, substitute=_ZERO)
    logger.warning("ZUGFeRD header value degraded to zero: %s", record)
    diagnostics.append(record)


def format_line_amount(value, line_number: int, field: str) -> str:
    """Format a line-item number with 2 decimals.

    No fallback here: strings, ``None`` and non-finite values raise
    ``LineItemFormattingFault``.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise LineItemFormattingFault(line_number, field, value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise LineItemFormattingFault(line_number, field, value)
        number = Decimal(repr(value))
    elif isinstance(value, Decimal) and not value.is_finite():
        raise LineItemFormattingFault(line_number, field, value)
    else:
        number = Decimal(value)
    try:
        return _quantize(number)
    except InvalidOperation:
        raise LineItemFormattingFault(line_number, field, value) from None


# ── Presence predicates ─────────────────────────────────────────
def has_postal_address(party: PartyInfo) -> bool:
    return any((party.street, party.postal_code, party.city, party.country))


def has_tax_id(party: PartyInfo) -> bool:
    return bool(party.tax_id)


def has_payment_means(seller: SellerInfo) -> bool:
    return bool(seller.iban)


def has_bic(seller: SellerInfo) -> bool:
    return has_payment_means(seller) and bool(seller.bic)


# ── Block builders ──────────────────────────────────────────────
def context_block() -> str:
    return _el(
        "rsm:ExchangedDocumentContext",
        _el("ram:GuidelineSpecifiedDocumentContextParameter", _text("ram:ID", GUIDELINE_ID)),
    )


def document_block(invoice: Invoice) -> str:
    return _el(
        "rsm:ExchangedDocument",
        _text("ram:ID", invoice.invoice_number),
        _text("ram:TypeCode", TYPE_CODE_INVOICE),
        _date_time("ram:IssueDateTime", invoice.issue_date),
    )


def line_item_block(line_number: int, item: LineItem) -> str:
    unit_price = format_line_amount(item.unit_price, line_number, "unit_price")
    quantity = format_line_amount(item.quantity, line_number, "quantity")
    total = format_line_amount(item.total_price, line_number, "total_price")
    return _el(
        "ram:IncludedSupplyChainTradeLineItem",
        _el("ram:AssociatedDocumentLineDocument", _text("ram:LineID", str(line_number))),
        _el("ram:SpecifiedTradeProduct", _text("ram:Name", item.description)),
        _el(
            "ram:SpecifiedLineTradeAgreement",
            _el("ram:NetPriceProductTradePrice", _text("ram:ChargeAmount", unit_price)),
        ),
        _el(
            "ram:SpecifiedLineTradeDelivery",
            _text("ram:BilledQuantity", quantity, unitCode=UNIT_CODE),
        ),
        _el(
            "ram:SpecifiedLineTradeSettlement",
            _el(
                "ram:ApplicableTradeTax",
                _text("ram:TypeCode", TAX_TYPE_CODE),
                _text("ram:CategoryCode", TAX_CATEGORY_STANDARD),
            ),
            _el(
                "ram:SpecifiedTradeSettlementLineMonetarySummation",
                _text("ram:LineTotalAmount", total),
            ),
        ),
    )


def line_items_block(items: list[LineItem]) -> str:
    # LineID is the position in the list, whatever ids the caller uses
    return "".join(line_item_block(i, item) for i, item in enumerate(items, start=1))


def tax_registration_block(party: PartyInfo) -> str:
    if not has_tax_id(party):
        return ""
    return _el("ram:SpecifiedTaxRegistration", _text("ram:ID", party.tax_id, schemeID="VA"))


def seller_address_block(seller: SellerInfo) -> str:
    # Mandatory for the seller: every sub-element is emitted, even if empty
    return _el(
        "ram:PostalTradeAddress",
        _text("ram:PostcodeCode", seller.postal_code),
        _text("ram:LineOne", seller.street),
        _text("ram:CityName", seller.city),
        _text("ram:CountryID", seller.country),
    )


def buyer_address_block(buyer: BuyerInfo) -> str:
    if not has_postal_address(buyer):
        return ""
    parts = [
        ("ram:PostcodeCode", buyer.postal_code),
        ("ram:LineOne", buyer.street),
        ("ram:CityName", buyer.city),
        ("ram:CountryID", buyer.country),
    ]
    return _el("ram:PostalTradeAddress", *(_text(tag, v) for tag, v in parts if v))


def agreement_block(seller: SellerInfo, buyer: BuyerInfo) -> str:
    return _el(
        "ram:ApplicableHeaderTradeAgreement",
        _el(
            "ram:SellerTradeParty",
            _text("ram:Name", seller.name),
            seller_address_block(seller),
            tax_registration_block(seller),
        ),
        _el(
            "ram:BuyerTradeParty",
            _text("ram:Name", buyer.name),
            buyer_address_block(buyer),
            tax_registration_block(buyer),
        ),
    )


def delivery_block(invoice: Invoice) -> str:
    # No separate delivery date in the data model: the issue date is used
    return _el(
        "ram:ApplicableHeaderTradeDelivery",
        _el(
            "ram:ActualDeliverySupplyChainEvent",
            _date_time("ram:OccurrenceDateTime", invoice.issue_date),
        ),
    )


def payment_means_block(seller: SellerInfo) -> str:
    if not has_payment_means(seller):
        return ""
    institution = ""
    if has_bic(seller):
        institution = _el(
            "ram:PayeeSpecifiedCreditorFinancialInstitution",
            _text("ram:BICID", seller.bic),
        )
    return _el(
        "ram:SpecifiedTradeSettlementPaymentMeans",
        _text("ram:TypeCode", PAYMENT_MEANS_SEPA_TRANSFER),
        _el("ram:PayeePartyCreditorFinancialAccount", _text("ram:IBANID", seller.iban)),
        institution,
    )


@dataclass(frozen=True)
class HeaderAmounts:
    """Header/settlement figures, already formatted for output."""
    sub_total: str
    tax_amount: str
    total_amount: str
    tax_percent: str


def header_amounts(invoice: Invoice, diagnostics: list[FormattingDegraded]) -> HeaderAmounts:
    return HeaderAmounts(
        sub_total=format_amount(invoice.sub_total, "sub_total", diagnostics),
        tax_amount=format_amount(invoice.tax_amount, "tax_amount", diagnostics),
        total_amount=format_amount(invoice.total_amount, "total_amount", diagnostics),
        tax_percent=format_percent(invoice.tax_rate, "tax_rate", diagnostics),
    )


def trade_tax_block(amounts: HeaderAmounts) -> str:
    return _el(
        "ram:ApplicableTradeTax",
        _text("ram:CalculatedAmount", amounts.tax_amount),
        _text("ram:TypeCode", TAX_TYPE_CODE),
        _text("ram:BasisAmount", amounts.sub_total),
        _text("ram:CategoryCode", TAX_CATEGORY_STANDARD),
        _text("ram:RateApplicablePercent", amounts.tax_percent),
    )


def payment_terms_block(invoice: Invoice) -> str:
    return _el(
        "ram:SpecifiedTradePaymentTerms",
        _date_time("ram:DueDateDateTime", invoice.due_date),
    )


def monetary_summation_block(amounts: HeaderAmounts, currency: str | None) -> str:
    # No prepaid amounts: due equals grand total
    return _el(
        "ram:SpecifiedTradeSettlementHeaderMonetarySummation",
        _text("ram:LineTotalAmount", amounts.sub_total),
        _text("ram:TaxBasisTotalAmount", amounts.sub_total),
        _text("ram:TaxTotalAmount", amounts.tax_amount, currencyID=currency or ""),
        _text("ram:GrandTotalAmount", amounts.total_amount),
        _text("ram:DuePayableAmount", amounts.total_amount),
    )


def settlement_block(invoice: Invoice, seller: SellerInfo, amounts: HeaderAmounts) -> str:
    return _el(
        "ram:ApplicableHeaderTradeSettlement",
        _text("ram:InvoiceCurrencyCode", invoice.currency),
        payment_means_block(seller),
        trade_tax_block(amounts),
        payment_terms_block(invoice),
        monetary_summation_block(amounts, invoice.currency),
    )


class ZUGFeRDStandard(EInvoiceStandard):
    """ZUGFeRD 2.x / Factur-X – BASIC profile."""

    @property
    def standard_name(self) -> str:
        return "ZUGFeRD 2.x / Factur-X"

    @property
    def xml_filename(self) -> str:
        return "factur-x.xml"

    @property
    def profile_name(self) -> str:
        return "BASIC"

    # ── Public API ──────────────────────────────────────────────
    def generate(self, invoice: Invoice, seller: SellerInfo, buyer: BuyerInfo) -> SerializedInvoice:
        # Line items first: a faulty line aborts before anything is returned
        lines = line_items_block(invoice.items)
        diagnostics: list[FormattingDegraded] = []
        amounts = header_amounts(invoice, diagnostics)

        nsmap = "".join(f' xmlns:{prefix}="{uri}"' for prefix, uri in NS.items())
        root = (
            f"<rsm:CrossIndustryInvoice{nsmap}>"
            + context_block()
            + document_block(invoice)
            + _el(
                "rsm:SupplyChainTradeTransaction",
                lines,
                agreement_block(seller, buyer),
                delivery_block(invoice),
                settlement_block(invoice, seller, amounts),
            )
            + "</rsm:CrossIndustryInvoice>"
        )
        xml = '<?xml version="1.0" encoding="UTF-8"?>\n' + root + "\n"
        return SerializedInvoice(xml=xml.encode("utf-8"), diagnostics=diagnostics)

    def validate_data(self, invoice: Invoice, seller: SellerInfo, buyer: BuyerInfo) -> list[str]:
        warnings = super().validate_data(invoice, seller, buyer)
        if not invoice.items:
            warnings.append(f"Profile {self.profile_name} requires at least one line item.")
        if seller.bic and not seller.iban:
            warnings.append("Seller BIC is ignored because no IBAN is set.")
        if not invoice.currency:
            warnings.append("Invoice currency is missing.")
        return warnings
