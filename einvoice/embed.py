"""
PDF/A-3 embedding for e-invoice XML.

Uses the ``factur-x`` Python library to:
- Convert a regular PDF to PDF/A-3
- Embed the e-invoice XML as an attachment
- Set correct XMP metadata (Factur-X / ZUGFeRD conformance)

Afterwards the attachment is stamped with our description and timestamps
through ``pypdf``, and the result is read back to make sure the payload and
the conformance metadata actually ended up in the file. A PDF that fails
this check is never returned.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from io import BytesIO

from facturx import generate_from_binary
from lxml import etree
from pypdf import PdfReader, PdfWriter
from pypdf.generic import DictionaryObject, NameObject, TextStringObject

from einvoice.config import EInvoiceConfig, get_config
from einvoice.errors import ContainerParseFailure, EmbeddingFailure

logger = logging.getLogger(__name__)

XML_FILENAME = "factur-x.xml"
XML_MIME_TYPE = "text/xml"
XML_DESCRIPTION = "Factur-X/ZUGFeRD Invoice"
FLAVOR = "factur-x"
LEVEL = "basic"

# ── XMP conformance markers ─────────────────────────────────────
NS_RDF = "http://www.w3.org/1999/02/22-rdf-syntax-ns#"
NS_PDFAID = "http://www.aiim.org/pdfa/ns/id/"
NS_FX = "urn:factur-x:pdfa:CrossIndustryDocument:invoice:1p0#"

REQUIRED_XMP = [
    (NS_PDFAID, "part", "3"),
    (NS_PDFAID, "conformance", "B"),
    (NS_FX, "DocumentType", "INVOICE"),
    (NS_FX, "DocumentFileName", XML_FILENAME),
    (NS_FX, "Version", "1.0"),
    (NS_FX, "ConformanceLevel", "BASIC"),
]


def pdf_timestamp(moment: datetime) -> str:
    """Format a datetime in PDF date syntax, e.g. D:20251031120000+00'00'."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    offset = moment.utcoffset()
    minutes = int(offset.total_seconds() // 60)
    sign = "+" if minutes >= 0 else "-"
    minutes = abs(minutes)
    return f"D:{moment:%Y%m%d%H%M%S}{sign}{minutes // 60:02d}'{minutes % 60:02d}'"


def load_container(pdf_bytes: bytes) -> PdfReader:
    """Parse the rendered PDF.

    Raises:
        ContainerParseFailure: If the bytes are empty, not a PDF, or have no pages.
    """
    if not pdf_bytes:
        raise ContainerParseFailure("PDF container is empty")
    try:
        reader = PdfReader(BytesIO(bytes(pdf_bytes)))
        page_count = len(reader.pages)
    except Exception as exc:
        raise ContainerParseFailure(f"Could not parse PDF container: {exc}") from exc
    if page_count == 0:
        raise ContainerParseFailure("PDF container has no pages")
    return reader


# ── Attachment lookup ───────────────────────────────────────────
def _iter_name_tree(node):
    """Yield (name, filespec) pairs of a PDF name tree."""
    node = node.get_object()
    if "/Names" in node:
        names = node["/Names"]
        for i in range(0, len(names) - 1, 2):
            yield str(names[i].get_object()), names[i + 1].get_object()
    if "/Kids" in node:
        for kid in node["/Kids"]:
            yield from _iter_name_tree(kid)


def _find_filespec(root, filename: str):
    if "/Names" not in root or "/EmbeddedFiles" not in root["/Names"]:
        return None
    for name, filespec in _iter_name_tree(root["/Names"]["/EmbeddedFiles"]):
        if name == filename:
            return filespec
    return None


def extract_xml_from_pdf(pdf_bytes: bytes, filename: str = XML_FILENAME) -> bytes:
    """Return the bytes of the embedded file *filename*.

    Raises:
        ContainerParseFailure: If the PDF cannot be parsed.
        LookupError: If no such attachment exists.
    """
    reader = load_container(pdf_bytes)
    filespec = _find_filespec(reader.trailer["/Root"], filename)
    if filespec is None:
        raise LookupError(f"PDF has no embedded file named '{filename}'")
    return filespec["/EF"]["/F"].get_data()


# ── Stamping and verification ───────────────────────────────────
def _stamp_attachment(pdf_bytes: bytes, moment: datetime) -> bytes:
    """Set description and creation/modification dates on the XML attachment."""
    writer = PdfWriter(clone_from=BytesIO(pdf_bytes))
    filespec = _find_filespec(writer.root_object, XML_FILENAME)
    if filespec is None:
        raise ValueError(f"'{XML_FILENAME}' attachment missing after embedding")

    stamp = TextStringObject(pdf_timestamp(moment))
    filespec[NameObject("/Desc")] = TextStringObject(XML_DESCRIPTION)
    for key in ("/F", "/UF"):
        stream = filespec["/EF"][key] if key in filespec["/EF"] else None
        if stream is None:
            continue
        stream[NameObject("/Subtype")] = NameObject("/" + XML_MIME_TYPE)
        params = stream["/Params"] if "/Params" in stream else None
        if params is None:
            params = stream[NameObject("/Params")] = DictionaryObject()
        params[NameObject("/CreationDate")] = stamp
        params[NameObject("/ModDate")] = stamp

    out = BytesIO()
    writer.write(out)
    return out.getvalue()


def _xmp_value(root: etree._Element, ns: str, name: str) -> str | None:
    elem = root.find(f".//{{{ns}}}{name}")
    if elem is not None and elem.text:
        return elem.text.strip()
    # XMP also allows the simple-property attribute form
    for desc in root.iter(f"{{{NS_RDF}}}Description"):
        value = desc.get(f"{{{ns}}}{name}")
        if value is not None:
            return value.strip()
    return None


def verify_embedding(pdf_bytes: bytes, xml_bytes: bytes) -> None:
    """Check payload, MIME type and XMP conformance metadata of a Factur-X PDF.

    Raises:
        ValueError: Describing the first missing or wrong property.
    """
    reader = PdfReader(BytesIO(pdf_bytes))
    catalog = reader.trailer["/Root"]

    filespec = _find_filespec(catalog, XML_FILENAME)
    if filespec is None:
        raise ValueError(f"'{XML_FILENAME}' attachment is missing")
    stream = filespec["/EF"]["/F"]
    if stream.get_data() != xml_bytes:
        raise ValueError(f"'{XML_FILENAME}' attachment does not match the payload")
    subtype = str(stream["/Subtype"]) if "/Subtype" in stream else ""
    if subtype.lstrip("/") != XML_MIME_TYPE:
        raise ValueError(f"'{XML_FILENAME}' has MIME type {subtype!r}, expected {XML_MIME_TYPE}")

    if "/Metadata" not in catalog:
        raise ValueError("PDF has no XMP metadata stream")
    xmp = etree.fromstring(catalog["/Metadata"].get_data().strip())
    for ns, name, expected in REQUIRED_XMP:
        actual = _xmp_value(xmp, ns, name)
        if actual != expected:
            raise ValueError(f"XMP {name} is {actual!r}, expected {expected!r}")


# ── Public API ──────────────────────────────────────────────────
def embed_xml_in_pdf(
    pdf_bytes: bytes,
    xml_bytes: bytes,
    *,
    pdf_metadata: dict | None = None,
    config: EInvoiceConfig | None = None,
) -> bytes:
    """Embed e-invoice XML into a PDF, producing a PDF/A-3 compliant file.

    Args:
        pdf_bytes: The original PDF as bytes (left untouched).
        xml_bytes: The e-invoice XML as bytes (UTF-8).
        pdf_metadata: Optional dict with keys 'author', 'title', 'subject', 'keywords'.
        config: Settings override; read from the environment if None.

    Returns:
        The Factur-X/ZUGFeRD PDF as bytes (PDF/A-3 with embedded XML).

    Raises:
        ContainerParseFailure: If *pdf_bytes* is not a readable PDF.
        EmbeddingFailure: If attaching, stamping, saving or the final check fails.
    """
    config = config or get_config()
    load_container(pdf_bytes)
    if isinstance(xml_bytes, str):
        xml_bytes = xml_bytes.encode("utf-8")
    xml_bytes = bytes(xml_bytes)

    logger.info("Embedding %s XML (level=%s) into PDF/A-3", FLAVOR, LEVEL)
    try:
        result_pdf = generate_from_binary(
            bytes(pdf_bytes),
            xml_bytes,
            flavor=FLAVOR,
            level=LEVEL,
            check_xsd=config.check_xsd,
            pdf_metadata=pdf_metadata,
            lang=config.pdf_lang,
        )
        if not result_pdf:
            raise RuntimeError("factur-x library returned empty PDF")

        result_pdf = _stamp_attachment(result_pdf, datetime.now(timezone.utc))
        verify_embedding(result_pdf, xml_bytes)
    except Exception as exc:
        logger.exception(
            "Embedding %s (%d bytes) into PDF (%d bytes) failed",
            XML_FILENAME, len(xml_bytes), len(pdf_bytes),
        )
        raise EmbeddingFailure(f"Failed to embed {XML_FILENAME} in PDF: {exc}") from exc

    logger.info("Successfully generated %s PDF/A-3 (%d bytes)", FLAVOR, len(result_pdf))
    return result_pdf


async def embed_xml_in_pdf_async(
    pdf_bytes: bytes,
    xml_bytes: bytes,
    *,
    pdf_metadata: dict | None = None,
    config: EInvoiceConfig | None = None,
) -> bytes:
    """Run ``embed_xml_in_pdf`` on a worker thread."""
    return await asyncio.to_thread(
        embed_xml_in_pdf, pdf_bytes, xml_bytes,
        pdf_metadata=pdf_metadata, config=config,
    )
