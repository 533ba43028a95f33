"""
Error kinds raised (or recorded) while assembling an e-invoice.

Header-level formatting problems are recoverable and only produce a
``FormattingDegraded`` diagnostic. Everything else is fatal to the call and
surfaces as a typed ``EInvoiceError`` subclass.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class FormattingDegraded:
    """A header/settlement value that could not be read as a number.

    The serializer emits ``substitute`` in its place and keeps going.
    """
    field: str
    value: Any
    substitute: str = "0.00"

    def __str__(self) -> str:
        return f"{self.field}: {self.value!r} is not a number, emitted {self.substitute}"


class EInvoiceError(Exception):
    """Base class for fatal e-invoice errors."""


class LineItemFormattingFault(EInvoiceError):
    """A line-item amount or quantity is missing or not numeric."""

    def __init__(self, line_number: int, field: str, value: Any):
        self.line_number = line_number
        self.field = field
        self.value = value
        super().__init__(
            f"Line {line_number}: {field} must be a finite number, got {value!r}"
        )


class ContainerParseFailure(EInvoiceError):
    """The supplied PDF container could not be parsed."""


class EmbeddingFailure(EInvoiceError):
    """Attaching the XML, stamping metadata or saving the PDF failed."""
