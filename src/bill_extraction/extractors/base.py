"""
Base extractor interface and common types.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")

_CONFIDENCE_QUANTUM = Decimal("0.01")


def round_confidence(value: float) -> float:
    """Clamp a confidence to [0, 1] and round it half-up to 2 decimals."""
    clamped = max(0.0, min(1.0, float(value)))
    return float(Decimal(str(clamped)).quantize(_CONFIDENCE_QUANTUM, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class BillDetails:
    """Bill fields extracted from a printable document."""

    amount: Optional[Decimal] = None
    service_provider: Optional[str] = None
    payment_portal: Optional[str] = None
    due_date: Optional[str] = None  # As printed, or YYYY-MM-DD from the AI strategy

    # 0.0 means "no usable data"
    confidence: float = 0.0

    @classmethod
    def empty(cls) -> "BillDetails":
        """Canonical zero-confidence result with every field absent."""
        return cls()

    @property
    def field_count(self) -> int:
        """Number of non-empty fields among the four bill fields."""
        values = [self.amount, self.service_provider, self.payment_portal, self.due_date]
        return sum(1 for v in values if v is not None and v != "")

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-ready dictionary, omitting absent fields."""
        result: dict[str, Any] = {}
        if self.amount is not None:
            result["amount"] = float(self.amount)
        if self.service_provider is not None:
            result["serviceProvider"] = self.service_provider
        if self.payment_portal is not None:
            result["paymentPortal"] = self.payment_portal
        if self.due_date is not None:
            result["dueDate"] = self.due_date
        result["confidence"] = self.confidence
        return result


@dataclass(frozen=True)
class ScoredField(Generic[T]):
    """A single extracted value with its heuristic confidence."""

    value: Optional[T] = None
    confidence: float = 0.0

    @classmethod
    def missing(cls) -> "ScoredField[T]":
        return cls()


class BaseExtractor(ABC):
    """
    Base class for all bill extractors.

    Each extractor implements a specific strategy:
    - Regex heuristics over the PDF text layer
    - An external AI completion service
    - A composite running other extractors

    parse() must not raise for ordinary failures (unreadable document,
    network error, malformed reply). It returns BillDetails.empty() instead.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Extractor name for logging and provenance."""
        pass

    @abstractmethod
    def parse(self, pdf_bytes: bytes) -> BillDetails:
        """
        Extract bill details from a PDF document.

        Args:
            pdf_bytes: Complete PDF file contents

        Returns:
            BillDetails with extracted values and an overall confidence
        """
        pass
