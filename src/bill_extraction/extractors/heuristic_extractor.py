"""
PDF text heuristics extractor.

Extracts bill fields from the PDF text layer using ordered pattern tables.
A pattern's position in its table sets its base confidence
(1.0 - index * 0.15), so reordering or adding patterns is a data change.

Fields:
- Amount: every match of every pattern, scored by pattern, range and position
- Provider: known-provider allow-list, then header line scoring, then labels
- Due date: first matching pattern, kept as printed
- Payment portal: first pattern yielding a valid absolute URL
"""

import logging
import re
from collections.abc import Callable, Iterable
from decimal import Decimal, InvalidOperation
from typing import Optional
from urllib.parse import urlparse

from .base import BaseExtractor, BillDetails, ScoredField, round_confidence
from .pdf_text import TextExtractionError, extract_pdf_text

logger = logging.getLogger(__name__)

# Confidence lost per step down a pattern table
PATTERN_CONFIDENCE_STEP = 0.15

_MONEY = r"\$?([\d,]+\.?\d{0,2})"

# Amount patterns (ordered by specificity)
AMOUNT_PATTERNS = [
    (
        re.compile(
            r"(?:total\s+(?:amount\s+)?due|amount\s+due|balance\s+due|please\s+pay)[:\s]*" + _MONEY,
            re.IGNORECASE,
        ),
        "amount_due",
    ),
    (
        re.compile(r"(?:current\s+charges|new\s+charges|total\s+current)[:\s]*" + _MONEY, re.IGNORECASE),
        "current_charges",
    ),
    (
        re.compile(r"(?:pay\s+this\s+amount|payment\s+due)[:\s]*" + _MONEY, re.IGNORECASE),
        "pay_this_amount",
    ),
    (re.compile(r"\$\s*([\d,]+\.\d{2})(?:\s*(?:due|total))", re.IGNORECASE), "dollar_due_suffix"),
    (re.compile(r"(?:^|\s)\$([\d,]+\.\d{2})(?:\s|$)", re.MULTILINE), "dollar_cents"),
    (re.compile(r"(?:^|\s)\$([\d,]+(?:\.\d{1,2})?)(?:\s|$)", re.MULTILINE), "dollar_any"),
]

# Amounts outside (0, MAX_AMOUNT) are never bill totals
MAX_AMOUNT = Decimal("100000")
TYPICAL_AMOUNT_RANGE = (Decimal("10"), Decimal("5000"))

KNOWN_PROVIDERS = (
    "Georgia Power",
    "Comcast",
    "Xfinity",
    "AT&T",
    "Verizon",
    "Spectrum",
    "T-Mobile",
    "Sprint",
    "Southern Company",
    "Arrow Exterminators",
    "Gymnastics Unlimited",
)

KNOWN_PROVIDER_CONFIDENCE = 0.99
PROVIDER_FALLBACK_CONFIDENCE = 0.45
PROVIDER_SCORE_THRESHOLD = 0.3

# Provider names are looked for in the document header only
HEADER_LENGTH = 600

NOISE_KEYWORDS = [
    "invoice",
    "customer",
    "instructions",
    "precautions",
    "total",
    "amount",
    "tax",
    "balance",
    "page",
    "printed",
]

BUSINESS_KEYWORDS = [
    "electric",
    "power",
    "energy",
    "utility",
    "gas",
    "water",
    "internet",
    "cable",
    "wireless",
    "mobile",
    "telecom",
    "exterminators",
    "pest",
    "gymnastics",
    "gym",
    "billing",
    "services",
    "company",
    "inc",
    "llc",
]

# Header line scoring
CORPORATE_SUFFIX_PATTERN = re.compile(
    r"Inc|LLC|Company|Co\.|Corp|Exterminators|Gymnastics|Power|Electric", re.IGNORECASE
)
CORPORATE_SUFFIX_BOOST = 0.6
BUSINESS_KEYWORD_BOOST = 0.3
SHORT_LINE_BOOST = 0.2
SHORT_LINE_MAX_WORDS = 5

# Labelled provider patterns, used when no header line qualifies
PROVIDER_PATTERNS = [
    re.compile(
        r"(?:from|billed by|provider|company)[:\s]*([A-Z][A-Za-z\s&.]+(?:Inc|LLC|Corp|Company|Co)?)",
        re.IGNORECASE,
    ),
    re.compile(
        r"^([A-Z][A-Z\s&.]{2,}(?:Inc|LLC|Corp|Company|Co|Energy|Electric|Gas|Water|Telecom|Mobile"
        r"|Internet|Exterminators|Pest|Gymnastics)?)\s*$",
        re.MULTILINE,
    ),
    re.compile(
        r"((?:AT&T|Verizon|Comcast|Xfinity|Georgia Power|Spectrum|T-Mobile|Sprint"
        r"|Arrow Exterminators|Gymnastics Unlimited))",
        re.IGNORECASE,
    ),
]

_MONTH = (
    r"(?:Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|June?|July?|Aug(?:ust)?"
    r"|Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)"
)
_MONTH_DATE = _MONTH + r"\.?\s*\d{1,2}[\s,]*\d{4}"
_NUMERIC_DATE = r"\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}"

_ANY_DATE = r"(?:" + _MONTH_DATE + r"|" + _NUMERIC_DATE + r")"

# Due date patterns (labelled first, bare dates last)
DUE_DATE_PATTERNS = [
    (re.compile(r"please\s*pay\s*by[\s:]*(" + _ANY_DATE + r")", re.IGNORECASE), "please_pay_by"),
    (re.compile(r"(?:due\s*date|payment\s*due)[\s:]*(" + _ANY_DATE + r")", re.IGNORECASE), "due_date"),
    (re.compile(r"\b(" + _MONTH_DATE + r")", re.IGNORECASE), "month_name"),
    (re.compile(r"\b(" + _NUMERIC_DATE + r")\b"), "numeric"),
]

_DOMAIN = r"(?:https?://)?[\w.-]+\.(?:com|net|org|gov)(?:/[\w./-]*)?"

# Payment portal patterns (explicit phrasing first)
PORTAL_PATTERNS = [
    (re.compile(r"(?:pay\s+(?:online\s+)?at|visit|go\s+to)[:\s]*(" + _DOMAIN + r")", re.IGNORECASE), "pay_online_at"),
    (re.compile(r"(?:website|portal|online)[:\s]*(" + _DOMAIN + r")", re.IGNORECASE), "website"),
    (
        re.compile(
            r"((?:https?://)?(?:www\.)?[\w.-]+\.(?:com|net|org)/(?:pay|bill|account|payment)[\w./-]*)",
            re.IGNORECASE,
        ),
        "payment_path",
    ),
    (re.compile(r"((?:https?://)?pay\.[\w.-]+\.(?:com|net|org))", re.IGNORECASE), "pay_subdomain"),
]

# OCR confusions right before ".<extension>"
OCR_CORRECTIONS = [
    (re.compile(r"[oO](?=\.\w)"), "0"),
    (re.compile(r"[lI](?=\.\w)"), "1"),
]


def pattern_confidence(index: int) -> float:
    """Base confidence of the pattern at `index` in its table."""
    return 1.0 - index * PATTERN_CONFIDENCE_STEP


def parse_amount(raw: str) -> Optional[Decimal]:
    """Parse an amount like "1,234.56" to Decimal, None if unparseable."""
    try:
        return Decimal(raw.replace(",", ""))
    except InvalidOperation:
        return None


def clean_provider(value: str) -> str:
    """Collapse whitespace and drop characters that never appear in company names."""
    value = re.sub(r"\s+", " ", value.strip())
    return re.sub(r"[^\w\s&.-]", "", value).strip()


def normalize_date(value: str) -> str:
    """Normalize spacing and comma placement of a matched date string."""
    value = re.sub(r"\s+", " ", value)
    value = re.sub(r"\s*,\s*", ", ", value)
    return value.strip()


def normalize_portal_url(raw: str) -> Optional[str]:
    """
    Normalize a matched portal string into an absolute URL.

    Returns None if the result does not parse as an absolute http(s) URL.
    """
    url = re.sub(r"\s+", "", raw)
    for pattern, replacement in OCR_CORRECTIONS:
        url = pattern.sub(replacement, url)
    url = url.lower()

    if not url.startswith("http"):
        url = "https://" + url

    try:
        parsed = urlparse(url)
        host = parsed.hostname
    except ValueError:
        return None

    if parsed.scheme not in ("http", "https") or not host or "." not in host:
        return None
    return url


class PdfTextExtractor(BaseExtractor):
    """
    Extract bill fields from the PDF text layer using pattern matching.

    Works on any PDF with a text layer; scanned bills without one
    come back with zero confidence.
    """

    def __init__(
        self,
        text_extractor: Callable[[bytes], str] = extract_pdf_text,
        extra_known_providers: Iterable[str] = (),
    ):
        """
        Args:
            text_extractor: Turns PDF bytes into plain text; raises
                TextExtractionError on unreadable documents
            extra_known_providers: Provider names added to the allow-list
        """
        self._text_extractor = text_extractor
        self.known_providers = KNOWN_PROVIDERS + tuple(extra_known_providers)

    @property
    def name(self) -> str:
        return "pdf-text"

    def parse(self, pdf_bytes: bytes) -> BillDetails:
        """Extract the PDF text layer and run the field heuristics over it."""
        try:
            text = self._text_extractor(pdf_bytes)
        except TextExtractionError as e:
            logger.warning("Text extraction failed, returning empty result: %s", e)
            return BillDetails.empty()

        return self.extract_from_text(text)

    def extract_from_text(self, text: str) -> BillDetails:
        """Run all field extractors over already-extracted text."""
        amount = self.extract_amount(text)
        provider = self.extract_provider(text)
        portal = self.extract_payment_portal(text)
        due_date = self.extract_due_date(text)

        confidences = [
            amount.confidence,
            provider.confidence,
            portal.confidence,
            due_date.confidence,
        ]
        overall = sum(confidences) / len(confidences)

        logger.debug(
            "Field confidences: amount=%.2f provider=%.2f portal=%.2f due_date=%.2f",
            *confidences,
        )

        return BillDetails(
            amount=amount.value,
            service_provider=provider.value,
            payment_portal=portal.value,
            due_date=due_date.value,
            confidence=round_confidence(overall),
        )

    def extract_amount(self, text: str) -> ScoredField[Decimal]:
        """
        Extract the most likely amount due.

        Strategy:
        1. Collect every match of every amount pattern
        2. Score each by pattern rank, plausible range and position
           (totals tend to sit late in the document)
        3. Return the best candidate
        """
        candidates: list[ScoredField[Decimal]] = []

        for index, (pattern, _pattern_type) in enumerate(AMOUNT_PATTERNS):
            for match in pattern.finditer(text):
                raw = match.group(1)
                if not raw:
                    continue

                value = parse_amount(raw)
                if value is None or value <= 0 or value >= MAX_AMOUNT:
                    continue

                low, high = TYPICAL_AMOUNT_RANGE
                range_confidence = 1.0 if low <= value <= high else 0.7

                position_ratio = match.start() / len(text)
                if position_ratio > 0.6:
                    position_confidence = 1.0
                elif position_ratio > 0.4:
                    position_confidence = 0.85
                else:
                    position_confidence = 0.6

                confidence = pattern_confidence(index) * range_confidence * position_confidence
                candidates.append(ScoredField(value, confidence))

        if not candidates:
            return ScoredField.missing()

        # max() keeps the first of equal candidates
        return max(candidates, key=lambda c: c.confidence)

    def extract_provider(self, text: str) -> ScoredField[str]:
        """
        Extract the service provider name.

        Strategy:
        - Known providers anywhere in the text win outright
        - Otherwise score header lines by company-like features
        - Fall back to labelled patterns with a fixed confidence
        """
        lowered = text.lower()
        for provider in self.known_providers:
            if provider.lower() in lowered:
                return ScoredField(provider, KNOWN_PROVIDER_CONFIDENCE)

        best_line: Optional[str] = None
        best_score = 0.0
        for line in text[:HEADER_LENGTH].split("\n"):
            cleaned = clean_provider(line)
            if len(cleaned) < 3:
                continue

            cleaned_lower = cleaned.lower()
            if any(kw in cleaned_lower for kw in NOISE_KEYWORDS):
                continue
            if not re.match(r"[A-Z]", cleaned):
                continue

            score = 0.0
            if CORPORATE_SUFFIX_PATTERN.search(cleaned):
                score += CORPORATE_SUFFIX_BOOST
            if any(kw in cleaned_lower for kw in BUSINESS_KEYWORDS):
                score += BUSINESS_KEYWORD_BOOST
            if len(cleaned.split(" ")) <= SHORT_LINE_MAX_WORDS:
                score += SHORT_LINE_BOOST

            # Strict comparison on the uncapped score keeps the first line on ties
            if score > PROVIDER_SCORE_THRESHOLD and (best_line is None or score > best_score):
                best_line, best_score = cleaned, score

        if best_line is not None:
            return ScoredField(best_line, min(best_score, 1.0))

        for pattern in PROVIDER_PATTERNS:
            match = pattern.search(text)
            if match and match.group(1):
                cleaned = clean_provider(match.group(1))
                if cleaned:
                    return ScoredField(cleaned, PROVIDER_FALLBACK_CONFIDENCE)

        return ScoredField.missing()

    def extract_due_date(self, text: str) -> ScoredField[str]:
        """Extract the due date as printed; the first matching pattern wins."""
        for index, (pattern, _pattern_type) in enumerate(DUE_DATE_PATTERNS):
            match = pattern.search(text)
            if match and match.group(1):
                return ScoredField(normalize_date(match.group(1)), pattern_confidence(index))
        return ScoredField.missing()

    def extract_payment_portal(self, text: str) -> ScoredField[str]:
        """Extract a payment portal URL; the first pattern with a valid URL wins."""
        for index, (pattern, pattern_type) in enumerate(PORTAL_PATTERNS):
            match = pattern.search(text)
            if not match or not match.group(1):
                continue

            url = normalize_portal_url(match.group(1))
            if url is None:
                logger.debug("Rejected invalid portal URL from pattern %s", pattern_type)
                continue

            return ScoredField(url, pattern_confidence(index))

        return ScoredField.missing()
