"""
Extractor ensemble - runs every extraction strategy and keeps the best result.
"""

import json
import logging
from collections.abc import Sequence
from concurrent.futures import ALL_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..config import Config
from .base import BaseExtractor, BillDetails
from .claude_extractor import ClaudeExtractor
from .heuristic_extractor import PdfTextExtractor

logger = logging.getLogger(__name__)

UNSERIALIZABLE = "<unserializable>"


class NoExtractorsRegisteredError(Exception):
    """Raised when an ensemble is asked to parse without any extractors."""

    pass


class OutcomeStatus(str, Enum):
    """How a single extractor call settled."""

    FULFILLED = "fulfilled"
    REJECTED = "rejected"
    TIMED_OUT = "timed_out"


@dataclass
class ExtractorOutcome:
    """Settled result of one extractor call."""

    extractor_name: str
    index: int  # Registration order
    status: OutcomeStatus
    result: Optional[BillDetails] = None
    error: Optional[BaseException] = None


def describe(result: BillDetails) -> str:
    """Render a result as JSON for logging, never raising."""
    try:
        return json.dumps(result.to_dict())
    except Exception:
        return UNSERIALIZABLE


class ExtractorEnsemble(BaseExtractor):
    """
    Runs all registered extractors concurrently and returns the most
    confident result.

    Every extractor sees the same immutable bytes. The ensemble waits for
    all of them to settle; a failing extractor is logged and excluded and
    never affects the others. Ties keep registration order.
    """

    def __init__(
        self,
        extractors: Sequence[BaseExtractor] = (),
        timeout_seconds: Optional[float] = None,
        max_workers: Optional[int] = None,
    ):
        """
        Args:
            extractors: Extractors in registration (tie-break) order
            timeout_seconds: Bound on waiting for all extractors; calls still
                running afterwards count as zero confidence. None waits forever.
            max_workers: Thread pool size (default: one per extractor)
        """
        self.extractors: tuple[BaseExtractor, ...] = tuple(extractors)
        self.timeout_seconds = timeout_seconds
        self.max_workers = max_workers

    @property
    def name(self) -> str:
        return "bill-extractor-ensemble"

    def parse(self, pdf_bytes: bytes) -> BillDetails:
        """
        Parse a PDF with every extractor and return the best result.

        Raises:
            NoExtractorsRegisteredError: If the ensemble has no extractors
        """
        outcomes = self.collect_outcomes(pdf_bytes)

        for outcome in outcomes:
            self._log_outcome(outcome)

        candidates = [
            o.result
            for o in outcomes
            if o.status is not OutcomeStatus.REJECTED and isinstance(o.result, BillDetails)
        ]

        # sorted() is stable, so equal confidences keep registration order
        ranked = sorted(candidates, key=lambda r: r.confidence, reverse=True)

        if not ranked or ranked[0].confidence <= 0:
            logger.info("No valid extractor results, returning default low-confidence result")
            return BillDetails.empty()

        selected = ranked[0]
        logger.info("selected confidence=%s details=%s", selected.confidence, describe(selected))
        return selected

    def collect_outcomes(self, pdf_bytes: bytes) -> list[ExtractorOutcome]:
        """
        Run every extractor concurrently and wait for all of them to settle.

        Returns:
            One outcome per extractor, in registration order

        Raises:
            NoExtractorsRegisteredError: If the ensemble has no extractors
        """
        if not self.extractors:
            raise NoExtractorsRegisteredError("No parsers registered")

        executor = ThreadPoolExecutor(
            max_workers=self.max_workers or len(self.extractors),
            thread_name_prefix="bill-extractor",
        )
        try:
            futures = [executor.submit(extractor.parse, pdf_bytes) for extractor in self.extractors]
            done, _ = wait(futures, timeout=self.timeout_seconds, return_when=ALL_COMPLETED)
        finally:
            # Do not block on extractors that outlived the timeout
            executor.shutdown(wait=False, cancel_futures=True)

        outcomes: list[ExtractorOutcome] = []
        for index, (extractor, future) in enumerate(zip(self.extractors, futures)):
            if future not in done:
                outcomes.append(
                    ExtractorOutcome(
                        extractor_name=extractor.name,
                        index=index,
                        status=OutcomeStatus.TIMED_OUT,
                        result=BillDetails.empty(),
                    )
                )
                continue

            error = future.exception()
            if error is not None:
                outcomes.append(
                    ExtractorOutcome(
                        extractor_name=extractor.name,
                        index=index,
                        status=OutcomeStatus.REJECTED,
                        error=error,
                    )
                )
            else:
                outcomes.append(
                    ExtractorOutcome(
                        extractor_name=extractor.name,
                        index=index,
                        status=OutcomeStatus.FULFILLED,
                        result=future.result(),
                    )
                )

        return outcomes

    def close(self) -> None:
        """Close extractors that hold resources (HTTP clients)."""
        for extractor in self.extractors:
            close = getattr(extractor, "close", None)
            if callable(close):
                close()

    def _log_outcome(self, outcome: ExtractorOutcome) -> None:
        """Log one extractor's settlement for diagnostics."""
        if outcome.status is OutcomeStatus.REJECTED:
            logger.error(
                "parser=%s status=rejected reason=%r",
                outcome.extractor_name,
                outcome.error,
                exc_info=outcome.error,
            )
            return

        result = outcome.result
        if not isinstance(result, BillDetails):
            logger.warning(
                "parser=%s status=%s returned %s instead of BillDetails, ignoring",
                outcome.extractor_name,
                outcome.status.value,
                type(result).__name__,
            )
            return

        logger.info(
            "parser=%s status=%s confidence=%s details=%s",
            outcome.extractor_name,
            outcome.status.value,
            result.confidence,
            describe(result),
        )


def create_default_ensemble(config: Optional[Config] = None) -> ExtractorEnsemble:
    """
    Build the ensemble with the default extractor set.

    Order (ties go to the earlier one):
    1. PDF text heuristics - always available
    2. Anthropic Claude - only when enabled and an API key is configured
    """
    config = config or Config()

    extractors: list[BaseExtractor] = [
        PdfTextExtractor(extra_known_providers=config.heuristic.extra_known_providers),
    ]

    if config.anthropic.is_usable:
        extractors.append(ClaudeExtractor(config.anthropic))
    else:
        logger.debug("AI extraction disabled or no API key, using text heuristics only")

    return ExtractorEnsemble(
        extractors,
        timeout_seconds=config.ensemble.strategy_timeout_seconds,
        max_workers=config.ensemble.max_workers,
    )
