"""Tests for the extractor ensemble."""

import logging
import threading
import time
from decimal import Decimal

import pytest

from bill_extraction.config import AnthropicConfig, Config, EnsembleConfig, HeuristicConfig
from bill_extraction.extractors.base import BaseExtractor, BillDetails
from bill_extraction.extractors.claude_extractor import ClaudeExtractor
from bill_extraction.extractors.ensemble import (
    UNSERIALIZABLE,
    ExtractorEnsemble,
    NoExtractorsRegisteredError,
    OutcomeStatus,
    create_default_ensemble,
)
from bill_extraction.extractors.heuristic_extractor import PdfTextExtractor

PDF_BYTES = b"%PDF-1.4 shared document"


class FakeExtractor(BaseExtractor):
    """Extractor returning a canned result (or raising) after an optional action."""

    def __init__(self, name, result=None, error=None, before=None):
        self._name = name
        self.result = result
        self.error = error
        self.before = before
        self.seen: list[bytes] = []

    @property
    def name(self):
        return self._name

    def parse(self, pdf_bytes):
        self.seen.append(pdf_bytes)
        if self.before is not None:
            self.before()
        if self.error is not None:
            raise self.error
        return self.result


class UnserializableDetails(BillDetails):
    """Result whose JSON rendering fails."""

    def to_dict(self):
        raise TypeError("cannot render")


def details(confidence, provider="Acme"):
    return BillDetails(amount=Decimal("10.00"), service_provider=provider, confidence=confidence)


class TestExtractorEnsemble:
    """Tests for ExtractorEnsemble.parse."""

    def test_no_extractors(self):
        with pytest.raises(NoExtractorsRegisteredError, match="No parsers registered"):
            ExtractorEnsemble().parse(PDF_BYTES)

    def test_highest_confidence_wins(self):
        """The selected result is returned unmodified."""
        best = details(0.8, provider="Best")
        ensemble = ExtractorEnsemble(
            [FakeExtractor("low", details(0.3)), FakeExtractor("high", best)]
        )

        assert ensemble.parse(PDF_BYTES) is best

    def test_failing_extractor_excluded(self):
        good = details(0.4)
        ensemble = ExtractorEnsemble(
            [FakeExtractor("broken", error=RuntimeError("boom")), FakeExtractor("good", good)]
        )

        assert ensemble.parse(PDF_BYTES) is good

    def test_all_rejected_gives_empty_result(self):
        ensemble = ExtractorEnsemble(
            [
                FakeExtractor("a", error=RuntimeError("boom")),
                FakeExtractor("b", error=ValueError("bad")),
            ]
        )

        assert ensemble.parse(PDF_BYTES) == BillDetails.empty()

    def test_all_zero_confidence_gives_empty_result(self):
        """Zero-confidence results are never selected, even with fields set."""
        ensemble = ExtractorEnsemble([FakeExtractor("a", details(0.0))])

        result = ensemble.parse(PDF_BYTES)

        assert result == BillDetails.empty()
        assert result.service_provider is None

    def test_tie_goes_to_first_registered(self):
        """Registration order breaks ties regardless of completion order."""
        first = details(0.5, provider="First")
        second = details(0.5, provider="Second")
        ensemble = ExtractorEnsemble(
            [
                FakeExtractor("slow", first, before=lambda: time.sleep(0.1)),
                FakeExtractor("fast", second),
            ]
        )

        assert ensemble.parse(PDF_BYTES) is first

    def test_extractors_run_concurrently(self):
        """Both extractors must be inside parse() at the same time."""
        barrier = threading.Barrier(2)

        def meet():
            barrier.wait(timeout=5)

        ensemble = ExtractorEnsemble(
            [
                FakeExtractor("a", details(0.6), before=meet),
                FakeExtractor("b", details(0.7), before=meet),
            ]
        )

        outcomes = ensemble.collect_outcomes(PDF_BYTES)

        assert [o.status for o in outcomes] == [OutcomeStatus.FULFILLED, OutcomeStatus.FULFILLED]

    def test_every_extractor_sees_same_bytes(self):
        a = FakeExtractor("a", details(0.2))
        b = FakeExtractor("b", details(0.3))

        ExtractorEnsemble([a, b]).parse(PDF_BYTES)

        assert a.seen == [PDF_BYTES]
        assert b.seen == [PDF_BYTES]

    def test_timed_out_extractor_scores_zero(self):
        release = threading.Event()
        fallback = details(0.2)
        ensemble = ExtractorEnsemble(
            [
                FakeExtractor("stuck", details(0.9), before=lambda: release.wait(5)),
                FakeExtractor("quick", fallback),
            ],
            timeout_seconds=0.2,
        )

        try:
            outcomes = ensemble.collect_outcomes(PDF_BYTES)
            result = ensemble.parse(PDF_BYTES)
        finally:
            release.set()

        assert outcomes[0].status is OutcomeStatus.TIMED_OUT
        assert outcomes[0].result == BillDetails.empty()
        assert outcomes[1].status is OutcomeStatus.FULFILLED
        assert result is fallback

    def test_memory_error_is_contained(self):
        """Even severe errors from one extractor only exclude that extractor."""
        good = details(0.3)
        ensemble = ExtractorEnsemble(
            [FakeExtractor("oom", error=MemoryError()), FakeExtractor("good", good)]
        )

        outcomes = ensemble.collect_outcomes(PDF_BYTES)

        assert outcomes[0].status is OutcomeStatus.REJECTED
        assert isinstance(outcomes[0].error, MemoryError)
        assert ensemble.parse(PDF_BYTES) is good

    def test_non_result_ignored(self, caplog):
        good = details(0.3)
        ensemble = ExtractorEnsemble([FakeExtractor("none", None), FakeExtractor("good", good)])

        with caplog.at_level(logging.WARNING, logger="bill_extraction.extractors.ensemble"):
            result = ensemble.parse(PDF_BYTES)

        assert result is good
        assert "parser=none" in caplog.text

    def test_unserializable_result_still_selected(self, caplog):
        odd = UnserializableDetails(service_provider="Odd", confidence=0.7)
        ensemble = ExtractorEnsemble([FakeExtractor("odd", odd)])

        with caplog.at_level(logging.INFO, logger="bill_extraction.extractors.ensemble"):
            result = ensemble.parse(PDF_BYTES)

        assert result is odd
        assert UNSERIALIZABLE in caplog.text

    def test_logs_each_outcome(self, caplog):
        ensemble = ExtractorEnsemble(
            [FakeExtractor("good", details(0.5)), FakeExtractor("bad", error=RuntimeError("boom"))]
        )

        with caplog.at_level(logging.INFO, logger="bill_extraction.extractors.ensemble"):
            ensemble.parse(PDF_BYTES)

        assert "parser=good status=fulfilled confidence=0.5" in caplog.text
        assert "parser=bad status=rejected" in caplog.text
        assert "selected confidence=0.5" in caplog.text

    def test_nested_ensemble(self):
        """An ensemble is itself an extractor."""
        inner_best = details(0.9, provider="Inner")
        inner = ExtractorEnsemble([FakeExtractor("inner", inner_best)])
        outer = ExtractorEnsemble([FakeExtractor("outer", details(0.4)), inner])

        assert outer.parse(PDF_BYTES) is inner_best

    def test_close_closes_members(self):
        closable = FakeExtractor("closable", details(0.1))
        closable.close = lambda: closable.seen.append(b"closed")

        ExtractorEnsemble([closable, FakeExtractor("plain", details(0.1))]).close()

        assert closable.seen == [b"closed"]


class TestCreateDefaultEnsemble:
    """Tests for the default extractor wiring."""

    def test_heuristics_only_without_api_key(self):
        ensemble = create_default_ensemble(Config(anthropic=AnthropicConfig(api_key=None)))

        assert [e.name for e in ensemble.extractors] == ["pdf-text"]

    def test_ai_disabled(self):
        config = Config(anthropic=AnthropicConfig(enabled=False, api_key="sk-test"))

        ensemble = create_default_ensemble(config)

        assert [e.name for e in ensemble.extractors] == ["pdf-text"]

    def test_heuristics_then_claude(self):
        config = Config(
            anthropic=AnthropicConfig(api_key="sk-test"),
            heuristic=HeuristicConfig(extra_known_providers=["Duke Energy"]),
            ensemble=EnsembleConfig(strategy_timeout_seconds=30.0, max_workers=4),
        )

        ensemble = create_default_ensemble(config)
        try:
            assert isinstance(ensemble.extractors[0], PdfTextExtractor)
            assert isinstance(ensemble.extractors[1], ClaudeExtractor)
            assert "Duke Energy" in ensemble.extractors[0].known_providers
            assert ensemble.timeout_seconds == 30.0
            assert ensemble.max_workers == 4
        finally:
            ensemble.close()
