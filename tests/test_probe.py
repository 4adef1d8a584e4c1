"""Tests for jpegtune.probe: one encode, normalize and score per measurement."""

import pytest

from conftest import ConstantScorer
from jpegtune.encoders import PillowEncoder
from jpegtune.errors import EncodingFailure, ScoringFailure
from jpegtune.probe import QualityProbe
from jpegtune.scoring import to_raster


class RecordingEncoder:
    name = "recording"

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []
        self.inner = PillowEncoder()

    def encode(self, data, quality):
        self.calls.append((data, quality))
        if self.error is not None:
            raise self.error
        if self.result is not None:
            return self.result
        return self.inner.encode(data, quality)


class CountingNormalizer:
    def __init__(self):
        self.calls = 0

    def __call__(self, data):
        self.calls += 1
        return to_raster(data)


class TestMeasure:
    def test_returns_scorer_value(self, png_bytes):
        probe = QualityProbe(png_bytes, RecordingEncoder(), ConstantScorer(0.0151))
        assert probe.measure(80) == 0.0151

    def test_encodes_reference_at_requested_quality(self, png_bytes):
        encoder = RecordingEncoder()
        probe = QualityProbe(png_bytes, encoder, ConstantScorer(0.01))
        probe.measure(70)
        probe.measure(35)
        assert encoder.calls == [(png_bytes, 70), (png_bytes, 35)]
        assert probe.probes == 2

    def test_reference_normalized_once(self, png_bytes):
        normalizer = CountingNormalizer()
        scorer = ConstantScorer(0.01)
        probe = QualityProbe(png_bytes, RecordingEncoder(), scorer, normalize=normalizer)
        for quality in (80, 70, 65):
            probe.measure(quality)
        assert normalizer.calls == 4
        assert all(reference == probe.reference_raster for reference, _ in scorer.calls)

    def test_every_quality_measured_fresh(self, png_bytes):
        scorer = ConstantScorer(0.01)
        probe = QualityProbe(png_bytes, RecordingEncoder(), scorer)
        probe.measure(80)
        probe.measure(80)
        assert len(scorer.calls) == 2

    def test_scorer_receives_rasters(self, png_bytes):
        scorer = ConstantScorer(0.01)
        QualityProbe(png_bytes, RecordingEncoder(), scorer).measure(50)
        reference, candidate = scorer.calls[0]
        assert reference.startswith(b"\x89PNG")
        assert candidate.startswith(b"\x89PNG")


class TestFailures:
    def test_encoding_failure_propagates(self, png_bytes):
        encoder = RecordingEncoder(error=EncodingFailure("rejected"))
        scorer = ConstantScorer(0.01)
        probe = QualityProbe(png_bytes, encoder, scorer)
        with pytest.raises(EncodingFailure):
            probe.measure(80)
        assert scorer.calls == []

    def test_os_error_from_encoder_becomes_encoding_failure(self, png_bytes):
        probe = QualityProbe(png_bytes, RecordingEncoder(error=OSError("broken pipe")), ConstantScorer(0.01))
        with pytest.raises(EncodingFailure, match="broken pipe"):
            probe.measure(80)

    def test_undecodable_candidate_is_scoring_failure(self, png_bytes):
        probe = QualityProbe(png_bytes, RecordingEncoder(result=b"truncated"), ConstantScorer(0.01))
        with pytest.raises(ScoringFailure):
            probe.measure(80)

    def test_scorer_value_error_is_scoring_failure(self, png_bytes):
        class BrokenScorer:
            def score(self, reference, candidate):
                raise ValueError("malformed raster")

        probe = QualityProbe(png_bytes, RecordingEncoder(), BrokenScorer())
        with pytest.raises(ScoringFailure, match="malformed raster"):
            probe.measure(80)

    def test_bad_reference_fails_at_construction(self):
        with pytest.raises(ScoringFailure):
            QualityProbe(b"nope", RecordingEncoder(), ConstantScorer(0.01))
