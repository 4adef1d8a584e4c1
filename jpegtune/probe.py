from __future__ import annotations

import logging
from typing import Callable

from .encoders import Encoder
from .errors import EncodingFailure, ScoringFailure
from .scoring import DissimilarityScorer, to_raster

logger = logging.getLogger(__name__)


class QualityProbe:
    """Maps a quality level to the dissimilarity of one candidate encoding.

    The reference raster is built once, every ``measure`` call encodes and
    scores a fresh candidate. Nothing is cached between quality levels.
    """

    def __init__(
        self,
        reference: bytes,
        encoder: Encoder,
        scorer: DissimilarityScorer,
        normalize: Callable[[bytes], bytes] = to_raster,
    ) -> None:
        self.reference = reference
        self.encoder = encoder
        self.scorer = scorer
        self.normalize = normalize
        self.reference_raster = normalize(reference)
        self.probes = 0

    def measure(self, quality: int) -> float:
        self.probes += 1
        try:
            candidate = self.encoder.encode(self.reference, quality)
        except (OSError, ValueError) as exc:
            raise EncodingFailure(f"encoding at quality {quality} failed: {exc}") from exc
        candidate_raster = self.normalize(candidate)
        try:
            score = float(self.scorer.score(self.reference_raster, candidate_raster))
        except (OSError, ValueError) as exc:
            raise ScoringFailure(f"scoring at quality {quality} failed: {exc}") from exc
        logger.debug("quality %d -> score %.6f (%d bytes)", quality, score, len(candidate))
        return score
