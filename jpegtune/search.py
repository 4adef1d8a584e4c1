from __future__ import annotations

import logging
from typing import Protocol

from .encoders import Encoder, get_encoder
from .errors import ConfigurationError
from .models import (
    MAX_QUALITY,
    MIN_QUALITY,
    ProbeRecord,
    SearchConfig,
    SearchOutcome,
    SearchState,
    SearchStatus,
    ToleranceBand,
)
from .probe import QualityProbe
from .scoring import DissimilarityScorer, DssimScorer

logger = logging.getLogger(__name__)


class Probe(Protocol):
    def measure(self, quality: int) -> float:
        ...


def shrink_step(step: int) -> int:
    return max(1, step // 2)


class QualitySearchController:
    """Walks the quality level toward a dissimilarity score inside a tolerance band.

    Each iteration measures the current level, halves the step and moves the
    level down when the score is below the band (the encode can afford more
    compression) or up when it is at or above the upper bound. The step
    halves unconditionally, so the walk always ends within ``max_iterations``
    probes. Probe failures propagate untouched.
    """

    def __init__(self, probe: Probe) -> None:
        self.probe = probe

    def search(
        self,
        initial_quality: int,
        initial_step: int,
        band: ToleranceBand,
        max_iterations: int,
        clamp: bool = True,
        min_quality: int = MIN_QUALITY,
        max_quality: int = MAX_QUALITY,
    ) -> SearchOutcome:
        if max_iterations < 1:
            raise ConfigurationError(f"max_iterations must be at least 1, got {max_iterations}")
        if initial_step < 1:
            raise ConfigurationError(f"initial_step must be at least 1, got {initial_step}")
        state = SearchState(quality=initial_quality, step=initial_step)
        history: list[ProbeRecord] = []
        while not band.contains(state.score) and state.iterations < max_iterations:
            measured_quality = state.quality
            state.score = self.probe.measure(measured_quality)
            state.iterations += 1
            if band.contains(state.score):
                history.append(ProbeRecord(measured_quality, state.score, None, measured_quality))
                break
            state.step = shrink_step(state.step)
            if state.score < band.lower:
                state.quality -= state.step
            else:
                state.quality += state.step
            if clamp:
                state.quality = max(min_quality, min(max_quality, state.quality))
            history.append(
                ProbeRecord(measured_quality, state.score, state.step, state.quality)
            )
        status = SearchStatus.CONVERGED if band.contains(state.score) else SearchStatus.EXHAUSTED
        logger.info(
            "search %s after %d probes: quality=%d score=%.6f",
            status.value,
            state.iterations,
            state.quality,
            state.score,
        )
        return SearchOutcome(
            quality=state.quality,
            score=state.score,
            iterations=state.iterations,
            status=status,
            history=tuple(history),
        )

    def run(self, config: SearchConfig) -> SearchOutcome:
        return self.search(
            config.initial_quality,
            config.initial_step,
            config.band,
            config.max_iterations,
            clamp=config.clamp_quality,
            min_quality=config.min_quality,
            max_quality=config.max_quality,
        )


def find_quality(
    source: bytes,
    config: SearchConfig,
    scorer: DissimilarityScorer | None = None,
    encoder: Encoder | None = None,
) -> SearchOutcome:
    if encoder is None:
        encoder = get_encoder(config.encoder)
    if scorer is None:
        scorer = DssimScorer()
    probe = QualityProbe(source, encoder, scorer)
    return QualitySearchController(probe).run(config)
