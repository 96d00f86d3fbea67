from __future__ import annotations

import logging
import time
import warnings
from dataclasses import dataclass
from pathlib import Path

from .config import RunConfig
from .errors import DegenerateStatistics
from .pipeline import run_pipeline
from .popmap import Popmap
from .stats import bonferroni_threshold, chi_squared, chi_squared_p
from .table import Header, Marker

logger = logging.getLogger(__name__)


class MarkerProcessor:
    """Tests each marker for association with the group partition.

    Only the processor thread writes ``candidates`` and ``n_tested``; read
    them after the pipeline has joined.
    """

    def __init__(self, popmap: Popmap, config: RunConfig) -> None:
        self.total1 = popmap.total1
        self.total2 = popmap.total2
        self.threshold = config.signif_threshold
        self.candidates: list[Marker] = []
        self.n_tested = 0

    def process(self, marker: Marker) -> None:
        if marker.n_individuals <= 0:
            return
        statistic = chi_squared(marker.group1_count, marker.group2_count, self.total1, self.total2)
        marker.p_value = chi_squared_p(statistic)
        self.n_tested += 1
        if marker.p_value < self.threshold:
            self.candidates.append(marker)

    def process_batch(self, batch: list[Marker]) -> None:
        for marker in batch:
            self.process(marker)


def effective_threshold(threshold: float, n_tested: int, *, correction: bool = True) -> float:
    if correction and n_tested < 1:
        warnings.warn(
            "No marker was tested; skipping multiple-testing correction.",
            DegenerateStatistics,
            stacklevel=2,
        )
    return bonferroni_threshold(threshold, n_tested, correction=correction)


def filter_significant(candidates: list[Marker], threshold: float) -> list[Marker]:
    return [m for m in candidates if m.p_value is not None and m.p_value < threshold]


@dataclass
class SignifResult:
    header: Header
    popmap: Popmap
    config: RunConfig
    n_rows: int
    n_tested: int
    candidates: list[Marker]
    threshold: float
    significant: list[Marker]

    def summary(self) -> dict[str, object]:
        return {
            "group1": self.popmap.group1,
            "group2": self.popmap.group2,
            "n_individuals": self.header.n_individuals,
            "n_markers": self.n_rows,
            "n_tested": self.n_tested,
            "n_candidates": len(self.candidates),
            "n_significant": len(self.significant),
            "signif_threshold": self.config.signif_threshold,
            "effective_threshold": self.threshold,
            "correction": self.config.correction,
        }


def run_signif(table_path: str | Path, popmap: Popmap, config: RunConfig) -> SignifResult:
    """Find markers significantly associated with the popmap's two groups."""
    started = time.perf_counter()
    logger.info("radsig signif started")
    logger.info('Comparing groups "%s" and "%s"', popmap.group1, popmap.group2)

    processor = MarkerProcessor(popmap, config)
    run = run_pipeline(table_path, popmap, config, processor, desc="Testing markers")

    threshold = effective_threshold(
        config.signif_threshold, processor.n_tested, correction=config.correction
    )
    significant = filter_significant(processor.candidates, threshold)
    result = SignifResult(
        header=run.header,
        popmap=popmap,
        config=config,
        n_rows=run.n_rows,
        n_tested=processor.n_tested,
        candidates=processor.candidates,
        threshold=threshold,
        significant=significant,
    )
    logger.info(
        "Tested %d of %d markers; %d candidate(s), %d significant at p < %.3g",
        result.n_tested,
        result.n_rows,
        len(result.candidates),
        len(result.significant),
        threshold,
    )
    logger.info("radsig signif ended (total runtime: %.2fs)", time.perf_counter() - started)
    return result
