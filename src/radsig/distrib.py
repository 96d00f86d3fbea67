from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from .config import RunConfig
from .pipeline import run_pipeline
from .popmap import Popmap
from .signif import effective_threshold
from .stats import marker_p_value
from .table import Marker

logger = logging.getLogger(__name__)


class DistributionProcessor:
    """Counts markers per (group1 present, group2 present) pair."""

    def __init__(self) -> None:
        self.counts: Counter[tuple[int, int]] = Counter()
        self.n_tested = 0

    def process_batch(self, batch: list[Marker]) -> None:
        for marker in batch:
            if marker.n_individuals <= 0:
                continue
            self.counts[(marker.group1_count, marker.group2_count)] += 1
            self.n_tested += 1


@dataclass
class DistributionResult:
    popmap: Popmap
    config: RunConfig
    counts: Counter[tuple[int, int]]
    n_rows: int
    n_tested: int
    threshold: float

    def to_frame(self) -> pd.DataFrame:
        group1, group2 = self.popmap.group1, self.popmap.group2
        rows = []
        for (n1, n2), n_markers in sorted(self.counts.items()):
            p = marker_p_value(n1, n2, self.popmap.total1, self.popmap.total2)
            rows.append(
                {
                    group1: n1,
                    group2: n2,
                    "markers": n_markers,
                    "p": p,
                    "signif": bool(p < self.threshold),
                }
            )
        return pd.DataFrame(rows, columns=[group1, group2, "markers", "p", "signif"])

    def to_matrix(self) -> pd.DataFrame:
        """Marker counts with group2 counts as rows and group1 counts as columns."""
        matrix = pd.DataFrame(
            0,
            index=pd.RangeIndex(self.popmap.total2 + 1, name=self.popmap.group2),
            columns=pd.RangeIndex(self.popmap.total1 + 1, name=self.popmap.group1),
            dtype="int64",
        )
        for (n1, n2), n_markers in self.counts.items():
            matrix.loc[n2, n1] = n_markers
        return matrix


def run_distrib(table_path: str | Path, popmap: Popmap, config: RunConfig) -> DistributionResult:
    started = time.perf_counter()
    logger.info("radsig distrib started")
    logger.info('Comparing groups "%s" and "%s"', popmap.group1, popmap.group2)

    processor = DistributionProcessor()
    run = run_pipeline(table_path, popmap, config, processor, desc="Counting markers")
    threshold = effective_threshold(
        config.signif_threshold, processor.n_tested, correction=config.correction
    )
    result = DistributionResult(
        popmap=popmap,
        config=config,
        counts=processor.counts,
        n_rows=run.n_rows,
        n_tested=processor.n_tested,
        threshold=threshold,
    )
    logger.info(
        "Distributed %d present markers over %d cells", processor.n_tested, len(processor.counts)
    )
    logger.info("radsig distrib ended (total runtime: %.2fs)", time.perf_counter() - started)
    return result
