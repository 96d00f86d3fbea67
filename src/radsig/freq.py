from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd

from .config import RunConfig
from .pipeline import run_pipeline
from .table import Header, Marker

logger = logging.getLogger(__name__)


class FreqProcessor:
    """Counts markers by the number of individuals carrying them."""

    def __init__(self, config: RunConfig) -> None:
        self.min_depth = config.min_depth
        self.counts: Counter[int] = Counter()

    def process_batch(self, batch: list[Marker]) -> None:
        for marker in batch:
            self.counts[int(np.count_nonzero(marker.depths >= self.min_depth))] += 1


@dataclass
class FreqResult:
    header: Header
    config: RunConfig
    counts: Counter[int]
    n_rows: int

    def to_frame(self) -> pd.DataFrame:
        """One row per possible frequency, from 0 to the number of individuals."""
        frequencies = range(self.header.n_individuals + 1)
        return pd.DataFrame(
            {
                "frequency": list(frequencies),
                "count": [self.counts.get(k, 0) for k in frequencies],
            }
        )


def run_freq(table_path: str | Path, config: RunConfig) -> FreqResult:
    """Distribution of marker frequency over every individual of the table."""
    started = time.perf_counter()
    logger.info("radsig freq started")
    processor = FreqProcessor(config)
    run = run_pipeline(table_path, None, config, processor, desc="Counting frequencies")
    logger.info("radsig freq ended (total runtime: %.2fs)", time.perf_counter() - started)
    return FreqResult(header=run.header, config=config, counts=processor.counts, n_rows=run.n_rows)
