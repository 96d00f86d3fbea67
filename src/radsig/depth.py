from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd

from .config import RunConfig
from .pipeline import run_pipeline
from .popmap import Popmap
from .table import Header, Marker

logger = logging.getLogger(__name__)


class DepthProcessor:
    """Accumulates per-individual marker presence and read totals.

    Only depths of at least ``min_depth`` count as reads, so ``reads / markers``
    is the mean depth over markers present in the individual.
    """

    def __init__(self, config: RunConfig) -> None:
        self.min_depth = config.min_depth
        self.markers: np.ndarray | None = None
        self.reads: np.ndarray | None = None

    def process_batch(self, batch: list[Marker]) -> None:
        if not batch:
            return
        depths = np.vstack([marker.depths for marker in batch])
        mask = depths >= self.min_depth
        present = np.count_nonzero(mask, axis=0)
        totals = np.where(mask, depths, 0).sum(axis=0)
        if self.markers is None or self.reads is None:
            self.markers = present.astype(np.int64)
            self.reads = totals.astype(np.int64)
        else:
            self.markers += present
            self.reads += totals


@dataclass
class DepthResult:
    header: Header
    popmap: Popmap
    markers: np.ndarray
    reads: np.ndarray
    n_rows: int

    def to_frame(self) -> pd.DataFrame:
        groups = [self.popmap.group_of(ind) or "NA" for ind in self.header.individuals]
        markers = self.markers.astype(float)
        mean_depth = np.divide(
            self.reads, markers, out=np.zeros_like(markers), where=markers > 0
        )
        return pd.DataFrame(
            {
                "individual": list(self.header.individuals),
                "group": groups,
                "markers": self.markers,
                "reads": self.reads,
                "mean_depth": np.round(mean_depth, 3),
            }
        )


def run_depth(table_path: str | Path, popmap: Popmap, config: RunConfig) -> DepthResult:
    started = time.perf_counter()
    logger.info("radsig depth started")
    processor = DepthProcessor(config)
    run = run_pipeline(table_path, popmap, config, processor, desc="Summing depths")
    n = run.header.n_individuals
    markers = processor.markers if processor.markers is not None else np.zeros(n, dtype=np.int64)
    reads = processor.reads if processor.reads is not None else np.zeros(n, dtype=np.int64)
    logger.info("radsig depth ended (total runtime: %.2fs)", time.perf_counter() - started)
    return DepthResult(header=run.header, popmap=popmap, markers=markers, reads=reads, n_rows=run.n_rows)
