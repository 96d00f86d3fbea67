from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, replace
from pathlib import Path

import numpy as np
import pandas as pd

from .config import RunConfig
from .pipeline import run_pipeline
from .popmap import Popmap
from .stats import marker_p_value
from .table import ID_COLUMNS, Header, Marker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubsetBounds:
    """Inclusive presence ranges a marker must fall in to be kept.

    A ``None`` maximum means no upper limit; :meth:`resolve` replaces it with
    the matching group size (or the size of both groups for individuals).
    """

    min_group1: int = 0
    max_group1: int | None = None
    min_group2: int = 0
    max_group2: int | None = None
    min_individuals: int = 0
    max_individuals: int | None = None

    def __post_init__(self) -> None:
        for name, low, high in (
            ("group1", self.min_group1, self.max_group1),
            ("group2", self.min_group2, self.max_group2),
            ("individuals", self.min_individuals, self.max_individuals),
        ):
            if int(low) < 0 or (high is not None and int(high) < 0):
                raise ValueError(f"{name} bounds must be >= 0")
            if high is not None and int(low) > int(high):
                raise ValueError(f"min_{name} ({low}) is greater than max_{name} ({high})")

    def resolve(self, popmap: Popmap) -> "SubsetBounds":
        return replace(
            self,
            max_group1=popmap.total1 if self.max_group1 is None else self.max_group1,
            max_group2=popmap.total2 if self.max_group2 is None else self.max_group2,
            max_individuals=(
                popmap.total1 + popmap.total2 if self.max_individuals is None else self.max_individuals
            ),
        )

    def accepts(self, marker: Marker) -> bool:
        return (
            _within(marker.group1_count, self.min_group1, self.max_group1)
            and _within(marker.group2_count, self.min_group2, self.max_group2)
            and _within(marker.n_individuals, self.min_individuals, self.max_individuals)
        )

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


def _within(value: int, low: int, high: int | None) -> bool:
    return low <= value and (high is None or value <= high)


class SubsetProcessor:
    """Keeps markers inside the bounds, annotated with their p-value."""

    def __init__(self, popmap: Popmap, bounds: SubsetBounds) -> None:
        self.total1 = popmap.total1
        self.total2 = popmap.total2
        self.bounds = bounds.resolve(popmap)
        self.selected: list[Marker] = []

    def process_batch(self, batch: list[Marker]) -> None:
        for marker in batch:
            if not self.bounds.accepts(marker):
                continue
            marker.p_value = marker_p_value(
                marker.group1_count, marker.group2_count, self.total1, self.total2
            )
            self.selected.append(marker)


@dataclass
class SubsetResult:
    header: Header
    popmap: Popmap
    config: RunConfig
    bounds: SubsetBounds
    n_rows: int
    markers: list[Marker]

    def to_frame(self) -> pd.DataFrame:
        """Selected markers as a depth table that can be read back as input."""
        individuals = list(self.header.individuals)
        if self.markers:
            depths = np.vstack([m.depths for m in self.markers])
        else:
            depths = np.empty((0, len(individuals)), dtype=np.int64)
        df = pd.DataFrame(depths, columns=individuals)
        df.insert(0, ID_COLUMNS[1], [m.sequence for m in self.markers])
        df.insert(0, ID_COLUMNS[0], [m.id for m in self.markers])
        return df

    def summary(self) -> dict[str, object]:
        return {
            "group1": self.popmap.group1,
            "group2": self.popmap.group2,
            "n_markers": self.n_rows,
            "n_selected": len(self.markers),
            "bounds": self.bounds.to_dict(),
        }


def run_subset(
    table_path: str | Path,
    popmap: Popmap,
    config: RunConfig,
    bounds: SubsetBounds | None = None,
) -> SubsetResult:
    started = time.perf_counter()
    logger.info("radsig subset started")
    logger.info('Comparing groups "%s" and "%s"', popmap.group1, popmap.group2)

    processor = SubsetProcessor(popmap, bounds or SubsetBounds())
    run = run_pipeline(table_path, popmap, config, processor, desc="Selecting markers")
    logger.info("Kept %d of %d markers", len(processor.selected), run.n_rows)
    logger.info("radsig subset ended (total runtime: %.2fs)", time.perf_counter() - started)
    return SubsetResult(
        header=run.header,
        popmap=popmap,
        config=config,
        bounds=processor.bounds,
        n_rows=run.n_rows,
        markers=processor.selected,
    )
