from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import IO

import numpy as np

from .errors import FileUnreadable, MalformedMarkerTable
from .popmap import Popmap

ID_COLUMNS = ("id", "sequence")
N_ID_COLUMNS = len(ID_COLUMNS)
MARKER_COUNT_RE = re.compile(r"^#\s*Number of markers\s*:\s*(\d+)\s*$")


@dataclass(frozen=True)
class Header:
    individuals: tuple[str, ...]
    announced_markers: int | None = None

    @property
    def n_individuals(self) -> int:
        return len(self.individuals)

    @property
    def width(self) -> int:
        return N_ID_COLUMNS + self.n_individuals


@dataclass(frozen=True)
class GroupColumns:
    """Depth-column indices of each compared group for one header/popmap pair.

    Without a popmap no individual is unknown and both index arrays are empty.
    """

    group1: np.ndarray
    group2: np.ndarray
    unknown: tuple[str, ...]

    @classmethod
    def build(cls, header: Header, popmap: Popmap | None) -> "GroupColumns":
        if popmap is None:
            empty = np.empty(0, dtype=np.intp)
            return cls(group1=empty, group2=empty, unknown=())
        idx1: list[int] = []
        idx2: list[int] = []
        unknown: list[str] = []
        for col, individual in enumerate(header.individuals):
            group = popmap.group_of(individual)
            if group is None:
                unknown.append(individual)
            elif group == popmap.group1:
                idx1.append(col)
            elif group == popmap.group2:
                idx2.append(col)
        return cls(
            group1=np.asarray(idx1, dtype=np.intp),
            group2=np.asarray(idx2, dtype=np.intp),
            unknown=tuple(unknown),
        )


@dataclass
class Marker:
    id: str
    sequence: str
    depths: np.ndarray
    group1_count: int
    group2_count: int
    n_individuals: int
    p_value: float | None = None

    def present_individuals(self, header: Header, min_depth: int) -> list[str]:
        present = np.flatnonzero(self.depths >= min_depth)
        return [header.individuals[i] for i in present]


def open_table(path: str | Path) -> IO[str]:
    path = Path(path)
    try:
        return path.open("r", encoding="utf-8")
    except OSError as exc:
        raise FileUnreadable(path, exc) from exc


def parse_header_line(line: str, announced_markers: int | None = None) -> Header:
    fields = line.rstrip("\r\n").split("\t")
    if len(fields) < N_ID_COLUMNS + 1:
        raise MalformedMarkerTable(
            f"Marker table header has {len(fields)} columns; expected "
            f"{', '.join(ID_COLUMNS)} followed by at least one individual."
        )
    individuals = tuple(f.strip() for f in fields[N_ID_COLUMNS:])
    seen: set[str] = set()
    for name in individuals:
        if not name:
            raise MalformedMarkerTable("Marker table header contains an empty individual name.")
        if name in seen:
            raise MalformedMarkerTable(f"Individual '{name}' appears twice in the marker table header.")
        seen.add(name)
    return Header(individuals=individuals, announced_markers=announced_markers)


def read_header(handle: IO[str]) -> tuple[Header, int]:
    """Consume comment lines and the column header; return it with its line number."""
    announced: int | None = None
    for line_no, raw in enumerate(handle, start=1):
        if raw.startswith("#"):
            match = MARKER_COUNT_RE.match(raw.strip())
            if match:
                announced = int(match.group(1))
            continue
        if not raw.strip():
            continue
        return parse_header_line(raw, announced), line_no
    raise MalformedMarkerTable("Marker table has no header line.")


def read_table_header(path: str | Path) -> Header:
    with open_table(path) as handle:
        header, _ = read_header(handle)
    return header


def parse_marker_line(
    line: str,
    line_no: int,
    header: Header,
    columns: GroupColumns,
    min_depth: int,
) -> Marker:
    fields = line.rstrip("\r\n").split("\t")
    if len(fields) != header.width:
        raise MalformedMarkerTable(
            f"Line {line_no} of marker table has {len(fields)} columns (expected {header.width})."
        )
    try:
        depths = np.fromiter(
            (int(value) for value in fields[N_ID_COLUMNS:]),
            dtype=np.int64,
            count=header.n_individuals,
        )
    except ValueError as exc:
        raise MalformedMarkerTable(f"Line {line_no} of marker table has a non-integer depth: {exc}") from exc
    if depths.size and int(depths.min()) < 0:
        raise MalformedMarkerTable(f"Line {line_no} of marker table has a negative depth.")

    present = depths >= min_depth
    group1_count = int(np.count_nonzero(present[columns.group1]))
    group2_count = int(np.count_nonzero(present[columns.group2]))
    return Marker(
        id=fields[0],
        sequence=fields[1],
        depths=depths,
        group1_count=group1_count,
        group2_count=group2_count,
        n_individuals=group1_count + group2_count,
    )


def estimate_marker_count(file_size: int, header: Header) -> int:
    if header.announced_markers is not None:
        return max(int(header.announced_markers), 1)
    return max(int(file_size) // (2 * header.n_individuals + 50), 1)

