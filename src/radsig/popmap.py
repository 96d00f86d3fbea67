from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping

from .errors import FileUnreadable, InvalidGroupSelection, MalformedPopmap

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Popmap:
    """Individual -> group assignments, optionally with two groups under comparison.

    Without a pair (``group1`` and ``group2`` both ``None``) the popmap only
    resolves groups, and ``counts`` tallies every group in the file.
    """

    groups: Mapping[str, str]
    group1: str | None = None
    group2: str | None = None
    counts: Mapping[str, int] = field(init=False)

    def __post_init__(self) -> None:
        if (self.group1 is None) != (self.group2 is None):
            raise InvalidGroupSelection("Either both compared groups or neither must be given.")
        if self.group1 is not None and self.group1 == self.group2:
            raise InvalidGroupSelection("The two compared groups must be different.")
        frozen = MappingProxyType(dict(self.groups))
        tally = Counter(frozen.values())
        if self.compares_groups:
            tally = Counter({self.group1: tally[self.group1], self.group2: tally[self.group2]})
        object.__setattr__(self, "groups", frozen)
        object.__setattr__(self, "counts", MappingProxyType(dict(tally)))

    @property
    def compares_groups(self) -> bool:
        return self.group1 is not None

    @property
    def total1(self) -> int:
        return self.counts[self.group1]

    @property
    def total2(self) -> int:
        return self.counts[self.group2]

    def group_of(self, individual: str) -> str | None:
        return self.groups.get(individual)

    def individuals_in(self, group: str) -> list[str]:
        return [ind for ind, grp in self.groups.items() if grp == group]


def read_popmap_file(path: str | Path) -> dict[str, str]:
    """Parse a two-column tab-separated popmap into an ordered mapping."""
    path = Path(path)
    groups: dict[str, str] = {}
    try:
        handle = path.open("r", encoding="utf-8")
    except OSError as exc:
        raise FileUnreadable(path, exc) from exc

    with handle:
        for line_no, raw in enumerate(handle, start=1):
            line = raw.rstrip("\r\n")
            if not line.strip():
                continue
            fields_ = line.split("\t")
            if len(fields_) != 2:
                raise MalformedPopmap(
                    f"Line {line_no} of popmap {path} has {len(fields_)} columns (expected 2)."
                )
            individual, group = fields_[0].strip(), fields_[1].strip()
            if not individual or not group:
                raise MalformedPopmap(f"Line {line_no} of popmap {path} has an empty field.")
            previous = groups.get(individual)
            if previous is not None and previous != group:
                raise MalformedPopmap(
                    f"Individual '{individual}' is assigned to both '{previous}' and '{group}' "
                    f"in popmap {path} (line {line_no})."
                )
            groups[individual] = group

    if not groups:
        raise MalformedPopmap(f"Popmap {path} does not contain any individual.")
    return groups


def select_groups(assignments: Mapping[str, str], groups: Iterable[str] | None = None) -> tuple[str, str]:
    present = list(dict.fromkeys(assignments.values()))
    if groups is None:
        if len(present) != 2:
            raise InvalidGroupSelection(
                f"Popmap defines {len(present)} groups ({', '.join(present)}); "
                "exactly two are required unless groups are selected explicitly."
            )
        return present[0], present[1]

    chosen = [g.strip() for g in groups]
    if len(chosen) != 2 or chosen[0] == chosen[1]:
        raise InvalidGroupSelection(
            f"Exactly two distinct groups must be selected, got: {', '.join(chosen) or 'none'}."
        )
    missing = [g for g in chosen if g not in present]
    if missing:
        raise InvalidGroupSelection(
            f"Selected group(s) not found in popmap: {', '.join(missing)} "
            f"(available: {', '.join(present)})."
        )
    return chosen[0], chosen[1]


def load_popmap(
    path: str | Path,
    groups: Iterable[str] | None = None,
    *,
    compare_groups: bool = True,
) -> Popmap:
    assignments = read_popmap_file(path)
    if not compare_groups:
        popmap = Popmap(groups=assignments)
        logger.debug(
            "Loaded popmap %s: %d individuals in %d group(s)", path, len(assignments), len(popmap.counts)
        )
        return popmap
    group1, group2 = select_groups(assignments, groups)
    popmap = Popmap(groups=assignments, group1=group1, group2=group2)
    logger.debug(
        "Loaded popmap %s: %d individuals, %s=%d, %s=%d",
        path,
        len(assignments),
        group1,
        popmap.total1,
        group2,
        popmap.total2,
    )
    return popmap
