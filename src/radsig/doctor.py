from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .errors import RadsigError
from .popmap import Popmap, read_popmap_file, select_groups
from .table import Header, read_table_header


@dataclass
class DoctorCheck:
    name: str
    status: str  # PASS | WARN | FAIL
    message: str
    fix: str | None = None


@dataclass
class DoctorReport:
    checks: list[DoctorCheck]

    @property
    def has_failures(self) -> bool:
        return any(check.status == "FAIL" for check in self.checks)

    def render(self) -> str:
        lines = []
        for check in self.checks:
            lines.append(f"[{check.status}] {check.name}: {check.message}")
            if check.fix:
                lines.append(f"  fix: {check.fix}")
        summary = "FAIL" if self.has_failures else "PASS"
        lines.append(f"\nDoctor summary: {summary}")
        return "\n".join(lines)


def _check_header_vs_popmap(header: Header, popmap: Popmap) -> list[DoctorCheck]:
    checks: list[DoctorCheck] = []
    unknown = [ind for ind in header.individuals if popmap.group_of(ind) is None]
    if unknown:
        checks.append(
            DoctorCheck(
                "table_individuals_in_popmap",
                "WARN",
                f"{len(unknown)} table individual(s) missing from popmap: {', '.join(unknown)}",
                "Add them to the popmap or they will be ignored.",
            )
        )
    else:
        checks.append(
            DoctorCheck("table_individuals_in_popmap", "PASS", "All table individuals are in the popmap.")
        )

    in_table = set(header.individuals)
    for group in (popmap.group1, popmap.group2):
        members = popmap.individuals_in(group)
        absent = [ind for ind in members if ind not in in_table]
        found = len(members) - len(absent)
        if found == 0:
            checks.append(
                DoctorCheck(
                    f"group_{group}_in_table",
                    "FAIL",
                    f"No individual of group '{group}' appears in the marker table.",
                    "Check that popmap names match the table header.",
                )
            )
        elif absent:
            checks.append(
                DoctorCheck(
                    f"group_{group}_in_table",
                    "WARN",
                    f"{len(absent)} of {len(members)} '{group}' individual(s) missing from table: "
                    f"{', '.join(absent)}",
                    "Group totals use the popmap, so absent individuals count as absences.",
                )
            )
        else:
            checks.append(
                DoctorCheck(
                    f"group_{group}_in_table", "PASS", f"All {found} '{group}' individuals are in the table."
                )
            )
    return checks


def run_doctor(
    table_path: str | Path,
    popmap_path: str | Path,
    groups: Iterable[str] | None = None,
) -> DoctorReport:
    checks: list[DoctorCheck] = []

    try:
        assignments = read_popmap_file(popmap_path)
    except RadsigError as exc:
        checks.append(DoctorCheck("popmap", "FAIL", str(exc), "Fix the popmap file."))
        return DoctorReport(checks)
    checks.append(DoctorCheck("popmap", "PASS", f"{len(assignments)} individuals loaded."))

    popmap: Popmap | None = None
    try:
        group1, group2 = select_groups(assignments, groups)
        popmap = Popmap(groups=assignments, group1=group1, group2=group2)
        checks.append(
            DoctorCheck(
                "group_selection",
                "PASS",
                f"Comparing '{group1}' (n={popmap.total1}) and '{group2}' (n={popmap.total2}).",
            )
        )
    except RadsigError as exc:
        checks.append(
            DoctorCheck("group_selection", "FAIL", str(exc), "Use --groups group1,group2.")
        )

    try:
        header = read_table_header(table_path)
    except RadsigError as exc:
        checks.append(DoctorCheck("table_header", "FAIL", str(exc), "Fix the marker table header."))
        return DoctorReport(checks)
    announced = "" if header.announced_markers is None else f", {header.announced_markers} markers announced"
    checks.append(
        DoctorCheck("table_header", "PASS", f"{header.n_individuals} individuals in header{announced}.")
    )

    if popmap is not None:
        checks.extend(_check_header_vs_popmap(header, popmap))
    return DoctorReport(checks)
