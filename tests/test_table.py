from pathlib import Path

import pytest

from radsig.errors import FileUnreadable, MalformedMarkerTable
from radsig.popmap import Popmap
from radsig.table import (
    GroupColumns,
    Header,
    estimate_marker_count,
    parse_header_line,
    parse_marker_line,
    read_table_header,
)

POPMAP = Popmap(
    groups={"M1": "M", "M2": "M", "F1": "F", "F2": "F", "U1": "U"},
    group1="M",
    group2="F",
)


def _write_table(path: Path, lines: list[str]) -> Path:
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def test_header_with_marker_count_comment(tmp_path: Path) -> None:
    table = _write_table(
        tmp_path / "markers.tsv",
        ["#Number of markers : 2", "id\tsequence\tM1\tF1", "0\tACGT\t1\t0", "1\tTTGA\t0\t3"],
    )
    header = read_table_header(table)
    assert header.individuals == ("M1", "F1")
    assert header.announced_markers == 2
    assert header.width == 4


def test_header_errors() -> None:
    with pytest.raises(MalformedMarkerTable):
        parse_header_line("id\tsequence")
    with pytest.raises(MalformedMarkerTable, match="twice"):
        parse_header_line("id\tsequence\tM1\tM1")


def test_table_without_header(tmp_path: Path) -> None:
    table = _write_table(tmp_path / "markers.tsv", ["#Number of markers : 0"])
    with pytest.raises(MalformedMarkerTable, match="no header"):
        read_table_header(table)


def test_missing_table(tmp_path: Path) -> None:
    with pytest.raises(FileUnreadable):
        read_table_header(tmp_path / "absent.tsv")


def test_group_columns_ignore_other_and_unknown_individuals() -> None:
    header = Header(individuals=("M1", "F1", "U1", "X9", "M2", "F2"))
    columns = GroupColumns.build(header, POPMAP)
    assert columns.group1.tolist() == [0, 4]
    assert columns.group2.tolist() == [1, 5]
    assert columns.unknown == ("X9",)


def test_parse_marker_applies_min_depth() -> None:
    header = Header(individuals=("M1", "M2", "F1", "F2", "U1"))
    columns = GroupColumns.build(header, POPMAP)
    marker = parse_marker_line("7\tACGT\t5\t1\t2\t0\t9\n", 3, header, columns, min_depth=2)
    assert marker.id == "7"
    assert marker.sequence == "ACGT"
    assert marker.depths.tolist() == [5, 1, 2, 0, 9]
    assert (marker.group1_count, marker.group2_count) == (1, 1)
    # U1 is outside the compared groups.
    assert marker.n_individuals == 2
    assert marker.p_value is None
    assert marker.present_individuals(header, 2) == ["M1", "F1", "U1"]


def test_parse_marker_errors() -> None:
    header = Header(individuals=("M1", "F1"))
    columns = GroupColumns.build(header, POPMAP)
    with pytest.raises(MalformedMarkerTable, match="Line 4.*columns"):
        parse_marker_line("0\tACGT\t1\n", 4, header, columns, 1)
    with pytest.raises(MalformedMarkerTable, match="non-integer"):
        parse_marker_line("0\tACGT\t1\tx\n", 5, header, columns, 1)
    with pytest.raises(MalformedMarkerTable, match="negative"):
        parse_marker_line("0\tACGT\t1\t-2\n", 6, header, columns, 1)


def test_group_columns_without_a_compared_pair() -> None:
    header = parse_header_line("id\tsequence\tM1\tF1\tZ9")
    loose = Popmap(groups={"M1": "M", "F1": "F", "U1": "U"})
    columns = GroupColumns.build(header, loose)
    assert columns.group1.size == 0
    assert columns.group2.size == 0
    assert columns.unknown == ("Z9",)

    marker = parse_marker_line("a\tAAA\t2\t3\t1", 2, header, columns, min_depth=1)
    assert (marker.group1_count, marker.group2_count, marker.n_individuals) == (0, 0, 0)
    assert marker.depths.tolist() == [2, 3, 1]

    bare = GroupColumns.build(header, None)
    assert bare.unknown == ()



def test_estimate_marker_count() -> None:
    assert estimate_marker_count(10_000, Header(individuals=("a", "b"), announced_markers=42)) == 42
    assert estimate_marker_count(5400, Header(individuals=("a", "b"))) == 100
    assert estimate_marker_count(0, Header(individuals=("a",))) == 1
