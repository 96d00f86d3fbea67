from __future__ import annotations

from pathlib import Path
from typing import IO

import pandas as pd

from .signif import SignifResult
from .stats import corrected_p_value
from .subset import SubsetResult
from .table import Marker


def _open_output(path: str | Path) -> IO[str]:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    return p.open("w", encoding="utf-8", newline="")


def markers_frame(result: SignifResult) -> pd.DataFrame:
    group1, group2 = result.popmap.group1, result.popmap.group2
    columns = ["id", "sequence", group1, group2, "p", "p_corrected", "signif"]
    rows = [
        {
            "id": m.id,
            "sequence": m.sequence,
            group1: m.group1_count,
            group2: m.group2_count,
            "p": m.p_value,
            "p_corrected": corrected_p_value(
                float(m.p_value), result.n_tested, correction=result.config.correction
            ),
            "signif": bool(m.p_value < result.threshold),
        }
        for m in result.significant
        if m.p_value is not None
    ]
    return pd.DataFrame(rows, columns=columns)


def write_markers_table(result: SignifResult, handle: IO[str]) -> None:
    df = markers_frame(result)
    handle.write(f"#Number of markers : {len(df)}\n")
    df.to_csv(handle, sep="\t", index=False, lineterminator="\n")


def fasta_header(marker: Marker, result: SignifResult | SubsetResult) -> str:
    popmap = result.popmap
    min_depth = result.config.min_depth
    label = (
        f">{marker.id}_{popmap.group1}:{marker.group1_count}"
        f"_{popmap.group2}:{marker.group2_count}"
        f"_p:{marker.p_value:.6g}_mindepth:{min_depth}"
    )
    if result.config.fasta_individuals:
        present = marker.present_individuals(result.header, min_depth)
        label += "_individuals:" + ",".join(present)
    return label


def write_markers_fasta(
    markers: list[Marker], result: SignifResult | SubsetResult, handle: IO[str]
) -> None:
    for marker in markers:
        handle.write(fasta_header(marker, result) + "\n")
        handle.write(marker.sequence + "\n")


def write_signif_output(result: SignifResult, path: str | Path) -> Path:
    out = Path(path)
    with _open_output(out) as handle:
        if result.config.output_fasta:
            write_markers_fasta(result.significant, result, handle)
        else:
            write_markers_table(result, handle)
    return out


def write_subset_output(result: SubsetResult, path: str | Path) -> Path:
    out = Path(path)
    with _open_output(out) as handle:
        if result.config.output_fasta:
            write_markers_fasta(result.markers, result, handle)
        else:
            handle.write(f"#Number of markers : {len(result.markers)}\n")
            result.to_frame().to_csv(handle, sep="\t", index=False, lineterminator="\n")
    return out



def write_frame(df: pd.DataFrame, path: str | Path, *, index: bool = False) -> Path:
    out = Path(path)
    with _open_output(out) as handle:
        df.to_csv(handle, sep="\t", index=index, lineterminator="\n")
    return out

