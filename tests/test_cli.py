import json
from pathlib import Path

import pandas as pd
import pytest

from radsig.cli import main
from radsig.manifest import validate_manifest_payload

INDIVIDUALS = ["M1", "M2", "M3", "F1", "F2", "F3", "U1"]


def _inputs(tmp_path: Path) -> tuple[Path, Path]:
    popmap = tmp_path / "popmap.tsv"
    popmap.write_text(
        "M1\tmale\nM2\tmale\nM3\tmale\nF1\tfemale\nF2\tfemale\nF3\tfemale\nU1\tunknown\n",
        encoding="utf-8",
    )
    rows = [
        ("0", "AAAA", [3, 2, 4, 0, 0, 0, 1]),
        ("1", "CCCC", [1, 0, 0, 1, 0, 0, 0]),
        ("2", "GGGG", [0, 0, 0, 5, 5, 5, 0]),
        ("3", "TTTT", [0, 0, 0, 0, 0, 0, 0]),
    ]
    lines = ["#Number of markers : 4", "id\tsequence\t" + "\t".join(INDIVIDUALS)]
    lines += ["\t".join([i, s, *map(str, d)]) for i, s, d in rows]
    table = tmp_path / "markers.tsv"
    table.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return table, popmap


def _base(cmd: str, table: Path, popmap: Path) -> list[str]:
    return [cmd, "-t", str(table), "-p", str(popmap), "-G", "male,female", "--no-progress"]


def test_cli_signif_table_and_manifest(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("RADSIG_FIXED_TIMESTAMP_UTC", "2026-01-01T00:00:00+00:00")
    table, popmap = _inputs(tmp_path)
    out = tmp_path / "signif.tsv"
    manifest = tmp_path / "manifest.json"

    argv = _base("signif", table, popmap) + ["-o", str(out), "-C", "--manifest", str(manifest)]
    assert main(argv) == 0

    df = pd.read_csv(out, sep="\t", skiprows=1, dtype={"id": str})
    assert df["id"].tolist() == ["0", "2"]
    assert list(df.columns[2:4]) == ["male", "female"]

    payload = json.loads(manifest.read_text(encoding="utf-8"))
    validate_manifest_payload(payload)
    assert payload["command"] == "signif"
    assert payload["groups"] == ["male", "female"]
    assert payload["config"]["disable_correction"] is True
    assert payload["results"]["n_tested"] == 3
    assert payload["results"]["n_significant"] == 2
    assert payload["system"]["timestamp_utc"] == "2026-01-01T00:00:00+00:00"
    assert len(payload["inputs"]["markers_table"]["sha256"]) == 64


def test_cli_signif_fasta(tmp_path: Path) -> None:
    table, popmap = _inputs(tmp_path)
    out = tmp_path / "signif.fasta"
    argv = _base("signif", table, popmap) + ["-o", str(out), "-a", "-S", "0.1", "-C"]
    assert main(argv) == 0
    lines = out.read_text(encoding="utf-8").splitlines()
    assert lines[0].startswith(">0_male:3_female:0_p:")
    assert lines[1] == "AAAA"
    assert lines[2].startswith(">2_male:0_female:3_p:")


def test_cli_signif_is_idempotent(tmp_path: Path) -> None:
    table, popmap = _inputs(tmp_path)
    outputs = []
    for name, batch in (("a.tsv", "1"), ("b.tsv", "1000")):
        out = tmp_path / name
        argv = _base("signif", table, popmap) + ["-o", str(out), "-S", "1.0", "--batch-size", batch]
        assert main(argv) == 0
        outputs.append(out.read_bytes())
    assert outputs[0] == outputs[1]


def test_cli_distrib_and_depth(tmp_path: Path) -> None:
    table, popmap = _inputs(tmp_path)
    distrib = tmp_path / "distrib.tsv"
    matrix = tmp_path / "matrix.tsv"
    depth = tmp_path / "depth.tsv"

    assert main(_base("distrib", table, popmap) + ["-o", str(distrib)]) == 0
    assert main(_base("distrib", table, popmap) + ["-o", str(matrix), "-x"]) == 0
    # Three groups in the popmap and no selection: depth needs none.
    argv = ["depth", "-t", str(table), "-p", str(popmap), "-o", str(depth), "--no-progress"]
    assert main(argv) == 0

    d = pd.read_csv(distrib, sep="\t")
    assert list(d.columns) == ["male", "female", "markers", "p", "signif"]
    assert int(d["markers"].sum()) == 3
    m = pd.read_csv(matrix, sep="\t", index_col=0)
    assert m.shape == (4, 4)
    dep = pd.read_csv(depth, sep="\t")
    assert dep["individual"].tolist() == INDIVIDUALS
    assert dep.loc[dep["individual"] == "U1", "group"].item() == "unknown"
    assert dep.loc[dep["individual"] == "M1", "reads"].item() == 4


def test_cli_depth_has_no_group_option(tmp_path: Path) -> None:
    table, popmap = _inputs(tmp_path)
    with pytest.raises(SystemExit) as info:
        main(_base("depth", table, popmap) + ["-o", str(tmp_path / "depth.tsv")])
    assert info.value.code == 2


def test_cli_subset_table_and_fasta(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("RADSIG_FIXED_TIMESTAMP_UTC", "2026-01-01T00:00:00+00:00")
    table, popmap = _inputs(tmp_path)
    out = tmp_path / "subset.tsv"
    fasta = tmp_path / "subset.fasta"
    manifest = tmp_path / "manifest.json"

    argv = _base("subset", table, popmap) + ["-o", str(out), "-m", "1", "-N", "0", "--manifest", str(manifest)]
    assert main(argv) == 0
    df = pd.read_csv(out, sep="\t", skiprows=1, dtype={"id": str})
    assert df["id"].tolist() == ["0"]
    assert list(df.columns) == ["id", "sequence", *INDIVIDUALS]

    payload = json.loads(manifest.read_text(encoding="utf-8"))
    validate_manifest_payload(payload)
    assert payload["command"] == "subset"
    assert payload["results"]["bounds"]["max_group2"] == 0
    assert payload["results"]["bounds"]["max_group1"] == 3

    argv = _base("subset", table, popmap) + ["-o", str(fasta), "-a", "-i", "3", "-I", "3"]
    assert main(argv) == 0
    lines = fasta.read_text(encoding="utf-8").splitlines()
    assert [line.split("_")[0] for line in lines[::2]] == [">0", ">2"]


def test_cli_subset_rejects_inverted_bounds(tmp_path: Path) -> None:
    table, popmap = _inputs(tmp_path)
    with pytest.raises(SystemExit) as info:
        main(_base("subset", table, popmap) + ["-o", str(tmp_path / "s.tsv"), "-m", "3", "-M", "1"])
    assert info.value.code == 2


def test_cli_freq_without_popmap(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("RADSIG_FIXED_TIMESTAMP_UTC", "2026-01-01T00:00:00+00:00")
    table, _ = _inputs(tmp_path)
    out = tmp_path / "freq.tsv"
    manifest = tmp_path / "manifest.json"
    argv = ["freq", "-t", str(table), "-o", str(out), "--no-progress", "--manifest", str(manifest)]
    assert main(argv) == 0
    df = pd.read_csv(out, sep="\t")
    assert df["frequency"].tolist() == list(range(len(INDIVIDUALS) + 1))
    assert df.set_index("frequency")["count"].to_dict() == {
        0: 1, 1: 0, 2: 1, 3: 1, 4: 1, 5: 0, 6: 0, 7: 0
    }
    payload = json.loads(manifest.read_text(encoding="utf-8"))
    validate_manifest_payload(payload)
    assert payload["groups"] == []
    assert list(payload["inputs"]) == ["markers_table"]


def test_cli_strict_rejects_individuals_missing_from_popmap(tmp_path: Path) -> None:
    table, popmap = _inputs(tmp_path)
    popmap.write_text(
        "M1\tmale\nM2\tmale\nM3\tmale\nF1\tfemale\nF2\tfemale\nF3\tfemale\n", encoding="utf-8"
    )
    out = tmp_path / "signif.tsv"
    assert main(_base("signif", table, popmap) + ["-o", str(out)]) == 0
    with pytest.raises(SystemExit) as info:
        main(_base("signif", table, popmap) + ["-o", str(tmp_path / "strict.tsv"), "--strict"])
    assert info.value.code == 2



def test_cli_doctor_exit_codes(tmp_path: Path, capsys) -> None:
    table, popmap = _inputs(tmp_path)
    assert main(["doctor", "-t", str(table), "-p", str(popmap), "-G", "male,female"]) == 0
    assert "Doctor summary: PASS" in capsys.readouterr().out
    assert main(["doctor", "-t", str(table), "-p", str(popmap)]) == 1


def test_cli_reports_errors(tmp_path: Path) -> None:
    table, popmap = _inputs(tmp_path)
    out = tmp_path / "signif.tsv"
    # Three groups and no selection.
    with pytest.raises(SystemExit) as info:
        main(["signif", "-t", str(table), "-p", str(popmap), "-o", str(out), "--no-progress"])
    assert info.value.code == 2
    assert not out.exists()

    with pytest.raises(SystemExit) as info:
        main(_base("signif", table, popmap) + ["-o", str(out), "-S", "1.5"])
    assert info.value.code == 2
