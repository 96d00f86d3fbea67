from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from . import __version__

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def _parse_groups(raw: str) -> list[str]:
    groups = [x.strip() for x in raw.split(",") if x.strip()]
    if len(groups) != 2:
        raise argparse.ArgumentTypeError("--groups expects exactly two names: group1,group2")
    return groups


def _probability(raw: str) -> float:
    value = float(raw)
    if not 0.0 <= value <= 1.0:
        raise argparse.ArgumentTypeError(f"{raw} is not in [0, 1]")
    return value


def _positive_int(raw: str) -> int:
    value = int(raw)
    if value < 1:
        raise argparse.ArgumentTypeError(f"{raw} must be >= 1")
    return value


def _non_negative_int(raw: str) -> int:
    value = int(raw)
    if value < 0:
        raise argparse.ArgumentTypeError(f"{raw} must be >= 0")
    return value


def _configure_logging(verbose: bool, quiet: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)
    logging.getLogger("radsig").setLevel(level)
    logging.captureWarnings(True)


def _add_input_args(
    sub: argparse.ArgumentParser,
    *,
    with_output: bool = True,
    with_popmap: bool = True,
    with_groups: bool = True,
) -> None:
    sub.add_argument("-t", "--markers-table", required=True, metavar="TSV",
                     help="Marker depths table (id, sequence, one depth column per individual).")
    if with_popmap:
        sub.add_argument("-p", "--popmap", required=True, metavar="TSV",
                         help="Tab-separated individual -> group map.")
    if with_output:
        sub.add_argument("-o", "--output-file", required=True, metavar="PATH")
    if with_groups:
        sub.add_argument("-G", "--groups", type=_parse_groups, default=None, metavar="G1,G2",
                         help="Groups to compare when the popmap lists more than two.")


def _add_run_args(sub: argparse.ArgumentParser, *, signif: bool = True, strict: bool = True) -> None:
    sub.add_argument("-d", "--min-depth", type=_positive_int, default=1,
                     help="Minimum depth to consider a marker present in an individual.")
    if signif:
        sub.add_argument("-S", "--signif-threshold", type=_probability, default=0.05,
                         help="P-value threshold for association with a group.")
        sub.add_argument("-C", "--disable-correction", action="store_true",
                         help="Do not apply Bonferroni correction.")
    if strict:
        sub.add_argument("--strict", action="store_true",
                         help="Fail when the marker table has individuals missing from the popmap. "
                              "By default they are reported in a warning and left out of both groups.")
    sub.add_argument("--batch-size", type=_positive_int, default=1000, metavar="N",
                     help="Markers dequeued per processing batch.")
    sub.add_argument("--no-progress", action="store_true")
    sub.add_argument("--manifest", default=None, metavar="JSON",
                     help="Write a JSON run manifest.")



def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="radsig",
        description="radsig: find sequence markers associated with a two-group phenotype.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true")
    verbosity.add_argument("-q", "--quiet", action="store_true")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # signif
    signif = subparsers.add_parser(
        "signif", help="Extract markers significantly associated with a phenotypic group."
    )
    _add_input_args(signif)
    _add_run_args(signif)
    signif.add_argument("-a", "--output-fasta", action="store_true",
                        help="Write markers as FASTA instead of a table.")
    signif.add_argument("--fasta-individuals", action="store_true",
                        help="Annotate FASTA headers with the individuals carrying each marker.")

    # distrib
    distrib = subparsers.add_parser(
        "distrib", help="Distribution of markers between the two groups."
    )
    _add_input_args(distrib)
    _add_run_args(distrib)
    distrib.add_argument("-x", "--output-matrix", action="store_true",
                         help="Write the distribution as a group2 x group1 matrix.")

    # depth
    depth = subparsers.add_parser("depth", help="Per-individual marker and read totals.")
    _add_input_args(depth, with_groups=False)
    _add_run_args(depth, signif=False)

    # subset
    subset = subparsers.add_parser(
        "subset", help="Extract markers present in a given number of individuals of each group."
    )
    _add_input_args(subset)
    _add_run_args(subset, signif=False)
    subset.add_argument("-m", "--min-group1", type=_non_negative_int, default=0, metavar="N",
                        help="Minimum number of group1 individuals carrying a marker.")
    subset.add_argument("-n", "--min-group2", type=_non_negative_int, default=0, metavar="N",
                        help="Minimum number of group2 individuals carrying a marker.")
    subset.add_argument("-M", "--max-group1", type=_non_negative_int, default=None, metavar="N",
                        help="Maximum number of group1 individuals (default: size of group1).")
    subset.add_argument("-N", "--max-group2", type=_non_negative_int, default=None, metavar="N",
                        help="Maximum number of group2 individuals (default: size of group2).")
    subset.add_argument("-i", "--min-individuals", type=_non_negative_int, default=0, metavar="N",
                        help="Minimum number of individuals of either group carrying a marker.")
    subset.add_argument("-I", "--max-individuals", type=_non_negative_int, default=None, metavar="N",
                        help="Maximum number of individuals of either group (default: both groups).")
    subset.add_argument("-a", "--output-fasta", action="store_true",
                        help="Write markers as FASTA instead of a depth table.")
    subset.add_argument("--fasta-individuals", action="store_true",
                        help="Annotate FASTA headers with the individuals carrying each marker.")

    # freq
    freq = subparsers.add_parser("freq", help="Distribution of marker frequency in all individuals.")
    _add_input_args(freq, with_popmap=False, with_groups=False)
    _add_run_args(freq, signif=False, strict=False)

    # doctor
    doctor = subparsers.add_parser("doctor", help="Check popmap and marker table consistency.")
    _add_input_args(doctor, with_output=False)
    return parser


def _run_config(args: argparse.Namespace, **overrides: object):
    from .config import RunConfig

    values: dict[str, object] = {
        "min_depth": args.min_depth,
        "batch_size": args.batch_size,
        "progress": not args.no_progress,
    }
    if hasattr(args, "signif_threshold"):
        values["signif_threshold"] = args.signif_threshold
        values["disable_correction"] = args.disable_correction
    if hasattr(args, "strict"):
        values["strict_individuals"] = args.strict
    values.update(overrides)
    return RunConfig(**values)  # type: ignore[arg-type]


def _maybe_write_manifest(args: argparse.Namespace, config, popmap, results: dict[str, object]) -> None:
    if not args.manifest:
        return
    from .manifest import build_manifest, write_manifest

    inputs = {"markers_table": args.markers_table}
    if popmap is not None:
        inputs["popmap"] = args.popmap
    groups = (popmap.group1, popmap.group2) if popmap is not None and popmap.compares_groups else ()
    payload = build_manifest(
        command=args.command,
        argv=getattr(args, "_argv", []),
        config=config,
        inputs=inputs,
        outputs={"output_file": args.output_file},
        groups=groups,
        results=results,
    )
    write_manifest(args.manifest, payload)



def _cmd_signif(args: argparse.Namespace) -> int:
    from .output import write_signif_output
    from .popmap import load_popmap
    from .signif import run_signif

    config = _run_config(
        args, output_fasta=args.output_fasta, fasta_individuals=args.fasta_individuals
    )
    popmap = load_popmap(args.popmap, args.groups)
    result = run_signif(args.markers_table, popmap, config)
    out = write_signif_output(result, args.output_file)
    logger.info("Output: %s", Path(out).resolve())
    _maybe_write_manifest(args, config, popmap, result.summary())
    return 0


def _cmd_distrib(args: argparse.Namespace) -> int:
    from .distrib import run_distrib
    from .output import write_frame
    from .popmap import load_popmap

    config = _run_config(args)
    popmap = load_popmap(args.popmap, args.groups)
    result = run_distrib(args.markers_table, popmap, config)
    if args.output_matrix:
        write_frame(result.to_matrix(), args.output_file, index=True)
    else:
        write_frame(result.to_frame(), args.output_file)
    _maybe_write_manifest(
        args,
        config,
        popmap,
        {
            "n_markers": result.n_rows,
            "n_tested": result.n_tested,
            "n_cells": len(result.counts),
            "effective_threshold": result.threshold,
        },
    )
    return 0


def _cmd_depth(args: argparse.Namespace) -> int:
    from .depth import run_depth
    from .output import write_frame
    from .popmap import load_popmap

    config = _run_config(args)
    popmap = load_popmap(args.popmap, compare_groups=False)
    result = run_depth(args.markers_table, popmap, config)
    write_frame(result.to_frame(), args.output_file)
    _maybe_write_manifest(
        args,
        config,
        popmap,
        {"n_markers": result.n_rows, "n_individuals": result.header.n_individuals},
    )
    return 0


def _cmd_subset(args: argparse.Namespace) -> int:
    from .output import write_subset_output
    from .popmap import load_popmap
    from .subset import SubsetBounds, run_subset

    config = _run_config(
        args, output_fasta=args.output_fasta, fasta_individuals=args.fasta_individuals
    )
    bounds = SubsetBounds(
        min_group1=args.min_group1,
        max_group1=args.max_group1,
        min_group2=args.min_group2,
        max_group2=args.max_group2,
        min_individuals=args.min_individuals,
        max_individuals=args.max_individuals,
    )
    popmap = load_popmap(args.popmap, args.groups)
    result = run_subset(args.markers_table, popmap, config, bounds)
    out = write_subset_output(result, args.output_file)
    logger.info("Output: %s", Path(out).resolve())
    _maybe_write_manifest(args, config, popmap, result.summary())
    return 0


def _cmd_freq(args: argparse.Namespace) -> int:
    from .freq import run_freq
    from .output import write_frame

    config = _run_config(args)
    result = run_freq(args.markers_table, config)
    write_frame(result.to_frame(), args.output_file)
    _maybe_write_manifest(
        args,
        config,
        None,
        {"n_markers": result.n_rows, "n_individuals": result.header.n_individuals},
    )
    return 0


def _cmd_doctor(args: argparse.Namespace) -> int:
    from .doctor import run_doctor

    report = run_doctor(args.markers_table, args.popmap, args.groups)
    print(report.render())
    return 1 if report.has_failures else 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    args._argv = list(argv if argv is not None else sys.argv[1:])
    _configure_logging(args.verbose, args.quiet)
    try:
        if args.command == "signif":
            return _cmd_signif(args)
        if args.command == "distrib":
            return _cmd_distrib(args)
        if args.command == "depth":
            return _cmd_depth(args)
        if args.command == "subset":
            return _cmd_subset(args)
        if args.command == "freq":
            return _cmd_freq(args)
        if args.command == "doctor":
            return _cmd_doctor(args)
    except Exception as exc:  # pragma: no cover
        parser.exit(status=2, message=f"error: {exc}\n")
    parser.exit(status=2, message="error: unknown command\n")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
