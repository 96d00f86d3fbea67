from __future__ import annotations

from dataclasses import asdict, dataclass, fields


@dataclass(frozen=True)
class RunConfig:
    """Settings for one run, built once and shared read-only by every stage."""

    min_depth: int = 1
    signif_threshold: float = 0.05
    disable_correction: bool = False
    output_fasta: bool = False
    fasta_individuals: bool = False
    strict_individuals: bool = False
    batch_size: int = 1000
    parser_batch_size: int = 100
    header_grace_period: float = 0.1
    poll_interval: float = 0.01
    progress: bool = True

    def __post_init__(self) -> None:
        if int(self.min_depth) < 1:
            raise ValueError("min_depth must be >= 1")
        if not 0.0 <= float(self.signif_threshold) <= 1.0:
            raise ValueError("signif_threshold must be in [0, 1]")
        if int(self.batch_size) <= 0:
            raise ValueError("batch_size must be > 0")
        if int(self.parser_batch_size) <= 0:
            raise ValueError("parser_batch_size must be > 0")
        if float(self.header_grace_period) < 0:
            raise ValueError("header_grace_period must be >= 0")
        if float(self.poll_interval) <= 0:
            raise ValueError("poll_interval must be > 0")

    @property
    def correction(self) -> bool:
        return not self.disable_correction

    def to_dict(self) -> dict[str, object]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, object]) -> "RunConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(payload) - known)
        if unknown:
            raise ValueError(f"Unknown run configuration keys: {', '.join(unknown)}")
        return cls(**payload)  # type: ignore[arg-type]
