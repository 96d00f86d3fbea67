"""radsig package."""

from .config import RunConfig
from .depth import DepthResult, run_depth
from .distrib import DistributionResult, run_distrib
from .freq import FreqResult, run_freq
from .popmap import Popmap, load_popmap
from .signif import SignifResult, run_signif
from .stats import chi_squared, chi_squared_p
from .subset import SubsetBounds, SubsetResult, run_subset

__all__ = [
    "DepthResult",
    "DistributionResult",
    "FreqResult",
    "Popmap",
    "RunConfig",
    "SignifResult",
    "SubsetBounds",
    "SubsetResult",
    "chi_squared",
    "chi_squared_p",
    "load_popmap",
    "run_depth",
    "run_distrib",
    "run_freq",
    "run_signif",
    "run_subset",
]

__version__ = "0.1.0"
