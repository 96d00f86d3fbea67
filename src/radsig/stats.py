from __future__ import annotations

from scipy import stats


def chi_squared(present1: int, present2: int, total1: int, total2: int) -> float:
    """Pearson chi-squared statistic of a 2x2 presence/absence table.

    Rows are the two groups, columns are present/absent counts. One degree of
    freedom, no continuity correction. A table with an empty margin carries no
    information and scores 0.
    """
    if total1 < 0 or total2 < 0:
        raise ValueError("group totals must be >= 0")
    if not 0 <= present1 <= total1:
        raise ValueError(f"present1={present1} outside [0, {total1}]")
    if not 0 <= present2 <= total2:
        raise ValueError(f"present2={present2} outside [0, {total2}]")

    n = total1 + total2
    n_present = present1 + present2
    n_absent = n - n_present
    denom = float(n_present) * float(n_absent) * float(total1) * float(total2)
    if denom == 0.0:
        return 0.0
    absent1 = total1 - present1
    absent2 = total2 - present2
    diff = float(present1 * absent2 - present2 * absent1)
    return float(n) * diff * diff / denom


def chi_squared_p(statistic: float) -> float:
    """Upper-tail probability of ``statistic`` under chi2 with df=1."""
    if statistic < 0:
        raise ValueError("chi-squared statistic must be >= 0")
    return float(stats.chi2.sf(statistic, df=1))


def marker_p_value(present1: int, present2: int, total1: int, total2: int) -> float:
    return chi_squared_p(chi_squared(present1, present2, total1, total2))


def bonferroni_threshold(threshold: float, n_tests: int, *, correction: bool = True) -> float:
    if not correction or n_tests < 1:
        return float(threshold)
    return float(threshold) / int(n_tests)


def corrected_p_value(p_value: float, n_tests: int, *, correction: bool = True) -> float:
    if not correction or n_tests < 1:
        return float(p_value)
    return min(1.0, float(p_value) * int(n_tests))
