from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm
import statsmodels.formula.api as smf
from scipy import stats
from statsmodels.stats.multitest import multipletests


class DegenerateTestError(ValueError):
    """A test's numerical preconditions are not met (too few observations, zero variance)."""


def to_float_array(x: Sequence[float] | pd.Series | np.ndarray) -> np.ndarray:
    """Convert input to a float64 array with missing values dropped."""
    arr = pd.Series(x, dtype="float64").to_numpy(na_value=np.nan, copy=True)
    return arr[~np.isnan(arr)]


def holm_adjust(p_values: Sequence[float] | np.ndarray) -> np.ndarray:
    """
    Holm step-down adjustment over the whole family of p-values.

    NaN entries are not part of the family and stay NaN. Adjusted values are
    never below the raw ones and never exceed 1.
    """
    p = np.asarray(p_values, dtype=float)
    adjusted = np.full(p.shape, np.nan)
    mask = np.isfinite(p)
    if mask.any():
        adjusted[mask] = multipletests(p[mask], method="holm")[1]
    return adjusted


def significance_tier(p: float) -> str:
    if p is None or not np.isfinite(p):
        return ""
    if p < 0.001:
        return "***"
    if p < 0.01:
        return "**"
    if p < 0.05:
        return "*"
    return ""


def welch_t_test(a: Sequence[float], b: Sequence[float]) -> Tuple[float, float]:
    """Two-sample t-test without the equal-variance assumption. Returns (t, p)."""
    a = to_float_array(a)
    b = to_float_array(b)
    if a.size < 2 or b.size < 2:
        raise DegenerateTestError(f"need at least 2 observations per group (got {a.size} and {b.size})")
    if np.var(a, ddof=1) == 0 and np.var(b, ddof=1) == 0:
        raise DegenerateTestError("both groups have zero variance")

    result = stats.ttest_ind(a, b, equal_var=False)
    return float(result.statistic), float(result.pvalue)


def cohens_d(a: Sequence[float], b: Sequence[float]) -> float:
    """Standardised mean difference (a - b) using the pooled standard deviation."""
    a = to_float_array(a)
    b = to_float_array(b)
    n_a, n_b = a.size, b.size
    if n_a < 2 or n_b < 2:
        return float("nan")

    pooled_var = ((n_a - 1) * np.var(a, ddof=1) + (n_b - 1) * np.var(b, ddof=1)) / (n_a + n_b - 2)
    if pooled_var <= 0:
        return float("nan")
    return float((np.mean(a) - np.mean(b)) / np.sqrt(pooled_var))


def chi_square_difference(
    chisq_prev: float,
    df_prev: float,
    chisq_next: float,
    df_next: float,
) -> Tuple[float, float, float]:
    """
    Naive chi-square difference test between two nested models.

    The difference in degrees of freedom equals the number of parameters
    freed in the less constrained model. Returns (delta_chisq, delta_df, p);
    p is NaN when delta_df is not positive.
    """
    diff = chisq_next - chisq_prev
    df_diff = df_next - df_prev
    if not np.isfinite(diff) or not np.isfinite(df_diff) or df_diff <= 0:
        return float(diff), float(df_diff), float("nan")
    return float(diff), float(df_diff), float(stats.chi2.sf(diff, df_diff))


def one_way_anova(values: pd.Series, groups: pd.Series) -> Tuple[float, float, float]:
    """
    One-way ANOVA of `values` on the categorical `groups`.
    Returns (F, p, eta_squared) with eta_squared = SS_between / SS_total.
    """
    frame = pd.DataFrame({"y": values.astype(float), "g": groups}).dropna()
    if frame["g"].nunique() < 2:
        raise DegenerateTestError("need at least 2 groups")
    if frame["y"].var(ddof=1) == 0:
        raise DegenerateTestError("outcome has zero variance")

    fit = smf.ols("y ~ C(g)", data=frame).fit()
    table = sm.stats.anova_lm(fit, typ=1)

    ss_between = float(table.loc["C(g)", "sum_sq"])
    ss_total = float(table["sum_sq"].sum())
    return (
        float(table.loc["C(g)", "F"]),
        float(table.loc["C(g)", "PR(>F)"]),
        ss_between / ss_total,
    )
