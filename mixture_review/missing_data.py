"""
Missing data diagnostics for the longitudinal self-control indicators.

Covers:
    - completeness of each wave's indicator cluster
    - attrition patterns across the ordered waves
    - complete vs incomplete cases compared on covariates
    - Little's MCAR test on the repeated-measure indicators

Survey design weights and clustering are not used by any of these tests.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from pymvnmle.mcar_test import little_mcar_test

from .config import Wave
from .preprocessing import assert_numeric_matrix, indicator_columns, wave_completeness
from .reporting import print_banner, print_section, print_table, save_csv
from .stats_utils import DegenerateTestError, holm_adjust, welch_t_test

logger = logging.getLogger(__name__)

MCAR_ALPHA = 0.05

COMPLETE = "complete"
MONOTONE = "monotone"
INTERMITTENT = "intermittent"
LATE_ENTRY = "late_entry"
NONE_OBSERVED = "none_observed"
PATTERNS = (COMPLETE, MONOTONE, INTERMITTENT, LATE_ENTRY, NONE_OBSERVED)

COMPARISON_COLUMNS = [
    "Variable", "Complete_N", "Complete_Mean", "Complete_SD",
    "Incomplete_N", "Incomplete_Mean", "Incomplete_SD",
    "t_statistic", "p_value", "p_adjusted", "Significant",
]


# -----------------------------
# Wave-level missingness
# -----------------------------
def analyze_wave_missingness(data: pd.DataFrame, waves: Sequence[Wave]) -> pd.DataFrame:
    print("\nAnalyzing missing data patterns by wave...")

    completeness = wave_completeness(data, waves)
    n_total = len(data)

    rows = []
    for wave in waves:
        n_complete = int(completeness[wave.label].sum())
        n_missing = n_total - n_complete
        rows.append(
            {
                "Wave": wave.label,
                "Age": wave.age,
                "N_Complete": n_complete,
                "N_Missing": n_missing,
                "Percent_Complete": 100.0 * n_complete / n_total if n_total else np.nan,
                "Percent_Missing": 100.0 * n_missing / n_total if n_total else np.nan,
            }
        )
    return pd.DataFrame(rows)


# -----------------------------
# Attrition
# -----------------------------
def classify_attrition(completeness: pd.DataFrame) -> pd.Series:
    """
    Classify each subject's sequence of per-wave completeness.

    Columns of `completeness` must be in wave order. Patterns:
      complete       observed at every wave
      none_observed  missing at every wave (no dropout point, so not monotone)
      monotone       observed up to some wave, missing at every wave after it
      late_entry     missing up to some wave, observed at every wave after it
      intermittent   more than one switch between observed and missing
    """
    if completeness.shape[1] == 0:
        raise ValueError("at least one wave is required to classify attrition")

    observed = completeness.to_numpy(dtype=bool)
    n_observed = observed.sum(axis=1)
    switches = (np.diff(observed.astype(int), axis=1) != 0).sum(axis=1)

    labels = np.select(
        [
            n_observed == observed.shape[1],
            n_observed == 0,
            (switches == 1) & observed[:, 0],
            switches == 1,
            switches > 1,
        ],
        [COMPLETE, NONE_OBSERVED, MONOTONE, LATE_ENTRY, INTERMITTENT],
        default="",
    )
    return pd.Series(labels, index=completeness.index, name="attrition_pattern")


@dataclass(frozen=True)
class AttritionResult:
    summary: pd.DataFrame
    patterns: pd.Series
    pattern_counts: Dict[str, int]

    # Percent of partially observed subjects (at least one wave observed and one missing)
    monotone_pct: float
    intermittent_pct: float


def analyze_attrition(data: pd.DataFrame, waves: Sequence[Wave]) -> AttritionResult:
    print("\nAnalyzing attrition patterns...")

    completeness = wave_completeness(data, waves)
    n_waves = completeness.shape[1]
    n_total = len(data)

    n_completed = completeness.sum(axis=1)
    counts = n_completed.value_counts().reindex(range(n_waves + 1), fill_value=0)
    summary = pd.DataFrame(
        {
            "N_Waves_Completed": list(range(n_waves + 1)),
            "N_Participants": counts.to_numpy(dtype=int),
            "Percent": counts.to_numpy(dtype=float) / n_total * 100 if n_total else np.nan,
        }
    )

    patterns = classify_attrition(completeness)
    pattern_counts = {p: int((patterns == p).sum()) for p in PATTERNS}
    n_partial = pattern_counts[MONOTONE] + pattern_counts[INTERMITTENT] + pattern_counts[LATE_ENTRY]

    monotone_pct = 100.0 * pattern_counts[MONOTONE] / n_partial if n_partial else 0.0
    intermittent_pct = 100.0 * pattern_counts[INTERMITTENT] / n_partial if n_partial else 0.0

    print("\nCommon attrition patterns:")
    print("-------------------------")
    print(f"  Monotone dropout pattern: {monotone_pct:.1f}%")
    print(f"  Intermittent missingness: {intermittent_pct:.1f}%")
    print(f"  (of {n_partial} partially observed participants; "
          f"{pattern_counts[COMPLETE]} complete, {pattern_counts[LATE_ENTRY]} late entry, "
          f"{pattern_counts[NONE_OBSERVED]} with no observed wave)")

    return AttritionResult(
        summary=summary,
        patterns=patterns,
        pattern_counts=pattern_counts,
        monotone_pct=monotone_pct,
        intermittent_pct=intermittent_pct,
    )


# -----------------------------
# Complete vs incomplete cases
# -----------------------------
def compare_complete_incomplete(
    data: pd.DataFrame,
    waves: Sequence[Wave],
    covariates: Sequence[str],
    min_observed: int = 100,
    alpha: float = 0.05,
) -> pd.DataFrame:
    """
    Compare covariate means between subjects observed on every indicator of
    every wave and everybody else. Holm correction across all covariates tested.
    """
    print("\nComparing complete vs incomplete cases on covariates...")

    complete_case = data[indicator_columns(waves)].notna().all(axis=1)

    rows = []
    for var_name in covariates:
        if var_name not in data.columns:
            logger.warning("Covariate %s not in dataset; skipped", var_name)
            continue

        var_data = pd.to_numeric(data[var_name], errors="coerce")
        n_observed = int(var_data.notna().sum())
        if n_observed < min_observed:
            logger.warning("Covariate %s has %d observed values (< %d); skipped", var_name, n_observed, min_observed)
            continue

        complete_vals = var_data[complete_case].dropna()
        incomplete_vals = var_data[~complete_case].dropna()

        try:
            t_stat, p_value = welch_t_test(complete_vals, incomplete_vals)
        except DegenerateTestError as exc:
            logger.warning("t-test for %s did not run: %s", var_name, exc)
            continue

        rows.append(
            {
                "Variable": var_name,
                "Complete_N": int(complete_vals.size),
                "Complete_Mean": float(complete_vals.mean()),
                "Complete_SD": float(complete_vals.std(ddof=1)),
                "Incomplete_N": int(incomplete_vals.size),
                "Incomplete_Mean": float(incomplete_vals.mean()),
                "Incomplete_SD": float(incomplete_vals.std(ddof=1)),
                "t_statistic": t_stat,
                "p_value": p_value,
            }
        )

    results = pd.DataFrame(rows, columns=COMPARISON_COLUMNS[:-2])
    results["p_adjusted"] = holm_adjust(results["p_value"].to_numpy(dtype=float))
    results["Significant"] = np.where(results["p_adjusted"] < alpha, "***", "")
    return results


# -----------------------------
# Little's MCAR test
# -----------------------------
@dataclass(frozen=True)
class McarResult:
    statistic: float
    df: int
    p_value: float
    n_patterns: Optional[int]

    @property
    def rejected(self) -> bool:
        return self.p_value < MCAR_ALPHA


def run_mcar_test(data: pd.DataFrame, waves: Sequence[Wave]) -> Optional[McarResult]:
    """
    Little's MCAR test on the repeated-measure indicators only.
    Subjects with every indicator missing are dropped first. Returns None when
    the test cannot be computed.
    """
    print("\nPerforming Little's MCAR test...")
    print("(This may take a few minutes for large datasets)")

    sc_data = data[indicator_columns(waves)]
    sc_data = sc_data[sc_data.notna().any(axis=1)]

    try:
        assert_numeric_matrix(sc_data)
        raw = little_mcar_test(sc_data.to_numpy(dtype=float), verbose=False)
        result = McarResult(
            statistic=float(raw.statistic),
            df=int(raw.df),
            p_value=float(raw.p_value),
            n_patterns=getattr(raw, "n_patterns", None),
        )
    except Exception as exc:
        logger.warning("Little's MCAR test did not run: %s", exc)
        print("\nLittle's MCAR test did not run (see warning above).")
        return None

    print()
    print("Little's MCAR Test Results:")
    print("---------------------------")
    print(f"  Chi-square: {result.statistic:.2f}")
    print(f"  df: {result.df}")
    print(f"  p-value: {result.p_value:.4f}")
    if result.n_patterns is not None:
        print(f"  Missing data patterns: {result.n_patterns}")
    print()

    if result.rejected:
        print("INTERPRETATION: Reject MCAR (p < .05)")
        print("  Data are NOT missing completely at random.")
        print("  Missingness may be related to observed or unobserved variables.")
        print("  RECOMMENDATION: Use FIML or multiple imputation.")
    else:
        print("INTERPRETATION: Fail to reject MCAR (p >= .05)")
        print("  Data are consistent with MCAR assumption.")
        print("  Standard missing data methods (FIML) are appropriate.")

    return result


# -----------------------------
# Report
# -----------------------------
@dataclass(frozen=True)
class MissingDataReport:
    wave_missing: pd.DataFrame
    attrition: AttritionResult
    comparison: pd.DataFrame
    mcar: Optional[McarResult]
    artifacts: Tuple[Path, ...]


def _format_comparison(comparison: pd.DataFrame) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Variable": comparison["Variable"],
            "Complete": [f"{m:.2f} ({s:.2f})" for m, s in zip(comparison["Complete_Mean"], comparison["Complete_SD"])],
            "Incomplete": [
                f"{m:.2f} ({s:.2f})" for m, s in zip(comparison["Incomplete_Mean"], comparison["Incomplete_SD"])
            ],
            "t_test": [
                f"t = {t:.2f}, p = {p:.3f} {sig}".rstrip()
                for t, p, sig in zip(comparison["t_statistic"], comparison["p_adjusted"], comparison["Significant"])
            ],
        }
    )


def generate_missing_data_report(
    data: pd.DataFrame,
    waves: Sequence[Wave],
    covariates: Sequence[str],
    output_dir: Path | str,
    min_observed: int = 100,
    alpha: float = 0.05,
) -> MissingDataReport:
    print_banner("MISSING DATA ANALYSIS REPORT")

    print("\n[1/4] Wave-level missingness patterns")
    wave_missing = analyze_wave_missingness(data, waves)
    print_table(wave_missing, floatfmt=".1f")

    print("\n[2/4] Attrition analysis")
    attrition = analyze_attrition(data, waves)
    print_table(attrition.summary, floatfmt=".1f")

    print("\n[3/4] Complete vs incomplete case comparison")
    comparison = compare_complete_incomplete(data, waves, covariates, min_observed=min_observed, alpha=alpha)
    if len(comparison):
        print_table(_format_comparison(comparison))
    else:
        print("No covariate could be compared.")

    print("\n[4/4] Testing MCAR assumption")
    mcar = run_mcar_test(data, waves)

    print_section("Saving results")
    output_dir = Path(output_dir)
    artifacts = (
        save_csv(wave_missing, output_dir / "wave_missingness_summary.csv"),
        save_csv(attrition.summary, output_dir / "attrition_summary.csv"),
        save_csv(comparison, output_dir / "complete_vs_incomplete_comparison.csv"),
    )

    print_banner(f"Results saved to: {output_dir}")

    return MissingDataReport(
        wave_missing=wave_missing,
        attrition=attrition,
        comparison=comparison,
        mcar=mcar,
        artifacts=artifacts,
    )
