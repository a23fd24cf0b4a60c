from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import INVARIANCE_MODELS
from .mplus_output import (
    MalformedReportError,
    ModelSummary,
    class_count_from_filename,
    read_model_summary,
)
from .reporting import THIN_RULE, print_banner, print_guidelines, print_table
from .stats_utils import chi_square_difference

logger = logging.getLogger(__name__)

INVARIANCE_COLUMNS = [
    "Model", "Parameters", "ChiSq", "df", "ChiSq_p", "CFI", "TLI",
    "RMSEA", "RMSEA_CI_Lower", "RMSEA_CI_Upper", "SRMR", "WRMR",
    "ChiSq_Diff", "df_Diff", "p_value", "CFI_Diff",
]

MIXTURE_COLUMNS = [
    "Model", "Classes", "LogLikelihood", "Parameters", "AIC", "BIC", "SABIC",
    "Entropy", "BLRT_p", "Smallest_Class_Prop", "Smallest_Class_N",
]


def _nan(x: Optional[float]) -> float:
    return np.nan if x is None else float(x)


def _fmt(x: float, spec: str, missing: str = "N/A") -> str:
    if x is None or not np.isfinite(x):
        return missing
    return format(x, spec)


# -----------------------------
# Measurement invariance
# -----------------------------
def _invariance_row(summary: ModelSummary) -> dict:
    return {
        "Model": summary.name,
        "Parameters": _nan(summary.parameters),
        "ChiSq": _nan(summary.chisq),
        "df": _nan(summary.chisq_df),
        "ChiSq_p": _nan(summary.chisq_p),
        "CFI": _nan(summary.cfi),
        "TLI": _nan(summary.tli),
        "RMSEA": _nan(summary.rmsea),
        "RMSEA_CI_Lower": _nan(summary.rmsea_ci_lower),
        "RMSEA_CI_Upper": _nan(summary.rmsea_ci_upper),
        "SRMR": _nan(summary.srmr),
        "WRMR": _nan(summary.wrmr),
    }


def add_chi_square_difference_tests(results: pd.DataFrame) -> pd.DataFrame:
    """
    Compare each model with the one immediately before it.
    The first row has no comparison; its difference columns are NaN.
    """
    results = results.copy().reset_index(drop=True)
    n = len(results)
    chisq_diff = np.full(n, np.nan)
    df_diff = np.full(n, np.nan)
    p_value = np.full(n, np.nan)
    cfi_diff = np.full(n, np.nan)

    for i in range(1, n):
        prev, cur = results.iloc[i - 1], results.iloc[i]
        chisq_diff[i], df_diff[i], p_value[i] = chi_square_difference(
            prev["ChiSq"], prev["df"], cur["ChiSq"], cur["df"]
        )
        # Negative when fit declines under the added constraints
        cfi_diff[i] = cur["CFI"] - prev["CFI"]

    results["ChiSq_Diff"] = chisq_diff
    results["df_Diff"] = df_diff
    results["p_value"] = p_value
    results["CFI_Diff"] = cfi_diff
    return results


def extract_measurement_invariance_fit(
    out_dir: Path | str,
    models: Sequence[str] = INVARIANCE_MODELS,
) -> pd.DataFrame:
    print("Extracting measurement invariance model fit statistics...")

    rows = []
    for model_file in models:
        model_path = Path(out_dir) / model_file
        if not model_path.exists():
            logger.warning("Model file not found: %s", model_path)
            continue
        try:
            summary = read_model_summary(model_path, "invariance")
        except MalformedReportError as exc:
            logger.warning("Skipping malformed report %s", exc)
            continue
        rows.append(_invariance_row(summary))

    results = pd.DataFrame(rows, columns=INVARIANCE_COLUMNS[:-4])
    return add_chi_square_difference_tests(results)[INVARIANCE_COLUMNS]


def format_invariance_table(results: pd.DataFrame, alpha: float = 0.05) -> None:
    print_banner("MEASUREMENT INVARIANCE MODEL COMPARISON")
    print()

    formatted = pd.DataFrame(
        {
            "Model": results["Model"],
            "ChiSq": [_fmt(v, ".2f") for v in results["ChiSq"]],
            "df": [_fmt(v, ".0f") for v in results["df"]],
            "p": [_fmt(v, ".4f") for v in results["ChiSq_p"]],
            "CFI": [_fmt(v, ".3f") for v in results["CFI"]],
            "TLI": [_fmt(v, ".3f") for v in results["TLI"]],
            "RMSEA": [
                f"{_fmt(r.RMSEA, '.3f')} [{_fmt(r.RMSEA_CI_Lower, '.3f')}, {_fmt(r.RMSEA_CI_Upper, '.3f')}]"
                for r in results.itertuples()
            ],
            "SRMR": [_fmt(v, ".3f") for v in results["SRMR"]],
        }
    )
    # WLSMV runs report WRMR instead of SRMR
    if results["WRMR"].notna().any():
        formatted["WRMR"] = [_fmt(v, ".3f") for v in results["WRMR"]]
    print_table(formatted, colalign=("left",) + ("right",) * (formatted.shape[1] - 1))

    if len(results) > 1:
        print()
        print("Model Comparisons (Chi-square Difference Tests):")
        print(THIN_RULE)
        for i in range(1, len(results)):
            prev, cur = results.iloc[i - 1], results.iloc[i]
            flag = " (significant deterioration)" if cur["p_value"] < alpha else ""
            print(
                f"{prev['Model']} vs {cur['Model']}: "
                f"Δχ²({_fmt(cur['df_Diff'], '.0f')}) = {_fmt(cur['ChiSq_Diff'], '.2f')}, "
                f"p = {_fmt(cur['p_value'], '.4f')}, ΔCFI = {_fmt(cur['CFI_Diff'], '.3f')}{flag}"
            )

        print_guidelines(
            "Interpretation Guidelines:",
            [
                "ΔCFI ≤ -.010 suggests measurement non-invariance (Cheung & Rensvold, 2002)",
                f"p < {alpha:g} indicates significant deterioration in fit",
                "Under WLSMV the naive Δχ² is approximate; DIFFTEST is the exact test",
            ],
        )

    print_guidelines(
        "Fit Index Guidelines (Hu & Bentler, 1999; Brown, 2015):",
        [
            "CFI/TLI: ≥ .95 (excellent), ≥ .90 (acceptable)",
            "RMSEA: ≤ .06 (excellent), ≤ .08 (acceptable)",
            "SRMR: ≤ .08 (good fit)",
            "WRMR: ≤ 1.0 (good fit)",
        ],
    )
    print()


# -----------------------------
# Mixture enumeration
# -----------------------------
def find_mixture_reports(out_dir: Path | str, pattern: str) -> List[Tuple[int, Path]]:
    """Reports named <pattern><k>.out, ordered by k. One report per k."""
    found: dict[int, Path] = {}
    for path in sorted(Path(out_dir).glob("*.out")):
        n_classes = class_count_from_filename(path.name, pattern)
        if n_classes is None:
            continue
        if n_classes in found:
            logger.warning("Duplicate %d-class report %s ignored (using %s)", n_classes, path, found[n_classes])
            continue
        found[n_classes] = path
    return sorted(found.items())


def _mixture_row(summary: ModelSummary, n_classes: int) -> dict:
    return {
        "Model": summary.name,
        "Classes": n_classes,
        "LogLikelihood": _nan(summary.log_likelihood),
        "Parameters": _nan(summary.parameters),
        "AIC": _nan(summary.aic),
        "BIC": _nan(summary.bic),
        "SABIC": _nan(summary.sabic),
        "Entropy": _nan(summary.entropy),
        "BLRT_p": _nan(summary.blrt_p),
        "Smallest_Class_Prop": _nan(summary.smallest_class_proportion),
        "Smallest_Class_N": _nan(summary.smallest_class_n),
    }


def extract_mixture_model_fit(out_dir: Path | str, pattern: str = "sc_gmm_lgbm_c") -> pd.DataFrame:
    print("Extracting growth mixture model fit statistics...")

    reports = find_mixture_reports(out_dir, pattern)
    if not reports:
        logger.warning("No mixture model files found matching pattern: %s<k>.out in %s", pattern, out_dir)
        return pd.DataFrame(columns=MIXTURE_COLUMNS)

    rows = []
    for n_classes, model_path in reports:
        try:
            summary = read_model_summary(model_path, "mixture", n_classes=n_classes)
        except MalformedReportError as exc:
            logger.warning("Skipping malformed report %s", exc)
            continue
        rows.append(_mixture_row(summary, n_classes))

    results = pd.DataFrame(rows, columns=MIXTURE_COLUMNS)
    results["Classes"] = results["Classes"].astype(int)
    return results.sort_values("Classes", kind="mergesort").reset_index(drop=True)


@dataclass(frozen=True)
class Recommendation:
    model: str
    classes: int
    bic: float
    entropy: float
    smallest_class_prop: float
    warnings: Tuple[str, ...]


def recommend_model(
    results: pd.DataFrame,
    entropy_threshold: float = 0.60,
    min_class_proportion: float = 0.05,
) -> Optional[Recommendation]:
    """Pick the lowest-BIC model and flag weak classification or tiny classes."""
    if results.empty or results["BIC"].isna().all():
        return None

    best = results.loc[results["BIC"].idxmin()]
    warnings = []
    if np.isfinite(best["Entropy"]) and best["Entropy"] < entropy_threshold:
        warnings.append(
            f"Selected model has low entropy (< {entropy_threshold:.2f}) - poor classification quality"
        )
    if np.isfinite(best["Smallest_Class_Prop"]) and best["Smallest_Class_Prop"] < min_class_proportion:
        warnings.append(
            f"Selected model has very small class (< {min_class_proportion:.0%}) - may be unstable"
        )

    return Recommendation(
        model=str(best["Model"]),
        classes=int(best["Classes"]),
        bic=float(best["BIC"]),
        entropy=float(best["Entropy"]),
        smallest_class_prop=float(best["Smallest_Class_Prop"]),
        warnings=tuple(warnings),
    )


def format_mixture_table(
    results: pd.DataFrame,
    entropy_threshold: float = 0.60,
    min_class_proportion: float = 0.05,
) -> Optional[Recommendation]:
    print_banner("GROWTH MIXTURE MODEL ENUMERATION")
    print()

    formatted = pd.DataFrame(
        {
            "Classes": results["Classes"].astype(str),
            "LogLikelihood": [_fmt(v, ".2f") for v in results["LogLikelihood"]],
            "Parameters": [_fmt(v, ".0f") for v in results["Parameters"]],
            "AIC": [_fmt(v, ".2f") for v in results["AIC"]],
            "BIC": [_fmt(v, ".2f") for v in results["BIC"]],
            "SABIC": [_fmt(v, ".2f") for v in results["SABIC"]],
            "Entropy": [_fmt(v, ".3f") for v in results["Entropy"]],
            "BLRT_p": [_fmt(v, ".4f") for v in results["BLRT_p"]],
            "Smallest_Class": [
                "N/A" if not np.isfinite(r.Smallest_Class_Prop)
                else f"{r.Smallest_Class_Prop * 100:.1f}% (n={r.Smallest_Class_N:.0f})"
                for r in results.itertuples()
            ],
        }
    )
    print_table(formatted, colalign=("right",) * 8 + ("left",))

    print()
    print("Model Selection Guidelines:")
    print(THIN_RULE)
    for line in (
        "Lower AIC/BIC/SABIC indicates better fit",
        "BIC is most reliable for mixture models (Nylund et al., 2007)",
        "Entropy: > .80 (excellent), > .60 (acceptable)",
        "BLRT p < .05: k-class model fits better than (k-1)-class model",
        f"Smallest class should be > {min_class_proportion:.0%} of sample for reliability",
        "Consider theoretical interpretability and parsimony",
    ):
        print(f"  - {line}")
    print()

    recommendation = recommend_model(results, entropy_threshold, min_class_proportion)
    if recommendation is None:
        print("RECOMMENDATION: not available (no model reported a BIC)")
    else:
        print(f"RECOMMENDATION: {recommendation.classes}-class model has lowest BIC")
        for warning in recommendation.warnings:
            print(f"WARNING: {warning}")
    print()
    return recommendation
