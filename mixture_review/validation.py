"""
Descriptive validation of trajectory classes.

Compares the modal latent classes on demographics and baseline
characteristics: class sizes, continuous covariates (ANOVA with eta-squared),
categorical covariates (chi-square), pairwise contrasts on a key outcome
(Welch t, Cohen's d, Holm) and the mean trajectory of each class.
"""
from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence

import numpy as np
import pandas as pd
from scipy.stats import chi2_contingency

from .reporting import print_banner, print_section, print_table
from .stats_utils import (
    DegenerateTestError,
    cohens_d,
    holm_adjust,
    one_way_anova,
    significance_tier,
    welch_t_test,
)

logger = logging.getLogger(__name__)

PAIRWISE_COLUMNS = [
    "Comparison", "Class_A", "Class_B", "N_A", "N_B",
    "Mean_Diff", "t_stat", "p_value", "Cohens_d", "p_adjusted", "Sig",
]
CATEGORICAL_COLUMNS = ["Variable", "Chi_Square", "df", "p_value", "Sig"]


def _class_name(label) -> str:
    value = float(label)
    return f"{int(value)}" if value.is_integer() else f"{value:g}"


def class_labels(data: pd.DataFrame, class_column: str = "CLASS") -> List:
    return sorted(data[class_column].dropna().unique())


def summarize_class_sizes(data: pd.DataFrame, class_column: str = "CLASS") -> pd.DataFrame:
    counts = data[class_column].value_counts().sort_index()
    return pd.DataFrame(
        {
            "Class": [_class_name(c) for c in counts.index],
            "N": counts.to_numpy(dtype=int),
            "Percent": counts.to_numpy(dtype=float) / counts.sum() * 100,
        }
    )


# -----------------------------
# Continuous covariates
# -----------------------------
def compare_continuous_by_class(
    data: pd.DataFrame,
    continuous_vars: Sequence[str],
    class_column: str = "CLASS",
) -> pd.DataFrame:
    """
    Per-class N/mean/SD plus one-way ANOVA for each continuous covariate.

    A class with fewer than two observed values is left out of that
    covariate's test. Covariates absent from the data are skipped.
    """
    labels = class_labels(data, class_column)
    rows = []

    for var in continuous_vars:
        if var not in data.columns:
            logger.debug("Continuous covariate %s not in dataset; skipped", var)
            continue

        values = pd.to_numeric(data[var], errors="coerce")
        if values.notna().sum() == 0:
            logger.debug("Continuous covariate %s has no observed values; skipped", var)
            continue

        row: Dict[str, object] = {"Variable": var}
        testable = []
        for label in labels:
            observed = values[data[class_column] == label].dropna()
            name = _class_name(label)
            row[f"Class{name}_N"] = int(observed.size)
            row[f"Class{name}_Mean"] = float(observed.mean()) if observed.size else np.nan
            row[f"Class{name}_SD"] = float(observed.std(ddof=1)) if observed.size > 1 else np.nan
            if observed.size >= 2:
                testable.append(label)

        f_stat = p_value = eta_sq = np.nan
        if len(testable) >= 2:
            mask = data[class_column].isin(testable) & values.notna()
            try:
                f_stat, p_value, eta_sq = one_way_anova(values[mask], data.loc[mask, class_column])
            except DegenerateTestError as exc:
                logger.warning("ANOVA for %s did not run: %s", var, exc)
        else:
            logger.warning("ANOVA for %s did not run: fewer than 2 classes with 2+ observations", var)

        excluded = [_class_name(c) for c in labels if c not in testable]
        if excluded and len(testable) >= 2:
            logger.warning("ANOVA for %s excludes class(es) %s (< 2 observations)", var, ", ".join(excluded))

        row.update({"F_stat": f_stat, "p_value": p_value, "eta_squared": eta_sq, "Sig": significance_tier(p_value)})
        rows.append(row)

    return pd.DataFrame(rows)


def _format_continuous(results: pd.DataFrame, labels: Sequence) -> pd.DataFrame:
    formatted = pd.DataFrame({"Variable": results["Variable"]})
    for label in labels:
        name = _class_name(label)
        formatted[f"Class{name}"] = [
            f"{m:.2f} ({s:.2f})" for m, s in zip(results[f"Class{name}_Mean"], results[f"Class{name}_SD"])
        ]
    formatted["Test"] = [
        f"F={f:.2f}, p={p:.3f}, eta²={e:.3f}" if np.isfinite(p) else "not available"
        for f, p, e in zip(results["F_stat"], results["p_value"], results["eta_squared"])
    ]
    formatted["Sig"] = results["Sig"]
    return formatted


# -----------------------------
# Categorical covariates
# -----------------------------
def compare_categorical_by_class(
    data: pd.DataFrame,
    categorical_vars: Sequence[str],
    class_column: str = "CLASS",
) -> tuple[pd.DataFrame, Dict[str, pd.DataFrame]]:
    """
    Column-percent cross-tabulation and chi-square test of association for each
    categorical covariate. Returns (tests table, {variable: crosstab}).
    """
    rows = []
    crosstabs: Dict[str, pd.DataFrame] = {}

    for var in categorical_vars:
        if var not in data.columns:
            logger.debug("Categorical covariate %s not in dataset; skipped", var)
            continue

        if data[var].notna().sum() == 0:
            logger.debug("Categorical covariate %s has no observed values; skipped", var)
            continue

        cross_tab = pd.crosstab(data[var], data[class_column])
        cross_tab.columns = [f"Class {_class_name(c)}" for c in cross_tab.columns]
        crosstabs[var] = cross_tab.div(cross_tab.sum(axis=0), axis=1) * 100

        chisq = dof = p_value = np.nan
        try:
            if cross_tab.shape[0] < 2 or cross_tab.shape[1] < 2:
                raise ValueError(f"table is {cross_tab.shape[0]}x{cross_tab.shape[1]}")
            chisq, p_value, dof, _ = chi2_contingency(cross_tab.to_numpy())
        except ValueError as exc:
            logger.warning("Chi-square test for %s did not run: %s", var, exc)

        rows.append(
            {
                "Variable": var,
                "Chi_Square": float(chisq),
                "df": float(dof),
                "p_value": float(p_value),
                "Sig": significance_tier(p_value),
            }
        )

    return pd.DataFrame(rows, columns=CATEGORICAL_COLUMNS), crosstabs


@dataclass(frozen=True)
class DescriptiveResults:
    class_summary: pd.DataFrame
    continuous: pd.DataFrame
    categorical: pd.DataFrame
    crosstabs: Dict[str, pd.DataFrame]


def descriptive_by_class(
    data: pd.DataFrame,
    continuous_vars: Sequence[str],
    categorical_vars: Sequence[str],
    class_column: str = "CLASS",
) -> DescriptiveResults:
    print_banner("DESCRIPTIVE STATISTICS BY TRAJECTORY CLASS")

    print_section("Class Sizes:")
    class_summary = summarize_class_sizes(data, class_column)
    print_table(class_summary, floatfmt=".1f")

    print_section("Continuous Variables by Class:")
    continuous = compare_continuous_by_class(data, continuous_vars, class_column)
    if len(continuous):
        labels = class_labels(data, class_column)
        print_table(_format_continuous(continuous, labels), colalign=("left",) + ("right",) * (len(labels) + 1) + ("left",))
    else:
        print("No continuous covariates available.")

    print_section("Categorical Variables by Class:")
    categorical, crosstabs = compare_categorical_by_class(data, categorical_vars, class_column)
    for var, table in crosstabs.items():
        print(f"\n{var}:")
        print_table(table.rename_axis(var).reset_index(), floatfmt=".1f")
        test = categorical.loc[categorical["Variable"] == var].iloc[0]
        if np.isfinite(test["p_value"]):
            print(f"  Chi-square = {test['Chi_Square']:.2f}, df = {test['df']:.0f}, p = {test['p_value']:.4f}")

    return DescriptiveResults(
        class_summary=class_summary,
        continuous=continuous,
        categorical=categorical,
        crosstabs=crosstabs,
    )


# -----------------------------
# Pairwise comparisons
# -----------------------------
def pairwise_comparisons(data: pd.DataFrame, outcome_var: str, class_column: str = "CLASS") -> pd.DataFrame:
    """
    Every unordered pair of classes on `outcome_var`: mean difference, Welch t,
    Cohen's d and Holm-adjusted p with significance tiers. Pairs where a class
    has fewer than two observations keep NaN statistics and are not part of
    the Holm family.
    """
    print_section(f"Pairwise Comparisons for {outcome_var}:")

    values = pd.to_numeric(data[outcome_var], errors="coerce")
    rows = []
    for c1, c2 in itertools.combinations(class_labels(data, class_column), 2):
        data_c1 = values[data[class_column] == c1].dropna()
        data_c2 = values[data[class_column] == c2].dropna()

        try:
            t_stat, p_value = welch_t_test(data_c1, data_c2)
        except DegenerateTestError as exc:
            logger.warning("Class %s vs Class %s on %s did not run: %s", _class_name(c1), _class_name(c2), outcome_var, exc)
            t_stat = p_value = np.nan

        rows.append(
            {
                "Comparison": f"Class {_class_name(c1)} vs Class {_class_name(c2)}",
                "Class_A": _class_name(c1),
                "Class_B": _class_name(c2),
                "N_A": int(data_c1.size),
                "N_B": int(data_c2.size),
                "Mean_Diff": float(data_c1.mean() - data_c2.mean()) if data_c1.size and data_c2.size else np.nan,
                "t_stat": t_stat,
                "p_value": p_value,
                "Cohens_d": cohens_d(data_c1, data_c2),
            }
        )

    results = pd.DataFrame(rows, columns=PAIRWISE_COLUMNS[:-2])
    results["p_adjusted"] = holm_adjust(results["p_value"].to_numpy(dtype=float))
    results["Sig"] = [significance_tier(p) for p in results["p_adjusted"]]

    formatted = pd.DataFrame(
        {
            "Comparison": results["Comparison"],
            "Mean_Diff": results["Mean_Diff"],
            "Test": [
                f"t={t:.2f}, p={p:.3f}" if np.isfinite(p) else "not available"
                for t, p in zip(results["t_stat"], results["p_adjusted"])
            ],
            "Effect": [f"d={d:.2f}" if np.isfinite(d) else "" for d in results["Cohens_d"]],
            "Sig": results["Sig"],
        }
    )
    print_table(formatted)

    print("\nEffect Size Interpretation (Cohen's d):")
    print("  Small: 0.20, Medium: 0.50, Large: 0.80\n")
    return results


# -----------------------------
# Trajectories
# -----------------------------
def trajectory_summary(
    data: pd.DataFrame,
    wave_columns: Sequence[str],
    ages: Sequence[int],
    class_column: str = "CLASS",
) -> pd.DataFrame:
    """Mean and standard error of the wave scores, per class and age (long format)."""
    if len(wave_columns) != len(ages):
        raise ValueError(f"{len(wave_columns)} wave columns but {len(ages)} ages")

    long = data[[class_column, *wave_columns]].melt(
        id_vars=class_column, var_name="Wave", value_name="Score"
    )
    long["Age"] = long["Wave"].map(dict(zip(wave_columns, ages)))
    long = long.dropna(subset=[class_column])

    summary = (
        long.groupby([class_column, "Age"])["Score"]
        .agg(Mean="mean", SD="std", N="count")
        .reset_index()
    )
    summary["SE"] = summary["SD"] / np.sqrt(summary["N"].where(summary["N"] > 0))
    summary["Class"] = [f"Class {_class_name(c)}" for c in summary[class_column]]
    return summary[["Class", "Age", "Mean", "SE", "N"]]
