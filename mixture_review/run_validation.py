import argparse
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import matplotlib
import pandas as pd

from mixture_review.config import ValidationConfig
from mixture_review.plotting import plot_trajectories_by_class
from mixture_review.preprocessing import load_class_assignments, load_mplus_data, merge_class_covariates
from mixture_review.reporting import print_banner, save_csv
from mixture_review.validation import (
    DescriptiveResults,
    descriptive_by_class,
    pairwise_comparisons,
    trajectory_summary,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationResult:
    merged: pd.DataFrame
    descriptive: DescriptiveResults
    pairwise: Optional[pd.DataFrame]
    trajectories: pd.DataFrame
    plot_path: Optional[Path]


def build_config(argv=None) -> ValidationConfig:
    parser = argparse.ArgumentParser(description="Descriptive validation of trajectory classes")
    parser.add_argument("--root", default=".", help="Dissertation project root (default: current directory)")
    parser.add_argument(
        "--class-file",
        help="Mplus SAVEDATA file (default: <root>/growth_mixture_models/sc_gmm3_fscores_cprobs.dat)",
    )
    parser.add_argument("--data", help="Mplus data file (default: <root>/recoded_only_sc_pa_cov.dat)")
    parser.add_argument("--output-dir", help="Where outputs are written (default: <root>/revised_analyses/04_validation)")
    parser.add_argument("--outcome", default="scoga", help="Covariate used for pairwise class comparisons")
    args = parser.parse_args(argv)

    root = Path(args.root)
    return ValidationConfig(
        class_file=(
            Path(args.class_file) if args.class_file
            else root / "growth_mixture_models" / "sc_gmm3_fscores_cprobs.dat"
        ),
        data_path=Path(args.data) if args.data else root / "recoded_only_sc_pa_cov.dat",
        output_dir=Path(args.output_dir) if args.output_dir else root / "revised_analyses" / "04_validation",
        key_outcome=args.outcome,
    )


def run_validation(cfg: ValidationConfig) -> ValidationResult:
    class_data = load_class_assignments(cfg.class_file, cfg.class_columns, id_column=cfg.id_column, na_tokens=cfg.na_tokens)
    full_data = load_mplus_data(cfg.data_path, cfg.column_names, na_tokens=cfg.na_tokens)
    merged = merge_class_covariates(class_data, full_data, on=cfg.id_column)

    cfg.output_dir.mkdir(parents=True, exist_ok=True)

    descriptive = descriptive_by_class(merged, cfg.continuous_vars, cfg.categorical_vars, class_column=cfg.class_column)

    pairwise = None
    if cfg.key_outcome and cfg.key_outcome in merged.columns:
        pairwise = pairwise_comparisons(merged, cfg.key_outcome, class_column=cfg.class_column)
    elif cfg.key_outcome:
        logger.warning("Key outcome %s not in merged data; pairwise comparisons skipped", cfg.key_outcome)

    trajectories = trajectory_summary(merged, cfg.trajectory_columns, cfg.ages, class_column=cfg.class_column)
    plot_path = plot_trajectories_by_class(trajectories, cfg.ages, save_dir=cfg.output_dir)

    save_csv(descriptive.continuous, cfg.output_dir / "descriptive_comparison_continuous.csv")
    save_csv(descriptive.class_summary, cfg.output_dir / "class_sizes.csv")
    save_csv(descriptive.categorical, cfg.output_dir / "descriptive_comparison_categorical.csv")
    if pairwise is not None:
        save_csv(pairwise, cfg.output_dir / "pairwise_comparisons.csv")

    print_banner(f"Validation analysis complete!\nResults saved to: {cfg.output_dir}")

    return ValidationResult(
        merged=merged,
        descriptive=descriptive,
        pairwise=pairwise,
        trajectories=trajectories,
        plot_path=plot_path,
    )


def main(argv=None):
    matplotlib.use("Agg")
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    run_validation(build_config(argv))


if __name__ == "__main__":
    main()
