import argparse
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pandas as pd

from mixture_review.config import FitComparisonConfig
from mixture_review.fit_comparison import (
    Recommendation,
    extract_measurement_invariance_fit,
    extract_mixture_model_fit,
    format_invariance_table,
    format_mixture_table,
)
from mixture_review.reporting import RULE, print_banner, save_csv

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FitComparisonResult:
    invariance: pd.DataFrame
    mixture: pd.DataFrame
    recommendation: Optional[Recommendation]


def build_config(argv=None) -> FitComparisonConfig:
    parser = argparse.ArgumentParser(description="Mplus model comparison table generator")
    parser.add_argument("--root", default=".", help="Dissertation project root (default: current directory)")
    parser.add_argument("--invariance-dir", help="Directory with the invariance .out files (default: <root>/invariance_test)")
    parser.add_argument("--mixture-dir", help="Directory with the mixture .out files (default: <root>)")
    parser.add_argument("--pattern", default="sc_gmm_lgbm_c", help="Mixture file prefix; files are <pattern><k>.out")
    parser.add_argument("--output-dir", help="Where CSVs are written (default: <root>/revised_analyses/03_diagnostics)")
    args = parser.parse_args(argv)

    root = Path(args.root)
    return FitComparisonConfig(
        invariance_dir=Path(args.invariance_dir) if args.invariance_dir else root / "invariance_test",
        mixture_dir=Path(args.mixture_dir) if args.mixture_dir else root,
        output_dir=Path(args.output_dir) if args.output_dir else root / "revised_analyses" / "03_diagnostics",
        mixture_pattern=args.pattern,
    )


def run_fit_comparison(cfg: FitComparisonConfig) -> FitComparisonResult:
    print(RULE)
    print("MPLUS MODEL COMPARISON TABLE GENERATOR")
    print(RULE)

    cfg.output_dir.mkdir(parents=True, exist_ok=True)

    # 1. Measurement invariance
    print("\n[1/2] Processing measurement invariance models...")
    inv_results = extract_measurement_invariance_fit(cfg.invariance_dir, cfg.invariance_models)
    if len(inv_results):
        format_invariance_table(inv_results, alpha=cfg.alpha)
        save_csv(inv_results, cfg.output_dir / "measurement_invariance_comparison.csv")
    else:
        logger.warning("No invariance model could be read from %s; no table written", cfg.invariance_dir)

    # 2. Mixture enumeration
    print("\n[2/2] Processing growth mixture models...")
    gmm_results = extract_mixture_model_fit(cfg.mixture_dir, pattern=cfg.mixture_pattern)
    recommendation = None
    if len(gmm_results):
        recommendation = format_mixture_table(
            gmm_results,
            entropy_threshold=cfg.entropy_threshold,
            min_class_proportion=cfg.min_class_proportion,
        )
        save_csv(gmm_results, cfg.output_dir / "mixture_model_comparison.csv")
    else:
        logger.warning("No mixture model could be read from %s; no table written", cfg.mixture_dir)

    print_banner("Model comparison extraction complete!")
    return FitComparisonResult(invariance=inv_results, mixture=gmm_results, recommendation=recommendation)


def main(argv=None):
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    run_fit_comparison(build_config(argv))


if __name__ == "__main__":
    main()
