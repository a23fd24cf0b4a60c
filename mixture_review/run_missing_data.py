import argparse
import logging
from pathlib import Path

from mixture_review.config import MissingDataConfig
from mixture_review.missing_data import MissingDataReport, generate_missing_data_report
from mixture_review.preprocessing import load_mplus_data


def build_config(argv=None) -> MissingDataConfig:
    parser = argparse.ArgumentParser(description="Missing data diagnostics for the self-control waves")
    parser.add_argument("--root", default=".", help="Dissertation project root (default: current directory)")
    parser.add_argument("--data", help="Mplus data file (default: <root>/recoded_only_sc_pa_cov.dat)")
    parser.add_argument("--output-dir", help="Where CSVs are written (default: <root>/revised_analyses/03_diagnostics)")
    parser.add_argument("--min-observed", type=int, default=100, help="Minimum observed values for a covariate to be compared")
    args = parser.parse_args(argv)

    root = Path(args.root)
    return MissingDataConfig(
        data_path=Path(args.data) if args.data else root / "recoded_only_sc_pa_cov.dat",
        output_dir=Path(args.output_dir) if args.output_dir else root / "revised_analyses" / "03_diagnostics",
        min_observed=args.min_observed,
    )


def run_missing_data(cfg: MissingDataConfig) -> MissingDataReport:
    data = load_mplus_data(cfg.data_path, cfg.column_names, na_tokens=cfg.na_tokens)

    cfg.output_dir.mkdir(parents=True, exist_ok=True)
    return generate_missing_data_report(
        data,
        waves=cfg.waves,
        covariates=cfg.covariates,
        output_dir=cfg.output_dir,
        min_observed=cfg.min_observed,
        alpha=cfg.alpha,
    )


def main(argv=None):
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    run_missing_data(build_config(argv))


if __name__ == "__main__":
    main()
