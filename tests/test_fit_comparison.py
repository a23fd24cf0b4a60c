import logging
import math

import pytest
from scipy import stats

from mixture_review.config import FitComparisonConfig
from mixture_review.fit_comparison import (
    INVARIANCE_COLUMNS,
    MIXTURE_COLUMNS,
    extract_measurement_invariance_fit,
    extract_mixture_model_fit,
    format_invariance_table,
    format_mixture_table,
    recommend_model,
)
from mixture_review.run_model_fit import run_fit_comparison

from builders import invariance_out_text, mixture_out_text

MODELS = ("configural_invariance_baseline.out", "threshold_invariance.out", "strong_invariance.out")


def _write_invariance_set(write_report, subdir="invariance_test"):
    write_report(MODELS[0], invariance_out_text(100.0, 40, cfi=0.980, tli=0.975, parameters=60), subdir)
    write_report(MODELS[1], invariance_out_text(120.0, 50, cfi=0.975, tli=0.972, parameters=50), subdir)
    write_report(MODELS[2], invariance_out_text(150.0, 55, cfi=0.962, tli=0.960, parameters=45), subdir)


def _write_mixture(write_report, k, bic, entropy=0.85, counts=None, subdir=""):
    if counts is None:
        counts = [(100, 1.0 / k)] * k
    write_report(
        f"sc_gmm_lgbm_c{k}.out",
        mixture_out_text(
            ll=-bic / 2, parameters=5 + 4 * k, aic=bic - 50, bic=bic, sabic=bic - 20,
            entropy=entropy if k > 1 else None, counts=counts if k > 1 else (),
        ),
        subdir,
    )


def test_invariance_table_has_sequential_difference_tests(write_report, tmp_path):
    _write_invariance_set(write_report)

    results = extract_measurement_invariance_fit(tmp_path / "invariance_test", MODELS)

    assert list(results.columns) == INVARIANCE_COLUMNS
    assert list(results["Model"]) == [m[:-4] for m in MODELS]

    first, second, third = results.iloc[0], results.iloc[1], results.iloc[2]
    assert math.isnan(first["ChiSq_Diff"]) and math.isnan(first["p_value"])

    assert second["ChiSq_Diff"] == pytest.approx(20.0)
    assert second["df_Diff"] == 10
    assert second["p_value"] == pytest.approx(stats.chi2.sf(20.0, 10))
    assert second["CFI_Diff"] == pytest.approx(-0.005)

    assert third["ChiSq_Diff"] == pytest.approx(30.0)
    assert third["df_Diff"] == 5
    assert third["CFI_Diff"] == pytest.approx(-0.013)


def test_missing_invariance_file_is_reported_and_skipped(write_report, tmp_path, caplog):
    write_report(MODELS[0], invariance_out_text(100.0, 40, cfi=0.98, tli=0.97), "inv")
    write_report(MODELS[2], invariance_out_text(150.0, 55, cfi=0.96, tli=0.96), "inv")

    with caplog.at_level(logging.WARNING, logger="mixture_review.fit_comparison"):
        results = extract_measurement_invariance_fit(tmp_path / "inv", MODELS)

    assert "Model file not found" in caplog.text
    assert "threshold_invariance.out" in caplog.text
    assert list(results["Model"]) == ["configural_invariance_baseline", "strong_invariance"]
    # the remaining pair is still compared
    assert results.iloc[1]["ChiSq_Diff"] == pytest.approx(50.0)


def test_malformed_invariance_report_is_skipped(write_report, tmp_path, caplog):
    _write_invariance_set(write_report, "inv")
    write_report(MODELS[1], "Mplus VERSION 8.6\n\n*** ERROR in MODEL command\n", "inv")

    with caplog.at_level(logging.WARNING, logger="mixture_review.fit_comparison"):
        results = extract_measurement_invariance_fit(tmp_path / "inv", MODELS)

    assert len(results) == 2
    assert "threshold_invariance" in caplog.text


def test_mixture_enumeration_is_sorted_by_class_count(write_report, tmp_path):
    for k, bic in [(10, 990.0), (2, 950.0), (1, 1000.0), (3, 900.0)]:
        _write_mixture(write_report, k, bic)
    write_report("sc_gmm_lgbm_c3_old.out", mixture_out_text(-1, 1, 1, 1, 1))
    write_report("notes.txt", "not a report")

    results = extract_mixture_model_fit(tmp_path, pattern="sc_gmm_lgbm_c")

    assert list(results.columns) == MIXTURE_COLUMNS
    assert list(results["Classes"]) == [1, 2, 3, 10]
    assert list(results["BIC"]) == [1000.0, 950.0, 900.0, 990.0]
    assert math.isnan(results.iloc[0]["Entropy"])


def test_no_matching_mixture_reports_gives_empty_table(tmp_path, caplog):
    with caplog.at_level(logging.WARNING, logger="mixture_review.fit_comparison"):
        results = extract_mixture_model_fit(tmp_path, pattern="sc_gmm_lgbm_c")
    assert results.empty
    assert list(results.columns) == MIXTURE_COLUMNS
    assert "No mixture model files found" in caplog.text


def test_lowest_bic_is_recommended_without_warnings(write_report, tmp_path, capsys):
    for k, bic in [(1, 1000.0), (2, 950.0), (3, 900.0), (4, 920.0)]:
        _write_mixture(write_report, k, bic)
    results = extract_mixture_model_fit(tmp_path, pattern="sc_gmm_lgbm_c")

    recommendation = format_mixture_table(results)
    out = capsys.readouterr().out

    assert recommendation.classes == 3
    assert recommendation.warnings == ()
    assert "RECOMMENDATION: 3-class model has lowest BIC" in out
    assert "WARNING" not in out


def test_recommendation_flags_low_entropy_and_small_class(write_report, tmp_path, capsys):
    _write_mixture(write_report, 1, 1000.0)
    _write_mixture(write_report, 2, 900.0, entropy=0.55, counts=[(970, 0.97), (30, 0.03)])
    results = extract_mixture_model_fit(tmp_path, pattern="sc_gmm_lgbm_c")

    recommendation = format_mixture_table(results, entropy_threshold=0.60, min_class_proportion=0.05)
    out = capsys.readouterr().out

    assert recommendation.classes == 2
    assert len(recommendation.warnings) == 2
    assert "WARNING: Selected model has low entropy (< 0.60) - poor classification quality" in out
    assert "WARNING: Selected model has very small class (< 5%) - may be unstable" in out


def test_recommend_model_without_bic_returns_none(tmp_path):
    results = extract_mixture_model_fit(tmp_path, pattern="sc_gmm_lgbm_c")
    assert recommend_model(results) is None


def test_fit_comparison_outputs_are_reproducible(write_report, tmp_path):
    _write_invariance_set(write_report, "invariance_test")
    for k, bic in [(1, 1000.0), (2, 950.0), (3, 900.0)]:
        _write_mixture(write_report, k, bic, subdir="gmm")

    cfg = FitComparisonConfig(
        invariance_dir=tmp_path / "invariance_test",
        mixture_dir=tmp_path / "gmm",
        output_dir=tmp_path / "out",
    )

    run_fit_comparison(cfg)
    first = {
        name: (tmp_path / "out" / name).read_bytes()
        for name in ("measurement_invariance_comparison.csv", "mixture_model_comparison.csv")
    }
    result = run_fit_comparison(cfg)
    second = {name: (tmp_path / "out" / name).read_bytes() for name in first}

    assert first == second
    assert result.recommendation.classes == 3
    assert len(result.invariance) == 3


def test_invariance_table_reports_wrmr_and_model_p(write_report, tmp_path, capsys):
    for name, chisq, df in zip(MODELS, (100.0, 120.0, 150.0), (40, 50, 55)):
        write_report(
            name,
            invariance_out_text(chisq, df, cfi=0.97, tli=0.96, srmr=None, chisq_p=0.0012, wrmr=0.912),
            "wlsmv",
        )

    results = extract_measurement_invariance_fit(tmp_path / "wlsmv", MODELS)
    format_invariance_table(results)
    out = capsys.readouterr().out

    assert list(results["WRMR"]) == pytest.approx([0.912] * 3)
    assert list(results["ChiSq_p"]) == pytest.approx([0.0012] * 3)
    assert results["SRMR"].isna().all()
    assert "WRMR" in out
    assert "0.912" in out


def test_deterioration_is_flagged_at_the_configured_level(write_report, tmp_path, capsys):
    _write_invariance_set(write_report, "inv")
    results = extract_measurement_invariance_fit(tmp_path / "inv", MODELS)

    # configural vs threshold: p = chi2.sf(20, 10) ~ 0.029
    format_invariance_table(results, alpha=0.05)
    lenient = capsys.readouterr().out
    format_invariance_table(results, alpha=0.01)
    strict = capsys.readouterr().out

    assert lenient.count("(significant deterioration)") == 2
    assert strict.count("(significant deterioration)") == 1
    assert "p < 0.01 indicates significant deterioration" in strict
