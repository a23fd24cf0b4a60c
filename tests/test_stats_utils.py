import math

import numpy as np
import pandas as pd
import pytest
from hypothesis import given
from hypothesis import strategies as st
from scipy import stats

from mixture_review.stats_utils import (
    DegenerateTestError,
    chi_square_difference,
    cohens_d,
    holm_adjust,
    one_way_anova,
    significance_tier,
    welch_t_test,
)

p_values = st.lists(
    st.one_of(st.floats(min_value=0.0, max_value=1.0), st.just(float("nan"))),
    min_size=1,
    max_size=30,
)


@given(p_values)
def test_holm_is_bounded_by_raw_p_and_one(raw):
    adjusted = holm_adjust(raw)
    raw = np.asarray(raw)

    finite = np.isfinite(raw)
    assert np.array_equal(np.isnan(adjusted), ~finite)
    assert np.all(adjusted[finite] >= raw[finite] - 1e-12)
    assert np.all(adjusted[finite] <= 1.0)


def test_holm_known_values():
    # sorted: 0.01*3, max(0.02*2, .03), max(0.04, .04)
    adjusted = holm_adjust([0.04, 0.01, 0.02])
    assert adjusted == pytest.approx([0.04, 0.03, 0.04])


def test_holm_empty_family():
    assert holm_adjust([]).size == 0
    assert np.isnan(holm_adjust([np.nan, np.nan])).all()


@pytest.mark.parametrize(
    "p, expected",
    [(0.0005, "***"), (0.001, "**"), (0.005, "**"), (0.01, "*"), (0.049, "*"), (0.05, ""), (0.7, ""), (np.nan, "")],
)
def test_significance_tier(p, expected):
    assert significance_tier(p) == expected


def test_welch_matches_scipy_and_ignores_missing():
    a = [1.0, 2.0, 3.0, np.nan]
    b = pd.Series([4.0, 5.0, 6.0, 9.0])

    t, p = welch_t_test(a, b)
    ref = stats.ttest_ind([1, 2, 3], [4, 5, 6, 9], equal_var=False)

    assert t == pytest.approx(ref.statistic)
    assert p == pytest.approx(ref.pvalue)


def test_welch_degenerate_inputs_raise():
    with pytest.raises(DegenerateTestError):
        welch_t_test([1.0], [2.0, 3.0])
    with pytest.raises(DegenerateTestError):
        welch_t_test([2.0, 2.0], [5.0, 5.0])


def test_cohens_d_pooled_sd():
    assert cohens_d([1, 2, 3], [4, 5, 6]) == pytest.approx(-3.0)
    assert cohens_d([4, 5, 6], [1, 2, 3]) == pytest.approx(3.0)


def test_cohens_d_undefined_cases_are_nan():
    assert math.isnan(cohens_d([1.0], [2.0, 3.0]))
    assert math.isnan(cohens_d([1.0, 1.0], [1.0, 1.0]))


def test_chi_square_difference():
    diff, df_diff, p = chi_square_difference(100.0, 40, 120.0, 50)
    assert diff == pytest.approx(20.0)
    assert df_diff == 10
    assert p == pytest.approx(stats.chi2.sf(20.0, 10))


def test_chi_square_difference_without_added_constraints_has_no_p():
    _, df_diff, p = chi_square_difference(100.0, 40, 98.0, 40)
    assert df_diff == 0
    assert math.isnan(p)


def test_one_way_anova_eta_squared():
    values = pd.Series([1.0, 2.0, 3.0, 4.0, 5.0, 6.0])
    groups = pd.Series([1, 1, 1, 2, 2, 2])

    f_stat, p, eta_sq = one_way_anova(values, groups)
    ref = stats.f_oneway([1, 2, 3], [4, 5, 6])

    assert eta_sq == pytest.approx(13.5 / 17.5)
    assert f_stat == pytest.approx(ref.statistic)
    assert p == pytest.approx(ref.pvalue)


def test_one_way_anova_needs_two_groups():
    with pytest.raises(DegenerateTestError):
        one_way_anova(pd.Series([1.0, 2.0, 3.0]), pd.Series([1, 1, 1]))
