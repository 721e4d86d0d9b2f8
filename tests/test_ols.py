"""
Tests for the OLS Engine
========================

Cross-checks against statsmodels and the invariance properties of least
squares on the reference survey.
"""

from collections import OrderedDict

import numpy as np
import pandas as pd
import pytest

from survey_regression.analysis.inspection import standardize
from survey_regression.estimation.design import build_design_matrix, parse_formula
from survey_regression.estimation.ols import SingularDesignError, fit_ols, fit_sequence
from survey_regression.estimation.specifications import ModelFactory


@pytest.fixture(scope="module")
def pair(model_data):
    """Our m6 fit next to the statsmodels fit of the same design."""
    sm = pytest.importorskip("statsmodels.api")
    spec = ModelFactory.create('m6')
    ours = fit_ols(model_data, spec)
    design = build_design_matrix(model_data, spec)
    ref = sm.OLS(design.y, design.X).fit()
    return ours, ref


@pytest.mark.estimation
class TestAgainstStatsmodels:
    """Independent reference implementation."""

    def test_coefficients(self, pair):
        ours, ref = pair
        np.testing.assert_allclose(ours.params.to_numpy(), ref.params, rtol=1e-8, atol=1e-10)
        np.testing.assert_allclose(ours.bse.to_numpy(), ref.bse, rtol=1e-8)
        np.testing.assert_allclose(ours.tvalues.to_numpy(), ref.tvalues, rtol=1e-8)
        np.testing.assert_allclose(ours.pvalues.to_numpy(), ref.pvalues, rtol=1e-6, atol=1e-12)

    def test_fit_statistics(self, pair):
        ours, ref = pair
        assert ours.rsquared == pytest.approx(ref.rsquared, rel=1e-10)
        assert ours.rsquared_adj == pytest.approx(ref.rsquared_adj, rel=1e-10)
        assert ours.fvalue == pytest.approx(ref.fvalue, rel=1e-8)
        assert ours.ssr == pytest.approx(ref.ssr, rel=1e-10)
        assert ours.df_resid == ref.df_resid
        assert ours.df_model == ref.df_model

    def test_likelihood_and_criteria(self, pair):
        ours, ref = pair
        assert ours.llf == pytest.approx(ref.llf, rel=1e-10)
        assert ours.aic == pytest.approx(ref.aic, rel=1e-10)
        assert ours.bic == pytest.approx(ref.bic, rel=1e-10)

    def test_conf_int(self, pair):
        ours, ref = pair
        ci = ours.conf_int(0.05)
        np.testing.assert_allclose(ci.to_numpy(), ref.conf_int(0.05), rtol=1e-8)

    def test_influence(self, pair):
        ours, ref = pair
        infl = ref.get_influence()
        table = ours.influence()
        np.testing.assert_allclose(table['leverage'], infl.hat_matrix_diag, rtol=1e-8)
        np.testing.assert_allclose(table['student_resid'], infl.resid_studentized_internal, rtol=1e-7)
        np.testing.assert_allclose(table['cooks_d'], infl.cooks_distance[0], rtol=1e-7)

    def test_residuals(self, pair):
        ours, ref = pair
        np.testing.assert_allclose(ours.resid, ref.resid, atol=1e-8)
        np.testing.assert_allclose(ours.fittedvalues, ref.fittedvalues, rtol=1e-10)


@pytest.mark.estimation
class TestLeastSquaresProperties:

    def test_single_item_dominated(self, standard_fits):
        assert standard_fits['m1'].rsquared < standard_fits['m2'].rsquared

    def test_r2_never_decreases_when_nesting(self, standard_fits):
        r2 = [standard_fits[m].rsquared for m in ('m1', 'm2', 'm3')]
        assert r2[0] <= r2[1] <= r2[2]
        assert standard_fits['m5'].rsquared <= standard_fits['m6'].rsquared

    def test_standardizing_predictors(self, model_data):
        spec = ModelFactory.create('m3')
        numeric = ['clean', 'aroma', 'value', 'color', 'logdist', 'num_child']
        raw = fit_ols(model_data, spec)
        scaled = fit_ols(standardize(model_data, columns=numeric), spec)

        assert scaled.rsquared == pytest.approx(raw.rsquared, rel=1e-10)
        assert scaled.rsquared_adj == pytest.approx(raw.rsquared_adj, rel=1e-10)
        assert scaled.fvalue == pytest.approx(raw.fvalue, rel=1e-8)

        slopes = raw.predictor_columns
        np.testing.assert_allclose(scaled.pvalues[slopes], raw.pvalues[slopes], rtol=1e-6, atol=1e-14)
        for col in numeric:
            sd = model_data[col].astype(float).std(ddof=1)
            assert scaled.params[col] == pytest.approx(raw.params[col] * sd, rel=1e-8)

    def test_dummies_equal_factor(self, model_data):
        """Hand-made indicators and the full factor give the same fit."""
        df = model_data.copy()
        for k in range(1, 6):
            df[f'kid{k}'] = (df['num_child'] == k).astype(float)

        by_factor = fit_ols(df, 'overall ~ clean + num_child_factor')
        by_forced = fit_ols(df, 'overall ~ clean + C(num_child)')
        by_dummy = fit_ols(df, 'overall ~ clean + kid1 + kid2 + kid3 + kid4 + kid5')

        assert len(by_factor.predictor_columns) == 1 + 5
        np.testing.assert_allclose(by_factor.fittedvalues, by_dummy.fittedvalues, rtol=1e-10)
        np.testing.assert_allclose(by_forced.fittedvalues, by_dummy.fittedvalues, rtol=1e-10)
        assert by_factor.rsquared == pytest.approx(by_dummy.rsquared, rel=1e-12)

    def test_predict_matches_fitted(self, standard_fits, model_data):
        res = standard_fits['m5']
        np.testing.assert_allclose(res.predict(model_data), res.fittedvalues)


@pytest.mark.estimation
class TestDegenerateDesigns:

    def test_perfect_collinearity(self, model_data):
        df = model_data.assign(clean2=2.0 * model_data['clean'])
        with pytest.raises(SingularDesignError, match="rank"):
            fit_ols(df, 'overall ~ clean + clean2')

    def test_singular_is_linalg_error(self, model_data):
        df = model_data.assign(const=1.0)
        with pytest.raises(np.linalg.LinAlgError):
            fit_ols(df, 'overall ~ clean + const')

    def test_too_few_observations(self, model_data):
        with pytest.raises(SingularDesignError):
            fit_ols(model_data.head(3), 'overall ~ clean + aroma + value')

    def test_constant_outcome(self, model_data):
        df = model_data.assign(flat=1.0)
        with pytest.raises(ValueError, match="constant"):
            fit_ols(df, 'flat ~ clean')


@pytest.mark.estimation
class TestFitSequence:

    def test_order_preserved(self, model_data):
        fits = fit_sequence(model_data, {'b': 'overall ~ clean', 'a': 'overall ~ clean + aroma'})
        assert isinstance(fits, OrderedDict)
        assert list(fits) == ['b', 'a']

    def test_duplicate_labels(self, model_data):
        with pytest.raises(ValueError, match="Duplicate"):
            fit_sequence(model_data, ['overall ~ clean', 'overall ~ clean'])

    def test_summary_text(self, standard_fits):
        text = standard_fits['m2'].summary()
        assert 'OLS Regression Results: m2' in text
        assert 'R-squared' in text
        assert 'aroma' in text

    def test_coef_table(self, standard_fits):
        table = standard_fits['m3'].coef_table()
        assert list(table.columns[:4]) == ['coef', 'std_err', 't', 'p_value']
        assert 'promo[T.yes]' in table.index
