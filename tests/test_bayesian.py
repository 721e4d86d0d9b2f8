"""
Tests for the Bayesian Estimator
================================

MCMC refit of the selected OLS model. Uses a reduced number of draws.
"""

import numpy as np
import pytest

pytest.importorskip("pymc")

from survey_regression.constants import INTERCEPT
from survey_regression.estimation.bayesian import PosteriorResult, fit_bayesian
from survey_regression.estimation.design import ModelSpec
from survey_regression.utils.visualization import plot_coefficient_forest

N_TEST_DRAWS = 2000


@pytest.fixture(scope="module")
def posterior(model_data, standard_fits, selected_model):
    return fit_bayesian(model_data, standard_fits[selected_model].spec,
                        draws=N_TEST_DRAWS, tune=1000, chains=2, seed=555)


@pytest.mark.bayesian
@pytest.mark.slow
class TestPosterior:

    def test_draw_count(self, posterior):
        assert isinstance(posterior, PosteriorResult)
        assert posterior.n_draws == N_TEST_DRAWS
        assert len(posterior.sigma_draws) == N_TEST_DRAWS

    def test_columns_match_ols(self, posterior, standard_fits, selected_model):
        assert posterior.columns == standard_fits[selected_model].columns

    def test_summary_has_no_p_values(self, posterior):
        summary = posterior.summary()
        assert list(summary.columns) == ['mean', 'sd', '2.5%', '97.5%', 'excludes_zero']
        assert 'sigma' in summary.index
        assert not any('p' == c or 'p_value' in c for c in summary.columns)

    def test_credible_interval_logic(self, posterior):
        summary = posterior.summary()
        excl = (summary['2.5%'] > 0) | (summary['97.5%'] < 0)
        assert (summary['excludes_zero'] == excl).all()
        assert summary.loc['clean', 'excludes_zero']

    def test_posterior_means_inside_ols_ci(self, posterior, standard_fits, selected_model):
        table = posterior.compare_with_ols(standard_fits[selected_model])
        slopes = table.drop(index=INTERCEPT)
        assert slopes['within_ols_ci'].all(), slopes

    def test_sigma_close_to_ols(self, posterior, standard_fits, selected_model):
        ols_sigma = np.sqrt(standard_fits[selected_model].scale)
        assert posterior.sigma_draws.mean() == pytest.approx(ols_sigma, rel=0.05)

    def test_sampler_diagnostics(self, posterior):
        diag = posterior.diagnostics
        assert diag.chains == 2
        assert diag.max_rhat < 1.05
        assert set(diag.rhat) == set(posterior.columns) | {'sigma'}

    def test_compare_with_wrong_model(self, posterior, standard_fits, selected_model):
        other = 'm1' if selected_model != 'm1' else 'm2'
        with pytest.raises(ValueError, match="mismatch"):
            posterior.compare_with_ols(standard_fits[other])

    def test_forest_plot_with_posterior(self, posterior, standard_fits, selected_model, tmp_path):
        import matplotlib.pyplot as plt
        path = tmp_path / 'forest.png'
        fig = plot_coefficient_forest(standard_fits[selected_model], posterior=posterior, save_path=path)
        assert path.exists()
        plt.close(fig)


@pytest.mark.bayesian
class TestInputChecks:

    def test_no_predictors(self, model_data):
        with pytest.raises(ValueError, match="at least one predictor"):
            fit_bayesian(model_data, ModelSpec('overall'), draws=10)

    def test_bad_draws(self, model_data):
        with pytest.raises(ValueError):
            fit_bayesian(model_data, 'overall ~ clean', draws=0)
