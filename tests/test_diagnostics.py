"""
Tests for Fit Diagnostics
=========================
"""

import numpy as np
import pytest

from survey_regression.estimation.diagnostics import (
    ResidualDiagnostics,
    SamplerDiagnostics,
    breusch_pagan,
    diagnose_ols,
    influential_observations,
)


@pytest.mark.estimation
class TestResidualDiagnostics:

    def test_diagnose_returns_report(self, standard_fits):
        diag = diagnose_ols(standard_fits['m3'])
        assert isinstance(diag, ResidualDiagnostics)
        assert diag.model_name == 'm3'
        assert list(diag.vif.index) == standard_fits['m3'].predictor_columns
        assert 0 <= diag.jarque_bera_p <= 1
        assert 0 <= diag.breusch_pagan_p <= 1
        assert diag.cooks_threshold == pytest.approx(4 / 500)
        assert 'Diagnostics for m3' in diag.summary()

    def test_single_predictor_has_empty_vif(self, standard_fits):
        diag = diagnose_ols(standard_fits['m1'])
        assert diag.vif.empty

    def test_influential_rows(self, standard_fits):
        res = standard_fits['m2']
        infl = influential_observations(res)
        cooks = res.influence()['cooks_d'].to_numpy()
        assert infl['rows'] == np.flatnonzero(cooks > 4 / res.nobs).tolist()
        assert infl['max_cooks_d'] == pytest.approx(cooks.max())

    def test_breusch_pagan_matches_statsmodels(self, standard_fits):
        diag_mod = pytest.importorskip("statsmodels.stats.diagnostic")
        res = standard_fits['m3']
        lm, lm_p, _, _ = diag_mod.het_breuschpagan(res.resid, res.design.X)
        ours = breusch_pagan(res)
        assert ours['lm'] == pytest.approx(lm, rel=1e-8)
        assert ours['p_value'] == pytest.approx(lm_p, rel=1e-6)

    def test_issues_reported_not_raised(self, model_data):
        from survey_regression.estimation.ols import fit_ols
        df = model_data.assign(clean_copy=model_data['clean'] + np.random.default_rng(1).normal(0, 0.01, len(model_data)))
        diag = diagnose_ols(fit_ols(df, 'overall ~ clean + clean_copy'))
        assert 'clean' in diag.high_vif
        assert any('VIF' in issue for issue in diag.issues)


@pytest.mark.unit
class TestSamplerDiagnostics:

    def test_converged(self):
        diag = SamplerDiagnostics(rhat={'a': 1.001, 'b': 1.0}, ess_bulk={'a': 2000, 'b': 1500},
                                  divergences=0, draws=2000, chains=2)
        assert diag.converged
        assert diag.max_rhat == 1.001
        assert diag.min_ess == 1500
        assert diag.problematic_params == []
        assert 'PASS' in diag.summary()

    def test_flags_problems(self):
        diag = SamplerDiagnostics(rhat={'a': 1.2, 'b': 1.0}, ess_bulk={'a': 50, 'b': 1500},
                                  divergences=3, draws=200, chains=2)
        assert not diag.converged
        assert diag.problematic_params == ['a']
        assert 'FAIL' in diag.summary()
