"""
Tests for Logging Helpers
=========================
"""

import json
import logging

import pytest

from survey_regression.utils.logging_config import (
    ComparisonLogger,
    EstimationLogger,
    JsonFormatter,
)


@pytest.mark.unit
class TestJsonFormatter:

    def test_fields(self):
        record = logging.LogRecord('survey_regression.test', logging.INFO, __file__, 1,
                                   'fitted %s', ('m2',), None)
        record.extra_data = {'k': 5}
        payload = json.loads(JsonFormatter().format(record))
        assert payload['level'] == 'INFO'
        assert payload['message'] == 'fitted m2'
        assert payload['data'] == {'k': 5}


@pytest.mark.unit
class TestEstimationLogger:

    def test_fitted_logs_and_prints(self, caplog, capsys):
        est_log = EstimationLogger('m3', verbose=True)
        with caplog.at_level(logging.INFO):
            est_log.start()
            est_log.fitted(r2=0.5, adj_r2=0.49, k=8, n=500)
        assert 'Fitted: m3' in caplog.text
        assert 'K=8' in caplog.text
        assert 'Fitting (OLS): m3' in capsys.readouterr().out

    def test_sampled_reports_pooled_total(self, caplog, capsys):
        est_log = EstimationLogger('m5', verbose=True)
        with caplog.at_level(logging.INFO):
            est_log.sampled(draws=10000, chains=2, max_rhat=1.001, min_ess=3000, divergences=0)
        assert 'total_draws=10000 | chains=2' in caplog.text
        assert '10000 total draws across 2 chains' in capsys.readouterr().out

    def test_quiet_by_default(self, capsys):
        EstimationLogger('m1').failed('singular')
        assert capsys.readouterr().out == ''


@pytest.mark.unit
class TestComparisonLogger:

    def test_f_test(self, caplog):
        with caplog.at_level(logging.INFO):
            ComparisonLogger().f_test('m2', 'm3', 12.5, 3, 492, 1e-7)
        assert 'F(3,492)=12.500' in caplog.text
