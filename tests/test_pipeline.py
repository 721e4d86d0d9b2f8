"""
Tests for the End-to-End Pipeline
=================================

Runs without the MCMC stage; the Bayesian refit is covered in
test_bayesian.py.
"""

import pandas as pd
import pytest

from survey_regression.pipeline import PipelineResult, build_parser, main, run_pipeline


@pytest.fixture(scope="module")
def pipeline_result():
    return run_pipeline(seed=555, n=500, skip_bayes=True)


@pytest.mark.estimation
class TestRunPipeline:

    def test_result(self, pipeline_result):
        assert isinstance(pipeline_result, PipelineResult)
        assert list(pipeline_result.fits) == ['m1', 'm2', 'm3', 'm4', 'm5', 'm6']
        assert pipeline_result.selected in pipeline_result.fits
        assert pipeline_result.posterior is None
        assert pipeline_result.posterior_vs_ols is None

    def test_reference_scenario(self, pipeline_result):
        fits = pipeline_result.fits
        assert fits['m1'].rsquared < fits['m2'].rsquared
        assert pipeline_result.key_f_test.p_value < 0.05

    def test_data_matches_generator(self, pipeline_result, model_data):
        pd.testing.assert_frame_equal(pipeline_result.data, model_data)

    def test_diagnostics_for_every_model(self, pipeline_result):
        assert set(pipeline_result.diagnostics) == set(pipeline_result.fits)

    def test_selected_fit(self, pipeline_result):
        assert pipeline_result.selected_fit is pipeline_result.fits[pipeline_result.selected]

    def test_standardized_refit(self, pipeline_result):
        std = pipeline_result.standardized_fit
        assert std.name == f'{pipeline_result.selected}_std'
        assert 'clean_std' in std.columns
        assert std.rsquared == pytest.approx(pipeline_result.selected_fit.rsquared, rel=1e-10)
        assert 'clean_std' in pipeline_result.data.columns

    def test_plots_and_export(self, tmp_path):
        plots = tmp_path / 'figs'
        csv = tmp_path / 'out' / 'survey.csv'
        result = run_pipeline(seed=7, n=200, skip_bayes=True, plots_dir=plots, export_csv=csv)
        assert csv.exists()
        assert len(pd.read_csv(csv)) == 200
        names = {p.name for p in plots.iterdir()}
        assert {'distributions.png', 'correlations.png', 'model_comparison.png'} <= names
        assert f'residuals_{result.selected}.png' in names


@pytest.mark.unit
class TestCommandLine:

    def test_parser_defaults(self):
        args = build_parser().parse_args([])
        assert args.seed is None
        assert args.draws == 10000
        assert not args.skip_bayes

    def test_parser_options(self):
        args = build_parser().parse_args(['--seed', '1', '--n', '50', '--skip-bayes',
                                          '--plots-dir', 'figs', '--log-level', 'DEBUG'])
        assert (args.seed, args.n, args.skip_bayes) == (1, 50, True)
        assert args.plots_dir == 'figs'

    def test_main(self, tmp_path, config_path, capsys):
        csv = tmp_path / 'survey.csv'
        code = main(['--n', '150', '--skip-bayes', '--config', str(config_path),
                     '--export-csv', str(csv), '--log-level', 'WARNING'])
        assert code == 0
        assert csv.exists()
        assert 'MODEL COMPARISON REPORT' in capsys.readouterr().out
