"""
Tests for Visualization
=======================

Smoke tests: every plot renders and saves.
"""

import matplotlib.pyplot as plt
import pytest

from survey_regression.estimation.model_comparison import ModelComparisonFramework
from survey_regression.utils.visualization import (
    plot_coefficient_forest,
    plot_correlation_heatmap,
    plot_distributions,
    plot_model_comparison,
    plot_residual_diagnostics,
)


@pytest.mark.unit
class TestPlots:

    def test_distributions(self, model_data, tmp_path):
        path = tmp_path / 'hist.png'
        fig = plot_distributions(model_data, ['distance', 'logdist', 'clean'], save_path=path)
        assert path.exists()
        assert len([ax for ax in fig.axes if ax.get_visible()]) == 3
        plt.close(fig)

    def test_correlation_heatmap(self, inspected, tmp_path):
        path = tmp_path / 'corr.png'
        fig = plot_correlation_heatmap(inspected[1].correlations, save_path=path)
        assert path.exists()
        plt.close(fig)

    def test_residual_panel(self, standard_fits, tmp_path):
        path = tmp_path / 'sub' / 'resid.png'
        fig = plot_residual_diagnostics(standard_fits['m5'], save_path=path)
        assert path.exists()
        assert len(fig.axes) == 4
        plt.close(fig)

    def test_forest(self, standard_fits):
        fig = plot_coefficient_forest(standard_fits['m3'])
        ax = fig.axes[0]
        labels = [t.get_text() for t in ax.get_yticklabels()]
        assert 'Intercept' not in labels
        assert 'promo[T.yes]' in labels
        plt.close(fig)

    def test_model_comparison(self, standard_fits, tmp_path):
        fw = ModelComparisonFramework()
        fw.add_models(standard_fits)
        path = tmp_path / 'cmp.png'
        fig = plot_model_comparison(fw.information_criteria_table(), metric='AIC', save_path=path)
        assert path.exists()
        plt.close(fig)
