"""
Satisfaction Survey Pipeline
============================

Runs the whole analysis top to bottom:

1. Simulate the halo-effect survey (seeded)
2. Inspect: summaries, correlations, skew fix, factor recodings
3. Fit the standard OLS sequence m1..m6
4. Compare models and select one (nested F tests, adjusted R2), then
   refit the selected model on standardized predictors
5. Refit the selected model by MCMC and check it against OLS

Each stage consumes the previous stage's table or models. Reports are
printed; plots and the CSV are written only when a path is given.

Usage:
    survey-regression --seed 555 --n 500
    python -m survey_regression.pipeline --seed 555 --n 500 --draws 2000 --plots-dir figures

Author: Survey Analytics Team
"""

import argparse
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import matplotlib.pyplot as plt
import pandas as pd

from survey_regression.analysis.inspection import InspectionReport, inspect_survey
from survey_regression.config_schema import load_config, make_config
from survey_regression.constants import (
    ALPHA_DEFAULT,
    ITEM_COLUMNS,
    N_CHAINS_DEFAULT,
    N_POSTERIOR_DRAWS,
    N_TUNE_DEFAULT,
)
from survey_regression.estimation.bayesian import PosteriorResult, fit_bayesian
from survey_regression.estimation.diagnostics import ResidualDiagnostics, diagnose_ols
from survey_regression.estimation.model_comparison import (
    FTestResult,
    ModelComparisonFramework,
    ModelComparisonSummary,
)
from survey_regression.estimation.ols import OLSResult, fit_ols, fit_sequence
from survey_regression.estimation.specifications import standard_model_sequence, standardized_spec
from survey_regression.simulation.survey_simulator import SurveySimulator
from survey_regression.utils import visualization as viz
from survey_regression.utils.logging_config import configure_warnings, get_logger, setup_logging

logger = get_logger(__name__)


@dataclass
class PipelineResult:
    """Everything the pipeline produced."""
    data: pd.DataFrame
    inspection: InspectionReport
    fits: 'OrderedDict[str, OLSResult]'
    comparison: ModelComparisonSummary
    selected: str
    key_f_test: Optional[FTestResult] = None
    standardized_fit: Optional[OLSResult] = None
    diagnostics: Dict[str, ResidualDiagnostics] = field(default_factory=dict)
    posterior: Optional[PosteriorResult] = None
    posterior_vs_ols: Optional[pd.DataFrame] = None

    @property
    def selected_fit(self) -> OLSResult:
        return self.fits[self.selected]


def run_pipeline(seed: Optional[int] = None,
                 n: Optional[int] = None,
                 config: Optional[Dict] = None,
                 draws: int = N_POSTERIOR_DRAWS,
                 tune: int = N_TUNE_DEFAULT,
                 chains: int = N_CHAINS_DEFAULT,
                 skip_bayes: bool = False,
                 plots_dir: Optional[Path] = None,
                 export_csv: Optional[Path] = None,
                 alpha: float = ALPHA_DEFAULT,
                 verbose: bool = False) -> PipelineResult:
    """
    Run simulation, inspection, OLS sequence, comparison and Bayesian refit.

    Args:
        seed: Random seed (overrides config)
        n: Respondent count (overrides config)
        config: Base configuration (default: DEFAULT_CONFIG)
        draws: Total posterior draws
        tune: Tuning steps per chain
        chains: MCMC chains
        skip_bayes: Stop after model comparison
        plots_dir: Directory for diagnostic figures
        export_csv: Path for the simulated table
        alpha: Significance level for model selection
        verbose: Print stage reports

    Returns:
        PipelineResult
    """
    # Stage 1: simulate
    cfg = make_config(seed=seed, n=n, base=config)
    simulator = SurveySimulator(cfg)
    raw = simulator.run()
    if export_csv:
        export_csv = Path(export_csv)
        export_csv.parent.mkdir(parents=True, exist_ok=True)
        raw.to_csv(export_csv, index=False)
        logger.info(f"Exported respondent table to {export_csv}")

    # Stage 2: inspect
    data, inspection = inspect_survey(raw)
    if verbose:
        inspection.print_report()

    # Stage 3: fit the sequence
    specs = standard_model_sequence()
    fits = fit_sequence(data, list(specs.values()))
    if verbose:
        for res in fits.values():
            print(res.summary())

    # Stage 4: compare
    framework = ModelComparisonFramework(alpha=alpha, verbose=verbose)
    framework.add_models(fits)
    comparison = framework.compare_all(baseline='m1')
    selected = comparison.selected
    key_f_test = framework.f_test('m2', 'm3')
    if verbose:
        framework.print_report()

    diagnostics = {name: diagnose_ols(res, alpha=alpha) for name, res in fits.items()}
    if verbose:
        print(diagnostics[selected].summary())

    # selected model again on standardized predictors (one-SD effects)
    standardized_fit = fit_ols(data, standardized_spec(fits[selected].spec, data))
    if verbose:
        print(standardized_fit.summary())

    # Stage 5: Bayesian refit of the selected model
    posterior = None
    posterior_vs_ols = None
    if not skip_bayes:
        configure_warnings()
        posterior = fit_bayesian(data, fits[selected].spec, draws=draws, tune=tune,
                                 chains=chains, seed=simulator.seed, verbose=verbose)
        posterior_vs_ols = posterior.compare_with_ols(fits[selected])
        outside = posterior_vs_ols.index[~posterior_vs_ols['within_ols_ci']].tolist()
        if outside:
            logger.warning(f"Posterior means outside the OLS 95% CI: {outside}")
        if verbose:
            posterior.print_report()
            print(posterior_vs_ols.to_string(float_format=lambda x: f'{x:.4f}'))

    result = PipelineResult(
        data=data,
        inspection=inspection,
        fits=fits,
        comparison=comparison,
        selected=selected,
        key_f_test=key_f_test,
        standardized_fit=standardized_fit,
        diagnostics=diagnostics,
        posterior=posterior,
        posterior_vs_ols=posterior_vs_ols,
    )

    if plots_dir:
        save_plots(result, Path(plots_dir))

    return result


def save_plots(result: PipelineResult, plots_dir: Path) -> Dict[str, Path]:
    """Write the diagnostic figures for a pipeline run."""
    plots_dir.mkdir(parents=True, exist_ok=True)
    selected = result.selected_fit
    numeric = ['distance', 'logdist', 'num_child'] + ITEM_COLUMNS + ['overall']

    paths = {
        'distributions': plots_dir / 'distributions.png',
        'correlations': plots_dir / 'correlations.png',
        'residuals': plots_dir / f'residuals_{result.selected}.png',
        'coefficients': plots_dir / f'coefficients_{result.selected}.png',
        'model_comparison': plots_dir / 'model_comparison.png',
    }

    figures = [
        viz.plot_distributions(result.data, numeric, save_path=paths['distributions']),
        viz.plot_correlation_heatmap(result.inspection.correlations, save_path=paths['correlations']),
        viz.plot_residual_diagnostics(selected, save_path=paths['residuals']),
        viz.plot_coefficient_forest(selected, posterior=result.posterior,
                                    save_path=paths['coefficients']),
        viz.plot_model_comparison(result.comparison.ic_table, metric='adj_R2',
                                  save_path=paths['model_comparison']),
    ]
    for fig in figures:
        plt.close(fig)
    return paths


# =============================================================================
# COMMAND LINE
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Halo-effect satisfaction survey regression pipeline')
    parser.add_argument('--seed', type=int, default=None, help='Random seed (default: config or 555)')
    parser.add_argument('--n', type=int, default=None, help='Number of respondents (default: config or 500)')
    parser.add_argument('--draws', type=int, default=N_POSTERIOR_DRAWS,
                        help='Total posterior draws across chains')
    parser.add_argument('--tune', type=int, default=N_TUNE_DEFAULT, help='Tuning steps per chain')
    parser.add_argument('--chains', type=int, default=N_CHAINS_DEFAULT, help='MCMC chains')
    parser.add_argument('--config', type=str, default=None, help='Path to config JSON')
    parser.add_argument('--plots-dir', type=str, default=None, help='Directory for figures')
    parser.add_argument('--export-csv', type=str, default=None, help='Write the simulated table here')
    parser.add_argument('--skip-bayes', action='store_true', help='Skip the MCMC refit')
    parser.add_argument('--log-level', type=str, default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'])
    parser.add_argument('--log-format', type=str, default='standard',
                        choices=['standard', 'detailed', 'json'])
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=getattr(logging, args.log_level), format_style=args.log_format)

    config = load_config(Path(args.config)) if args.config else None
    run_pipeline(
        seed=args.seed,
        n=args.n,
        config=config,
        draws=args.draws,
        tune=args.tune,
        chains=args.chains,
        skip_bayes=args.skip_bayes,
        plots_dir=Path(args.plots_dir) if args.plots_dir else None,
        export_csv=Path(args.export_csv) if args.export_csv else None,
        verbose=True,
    )
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
