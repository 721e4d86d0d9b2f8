"""
Visualization Functions for Survey Regressions
==============================================

Diagnostic plots for the inspection and modelling stages.

Includes:
- Distribution histograms
- Correlation heatmap
- Residual diagnostics panel (residuals vs fitted, normal Q-Q,
  scale-location, leverage with Cook's distance)
- Coefficient forest plots, optionally overlaid with posterior intervals
- Model comparison bar charts

Every function returns the matplotlib Figure and saves it when save_path
is given.

Author: Survey Analytics Team
"""

from pathlib import Path
from typing import List, Optional, Tuple

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from scipy import stats

from survey_regression.constants import INTERCEPT
from survey_regression.utils.logging_config import get_logger

logger = get_logger(__name__)


def _save(fig, save_path: Optional[Path]) -> None:
    if save_path:
        save_path = Path(save_path)
        save_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Saved figure: {save_path}")


def plot_distributions(df: pd.DataFrame,
                       columns: List[str] = None,
                       bins: int = 30,
                       save_path: Path = None):
    """
    Histogram grid, one panel per numeric column.

    Args:
        df: Data table
        columns: Columns to plot (default: all numeric, excluding booleans)
        bins: Histogram bins
        save_path: Path to save figure (optional)

    Returns:
        matplotlib Figure object
    """
    if columns is None:
        columns = [c for c in df.select_dtypes(include=[np.number]).columns
                   if df[c].dtype != bool]

    n = len(columns)
    ncols = min(3, n) or 1
    nrows = int(np.ceil(n / ncols)) or 1
    fig, axes = plt.subplots(nrows, ncols, figsize=(4 * ncols, 3 * nrows), squeeze=False)

    for ax, col in zip(axes.flat, columns):
        values = df[col].astype(float)
        ax.hist(values, bins=bins, color='tab:blue', alpha=0.7, edgecolor='white')
        ax.axvline(values.mean(), color='black', linestyle='--', linewidth=1)
        ax.set_title(f"{col} (skew={stats.skew(values, bias=False):.2f})", fontsize=10)

    for ax in list(axes.flat)[n:]:
        ax.set_visible(False)

    fig.tight_layout()
    _save(fig, save_path)
    return fig


def plot_correlation_heatmap(corr: pd.DataFrame,
                             figsize: Tuple[int, int] = (8, 7),
                             title: str = "Pearson Correlations",
                             save_path: Path = None):
    """Annotated heatmap of a correlation matrix."""
    fig, ax = plt.subplots(figsize=figsize)
    im = ax.imshow(corr.values, cmap='RdBu_r', vmin=-1, vmax=1)
    fig.colorbar(im, ax=ax, shrink=0.8)

    labels = list(corr.columns)
    ax.set_xticks(np.arange(len(labels)))
    ax.set_yticks(np.arange(len(labels)))
    ax.set_xticklabels(labels, rotation=45, ha='right')
    ax.set_yticklabels(labels)

    for i in range(len(labels)):
        for j in range(len(labels)):
            val = corr.values[i, j]
            ax.text(j, i, f"{val:.2f}", ha='center', va='center', fontsize=8,
                    color='white' if abs(val) > 0.6 else 'black')

    ax.set_title(title)
    fig.tight_layout()
    _save(fig, save_path)
    return fig


def plot_residual_diagnostics(result,
                              figsize: Tuple[int, int] = (11, 9),
                              save_path: Path = None):
    """
    Four-panel residual diagnostics for a fitted OLSResult.

    Panels: residuals vs fitted, normal Q-Q of studentized residuals,
    scale-location, and studentized residuals vs leverage with Cook's
    distance contours at 0.5 and 1.
    """
    infl = result.influence()
    fitted = result.fittedvalues
    resid = result.resid
    student = infl['student_resid'].to_numpy()
    leverage = infl['leverage'].to_numpy()

    fig, axes = plt.subplots(2, 2, figsize=figsize)

    ax = axes[0, 0]
    ax.scatter(fitted, resid, s=10, alpha=0.6)
    ax.axhline(0, color='gray', linestyle='--', linewidth=1)
    ax.set_xlabel('Fitted values')
    ax.set_ylabel('Residuals')
    ax.set_title('Residuals vs Fitted')

    ax = axes[0, 1]
    (osm, osr), (slope, intercept, _) = stats.probplot(student, dist='norm')
    ax.scatter(osm, osr, s=10, alpha=0.6)
    ax.plot(osm, slope * np.asarray(osm) + intercept, color='tab:red', linewidth=1)
    ax.set_xlabel('Theoretical quantiles')
    ax.set_ylabel('Studentized residuals')
    ax.set_title('Normal Q-Q')

    ax = axes[1, 0]
    ax.scatter(fitted, np.sqrt(np.abs(student)), s=10, alpha=0.6)
    ax.set_xlabel('Fitted values')
    ax.set_ylabel(r'$\sqrt{|\mathrm{studentized\ residuals}|}$')
    ax.set_title('Scale-Location')

    ax = axes[1, 1]
    ax.scatter(leverage, student, s=10, alpha=0.6)
    ax.axhline(0, color='gray', linestyle='--', linewidth=1)
    p = result.n_params
    h = np.linspace(max(leverage.min(), 1e-3), min(leverage.max() * 1.05, 0.99), 100)
    for level in (0.5, 1.0):
        bound = np.sqrt(level * p * (1 - h) / h)
        ax.plot(h, bound, color='tab:red', linestyle=':', linewidth=1)
        ax.plot(h, -bound, color='tab:red', linestyle=':', linewidth=1)
    top = np.argsort(infl['cooks_d'].to_numpy())[-3:]
    for idx in top:
        ax.annotate(str(idx), (leverage[idx], student[idx]), fontsize=8)
    ax.set_ylim(min(student.min(), -3) * 1.1, max(student.max(), 3) * 1.1)
    ax.set_xlabel('Leverage')
    ax.set_ylabel('Studentized residuals')
    ax.set_title("Residuals vs Leverage (Cook's D 0.5, 1)")

    fig.suptitle(f"Residual diagnostics: {result.name}")
    fig.tight_layout()
    _save(fig, save_path)
    return fig


def plot_coefficient_forest(result,
                            posterior=None,
                            include_intercept: bool = False,
                            figsize: Tuple[int, int] = (10, 6),
                            title: str = "Coefficient Estimates",
                            save_path: Path = None):
    """
    Forest plot of OLS estimates with 95% confidence intervals.

    Args:
        result: Fitted OLSResult
        posterior: Optional PosteriorResult; its 95% credible intervals are
                   drawn just below the OLS intervals
        include_intercept: Whether to plot the intercept
        figsize: Figure size tuple
        title: Plot title
        save_path: Path to save figure (optional)

    Returns:
        matplotlib Figure object
    """
    params = [c for c in result.columns if include_intercept or c != INTERCEPT]
    ci = result.conf_int().loc[params]
    estimates = result.params.loc[params].to_numpy()
    pvalues = result.pvalues.loc[params].to_numpy()

    fig, ax = plt.subplots(figsize=figsize)
    y_positions = np.arange(len(params))

    for i, (low, high, est) in enumerate(zip(ci['lower'], ci['upper'], estimates)):
        color = 'tab:blue' if est >= 0 else 'tab:red'
        ax.hlines(i, low, high, color=color, linewidth=2, alpha=0.7)
        ax.plot(est, i, 'o', color=color, markersize=7)

    for i, (est, p) in enumerate(zip(estimates, pvalues)):
        marker = '***' if p < 0.01 else '**' if p < 0.05 else '*' if p < 0.1 else ''
        if marker:
            ax.annotate(marker, (est, i), textcoords='offset points', xytext=(5, 4), fontsize=10)

    if posterior is not None:
        summ = posterior.summary().loc[params]
        offset = -0.25
        ax.hlines(y_positions + offset, summ['2.5%'], summ['97.5%'],
                  color='tab:green', linewidth=2, alpha=0.7, label='Posterior 95% CrI')
        ax.plot(summ['mean'], y_positions + offset, 's', color='tab:green', markersize=5)
        ax.legend(loc='best')

    ax.axvline(0, color='gray', linestyle='--', linewidth=1, alpha=0.5)
    ax.set_yticks(y_positions)
    ax.set_yticklabels(params)
    ax.invert_yaxis()
    ax.set_xlabel('Estimate (with 95% CI)')
    ax.set_title(f"{title}: {result.name}")

    plt.tight_layout()
    _save(fig, save_path)
    return fig


def plot_model_comparison(ic_table: pd.DataFrame,
                          metric: str = 'adj_R2',
                          figsize: Tuple[int, int] = (10, 6),
                          title: str = None,
                          save_path: Path = None):
    """
    Bar chart comparing a fit statistic across models.

    Args:
        ic_table: Output of ModelComparisonFramework.information_criteria_table()
        metric: Column to plot ('R2', 'adj_R2', 'AIC', 'BIC')
    """
    table = ic_table.set_index('Model')
    names = list(table.index)
    values = table[metric].to_numpy(dtype=float)

    fig, ax = plt.subplots(figsize=figsize)
    colors = plt.cm.viridis(np.linspace(0.2, 0.8, len(names)))
    bars = ax.bar(names, values, color=colors)

    for bar, val in zip(bars, values):
        ax.annotate(f'{val:.3f}' if abs(val) < 10 else f'{val:.1f}',
                    xy=(bar.get_x() + bar.get_width() / 2, bar.get_height()),
                    xytext=(0, 3), textcoords="offset points",
                    ha='center', va='bottom', fontsize=9)

    # lower is better for information criteria
    best_idx = int(np.argmin(values)) if metric in ('AIC', 'BIC') else int(np.argmax(values))
    bars[best_idx].set_color('green')
    bars[best_idx].set_alpha(0.9)

    ax.set_ylabel(metric)
    ax.set_xlabel('Model')
    ax.set_title(title or f'Model Comparison: {metric}')
    plt.xticks(rotation=45, ha='right')
    plt.tight_layout()
    _save(fig, save_path)
    return fig
