"""
Model Comparison Framework for Linear Models
============================================

Comparison tools for the OLS model sequence.

Features:
- R2 and adjusted R2 differences between any two models
- Nested F tests on the residual sum of squares
- Sequential ANOVA tables for a nested chain
- Information Criteria: AIC, BIC with delta values and Akaike weights
- Selection policy: keep the simpler model unless a nested F test says
  the extra terms explain significantly more variance

Two models are nested when the design columns of one are a strict subset
of the other's, for the same outcome and the same observations.

References:
- Burnham, K.P. & Anderson, D.R. (2002). Model Selection and Multimodel Inference
- Greene, W.H. (2012). Econometric Analysis, ch. 5

Author: Survey Analytics Team
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy import stats

from survey_regression.constants import ALPHA_DEFAULT
from survey_regression.estimation.ols import OLSResult
from survey_regression.utils.logging_config import ComparisonLogger, get_logger

logger = get_logger(__name__)

# Adjusted R2 differences below this are treated as ties
ADJ_R2_TOL = 1e-12


@dataclass
class FTestResult:
    """Result from a nested-model F test."""
    restricted_model: str
    unrestricted_model: str
    f_statistic: float
    df_num: int
    df_denom: int
    p_value: float
    ssr_restricted: float
    ssr_unrestricted: float
    alpha: float = ALPHA_DEFAULT

    @property
    def significant(self) -> bool:
        return self.p_value < self.alpha

    @property
    def significant_05(self) -> bool:
        return self.p_value < 0.05

    @property
    def significant_01(self) -> bool:
        return self.p_value < 0.01

    def __str__(self) -> str:
        sig = "***" if self.significant_01 else ("**" if self.significant_05 else "")
        return (f"F({self.restricted_model} vs {self.unrestricted_model}): "
                f"F={self.f_statistic:.3f}, df=({self.df_num}, {self.df_denom}), "
                f"p={self.p_value:.4g}{sig}")


@dataclass
class ComparisonResult:
    """Pairwise comparison of two fitted models."""
    model_a: str
    model_b: str
    rsquared_a: float
    rsquared_b: float
    rsquared_adj_a: float
    rsquared_adj_b: float
    n_params_a: int
    n_params_b: int
    nested: bool
    preferred: str
    reason: str
    f_test: Optional[FTestResult] = None

    @property
    def delta_rsquared(self) -> float:
        """R2 of model b minus R2 of model a."""
        return self.rsquared_b - self.rsquared_a

    @property
    def delta_rsquared_adj(self) -> float:
        return self.rsquared_adj_b - self.rsquared_adj_a

    def __str__(self) -> str:
        lines = [
            f"{self.model_a} vs {self.model_b}: "
            f"R2 {self.rsquared_a:.4f} -> {self.rsquared_b:.4f} ({self.delta_rsquared:+.4f}), "
            f"adj. R2 {self.rsquared_adj_a:.4f} -> {self.rsquared_adj_b:.4f} "
            f"({self.delta_rsquared_adj:+.4f})",
        ]
        if self.f_test is not None:
            lines.append(f"  {self.f_test}")
        lines.append(f"  Preferred: {self.preferred} ({self.reason})")
        return "\n".join(lines)


# =============================================================================
# PAIRWISE TESTS
# =============================================================================

def is_nested(restricted: OLSResult, unrestricted: OLSResult) -> bool:
    """
    True if `restricted` is nested in `unrestricted`.

    Requires the same outcome values and a strict subset of design columns.
    """
    if restricted.spec.outcome != unrestricted.spec.outcome:
        return False
    if restricted.nobs != unrestricted.nobs:
        return False
    if not np.array_equal(restricted.design.y, unrestricted.design.y):
        return False
    return set(restricted.columns) < set(unrestricted.columns)


def f_test(restricted: OLSResult, unrestricted: OLSResult,
           alpha: float = ALPHA_DEFAULT,
           labels: Optional[Tuple[str, str]] = None) -> FTestResult:
    """
    F test of a restricted model against a nested larger model.

    H0: the extra terms of the larger model all have zero coefficients

    F = ((SSR_r - SSR_u) / (df_r - df_u)) / (SSR_u / df_u)

    Args:
        restricted: Smaller model
        unrestricted: Larger model
        alpha: Significance level
        labels: Names to report the two models under (default: their labels)

    Raises:
        ValueError: If the models are not nested
    """
    if not is_nested(restricted, unrestricted):
        raise ValueError(
            f"'{restricted.name}' is not nested in '{unrestricted.name}': "
            f"F test requires the same outcome and observations and a strict "
            f"subset of design columns"
        )

    name_r, name_u = labels or (restricted.name, unrestricted.name)
    df_num = restricted.df_resid - unrestricted.df_resid
    df_denom = unrestricted.df_resid
    ss_diff = restricted.ssr - unrestricted.ssr
    f_stat = (ss_diff / df_num) / (unrestricted.ssr / df_denom)
    p_value = float(stats.f.sf(f_stat, df_num, df_denom))

    return FTestResult(
        restricted_model=name_r,
        unrestricted_model=name_u,
        f_statistic=float(f_stat),
        df_num=df_num,
        df_denom=df_denom,
        p_value=p_value,
        ssr_restricted=restricted.ssr,
        ssr_unrestricted=unrestricted.ssr,
        alpha=alpha,
    )


def compare_models(a: OLSResult, b: OLSResult, alpha: float = ALPHA_DEFAULT,
                   labels: Optional[Tuple[str, str]] = None) -> ComparisonResult:
    """
    Compare two fitted models and pick one.

    Policy: prefer the model with fewer coefficients unless a nested F test
    is significant at alpha. Non-nested pairs go to the higher adjusted R2,
    with ties going to the simpler model.

    Args:
        a: First model
        b: Second model
        alpha: Significance level for the F test
        labels: Names for a and b in the result (default: their labels)

    Returns:
        ComparisonResult; `preferred` is one of the two names
    """
    name_a, name_b = labels or (a.name, b.name)
    f_res = None
    if is_nested(a, b):
        small, large = (a, name_a), (b, name_b)
    elif is_nested(b, a):
        small, large = (b, name_b), (a, name_a)
    else:
        small = large = None

    if small is not None:
        f_res = f_test(small[0], large[0], alpha=alpha, labels=(small[1], large[1]))
        if f_res.significant:
            preferred = large[1]
            reason = f"nested F test significant (p={f_res.p_value:.4g} < {alpha})"
        else:
            preferred = small[1]
            reason = f"nested F test not significant (p={f_res.p_value:.4g}); simpler model kept"
    else:
        diff = b.rsquared_adj - a.rsquared_adj
        if abs(diff) <= ADJ_R2_TOL:
            preferred = name_b if b.n_params < a.n_params else name_a
            reason = "non-nested, adjusted R2 tied; simpler model kept"
        else:
            preferred = name_b if diff > 0 else name_a
            reason = "non-nested, higher adjusted R2"

    return ComparisonResult(
        model_a=name_a,
        model_b=name_b,
        rsquared_a=a.rsquared,
        rsquared_b=b.rsquared,
        rsquared_adj_a=a.rsquared_adj,
        rsquared_adj_b=b.rsquared_adj,
        n_params_a=a.n_params,
        n_params_b=b.n_params,
        nested=f_res is not None,
        preferred=preferred,
        reason=reason,
        f_test=f_res,
    )


def anova_table(*models: OLSResult) -> pd.DataFrame:
    """
    Sequential ANOVA table for an increasing chain of nested models.

    The residual variance of the largest (last) model is the scale for
    every F statistic, as in R's anova() and statsmodels' anova_lm.

    Returns:
        DataFrame indexed by model name with df_resid, ssr, df_diff,
        ss_diff, F and Pr(>F)

    Raises:
        ValueError: If fewer than two models are given or the chain is not nested
    """
    if len(models) < 2:
        raise ValueError("anova_table needs at least two models")
    for smaller, larger in zip(models[:-1], models[1:]):
        if not is_nested(smaller, larger):
            raise ValueError(f"'{smaller.name}' is not nested in '{larger.name}'")

    scale = models[-1].scale
    rows = []
    previous = None
    for model in models:
        row = {'model': model.name, 'df_resid': model.df_resid, 'ssr': model.ssr,
               'df_diff': np.nan, 'ss_diff': np.nan, 'F': np.nan, 'Pr(>F)': np.nan}
        if previous is not None:
            df_diff = previous.df_resid - model.df_resid
            ss_diff = previous.ssr - model.ssr
            f_stat = (ss_diff / df_diff) / scale
            row.update({
                'df_diff': df_diff,
                'ss_diff': ss_diff,
                'F': f_stat,
                'Pr(>F)': float(stats.f.sf(f_stat, df_diff, models[-1].df_resid)),
            })
        rows.append(row)
        previous = model
    return pd.DataFrame(rows).set_index('model')


def interpret_aic_difference(delta: float) -> str:
    """Burnham & Anderson rule of thumb for an AIC difference."""
    delta = abs(delta)
    if delta <= 2:
        return "substantial support"
    if delta <= 4:
        return "some support"
    if delta <= 7:
        return "considerably less support"
    if delta <= 10:
        return "little support"
    return "essentially no support"


# =============================================================================
# FRAMEWORK
# =============================================================================

@dataclass
class ModelComparisonSummary:
    """Complete model comparison results."""
    models: Dict[str, OLSResult]
    f_tests: List[FTestResult]
    comparisons: List[ComparisonResult]
    ic_table: pd.DataFrame
    best_by_aic: str
    best_by_bic: str
    best_by_adj_r2: str
    selected: Optional[str] = None
    anova: Optional[pd.DataFrame] = field(default=None, repr=False)


class ModelComparisonFramework:
    """
    Model comparison framework for the OLS sequence.

    Example:
        >>> framework = ModelComparisonFramework()
        >>> for result in fit_sequence(df, specs).values():
        ...     framework.add_model(result)
        >>> framework.compare_all(baseline='m1')
        >>> framework.print_report()
    """

    def __init__(self, alpha: float = ALPHA_DEFAULT, verbose: bool = False):
        self.alpha = alpha
        self.models: Dict[str, OLSResult] = {}
        self._log = ComparisonLogger(verbose=verbose)
        self._results: Optional[ModelComparisonSummary] = None

    def add_model(self, result: OLSResult, name: Optional[str] = None) -> None:
        """
        Add a fitted model to the comparison set.

        Args:
            result: Fitted OLSResult
            name: Key to store it under (default: the model's label)
        """
        key = name or result.name
        self.models[key] = result
        self._results = None
        self._log.model_result(key, result.rsquared, result.rsquared_adj,
                               result.n_params, aic=result.aic)

    def add_models(self, results: Union[Dict[str, OLSResult], Sequence[OLSResult]]) -> None:
        if isinstance(results, dict):
            for name, res in results.items():
                self.add_model(res, name)
        else:
            for res in results:
                self.add_model(res)

    def f_test(self, restricted: str, unrestricted: str) -> FTestResult:
        """F test between two stored models by name."""
        res = f_test(self.models[restricted], self.models[unrestricted], alpha=self.alpha,
                     labels=(restricted, unrestricted))
        self._log.f_test(restricted, unrestricted, res.f_statistic,
                         res.df_num, res.df_denom, res.p_value)
        return res

    def compare(self, a: str, b: str) -> ComparisonResult:
        return compare_models(self.models[a], self.models[b], alpha=self.alpha, labels=(a, b))

    def information_criteria_table(self) -> pd.DataFrame:
        """
        Information criteria table with delta values and Akaike weights.

        Returns:
            DataFrame sorted by AIC, one row per model
        """
        rows = []
        for name, model in self.models.items():
            rows.append({
                'Model': name,
                'R2': model.rsquared,
                'adj_R2': model.rsquared_adj,
                'LL': model.llf,
                'K': model.n_params,
                'AIC': model.aic,
                'BIC': model.bic,
            })

        df = pd.DataFrame(rows)

        for ic in ['AIC', 'BIC']:
            df[f'Δ{ic}'] = df[ic] - df[ic].min()

        weights = np.exp(-0.5 * df['ΔAIC'].values)
        df['AIC_weight'] = weights / weights.sum()
        df['AIC_support'] = [interpret_aic_difference(d) for d in df['ΔAIC']]

        df = df.sort_values('AIC')
        df['Rank_AIC'] = range(1, len(df) + 1)
        df['Rank_BIC'] = df['BIC'].rank(method='min').astype(int)
        return df.reset_index(drop=True)

    def select_model(self, sequence: Optional[List[str]] = None) -> str:
        """
        Walk a sequence of models applying the selection policy pairwise.

        The current choice is compared with each next model; the preferred
        one of the pair carries forward.

        Args:
            sequence: Model names in refinement order (default: insertion order)

        Returns:
            Name of the selected model
        """
        if sequence is None:
            sequence = list(self.models.keys())
        if not sequence:
            raise ValueError("No models to select from")

        current = sequence[0]
        for candidate in sequence[1:]:
            cmp = self.compare(current, candidate)
            logger.info(f"{current} vs {candidate}: preferred {cmp.preferred} ({cmp.reason})")
            if cmp.f_test is not None:
                self._log.f_test(cmp.f_test.restricted_model, cmp.f_test.unrestricted_model,
                                 cmp.f_test.f_statistic, cmp.f_test.df_num,
                                 cmp.f_test.df_denom, cmp.f_test.p_value)
            current = cmp.preferred

        self._log.best_model(current, "sequential selection")
        return current

    def compare_all(self, baseline: Optional[str] = None) -> ModelComparisonSummary:
        """
        Run all comparisons.

        Args:
            baseline: Baseline model for F tests (default: fewest coefficients)

        Returns:
            ModelComparisonSummary
        """
        if not self.models:
            raise ValueError("No models added")

        if baseline is None:
            baseline = min(self.models.keys(), key=lambda m: self.models[m].n_params)

        self._log.header()

        # F tests vs baseline, for models that nest it
        f_tests = []
        base = self.models[baseline]
        for name, model in self.models.items():
            if name != baseline and is_nested(base, model):
                f_tests.append(self.f_test(baseline, name))

        names = list(self.models.keys())
        comparisons = [self.compare(a, b) for a, b in zip(names[:-1], names[1:])]

        ic_table = self.information_criteria_table()
        best_adj = max(names, key=lambda m: self.models[m].rsquared_adj)

        anova = None
        ordered = [self.models[n] for n in names]
        if len(ordered) > 1 and all(is_nested(s, l) for s, l in zip(ordered[:-1], ordered[1:])):
            anova = anova_table(*ordered)

        self._results = ModelComparisonSummary(
            models=dict(self.models),
            f_tests=f_tests,
            comparisons=comparisons,
            ic_table=ic_table,
            best_by_aic=ic_table.iloc[0]['Model'],
            best_by_bic=ic_table.sort_values('BIC').iloc[0]['Model'],
            best_by_adj_r2=best_adj,
            selected=self.select_model(names),
            anova=anova,
        )
        return self._results

    def print_report(self) -> None:
        """Print formatted comparison report."""
        if self._results is None:
            self._results = self.compare_all()
        res = self._results

        print("\n" + "=" * 80)
        print("MODEL COMPARISON REPORT")
        print("=" * 80)

        print("\n" + "-" * 80)
        print("FIT STATISTICS AND INFORMATION CRITERIA")
        print("-" * 80)
        cols = ['Model', 'K', 'R2', 'adj_R2', 'AIC', 'ΔAIC', 'BIC', 'ΔBIC', 'AIC_weight']
        print(res.ic_table[cols].to_string(index=False, float_format=lambda x: f'{x:.4f}'))
        print(f"\nBest by AIC: {res.best_by_aic}")
        print(f"Best by BIC: {res.best_by_bic}")
        print(f"Best by adj. R2: {res.best_by_adj_r2}")

        if res.f_tests:
            print("\n" + "-" * 80)
            print("NESTED F TESTS vs Baseline")
            print("-" * 80)
            for ft in res.f_tests:
                print(ft)

        if res.comparisons:
            print("\n" + "-" * 80)
            print("SEQUENTIAL COMPARISONS")
            print("-" * 80)
            for cmp in res.comparisons:
                print(cmp)

        if res.anova is not None:
            print("\n" + "-" * 80)
            print("ANOVA")
            print("-" * 80)
            print(res.anova.to_string(float_format=lambda x: f'{x:.4f}'))

        print(f"\nSelected model: {res.selected}")
        print("\n" + "=" * 80)
