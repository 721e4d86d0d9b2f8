"""
Model Factory for Satisfaction Regressions
==========================================

Provides a unified interface for building and fitting the named model
specifications used in the survey analysis.

Each registered builder returns a ModelSpec. The standard sequence refines
the model step by step: every model adds, replaces or collapses terms of
the previous one.

Usage:
    from survey_regression.estimation.specifications import ModelFactory

    # List available models
    ModelFactory.list_models()

    # Create a specific model
    spec = ModelFactory.create('m2')

    # Fit it
    result = ModelFactory.estimate('m2', df)

    # Fit the whole sequence
    table = ModelFactory.run_comparison(['m1', 'm2', 'm3'], df)

Author: Survey Analytics Team
"""

from collections import OrderedDict
from typing import Callable, Dict, List, Optional

import pandas as pd

from survey_regression.constants import ITEM_COLUMNS, OUTCOME_COLUMN, STD_SUFFIX
from survey_regression.estimation.design import ModelSpec, Term
from survey_regression.estimation.ols import OLSResult, fit_ols, fit_sequence
from survey_regression.utils.logging_config import get_logger

logger = get_logger(__name__)


class ModelFactory:
    """Factory class for creating and fitting named model specifications."""

    # Registry of available models
    _registry: Dict[str, Callable[[], ModelSpec]] = {}
    _descriptions: Dict[str, str] = {}

    @classmethod
    def register(cls, name: str, description: str = ""):
        """Decorator to register a spec builder."""
        def decorator(func: Callable[[], ModelSpec]):
            cls._registry[name] = func
            cls._descriptions[name] = description or (func.__doc__ or "").strip()
            return func
        return decorator

    @classmethod
    def list_models(cls) -> pd.DataFrame:
        """List all available models with their formulas and descriptions."""
        data = [
            {
                'Model': name,
                'Formula': cls._registry[name]().formula,
                'Description': cls._descriptions.get(name, ''),
            }
            for name in sorted(cls._registry.keys())
        ]
        return pd.DataFrame(data)

    @classmethod
    def create(cls, name: str) -> ModelSpec:
        """
        Create a model specification.

        Args:
            name: Model name (use list_models() to see available)

        Returns:
            ModelSpec labelled with the registry name

        Raises:
            ValueError: If model name not found
        """
        if name not in cls._registry:
            available = ', '.join(sorted(cls._registry.keys()))
            raise ValueError(f"Model '{name}' not found. Available: {available}")

        return cls._registry[name]().renamed(name)

    @classmethod
    def estimate(cls, name: str, df: pd.DataFrame, verbose: bool = False) -> OLSResult:
        """Create and fit a registered model by OLS."""
        return fit_ols(df, cls.create(name), verbose=verbose)

    @classmethod
    def run_comparison(cls, model_names: List[str], df: pd.DataFrame,
                       verbose: bool = False) -> pd.DataFrame:
        """
        Fit several registered models and tabulate their fit statistics.

        Returns:
            DataFrame with one row per model (R2, adj. R2, K, AIC, BIC)
        """
        results = fit_sequence(df, [cls.create(name) for name in model_names], verbose=verbose)
        rows = []
        for name, res in results.items():
            rows.append({
                'Model': name,
                'R2': res.rsquared,
                'adj_R2': res.rsquared_adj,
                'K': res.n_params,
                'AIC': res.aic,
                'BIC': res.bic,
            })
        return pd.DataFrame(rows)


# =============================================================================
# REGISTER STANDARD MODELS
# =============================================================================

@ModelFactory.register('m1', 'Single sub-score')
def model_m1() -> ModelSpec:
    return ModelSpec(outcome=OUTCOME_COLUMN, terms=('clean',))


@ModelFactory.register('m2', 'All four satisfaction sub-scores')
def model_m2() -> ModelSpec:
    return model_m1().add(*ITEM_COLUMNS[1:])


@ModelFactory.register('m3', 'Sub-scores plus log distance, child count and promo')
def model_m3() -> ModelSpec:
    return model_m2().add('logdist', 'num_child', 'promo')


@ModelFactory.register('m4', 'Child count as a factor')
def model_m4() -> ModelSpec:
    return model_m3().replace('num_child', 'num_child_factor')


@ModelFactory.register('m5', 'Child levels collapsed to a more-than-two indicator')
def model_m5() -> ModelSpec:
    return model_m4().replace('num_child_factor', 'more_than_2child')


@ModelFactory.register('m6', 'Value effect allowed to differ for large families')
def model_m6() -> ModelSpec:
    return model_m5().add('value:more_than_2child')


STANDARD_SEQUENCE = ['m1', 'm2', 'm3', 'm4', 'm5', 'm6']


def standard_model_sequence() -> 'OrderedDict[str, ModelSpec]':
    """The refinement sequence m1..m6 as name -> ModelSpec."""
    return OrderedDict((name, ModelFactory.create(name)) for name in STANDARD_SEQUENCE)


def standardized_spec(spec: ModelSpec, df: pd.DataFrame,
                      suffix: str = STD_SUFFIX,
                      name: Optional[str] = None) -> ModelSpec:
    """
    Swap every numeric predictor for its standardized copy.

    A factor 'x' becomes 'x<suffix>' when that column exists in df, including
    inside interactions. Categorical, boolean and outcome columns are kept,
    so coefficients read as effects of a one-SD change on the outcome scale.

    Args:
        spec: Specification on the raw columns
        df: Table produced by inspect_survey
        suffix: Suffix of the standardized columns
        name: Label of the new spec (default: '<label><suffix>')

    Raises:
        ValueError: If no predictor has a standardized copy
    """
    def swap(factor: str) -> str:
        target = f"{factor}{suffix}"
        if factor in spec.categorical or target not in df.columns:
            return factor
        return target

    terms = [Term(tuple(swap(f) for f in term.factors)) for term in spec.terms]
    if [t.name for t in terms] == spec.term_names:
        raise ValueError(f"{spec.label}: no predictor has a '{suffix}' column")
    return ModelSpec(outcome=spec.outcome, terms=tuple(terms),
                     categorical=spec.categorical,
                     name=name or f"{spec.label}{suffix}")
