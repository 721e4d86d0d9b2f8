"""Estimation module: design matrices, OLS, model comparison, Bayesian refit.

The Bayesian estimator imports PyMC, so it is loaded from
survey_regression.estimation.bayesian directly rather than here.
"""
from .design import Term, ModelSpec, DesignMatrix, parse_formula, build_design_matrix, expand_factor
from .ols import OLSResult, SingularDesignError, fit_ols, fit_design, fit_sequence
from .specifications import ModelFactory, standard_model_sequence, standardized_spec, STANDARD_SEQUENCE
from .model_comparison import (
    FTestResult,
    ComparisonResult,
    ModelComparisonFramework,
    ModelComparisonSummary,
    is_nested,
    f_test,
    compare_models,
    anova_table,
    interpret_aic_difference,
)
from .diagnostics import ResidualDiagnostics, SamplerDiagnostics, diagnose_ols
