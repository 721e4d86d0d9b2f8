"""
Ordinary Least Squares Engine
=============================

Fits linear models on explicit design matrices (see design.py) and reports
the usual inference:

- Coefficients, standard errors, t statistics, two-sided p-values
- Confidence intervals
- Residuals, fitted values, R2, adjusted R2, overall F test
- Log-likelihood, AIC, BIC (Gaussian errors, sigma profiled out)
- Influence measures: leverage, Cook's distance, studentized residuals

The solve uses a QR decomposition. A rank-deficient or ill-conditioned
design raises SingularDesignError instead of returning arbitrary numbers.

Usage:
    from survey_regression.estimation.ols import fit_ols

    result = fit_ols(df, "overall ~ clean + aroma + value + color")
    print(result.summary())

Author: Survey Analytics Team
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from scipy import linalg, stats

from survey_regression.constants import ALPHA_DEFAULT, CONDITION_THRESHOLD, INTERCEPT
from survey_regression.estimation.design import (
    DesignMatrix,
    ModelSpec,
    build_design_matrix,
    parse_formula,
)
from survey_regression.utils.logging_config import EstimationLogger, get_logger

logger = get_logger(__name__)

SpecLike = Union[str, ModelSpec]


class SingularDesignError(np.linalg.LinAlgError):
    """Raised when the least-squares problem has no unique solution."""


def as_spec(spec: SpecLike, name: Optional[str] = None) -> ModelSpec:
    """Coerce a formula string or ModelSpec to a ModelSpec."""
    if isinstance(spec, ModelSpec):
        return spec if name is None else spec.renamed(name)
    return parse_formula(spec, name=name)


# =============================================================================
# RESULT CONTAINER
# =============================================================================

@dataclass
class OLSResult:
    """Container for an ordinary least squares fit."""
    spec: ModelSpec
    design: DesignMatrix
    params: pd.Series
    bse: pd.Series
    cov_params: pd.DataFrame
    resid: np.ndarray
    fittedvalues: np.ndarray
    hat_diag: np.ndarray
    ssr: float
    centered_tss: float
    condition_number: float
    _influence: Optional[pd.DataFrame] = field(default=None, repr=False)

    @property
    def name(self) -> str:
        return self.spec.label

    @property
    def formula(self) -> str:
        return self.spec.formula

    @property
    def nobs(self) -> int:
        return self.design.n_obs

    @property
    def n_params(self) -> int:
        """Number of coefficients including the intercept."""
        return self.design.n_params

    @property
    def df_model(self) -> int:
        return self.n_params - 1

    @property
    def df_resid(self) -> int:
        return self.nobs - self.n_params

    @property
    def columns(self) -> List[str]:
        return self.design.columns

    @property
    def predictor_columns(self) -> List[str]:
        return self.design.predictor_columns

    @property
    def scale(self) -> float:
        """Residual variance estimate, SSR / df_resid."""
        return self.ssr / self.df_resid

    @property
    def tvalues(self) -> pd.Series:
        return self.params / self.bse

    @property
    def pvalues(self) -> pd.Series:
        return pd.Series(2 * stats.t.sf(np.abs(self.tvalues), self.df_resid),
                         index=self.params.index)

    @property
    def rsquared(self) -> float:
        return 1.0 - self.ssr / self.centered_tss

    @property
    def rsquared_adj(self) -> float:
        return 1.0 - (1.0 - self.rsquared) * (self.nobs - 1) / self.df_resid

    @property
    def fvalue(self) -> float:
        """Overall F statistic against the intercept-only model."""
        if self.df_model == 0:
            return float('nan')
        explained = (self.centered_tss - self.ssr) / self.df_model
        return explained / self.scale

    @property
    def f_pvalue(self) -> float:
        if self.df_model == 0:
            return float('nan')
        return float(stats.f.sf(self.fvalue, self.df_model, self.df_resid))

    @property
    def llf(self) -> float:
        """Gaussian log-likelihood at the ML variance."""
        n = self.nobs
        return -0.5 * n * (np.log(2 * np.pi) + np.log(self.ssr / n) + 1.0)

    @property
    def aic(self) -> float:
        """Akaike Information Criterion: AIC = 2K - 2LL"""
        return 2 * self.n_params - 2 * self.llf

    @property
    def bic(self) -> float:
        """Bayesian Information Criterion: BIC = K*ln(N) - 2LL"""
        return self.n_params * np.log(self.nobs) - 2 * self.llf

    def conf_int(self, alpha: float = ALPHA_DEFAULT) -> pd.DataFrame:
        """
        Confidence intervals for the coefficients.

        Returns:
            DataFrame with 'lower' and 'upper' columns indexed by coefficient
        """
        q = stats.t.ppf(1 - alpha / 2, self.df_resid)
        return pd.DataFrame({
            'lower': self.params - q * self.bse,
            'upper': self.params + q * self.bse,
        })

    def coef_table(self, alpha: float = ALPHA_DEFAULT) -> pd.DataFrame:
        """Coefficient table: estimate, SE, t, p and CI bounds."""
        ci = self.conf_int(alpha)
        pct = 100 * (1 - alpha)
        return pd.DataFrame({
            'coef': self.params,
            'std_err': self.bse,
            't': self.tvalues,
            'p_value': self.pvalues,
            f'ci_lower_{pct:g}': ci['lower'],
            f'ci_upper_{pct:g}': ci['upper'],
        })

    def influence(self) -> pd.DataFrame:
        """
        Per-observation influence measures.

        Returns:
            DataFrame with leverage, studentized residual and Cook's distance
        """
        if self._influence is None:
            h = self.hat_diag
            one_minus_h = np.clip(1.0 - h, np.finfo(float).eps, None)
            student = self.resid / np.sqrt(self.scale * one_minus_h)
            cooks = (student ** 2 / self.n_params) * (h / one_minus_h)
            self._influence = pd.DataFrame({
                'leverage': h,
                'student_resid': student,
                'cooks_d': cooks,
            })
        return self._influence

    def predict(self, df: pd.DataFrame) -> np.ndarray:
        """Predict the outcome for new rows with the same columns."""
        design = build_design_matrix(df, self.spec)
        if design.columns != self.columns:
            raise ValueError(
                f"Design columns differ from the fitted model: {design.columns} vs {self.columns}"
            )
        return design.X @ self.params.to_numpy()

    def summary(self, alpha: float = ALPHA_DEFAULT) -> str:
        """Render a text summary of the fit."""
        lines = [
            "=" * 78,
            f"OLS Regression Results: {self.name}",
            "=" * 78,
            f"Formula:        {self.formula}",
            f"Observations:   {self.nobs:<10d} Df residuals: {self.df_resid:<8d} Df model: {self.df_model}",
            f"R-squared:      {self.rsquared:<10.4f} Adj. R-squared: {self.rsquared_adj:.4f}",
            f"F-statistic:    {self.fvalue:<10.3f} Prob (F):       {self.f_pvalue:.3g}",
            f"Log-likelihood: {self.llf:<10.2f} AIC: {self.aic:<10.2f} BIC: {self.bic:.2f}",
            "-" * 78,
            self.coef_table(alpha).to_string(float_format=lambda x: f'{x:.4f}'),
            "=" * 78,
        ]
        return "\n".join(lines)


# =============================================================================
# FITTING
# =============================================================================

def fit_design(design: DesignMatrix, verbose: bool = False) -> OLSResult:
    """
    Fit OLS on a prepared design matrix.

    Raises:
        SingularDesignError: If X is rank deficient or ill-conditioned
    """
    spec = design.spec
    est_log = EstimationLogger(spec.label, verbose=verbose)
    est_log.start("OLS")

    X, y = design.X, design.y
    n, p = X.shape

    if n <= p:
        reason = f"{n} observations for {p} coefficients"
        est_log.failed(reason)
        raise SingularDesignError(f"{spec.label}: not enough observations ({reason})")

    rank = np.linalg.matrix_rank(X)
    if rank < p:
        reason = f"design matrix has rank {rank} < {p} columns (perfect collinearity)"
        est_log.failed(reason)
        raise SingularDesignError(f"{spec.label}: {reason}; columns: {design.columns}")

    cond = float(np.linalg.cond(X))
    if not np.isfinite(cond) or cond > CONDITION_THRESHOLD:
        reason = f"design matrix is ill-conditioned (condition number {cond:.3g})"
        est_log.failed(reason)
        raise SingularDesignError(f"{spec.label}: {reason}")

    Q, R = np.linalg.qr(X)
    beta = linalg.solve_triangular(R, Q.T @ y)
    R_inv = linalg.solve_triangular(R, np.eye(p))
    xtx_inv = R_inv @ R_inv.T

    fitted = X @ beta
    resid = y - fitted
    ssr = float(resid @ resid)
    centered_tss = float(np.sum((y - y.mean()) ** 2))
    if centered_tss == 0:
        est_log.failed("outcome is constant")
        raise ValueError(f"{spec.label}: outcome '{spec.outcome}' is constant")

    sigma2 = ssr / (n - p)
    cov = xtx_inv * sigma2
    hat_diag = np.sum(Q ** 2, axis=1)

    params = pd.Series(beta, index=design.columns, name='coef')
    result = OLSResult(
        spec=spec,
        design=design,
        params=params,
        bse=pd.Series(np.sqrt(np.diag(cov)), index=design.columns, name='std_err'),
        cov_params=pd.DataFrame(cov, index=design.columns, columns=design.columns),
        resid=resid,
        fittedvalues=fitted,
        hat_diag=hat_diag,
        ssr=ssr,
        centered_tss=centered_tss,
        condition_number=cond,
    )

    est_log.fitted(result.rsquared, result.rsquared_adj, p, n, aic=result.aic)
    est_log.parameters(params.to_dict(), result.bse.to_dict())
    return result


def fit_ols(df: pd.DataFrame, spec: SpecLike, name: Optional[str] = None,
            verbose: bool = False) -> OLSResult:
    """
    Fit an OLS model.

    Args:
        df: Data table
        spec: ModelSpec or formula string
        name: Optional label for reports
        verbose: Print progress

    Returns:
        OLSResult
    """
    spec = as_spec(spec, name)
    return fit_design(build_design_matrix(df, spec), verbose=verbose)


def fit_sequence(df: pd.DataFrame, specs: Union[Sequence[SpecLike], Dict[str, SpecLike]],
                 verbose: bool = False) -> 'OrderedDict[str, OLSResult]':
    """
    Fit a sequence of models in order.

    Args:
        df: Data table
        specs: List of specs/formulas, or dict of name -> spec/formula

    Returns:
        OrderedDict mapping model label to OLSResult
    """
    if isinstance(specs, dict):
        items = [as_spec(s, name) for name, s in specs.items()]
    else:
        items = [as_spec(s) for s in specs]

    results: 'OrderedDict[str, OLSResult]' = OrderedDict()
    for spec in items:
        if spec.label in results:
            raise ValueError(f"Duplicate model label in sequence: {spec.label}")
        results[spec.label] = fit_ols(df, spec, verbose=verbose)
        logger.info(f"{spec.label}: {spec.formula} -> R2={results[spec.label].rsquared:.4f}")
    return results


def non_intercept(series: pd.Series) -> pd.Series:
    """Drop the intercept entry from a coefficient-indexed series."""
    return series.drop(labels=[INTERCEPT], errors='ignore')
