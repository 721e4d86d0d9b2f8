"""
Fit Diagnostics Module
======================

Assumption checks for fitted OLS models and convergence checks for MCMC
fits. Problems are reported and logged, never raised: deciding what to do
about a heavy-tailed residual or a high-leverage respondent is left to the
analyst.

OLS checks:
- Design condition number and variance inflation factors
- Residual normality (Jarque-Bera)
- Heteroskedasticity (Breusch-Pagan, studentized form)
- Influential observations (Cook's distance > 4/n)

MCMC checks:
- R-hat, bulk effective sample size and divergent transitions

Author: Survey Analytics Team
"""

from dataclasses import dataclass, field
from typing import Dict, List, Any

import numpy as np
import pandas as pd
from scipy import stats

from survey_regression.analysis.inspection import variance_inflation_factors
from survey_regression.constants import (
    ALPHA_DEFAULT,
    ESS_THRESHOLD,
    RHAT_THRESHOLD,
    VIF_THRESHOLD,
)
from survey_regression.estimation.ols import OLSResult
from survey_regression.utils.logging_config import get_logger

logger = get_logger(__name__)


# =============================================================================
# OLS DIAGNOSTICS
# =============================================================================

@dataclass
class ResidualDiagnostics:
    """Container for OLS assumption checks."""
    model_name: str
    condition_number: float
    vif: pd.DataFrame
    jarque_bera: float
    jarque_bera_p: float
    breusch_pagan: float
    breusch_pagan_p: float
    influential: List[int] = field(default_factory=list)
    cooks_threshold: float = 0.0
    alpha: float = ALPHA_DEFAULT

    @property
    def residuals_normal(self) -> bool:
        return self.jarque_bera_p >= self.alpha

    @property
    def homoskedastic(self) -> bool:
        return self.breusch_pagan_p >= self.alpha

    @property
    def high_vif(self) -> List[str]:
        return self.vif.index[self.vif['VIF'] > VIF_THRESHOLD].tolist()

    @property
    def issues(self) -> List[str]:
        issues = []
        if not self.residuals_normal:
            issues.append(f"Residuals not normal (Jarque-Bera p={self.jarque_bera_p:.3g})")
        if not self.homoskedastic:
            issues.append(f"Heteroskedastic residuals (Breusch-Pagan p={self.breusch_pagan_p:.3g})")
        if self.high_vif:
            issues.append(f"VIF > {VIF_THRESHOLD:g}: {', '.join(self.high_vif)}")
        if self.influential:
            issues.append(f"{len(self.influential)} influential observation(s) "
                          f"(Cook's D > {self.cooks_threshold:.4f})")
        return issues

    def summary(self) -> str:
        status = "OK" if not self.issues else "CHECK"
        lines = [
            f"Diagnostics for {self.model_name}: {status}",
            f"  Condition number: {self.condition_number:.3g}",
            f"  Jarque-Bera: {self.jarque_bera:.3f} (p={self.jarque_bera_p:.3g})",
            f"  Breusch-Pagan: {self.breusch_pagan:.3f} (p={self.breusch_pagan_p:.3g})",
            f"  Influential observations: {len(self.influential)}",
        ]
        if not self.vif.empty:
            lines.append(f"  Max VIF: {self.vif['VIF'].max():.2f}")
        for issue in self.issues:
            lines.append(f"  - {issue}")
        return "\n".join(lines)


def breusch_pagan(result: OLSResult) -> Dict[str, float]:
    """
    Koenker's studentized Breusch-Pagan test.

    Regress squared residuals on the model's design; LM = n * R2 of that
    auxiliary regression, chi-squared with (p - 1) degrees of freedom.
    """
    X = result.design.X
    e2 = result.resid ** 2
    beta, *_ = np.linalg.lstsq(X, e2, rcond=None)
    aux_resid = e2 - X @ beta
    tss = float(np.sum((e2 - e2.mean()) ** 2))
    r2 = 1.0 - float(aux_resid @ aux_resid) / tss if tss > 0 else 0.0
    lm = result.nobs * r2
    df = result.df_model
    p_value = float(stats.chi2.sf(lm, df)) if df > 0 else float('nan')
    return {'lm': float(lm), 'df': df, 'p_value': p_value}


def influential_observations(result: OLSResult) -> Dict[str, Any]:
    """Rows with Cook's distance above 4/n."""
    threshold = 4.0 / result.nobs
    cooks = result.influence()['cooks_d'].to_numpy()
    rows = np.flatnonzero(cooks > threshold).tolist()
    return {'threshold': threshold, 'rows': rows, 'max_cooks_d': float(cooks.max())}


def diagnose_ols(result: OLSResult, alpha: float = ALPHA_DEFAULT) -> ResidualDiagnostics:
    """
    Run all OLS assumption checks for a fitted model.

    Each failed check is logged as a warning.
    """
    predictors = result.predictor_columns
    if len(predictors) > 1:
        vif = variance_inflation_factors(result.design.to_frame(), predictors)
    else:
        vif = pd.DataFrame(columns=['VIF', 'assessment'])

    jb = stats.jarque_bera(result.resid)
    bp = breusch_pagan(result)
    infl = influential_observations(result)

    diag = ResidualDiagnostics(
        model_name=result.name,
        condition_number=result.condition_number,
        vif=vif,
        jarque_bera=float(jb.statistic),
        jarque_bera_p=float(jb.pvalue),
        breusch_pagan=bp['lm'],
        breusch_pagan_p=bp['p_value'],
        influential=infl['rows'],
        cooks_threshold=infl['threshold'],
        alpha=alpha,
    )

    for issue in diag.issues:
        logger.warning(f"{result.name}: {issue}")
    return diag


# =============================================================================
# MCMC DIAGNOSTICS
# =============================================================================

@dataclass
class SamplerDiagnostics:
    """Container for MCMC convergence diagnostics."""
    rhat: Dict[str, float]
    ess_bulk: Dict[str, float]
    divergences: int
    draws: int
    chains: int

    RHAT_THRESHOLD: float = RHAT_THRESHOLD
    ESS_THRESHOLD: float = ESS_THRESHOLD

    @property
    def max_rhat(self) -> float:
        return max(self.rhat.values()) if self.rhat else float('nan')

    @property
    def min_ess(self) -> float:
        return min(self.ess_bulk.values()) if self.ess_bulk else float('nan')

    @property
    def problematic_params(self) -> List[str]:
        bad = {p for p, r in self.rhat.items() if r > self.RHAT_THRESHOLD}
        bad |= {p for p, e in self.ess_bulk.items() if e < self.ESS_THRESHOLD}
        return sorted(bad)

    @property
    def converged(self) -> bool:
        return self.max_rhat <= self.RHAT_THRESHOLD and self.divergences == 0

    def summary(self) -> str:
        status = "PASS" if self.converged else "FAIL"
        lines = [
            f"Sampler Status: {status}",
            f"  Draws: {self.draws} across {self.chains} chain(s)",
            f"  Max R-hat: {self.max_rhat:.4f} {'OK' if self.max_rhat <= self.RHAT_THRESHOLD else 'HIGH'}",
            f"  Min bulk ESS: {self.min_ess:.0f} {'OK' if self.min_ess >= self.ESS_THRESHOLD else 'LOW'}",
            f"  Divergences: {self.divergences}",
        ]
        if self.problematic_params:
            lines.append(f"  Problematic params: {', '.join(self.problematic_params)}")
        return "\n".join(lines)
