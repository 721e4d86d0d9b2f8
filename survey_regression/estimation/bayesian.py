"""
Bayesian Linear Regression
==========================

Refits an OLS specification by MCMC (PyMC NUTS) and reports posterior
summaries instead of p-values: a coefficient is "credibly non-zero" when
its 95% credible interval excludes zero.

The sampler works on a standardized parameterisation (outcome and every
non-intercept design column centred and scaled) with weak priors:

    alpha ~ Normal(0, 10)
    beta  ~ Normal(0, 10)     one per design column
    sigma ~ HalfNormal(10)
    y_z   ~ Normal(alpha + X_z beta, sigma)

Draws are mapped back to the original predictor scale before summarising,
so posterior means are directly comparable with OLS estimates.

Usage:
    from survey_regression.estimation.bayesian import fit_bayesian

    post = fit_bayesian(df, spec, draws=10000, seed=555)
    print(post.summary())
    print(post.compare_with_ols(ols_result))

Author: Survey Analytics Team
"""

import math
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

import arviz as az
import numpy as np
import pandas as pd
import pymc as pm

from survey_regression.constants import (
    ALPHA_DEFAULT,
    INTERCEPT,
    N_CHAINS_DEFAULT,
    N_POSTERIOR_DRAWS,
    N_TUNE_DEFAULT,
    PRIOR_SCALE,
    SEED_DEFAULT,
)
from survey_regression.estimation.design import ModelSpec, build_design_matrix
from survey_regression.estimation.diagnostics import SamplerDiagnostics
from survey_regression.estimation.ols import OLSResult, as_spec
from survey_regression.utils.logging_config import EstimationLogger, get_logger

logger = get_logger(__name__)


@dataclass
class PosteriorResult:
    """Posterior draws on the original predictor scale."""
    spec: ModelSpec
    draws: pd.DataFrame
    sigma_draws: np.ndarray
    diagnostics: SamplerDiagnostics
    idata: Any = field(default=None, repr=False)

    @property
    def name(self) -> str:
        return self.spec.label

    @property
    def columns(self) -> List[str]:
        return list(self.draws.columns)

    @property
    def n_draws(self) -> int:
        return len(self.draws)

    @property
    def posterior_mean(self) -> pd.Series:
        return self.draws.mean()

    def summary(self, alpha: float = ALPHA_DEFAULT) -> pd.DataFrame:
        """
        Posterior summary per coefficient, plus sigma.

        Returns:
            DataFrame with mean, sd, lower/upper credible bounds and
            'excludes_zero'. Default bounds are the 2.5% and 97.5% quantiles.
        """
        lo_q, hi_q = alpha / 2, 1 - alpha / 2
        lo_name, hi_name = f"{100 * lo_q:g}%", f"{100 * hi_q:g}%"

        table = pd.concat([self.draws, pd.Series(self.sigma_draws, name='sigma')], axis=1)
        out = pd.DataFrame({
            'mean': table.mean(),
            'sd': table.std(ddof=1),
            lo_name: table.quantile(lo_q),
            hi_name: table.quantile(hi_q),
        })
        out['excludes_zero'] = (out[lo_name] > 0) | (out[hi_name] < 0)
        return out

    def compare_with_ols(self, ols: OLSResult, alpha: float = ALPHA_DEFAULT) -> pd.DataFrame:
        """
        Put posterior means next to the OLS estimates and confidence intervals.

        Raises:
            ValueError: If the two fits have different design columns
        """
        if list(ols.columns) != self.columns:
            raise ValueError(
                f"Coefficient mismatch between OLS ({ols.columns}) and posterior ({self.columns})"
            )
        ci = ols.conf_int(alpha)
        post = self.summary(alpha).loc[self.columns]
        out = pd.DataFrame({
            'ols_coef': ols.params,
            'ols_lower': ci['lower'],
            'ols_upper': ci['upper'],
            'post_mean': post['mean'],
            'post_sd': post['sd'],
        })
        out['within_ols_ci'] = (out['post_mean'] >= out['ols_lower']) & (out['post_mean'] <= out['ols_upper'])
        return out

    def print_report(self) -> None:
        print("\n" + "=" * 70)
        print(f"BAYESIAN REGRESSION: {self.name}")
        print("=" * 70)
        print(f"Formula: {self.spec.formula}")
        print(f"Posterior draws: {self.n_draws}")
        print(self.diagnostics.summary())
        print("-" * 70)
        print(self.summary().to_string(float_format=lambda x: f'{x:.4f}'))
        print("=" * 70)


def _standardize_design(X: np.ndarray, y: np.ndarray, columns: List[str]):
    Xp = X[:, 1:]
    means = Xp.mean(axis=0)
    scales = Xp.std(axis=0, ddof=1)
    constant = [c for c, s in zip(columns[1:], scales) if s == 0]
    if constant:
        raise ValueError(f"Cannot standardize constant design columns: {constant}")
    y_mean, y_scale = float(y.mean()), float(y.std(ddof=1))
    if y_scale == 0:
        raise ValueError("Outcome is constant")
    return (Xp - means) / scales, (y - y_mean) / y_scale, means, scales, y_mean, y_scale


def fit_bayesian(df: pd.DataFrame, spec: Union[str, ModelSpec],
                 draws: int = N_POSTERIOR_DRAWS,
                 tune: int = N_TUNE_DEFAULT,
                 chains: int = N_CHAINS_DEFAULT,
                 seed: Optional[int] = SEED_DEFAULT,
                 target_accept: float = 0.9,
                 name: Optional[str] = None,
                 verbose: bool = False) -> PosteriorResult:
    """
    Fit a Bayesian linear regression with the same design as OLS.

    Args:
        df: Data table
        spec: ModelSpec or formula string
        draws: Total retained posterior draws, split evenly across chains
        tune: Tuning steps per chain
        chains: Number of chains (run sequentially)
        seed: Random seed for the sampler
        target_accept: NUTS target acceptance rate
        name: Optional label

    Returns:
        PosteriorResult

    Raises:
        ValueError: If the spec has no predictors or draws/chains are invalid
    """
    spec = as_spec(spec, name)
    if not spec.terms:
        raise ValueError(f"{spec.label}: Bayesian fit needs at least one predictor")
    if draws < 1 or chains < 1:
        raise ValueError(f"draws and chains must be positive (got {draws}, {chains})")

    design = build_design_matrix(df, spec)
    predictors = design.predictor_columns
    if not predictors:
        raise ValueError(f"{spec.label}: design has no predictor columns")

    Xz, yz, means, scales, y_mean, y_scale = _standardize_design(design.X, design.y, design.columns)
    draws_per_chain = math.ceil(draws / chains)

    est_log = EstimationLogger(spec.label, verbose=verbose)
    est_log.start("MCMC")

    with pm.Model(coords={"coef": predictors}):
        alpha = pm.Normal("alpha", mu=0.0, sigma=PRIOR_SCALE)
        beta = pm.Normal("beta", mu=0.0, sigma=PRIOR_SCALE, dims="coef")
        sigma = pm.HalfNormal("sigma", sigma=PRIOR_SCALE)
        mu = alpha + pm.math.dot(Xz, beta)
        pm.Normal("obs", mu=mu, sigma=sigma, observed=yz)
        idata = pm.sample(
            draws=draws_per_chain,
            tune=tune,
            chains=chains,
            cores=1,
            target_accept=target_accept,
            random_seed=seed,
            progressbar=False,
            return_inferencedata=True,
        )

    posterior = idata.posterior
    k = len(predictors)
    # chains are pooled, then cut to the requested total
    alpha_z = posterior["alpha"].values.reshape(-1)[:draws]
    beta_z = posterior["beta"].values.reshape(-1, k)[:draws]
    sigma_z = posterior["sigma"].values.reshape(-1)[:draws]

    # back to the original scale
    slopes = beta_z * (y_scale / scales)
    intercept = y_mean + y_scale * alpha_z - slopes @ means
    draw_table = pd.DataFrame(np.column_stack([intercept, slopes]), columns=design.columns)

    diagnostics = _sampler_diagnostics(idata, predictors, draws_per_chain, chains)
    est_log.sampled(len(draw_table), chains, diagnostics.max_rhat,
                    diagnostics.min_ess, diagnostics.divergences)
    if not diagnostics.converged:
        logger.warning(f"{spec.label}: sampler diagnostics flag problems\n{diagnostics.summary()}")

    return PosteriorResult(
        spec=spec,
        draws=draw_table,
        sigma_draws=sigma_z * y_scale,
        diagnostics=diagnostics,
        idata=idata,
    )


def _sampler_diagnostics(idata, predictors: List[str], draws_per_chain: int,
                         chains: int) -> SamplerDiagnostics:
    var_names = ["alpha", "beta", "sigma"]
    rhat = az.rhat(idata, var_names=var_names)
    ess = az.ess(idata, var_names=var_names, method="bulk")

    def flatten(ds) -> dict:
        out = {INTERCEPT: float(ds["alpha"].values), 'sigma': float(ds["sigma"].values)}
        for col, val in zip(predictors, np.atleast_1d(ds["beta"].values)):
            out[col] = float(val)
        return out

    divergences = int(idata.sample_stats["diverging"].values.sum())
    return SamplerDiagnostics(
        rhat=flatten(rhat),
        ess_bulk=flatten(ess),
        divergences=divergences,
        draws=draws_per_chain * chains,
        chains=chains,
    )
